import uuid

from django.db import models
from django.db.models import Q

from engine.models import AppendOnlyError


class Product(models.Model):
    name = models.CharField(max_length=100)
    unit_price_cents = models.PositiveIntegerField()
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return self.name


class VoidReason(models.Model):
    code = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=200)
    requires_manager = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return self.code


class DiscountDefinition(models.Model):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'
    KIND_CHOICES = [
        (PERCENTAGE, 'Percentage'),
        (FIXED, 'Fixed amount'),
    ]

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=100)
    kind = models.CharField(max_length=10, choices=KIND_CHOICES)
    # Basis points for percentage discounts, cents for fixed ones
    value = models.PositiveIntegerField()
    max_amount_cents = models.PositiveIntegerField(null=True, blank=True)
    requires_manager = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return self.name


def generate_order_number():
    return f"ORD-{uuid.uuid4().hex[:10].upper()}"


class Order(models.Model):
    OPEN = 'open'
    BILLED = 'billed'
    PAID = 'paid'
    CLOSED = 'closed'
    VOIDED = 'voided'

    STATUS_CHOICES = [
        (OPEN, 'Open'),
        (BILLED, 'Billed'),
        (PAID, 'Paid'),
        (CLOSED, 'Closed'),
        (VOIDED, 'Voided'),
    ]
    UNSETTLED = (OPEN, BILLED, PAID)

    number = models.CharField(max_length=20, unique=True, default=generate_order_number)
    table = models.ForeignKey(
        'tables.Table', on_delete=models.PROTECT, null=True, blank=True, related_name='orders'
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=OPEN)
    guest_count = models.PositiveIntegerField(default=1)
    customer_ref = models.CharField(max_length=100, blank=True)
    opened_by = models.CharField(max_length=100, blank=True)
    # Derived from item state by orders.billing; never edited directly
    subtotal_cents = models.PositiveIntegerField(default=0)
    tax_amount_cents = models.PositiveIntegerField(default=0)
    service_cents = models.PositiveIntegerField(default=0)
    discount_cents = models.PositiveIntegerField(default=0)
    total_amount_cents = models.PositiveIntegerField(default=0)
    tax_rate_bps = models.PositiveIntegerField(default=0)
    service_rate_bps = models.PositiveIntegerField(default=0)
    active_discount = models.ForeignKey(
        'DiscountApplication', on_delete=models.PROTECT, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    billed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['table'],
                condition=Q(status__in=['open', 'billed', 'paid']),
                name='uniq_unsettled_order_per_table',
            ),
        ]

    def __str__(self):
        return f"Order {self.number} ({self.status})"

    def totals(self):
        return {
            'subtotalCents': self.subtotal_cents,
            'taxAmountCents': self.tax_amount_cents,
            'serviceCents': self.service_cents,
            'discountCents': self.discount_cents,
            'totalAmountCents': self.total_amount_cents,
        }


class OrderItem(models.Model):
    PENDING = 'pending'
    PREPARING = 'preparing'
    READY = 'ready'
    SERVED = 'served'
    VOIDED = 'voided'
    COMPED = 'comped'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (PREPARING, 'Preparing'),
        (READY, 'Ready'),
        (SERVED, 'Served'),
        (VOIDED, 'Voided'),
        (COMPED, 'Comped'),
    ]
    KITCHEN_FLOW = [PENDING, PREPARING, READY, SERVED]
    TERMINAL = (VOIDED, COMPED)

    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT)
    quantity = models.PositiveIntegerField()
    unit_price_cents = models.PositiveIntegerField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    notes = models.CharField(max_length=200, blank=True)
    active_discount = models.ForeignKey(
        'DiscountApplication', on_delete=models.PROTECT, null=True, blank=True, related_name='+'
    )
    void_reason = models.ForeignKey(VoidReason, on_delete=models.PROTECT, null=True, blank=True)
    void_reason_text = models.CharField(max_length=200, blank=True)
    voided_by = models.CharField(max_length=100, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    comp_reason = models.CharField(max_length=200, blank=True)
    comped_by = models.CharField(max_length=100, blank=True)
    comped_at = models.DateTimeField(null=True, blank=True)
    comped_from = models.ForeignKey(
        'self', on_delete=models.PROTECT, null=True, blank=True, related_name='comped_lines'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity} x {self.product.name} for Order {self.order_id}"

    @property
    def gross_cents(self):
        return self.unit_price_cents * self.quantity

    @property
    def discount_cents(self):
        if self.active_discount_id is None:
            return 0
        return self.active_discount.discount_amount_cents

    @property
    def amount_cents(self):
        """What the line contributes to the subtotal: zero once voided or comped"""
        if self.status in self.TERMINAL:
            return 0
        return self.gross_cents - self.discount_cents


class DiscountApplication(models.Model):
    """
    Append-only record of a discount being applied or reversed.

    Removing a discount writes a new row with ``reversal_of`` pointing at the
    applied one; only the item/order ``active_discount`` pointer is cleared.
    """

    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name='discount_applications')
    item = models.ForeignKey(
        OrderItem, on_delete=models.PROTECT, null=True, blank=True, related_name='discount_applications'
    )
    definition = models.ForeignKey(DiscountDefinition, on_delete=models.PROTECT)
    discount_amount_cents = models.PositiveIntegerField()
    original_amount_cents = models.PositiveIntegerField()
    applied_by = models.CharField(max_length=100)
    approved_by = models.CharField(max_length=100, blank=True)
    reason = models.CharField(max_length=200, blank=True)
    reversal_of = models.OneToOneField(
        'self', on_delete=models.PROTECT, null=True, blank=True, related_name='reversal'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyError("Discount applications cannot be modified")
        super().save(*args, **kwargs)

    def __str__(self):
        target = f"item {self.item_id}" if self.item_id else f"order {self.order_id}"
        verb = 'reversal' if self.reversal_of_id else 'discount'
        return f"{verb} of {self.discount_amount_cents} on {target}"
