from django.db import models


class Table(models.Model):
    AVAILABLE = 'available'
    RESERVED = 'reserved'
    SEATED = 'seated'
    BILLED = 'billed'
    NEEDS_CLEANING = 'needs_cleaning'
    BLOCKED = 'blocked'

    STATUS_CHOICES = [
        (AVAILABLE, 'Available'),
        (RESERVED, 'Reserved'),
        (SEATED, 'Seated'),
        (BILLED, 'Billed'),
        (NEEDS_CLEANING, 'Needs Cleaning'),
        (BLOCKED, 'Blocked'),
    ]
    SHAPE_CHOICES = [
        ('round', 'Round'),
        ('square', 'Square'),
        ('rectangle', 'Rectangle'),
        ('booth', 'Booth'),
    ]

    number = models.PositiveIntegerField(unique=True)
    name = models.CharField(max_length=100, blank=True)
    capacity = models.PositiveIntegerField(default=4)
    shape = models.CharField(max_length=20, choices=SHAPE_CHOICES, default='round')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=AVAILABLE)
    current_order = models.ForeignKey(
        'orders.Order', on_delete=models.PROTECT, null=True, blank=True, related_name='+'
    )
    guest_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['number']

    def __str__(self):
        return self.name or f"Table {self.number}"

    def snapshot(self):
        """Status summary used for audit before/after values and conflict responses"""
        return {
            'status': self.status,
            'order_id': self.current_order_id,
            'guest_count': self.guest_count,
        }


class Reservation(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('seated', 'Seated'),
        ('cancelled', 'Cancelled'),
    ]

    table = models.ForeignKey(Table, on_delete=models.PROTECT, related_name='reservations')
    customer_name = models.CharField(max_length=200)
    party_size = models.PositiveIntegerField()
    reserved_for = models.DateTimeField(null=True, blank=True)
    notes = models.CharField(max_length=400, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    created_by = models.CharField(max_length=100)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Reservation {self.id} for {self.customer_name} (Table {self.table.number})"
