from django.db import models
from django.db.models import Q

from orders.models import Order


class Payment(models.Model):
	CASH = 'cash'
	CARD = 'card'
	QR = 'qr'
	METHOD_CHOICES = [
		(CASH, 'Cash'),
		(CARD, 'Card'),
		(QR, 'QR code'),
	]

	COMPLETED = 'completed'
	VOIDED = 'voided'
	STATUS_CHOICES = [
		(COMPLETED, 'Completed'),
		(VOIDED, 'Voided'),
	]

	order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name='payments')
	method = models.CharField(max_length=10, choices=METHOD_CHOICES)
	amount_cents = models.PositiveIntegerField()
	currency = models.CharField(max_length=3, default='gbp')
	status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=COMPLETED)
	reference = models.CharField(max_length=100, blank=True)
	idempotency_key = models.CharField(max_length=255, blank=True)
	recorded_by = models.CharField(max_length=100)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		constraints = [
			# Last line of defence behind the billed -> paid compare-and-set
			models.UniqueConstraint(
				fields=['order'],
				condition=Q(status='completed'),
				name='uniq_completed_payment_per_order',
			),
		]

	def __str__(self):
		return f"Payment {self.id} for Order {self.order_id} - {self.status}"
