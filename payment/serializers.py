from django.conf import settings
from rest_framework import serializers


class RecordPaymentSerializer(serializers.Serializer):
    """Serializer for recording a payment against a billed order"""
    order_id = serializers.IntegerField(help_text="Order being paid")
    method = serializers.ChoiceField(
        choices=settings.POS['PAYMENT_METHODS'],
        help_text="cash, card or qr"
    )
    amount_cents = serializers.IntegerField(
        min_value=0,
        help_text="Must equal the order's current totalAmountCents"
    )
    reference = serializers.CharField(
        max_length=100,
        required=False,
        allow_blank=True,
        default='',
        help_text="Terminal or receipt reference"
    )
