from rest_framework import serializers
from drf_spectacular.utils import extend_schema_field
from .models import Order, OrderItem, Product, VoidReason, DiscountDefinition


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    discount_cents = serializers.IntegerField(read_only=True)
    amount_cents = serializers.IntegerField(read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'quantity', 'unit_price_cents', 'status',
                 'notes', 'discount_cents', 'amount_cents', 'void_reason_text', 'comp_reason',
                 'comped_from', 'created_at']
        read_only_fields = fields
        extra_kwargs = {
            'amount_cents': {'help_text': 'What the line adds to the subtotal (0 once voided or comped)'}
        }


class BillSerializer(serializers.Serializer):
    subtotalCents = serializers.IntegerField(help_text="Sum of live item amounts after item discounts")
    taxAmountCents = serializers.IntegerField(help_text="Tax on the subtotal, rounded half up")
    serviceCents = serializers.IntegerField(help_text="Service charge on the subtotal, rounded half up")
    discountCents = serializers.IntegerField(help_text="Order-level discount")
    totalAmountCents = serializers.IntegerField(help_text="subtotal + tax + service - discount")


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    bill = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'number', 'table', 'status', 'guest_count', 'customer_ref', 'opened_by',
                 'tax_rate_bps', 'service_rate_bps', 'bill', 'items',
                 'created_at', 'billed_at', 'paid_at', 'closed_at']
        read_only_fields = fields

    @extend_schema_field(BillSerializer)
    def get_bill(self, order):
        return order.totals()


class SendItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(help_text="ID of the product to send")
    quantity = serializers.IntegerField(min_value=1, help_text="Quantity (minimum 1)")
    notes = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')


class SendToKitchenSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    table_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    items = SendItemSerializer(many=True, allow_empty=False)

    def validate(self, data):
        if data['order_id'] is not None and data['table_id'] is not None:
            raise serializers.ValidationError("Send to an order or a table, not both")
        return data


class ItemStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=OrderItem.KITCHEN_FLOW,
        help_text="Next kitchen status (pending -> preparing -> ready -> served)"
    )


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=200, help_text="Void reason code or free text")


class OptionalReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')


class DiscountRequestSerializer(serializers.Serializer):
    discount_code = serializers.CharField(max_length=50, help_text="Code of an active discount type")
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')


class CompItemSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=200)
    quantity = serializers.IntegerField(
        min_value=1, required=False, allow_null=True, default=None,
        help_text="Units to comp; omit to comp the whole line"
    )


class GenerateBillSerializer(serializers.Serializer):
    customer_ref = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['id', 'name', 'unit_price_cents']


class VoidReasonSerializer(serializers.ModelSerializer):
    class Meta:
        model = VoidReason
        fields = ['code', 'description', 'requires_manager']


class DiscountDefinitionSerializer(serializers.ModelSerializer):
    class Meta:
        model = DiscountDefinition
        fields = ['code', 'name', 'kind', 'value', 'max_amount_cents', 'requires_manager']
        extra_kwargs = {
            'value': {'help_text': 'Basis points for percentage discounts (1000 = 10%), cents for fixed ones'}
        }


class DailyReportQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False, help_text="Day to report on (defaults to today)")
