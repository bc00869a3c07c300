from rest_framework import serializers
from .models import Table, Reservation


class TableSerializer(serializers.ModelSerializer):
    order_id = serializers.IntegerField(source='current_order_id', read_only=True, allow_null=True)

    class Meta:
        model = Table
        fields = ['id', 'number', 'name', 'capacity', 'shape', 'status',
                 'order_id', 'guest_count', 'updated_at']
        read_only_fields = fields
        extra_kwargs = {
            'status': {'help_text': 'available, reserved, seated, billed, needs_cleaning or blocked'},
            'guest_count': {'help_text': 'Guests currently seated (0 when free)'}
        }


class CreateTableSerializer(serializers.Serializer):
    number = serializers.IntegerField(min_value=1, help_text="Table number shown on the floor plan")
    name = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    capacity = serializers.IntegerField(min_value=1, required=False, default=4)
    shape = serializers.ChoiceField(choices=Table.SHAPE_CHOICES, required=False, default='round')


class UpdateTableSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False)
    capacity = serializers.IntegerField(min_value=1, required=False)
    shape = serializers.ChoiceField(choices=Table.SHAPE_CHOICES, required=False)


class SeatTableSerializer(serializers.Serializer):
    guest_count = serializers.IntegerField(min_value=1, help_text="Number of guests (minimum 1)")


class ReserveTableSerializer(serializers.Serializer):
    customer_name = serializers.CharField(max_length=200)
    party_size = serializers.IntegerField(min_value=1)
    reserved_for = serializers.DateTimeField(required=False, allow_null=True, default=None)
    notes = serializers.CharField(max_length=400, required=False, allow_blank=True, default='')


class ReservationSerializer(serializers.ModelSerializer):
    table_number = serializers.IntegerField(source='table.number', read_only=True)

    class Meta:
        model = Reservation
        fields = ['id', 'table', 'table_number', 'customer_name', 'party_size', 'reserved_for',
                 'notes', 'status', 'created_by', 'created_at']
        read_only_fields = fields


class ReservationQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False, help_text="Only reservations for this day (YYYY-MM-DD)")
    status = serializers.ChoiceField(choices=Reservation.STATUS_CHOICES, required=False)


class TableTransitionSerializer(serializers.Serializer):
    """Response body of a table transition"""
    table_id = serializers.IntegerField()
    status = serializers.CharField()
    order_id = serializers.IntegerField(required=False, allow_null=True)
    previous_status = serializers.CharField(required=False)
