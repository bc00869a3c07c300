from django.contrib import admin
from .models import Table, Reservation


@admin.register(Table)
class TableAdmin(admin.ModelAdmin):
    list_display = ['id', 'number', 'name', 'capacity', 'status', 'current_order', 'guest_count', 'is_active']
    list_filter = ['status', 'shape', 'is_active']
    search_fields = ['number', 'name']
    # Status and order link only change through the state engine
    readonly_fields = ['status', 'current_order', 'guest_count', 'created_at', 'updated_at']


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ['id', 'table', 'customer_name', 'party_size', 'reserved_for', 'status']
    list_filter = ['status', 'reserved_for']
    search_fields = ['customer_name', 'table__number']
    readonly_fields = ['status', 'created_by', 'created_at']
