from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'order', 'method', 'amount_cents', 'status', 'recorded_by', 'created_at']
    list_filter = ['status', 'method', 'created_at']
    search_fields = ['order__number', 'idempotency_key', 'reference']
    readonly_fields = ['order', 'amount_cents', 'status', 'idempotency_key', 'recorded_by', 'created_at']
