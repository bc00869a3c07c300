from django.contrib import admin
from .models import Product, VoidReason, DiscountDefinition, Order, OrderItem, DiscountApplication


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'unit_price_cents', 'is_active']
    search_fields = ['name']
    list_filter = ['is_active']


@admin.register(VoidReason)
class VoidReasonAdmin(admin.ModelAdmin):
    list_display = ['code', 'description', 'requires_manager', 'is_active']
    list_filter = ['requires_manager', 'is_active']


@admin.register(DiscountDefinition)
class DiscountDefinitionAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'kind', 'value', 'max_amount_cents', 'requires_manager', 'is_active']
    list_filter = ['kind', 'requires_manager', 'is_active']
    search_fields = ['code', 'name']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['id', 'number', 'table', 'status', 'guest_count', 'created_at', 'total_amount_cents']
    list_filter = ['status', 'created_at']
    search_fields = ['number', 'table__number', 'customer_ref']
    readonly_fields = [
        'status', 'subtotal_cents', 'tax_amount_cents', 'service_cents', 'discount_cents',
        'total_amount_cents', 'active_discount', 'created_at', 'billed_at', 'paid_at', 'closed_at',
    ]


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ['order', 'product', 'quantity', 'unit_price_cents', 'status']
    list_filter = ['status', 'order__status', 'product']
    search_fields = ['order__number', 'product__name']
    readonly_fields = ['status', 'active_discount', 'comped_from', 'created_at']


@admin.register(DiscountApplication)
class DiscountApplicationAdmin(admin.ModelAdmin):
    list_display = ['id', 'order', 'item', 'definition', 'discount_amount_cents', 'applied_by', 'reversal_of']
    list_filter = ['definition']
    search_fields = ['order__number', 'applied_by']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
