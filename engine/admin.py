from django.contrib import admin
from .models import AuditLogEntry, IdempotencyRecord


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(ReadOnlyAdmin):
    list_display = ['id', 'action', 'entity_type', 'entity_id', 'actor', 'created_at']
    list_filter = ['action', 'entity_type', 'created_at']
    search_fields = ['entity_id', 'actor', 'action']


@admin.register(IdempotencyRecord)
class IdempotencyRecordAdmin(ReadOnlyAdmin):
    list_display = ['id', 'operation', 'key', 'response_status', 'created_at']
    list_filter = ['operation', 'response_status']
    search_fields = ['key']
