from rest_framework import serializers
from .models import AuditLogEntry


class AuditLogEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLogEntry
        fields = ['id', 'actor', 'action', 'entity_type', 'entity_id',
                 'before', 'after', 'metadata', 'created_at']
        read_only_fields = fields


class AuditQuerySerializer(serializers.Serializer):
    entity_type = serializers.CharField(max_length=50, help_text="table, order, order_item or reservation")
    entity_id = serializers.CharField(max_length=50)


class PermissionsSerializer(serializers.Serializer):
    """Effective capabilities of the staff member making the request"""
    staff_id = serializers.CharField()
    role = serializers.CharField()
    permissions = serializers.DictField(child=serializers.BooleanField())
