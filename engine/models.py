from django.db import models


class IdempotencyRecord(models.Model):
    operation = models.CharField(max_length=100)
    key = models.CharField(max_length=255)
    fingerprint = models.CharField(max_length=64)
    response_status = models.PositiveSmallIntegerField()
    response_body = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['operation', 'key'], name='uniq_idempotency_operation_key'),
        ]

    def __str__(self):
        return f"{self.operation}:{self.key} -> {self.response_status}"


class AppendOnlyError(Exception):
    """Raised when code tries to rewrite or remove audit history"""


class AuditLogQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise AppendOnlyError("Audit log entries cannot be updated")

    def delete(self):
        raise AppendOnlyError("Audit log entries cannot be deleted")


class AuditLogEntry(models.Model):
    actor = models.CharField(max_length=100)
    action = models.CharField(max_length=100)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=50)
    before = models.JSONField(null=True, blank=True)
    after = models.JSONField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        ordering = ['id']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id']),
            models.Index(fields=['action']),
        ]
        verbose_name_plural = 'audit log entries'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyError("Audit log entries are immutable once written")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AppendOnlyError("Audit log entries cannot be deleted")

    def __str__(self):
        return f"{self.action} {self.entity_type}#{self.entity_id} by {self.actor}"
