import logging
from typing import Dict, Optional

from .actors import Actor
from .models import AuditLogEntry

logger = logging.getLogger(__name__)


def record(
    actor: Actor,
    action: str,
    entity_type: str,
    entity_id,
    before: Optional[Dict] = None,
    after: Optional[Dict] = None,
    metadata: Optional[Dict] = None,
) -> AuditLogEntry:
    """
    Append one entry to the audit log.

    Must be called inside the same unit of work as the change it describes so
    the entry commits or rolls back with it.
    """
    entry = AuditLogEntry.objects.create(
        actor=actor.id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before=before,
        after=after,
        metadata=metadata or {},
    )
    logger.info("audit %s %s#%s by %s", action, entity_type, entity_id, actor.id)
    return entry


def history(entity_type: str, entity_id):
    return AuditLogEntry.objects.filter(entity_type=entity_type, entity_id=str(entity_id))
