"""
Unit of work: one database transaction per mutating engine operation.

The datastore handle is Django's connection for the alias; nothing here keeps
process-global reconnect state. Lock and statement timeouts bound how long a
transaction may wait, and database errors are translated into the engine's
``Timeout`` / ``StorageFailure`` kinds.
"""
import logging
from contextlib import contextmanager

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, DatabaseError, OperationalError, connections, transaction

from .errors import StorageFailure, Timeout

logger = logging.getLogger(__name__)

# lock_not_available, query_canceled
TIMEOUT_SQLSTATES = {"55P03", "57014"}


def is_timeout(exc: DatabaseError) -> bool:
    cause = exc.__cause__
    code = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if code in TIMEOUT_SQLSTATES:
        return True
    message = str(exc).lower()
    return "database is locked" in message or "lock timeout" in message


def _apply_timeouts(connection) -> None:
    timeout_ms = int(settings.POS["TRANSACTION_TIMEOUT_MS"])
    if connection.vendor != "postgresql" or timeout_ms <= 0:
        return
    with connection.cursor() as cursor:
        cursor.execute(f"SET LOCAL lock_timeout = {timeout_ms}")
        cursor.execute(f"SET LOCAL statement_timeout = {timeout_ms}")


@contextmanager
def unit_of_work(using: str = DEFAULT_DB_ALIAS):
    """
    Run the enclosed block inside a single atomic transaction.

    Raises:
        Timeout: the transaction waited too long for a lock or statement
        StorageFailure: any other database error
    """
    connection = connections[using]
    try:
        with transaction.atomic(using=using):
            _apply_timeouts(connection)
            yield connection
    except OperationalError as exc:
        if is_timeout(exc):
            logger.warning("Unit of work timed out: %s", exc)
            raise Timeout() from exc
        logger.error("Unit of work failed: %s", exc)
        raise StorageFailure(str(exc)) from exc
    except DatabaseError as exc:
        logger.error("Unit of work failed: %s", exc)
        raise StorageFailure(str(exc)) from exc
