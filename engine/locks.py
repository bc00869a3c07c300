"""
Per-key advisory locks for the idempotency ledger.

Backed by the ``locks`` cache alias: Redis in deployment, so every worker
process sees the same lock, with a TTL so a crashed holder never wedges a
key forever.
"""
import hashlib
import logging
import time
import uuid
from contextlib import contextmanager

from django.conf import settings
from django.core.cache import caches

from .errors import Timeout

logger = logging.getLogger(__name__)

LOCK_PREFIX = "idem-lock:"


class KeyLock:
    """Advisory lock scoped to one (operation, key) pair"""

    def __init__(self, operation: str, key: str, ttl_ms: int = None, wait_ms: int = None):
        pos = settings.POS
        digest = hashlib.sha256(f"{operation}:{key}".encode("utf-8")).hexdigest()
        self.name = f"{LOCK_PREFIX}{digest}"
        self.token = uuid.uuid4().hex
        self.ttl_ms = ttl_ms if ttl_ms is not None else pos["IDEMPOTENCY_LOCK_TTL_MS"]
        self.wait_ms = wait_ms if wait_ms is not None else pos["IDEMPOTENCY_LOCK_WAIT_MS"]
        self.poll_ms = pos["IDEMPOTENCY_LOCK_POLL_MS"]
        self.cache = caches["locks"]

    def acquire(self) -> None:
        deadline = time.monotonic() + self.wait_ms / 1000.0
        timeout_seconds = max(1, -(-self.ttl_ms // 1000))
        while True:
            if self.cache.add(self.name, self.token, timeout=timeout_seconds):
                return
            if time.monotonic() >= deadline:
                logger.warning("Gave up waiting for %s after %dms", self.name, self.wait_ms)
                raise Timeout("Another request with this idempotency key is still running", lock=self.name)
            time.sleep(self.poll_ms / 1000.0)

    def release(self) -> None:
        # Only drop the lock if it is still ours; an expired lock may have been re-taken
        if self.cache.get(self.name) == self.token:
            self.cache.delete(self.name)


@contextmanager
def key_lock(operation: str, key: str):
    lock = KeyLock(operation, key)
    lock.acquire()
    try:
        yield lock
    finally:
        lock.release()
