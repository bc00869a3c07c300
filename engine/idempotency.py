"""
Idempotency ledger.

Maps (operation, caller-supplied key) to a request fingerprint and the stored
outcome of the first execution:

  - no key            -> run the work, no replay protection
  - fresh key         -> take the advisory key lock, run the work, store the outcome
  - known key, same   -> return the stored outcome verbatim (replay)
  - known key, other  -> ConflictKeyReuse

Terminal engine errors are outcomes too and are stored like successes.
Timeout/StorageFailure roll the whole unit of work back, so the key is never
marked resolved by a transaction that did not commit.
"""
import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from django.core.serializers.json import DjangoJSONEncoder
from django.db import IntegrityError, transaction

from . import audit
from .actors import SYSTEM, Actor
from .errors import ConflictKeyReuse, EngineError
from .locks import key_lock
from .models import IdempotencyRecord
from .uow import unit_of_work

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """Discriminated result of a mutating operation: HTTP-equivalent status plus body"""

    status: int
    body: Dict = field(default_factory=dict)
    replayed: bool = False

    @property
    def ok(self) -> bool:
        return self.status < 400

    @property
    def error(self) -> Optional[str]:
        if self.ok:
            return None
        return self.body.get("error")

    @classmethod
    def from_error(cls, exc: EngineError) -> "Outcome":
        return cls(status=exc.status_code, body=_normalise(exc.as_body()))


def _normalise(body: Dict) -> Dict:
    # Same shape the stored copy will have after a JSON round trip
    return json.loads(json.dumps(body, cls=DjangoJSONEncoder))


def fingerprint(payload: Dict) -> str:
    """Deterministic SHA-256 digest of a request's semantic payload"""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), cls=DjangoJSONEncoder)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class _KeyRace(Exception):
    """Another transaction stored a result for this key while we were running"""


class Ledger:
    def execute(
        self,
        operation: str,
        key: Optional[str],
        request_fingerprint: str,
        work: Callable[[], Outcome],
        *,
        actor: Actor = SYSTEM,
        target: Optional[Tuple[str, object]] = None,
    ) -> Outcome:
        """
        Run ``work`` at most once per (operation, key)

        Args:
            operation: Operation kind the key is scoped to (e.g. "tables.seat")
            key: Caller-supplied idempotency key, or None to bypass the ledger
            request_fingerprint: Digest of the semantic request payload
            work: Callable performing the state transition, returning an Outcome
            actor: Who is acting, for rejection audit entries
            target: (entity_type, entity_id) the operation acts on

        Returns:
            Outcome of the first execution (replayed=True on a replay)
        """
        if not key:
            with unit_of_work():
                return self._run(operation, work, actor, target, key)

        with key_lock(operation, key):
            try:
                with unit_of_work():
                    record = (
                        IdempotencyRecord.objects.select_for_update()
                        .filter(operation=operation, key=key)
                        .first()
                    )
                    if record is not None:
                        return self._replay(record, request_fingerprint)

                    outcome = self._run(operation, work, actor, target, key)
                    try:
                        with transaction.atomic():
                            IdempotencyRecord.objects.create(
                                operation=operation,
                                key=key,
                                fingerprint=request_fingerprint,
                                response_status=outcome.status,
                                response_body=outcome.body,
                            )
                    except IntegrityError as exc:
                        raise _KeyRace() from exc
                    return outcome
            except _KeyRace:
                logger.warning("Lost idempotency race on %s/%s, replaying stored result", operation, key)
                with unit_of_work():
                    record = IdempotencyRecord.objects.get(operation=operation, key=key)
                    return self._replay(record, request_fingerprint)

    def _replay(self, record: IdempotencyRecord, request_fingerprint: str) -> Outcome:
        if record.fingerprint != request_fingerprint:
            logger.warning("Idempotency key %s reused for a different %s request", record.key, record.operation)
            return Outcome.from_error(
                ConflictKeyReuse(operation=record.operation, key=record.key)
            )
        logger.info("Replaying %s/%s -> %s", record.operation, record.key, record.response_status)
        return Outcome(status=record.response_status, body=record.response_body, replayed=True)

    def _run(self, operation, work, actor, target, key) -> Outcome:
        try:
            with transaction.atomic():
                outcome = work()
        except EngineError as exc:
            if not exc.terminal:
                raise
            logger.warning("%s rejected: %s %s", operation, exc.kind, exc.message)
            self._record_rejection(operation, exc, actor, target, key)
            return Outcome.from_error(exc)
        outcome.body = _normalise(outcome.body)
        return outcome

    def _record_rejection(self, operation, exc, actor, target, key) -> None:
        entity_type, entity_id = target or ("system", "-")
        audit.record(
            actor,
            f"{operation}.rejected",
            entity_type,
            entity_id,
            after=_normalise(exc.as_body()),
            metadata={"idempotency_key": key} if key else {},
        )


ledger = Ledger()
execute = ledger.execute
