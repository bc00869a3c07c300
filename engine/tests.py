from django.db import DatabaseError, OperationalError
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status

from . import audit
from .actors import Actor, COMP_ITEM, MANAGER_OVERRIDE, VOID_ITEM
from .errors import InvalidState, PermissionDenied, StorageFailure, Timeout
from .idempotency import Ledger, Outcome, fingerprint
from .locks import KeyLock
from .models import AppendOnlyError, AuditLogEntry, IdempotencyRecord
from .money import format_cents, percent_of, round_half_up, to_cents
from .uow import is_timeout, unit_of_work


class MoneyTests(TestCase):
    """Integer-cent arithmetic"""

    def test_percent_of_rounds_half_up(self):
        """Test basis-point rates round .5 up"""
        self.assertEqual(percent_of(21400, 700), 1498)
        # 45 cents at 10% is 4.5 cents
        self.assertEqual(percent_of(45, 1000), 5)
        # 44 cents at 10% is 4.4 cents
        self.assertEqual(percent_of(44, 1000), 4)
        self.assertEqual(round_half_up(5, 2), 3)
        self.assertEqual(percent_of(0, 700), 0)

    def test_to_cents_rejects_non_integers(self):
        """Test floats, bools and negatives are never accepted as money"""
        with self.assertRaises(TypeError):
            to_cents(10.5)
        with self.assertRaises(TypeError):
            to_cents(True)
        with self.assertRaises(TypeError):
            to_cents("100")
        with self.assertRaises(ValueError):
            to_cents(-1)
        self.assertEqual(to_cents(0), 0)

    def test_format_cents(self):
        self.assertEqual(format_cents(21400), "214.00")
        self.assertEqual(format_cents(5, "$"), "$0.05")


class FingerprintTests(TestCase):
    def test_fingerprint_ignores_key_order(self):
        """Test the same payload hashes the same regardless of key order"""
        first = fingerprint({'table_id': 1, 'guest_count': 2, 'actor': 'u1'})
        second = fingerprint({'actor': 'u1', 'guest_count': 2, 'table_id': 1})
        self.assertEqual(first, second)

    def test_fingerprint_differs_for_different_requests(self):
        first = fingerprint({'table_id': 1, 'guest_count': 2})
        second = fingerprint({'table_id': 1, 'guest_count': 3})
        self.assertNotEqual(first, second)


class LedgerTests(TestCase):
    """Idempotency ledger replay and storage rules"""

    def setUp(self):
        self.ledger = Ledger()
        self.actor = Actor(id='u1', role='server')
        self.calls = 0

    def _work(self, status_code=200):
        def work():
            self.calls += 1
            return Outcome(status_code, {'call': self.calls})
        return work

    def test_same_key_replays_first_outcome(self):
        """Test the second call with the same key returns the stored result without re-running"""
        fp = fingerprint({'x': 1})
        first = self.ledger.execute('test.op', 'k1', fp, self._work(), actor=self.actor)
        second = self.ledger.execute('test.op', 'k1', fp, self._work(), actor=self.actor)

        self.assertEqual(self.calls, 1)
        self.assertFalse(first.replayed)
        self.assertTrue(second.replayed)
        self.assertEqual(first.status, second.status)
        self.assertEqual(first.body, second.body)
        self.assertEqual(IdempotencyRecord.objects.count(), 1)

    def test_no_key_runs_every_time(self):
        """Test a missing key means no replay protection"""
        fp = fingerprint({'x': 1})
        self.ledger.execute('test.op', None, fp, self._work())
        self.ledger.execute('test.op', None, fp, self._work())

        self.assertEqual(self.calls, 2)
        self.assertEqual(IdempotencyRecord.objects.count(), 0)

    def test_key_reuse_with_different_payload_conflicts(self):
        """Test reusing a key for a different request fails with ConflictKeyReuse"""
        self.ledger.execute('test.op', 'k1', fingerprint({'x': 1}), self._work())
        outcome = self.ledger.execute('test.op', 'k1', fingerprint({'x': 2}), self._work())

        self.assertEqual(self.calls, 1)
        self.assertEqual(outcome.status, 409)
        self.assertEqual(outcome.error, 'ConflictKeyReuse')

    def test_keys_are_scoped_per_operation(self):
        fp = fingerprint({'x': 1})
        self.ledger.execute('test.one', 'k1', fp, self._work())
        outcome = self.ledger.execute('test.two', 'k1', fp, self._work())

        self.assertEqual(self.calls, 2)
        self.assertFalse(outcome.replayed)

    def test_terminal_error_is_stored_and_audited(self):
        """Test a rejected request is replayed as the same error and logged as an attempt"""
        def failing_work():
            self.calls += 1
            # This write must roll back with the rejected work
            audit.record(self.actor, 'test.side_effect', 'thing', 1)
            raise InvalidState('Not now', current_status='billed')

        fp = fingerprint({'x': 1})
        first = self.ledger.execute('test.op', 'k1', fp, failing_work, actor=self.actor, target=('thing', 1))
        second = self.ledger.execute('test.op', 'k1', fp, failing_work, actor=self.actor, target=('thing', 1))

        self.assertEqual(self.calls, 1)
        self.assertEqual(first.status, 409)
        self.assertEqual(first.body['error'], 'InvalidState')
        self.assertEqual(first.body['current_status'], 'billed')
        self.assertTrue(second.replayed)
        self.assertEqual(second.body, first.body)

        self.assertFalse(AuditLogEntry.objects.filter(action='test.side_effect').exists())
        rejected = AuditLogEntry.objects.get(action='test.op.rejected')
        self.assertEqual(rejected.entity_type, 'thing')
        self.assertEqual(rejected.entity_id, '1')
        self.assertEqual(rejected.metadata, {'idempotency_key': 'k1'})

    def test_timeout_is_not_stored(self):
        """Test a timed out attempt leaves the key free for a safe retry"""
        def slow_work():
            self.calls += 1
            raise Timeout()

        fp = fingerprint({'x': 1})
        with self.assertRaises(Timeout):
            self.ledger.execute('test.op', 'k1', fp, slow_work)
        self.assertEqual(IdempotencyRecord.objects.count(), 0)

        # Step 2: retry with the same key now succeeds
        outcome = self.ledger.execute('test.op', 'k1', fp, self._work())
        self.assertEqual(outcome.status, 200)
        self.assertFalse(outcome.replayed)

    def test_storage_failure_propagates(self):
        def broken_work():
            raise StorageFailure('disk full')

        with self.assertRaises(StorageFailure):
            self.ledger.execute('test.op', 'k1', fingerprint({}), broken_work)
        self.assertEqual(IdempotencyRecord.objects.count(), 0)


class AuditLogTests(TestCase):
    """Append-only audit log"""

    def setUp(self):
        self.entry = audit.record(Actor(id='u1'), 'table.seated', 'table', 3, after={'status': 'seated'})

    def test_entries_cannot_be_updated(self):
        self.entry.action = 'table.cleared'
        with self.assertRaises(AppendOnlyError):
            self.entry.save()
        with self.assertRaises(AppendOnlyError):
            AuditLogEntry.objects.filter(pk=self.entry.pk).update(action='table.cleared')

    def test_entries_cannot_be_deleted(self):
        with self.assertRaises(AppendOnlyError):
            self.entry.delete()
        with self.assertRaises(AppendOnlyError):
            AuditLogEntry.objects.all().delete()
        self.assertEqual(AuditLogEntry.objects.count(), 1)

    def test_history_is_ordered_per_entity(self):
        audit.record(Actor(id='u1'), 'table.cleared', 'table', 3)
        audit.record(Actor(id='u1'), 'table.seated', 'table', 4)

        actions = list(audit.history('table', 3).values_list('action', flat=True))
        self.assertEqual(actions, ['table.seated', 'table.cleared'])


class KeyLockTests(TestCase):
    def test_second_holder_times_out(self):
        """Test a concurrent request with the same key waits, then times out"""
        first = KeyLock('test.op', 'k1')
        first.acquire()
        try:
            second = KeyLock('test.op', 'k1', wait_ms=0)
            with self.assertRaises(Timeout):
                second.acquire()
            # A different key is unaffected
            other = KeyLock('test.op', 'k2', wait_ms=0)
            other.acquire()
            other.release()
        finally:
            first.release()

        again = KeyLock('test.op', 'k1', wait_ms=0)
        again.acquire()
        again.release()

    def test_release_leaves_foreign_lock(self):
        holder = KeyLock('test.op', 'k1')
        holder.acquire()
        stranger = KeyLock('test.op', 'k1')
        stranger.release()
        self.assertEqual(holder.cache.get(holder.name), holder.token)
        holder.release()
        self.assertIsNone(holder.cache.get(holder.name))


class UnitOfWorkTests(TestCase):
    def test_lock_errors_map_to_timeout(self):
        self.assertTrue(is_timeout(OperationalError('database is locked')))
        self.assertFalse(is_timeout(OperationalError('no such table: x')))

        with self.assertRaises(Timeout):
            with unit_of_work():
                raise OperationalError('database is locked')

    def test_other_database_errors_map_to_storage_failure(self):
        with self.assertRaises(StorageFailure):
            with unit_of_work():
                raise DatabaseError('connection lost')


class ActorTests(TestCase):
    def test_role_capabilities(self):
        manager = Actor.for_role('m1', 'manager')
        server = Actor.for_role('s1', 'server')

        self.assertTrue(manager.can(MANAGER_OVERRIDE))
        self.assertTrue(manager.can(COMP_ITEM))
        self.assertTrue(server.can(VOID_ITEM))
        self.assertFalse(server.can(COMP_ITEM))
        self.assertTrue(Actor.for_role('a1', 'admin').can(MANAGER_OVERRIDE))

    def test_explicit_grants_and_require(self):
        server = Actor.for_role('s1', 'server', ['comp_item'])
        self.assertTrue(server.can(COMP_ITEM))

        with self.assertRaises(PermissionDenied) as ctx:
            Actor.for_role('k1', 'kitchen').require(VOID_ITEM)
        self.assertEqual(ctx.exception.context['required_permission'], VOID_ITEM)
        self.assertEqual(ctx.exception.context['actor_role'], 'kitchen')


class AuditAPITests(APITestCase):
    def setUp(self):
        self.client.defaults['HTTP_X_API_KEY'] = 'demo'
        audit.record(Actor(id='u1'), 'table.seated', 'table', 9, after={'status': 'seated'})

    def test_audit_history(self):
        """Test audit entries can be read back per entity"""
        url = reverse('audit_history')
        response = self.client.get(url, {'entity_type': 'table', 'entity_id': '9'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'table.seated')
        self.assertEqual(response.data[0]['after'], {'status': 'seated'})

    def test_audit_requires_entity(self):
        response = self.client.get(reverse('audit_history'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_api_key_required(self):
        """Test requests without an API key are rejected"""
        self.client.defaults.pop('HTTP_X_API_KEY')
        response = self.client.get(reverse('audit_history'), {'entity_type': 'table', 'entity_id': '9'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_my_permissions(self):
        """Test the staff headers resolve to the capabilities the engine will enforce"""
        self.client.defaults['HTTP_X_STAFF_ID'] = 'server-1'
        self.client.defaults['HTTP_X_STAFF_ROLE'] = 'server'
        self.client.defaults['HTTP_X_STAFF_PERMISSIONS'] = 'comp_item'

        response = self.client.get(reverse('my_permissions'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['staff_id'], 'server-1')
        self.assertEqual(response.data['role'], 'server')
        self.assertEqual(response.data['permissions'], {
            'void_item': True,
            'discount_item': True,
            'comp_item': True,
            'order_discount': True,
            'manager_override': False,
        })
