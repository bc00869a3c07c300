import threading
from datetime import datetime, timezone as dt_timezone

from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status

from engine.actors import Actor
from engine.models import AuditLogEntry
from orders.models import Order, Product
from orders.services import send_to_kitchen
from .models import Table, Reservation
from . import services


class TableAPITestCase(APITestCase):
    def setUp(self):
        self.table = Table.objects.create(number=5, name='Table 5', capacity=4)
        self.product = Product.objects.create(name='Burger', unit_price_cents=5000)
        # Add API key and staff identity to all requests
        self.client.defaults['HTTP_X_API_KEY'] = 'demo'
        self.client.defaults['HTTP_X_STAFF_ID'] = 'server-1'
        self.client.defaults['HTTP_X_STAFF_ROLE'] = 'server'
        self.actor = Actor.for_role('server-1', 'server')

    def post(self, name, data=None, key=None, **kwargs):
        url = reverse(name, kwargs=kwargs or {'table_id': self.table.id})
        headers = {'HTTP_IDEMPOTENCY_KEY': key} if key else {}
        return self.client.post(url, data or {}, format='json', **headers)


class SeatTableTests(TableAPITestCase):
    """Seating is exclusive and idempotent"""

    def test_seat_table(self):
        """Test seating an available table opens an order"""
        response = self.post('seat_table', {'guest_count': 4}, key='seat-1')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'seated')
        self.assertEqual(response.data['guest_count'], 4)

        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.SEATED)
        self.assertEqual(self.table.current_order_id, response.data['order_id'])
        order = Order.objects.get(pk=response.data['order_id'])
        self.assertEqual(order.status, Order.OPEN)
        self.assertEqual(order.table_id, self.table.id)

        entry = AuditLogEntry.objects.get(action='table.seated')
        self.assertEqual(entry.actor, 'server-1')
        self.assertEqual(entry.before['status'], 'available')
        self.assertEqual(entry.after['status'], 'seated')

    def test_second_seat_with_new_key_conflicts(self):
        """Test the loser of a seat race gets ConflictAlreadySeated with the current status"""
        first = self.post('seat_table', {'guest_count': 4}, key='till-a')
        second = self.post('seat_table', {'guest_count': 2}, key='till-b')

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(second.data['error'], 'ConflictAlreadySeated')
        self.assertEqual(second.data['current_status'], 'seated')
        self.assertEqual(second.data['current_order_id'], first.data['order_id'])
        self.assertEqual(Order.objects.count(), 1)

        # The failed attempt is logged as an attempt
        rejected = AuditLogEntry.objects.get(action='tables.seat.rejected')
        self.assertEqual(rejected.entity_id, str(self.table.id))

    def test_seat_replay_returns_same_result(self):
        """Test retrying with the same key returns the first result and creates nothing new"""
        first = self.post('seat_table', {'guest_count': 4}, key='seat-1')
        replay = self.post('seat_table', {'guest_count': 4}, key='seat-1')

        self.assertEqual(replay.status_code, first.status_code)
        self.assertEqual(replay.data, first.data)
        self.assertEqual(replay['Idempotent-Replayed'], 'true')
        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(AuditLogEntry.objects.filter(action='table.seated').count(), 1)

    def test_key_reuse_with_different_request(self):
        """Test the same key with a different guest count is rejected"""
        self.post('seat_table', {'guest_count': 4}, key='seat-1')
        response = self.post('seat_table', {'guest_count': 6}, key='seat-1')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'ConflictKeyReuse')

    def test_seat_blocked_table(self):
        Table.objects.filter(pk=self.table.pk).update(status=Table.BLOCKED)
        response = self.post('seat_table', {'guest_count': 2})

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InvalidTransition')
        self.assertEqual(response.data['current_status'], 'blocked')

    def test_invalid_guest_count(self):
        response = self.post('seat_table', {'guest_count': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_seat_unknown_table(self):
        response = self.post('seat_table', {'guest_count': 2}, table_id=9999)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'NotFound')


class UnseatAndClearTests(TableAPITestCase):
    def setUp(self):
        super().setUp()
        seated = services.seat_table(self.table.id, 2, self.actor)
        self.order_id = seated.body['order_id']

    def test_unseat_empty_table(self):
        """Test unseating voids the empty order and frees the table"""
        response = self.post('unseat_table')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'available')
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.AVAILABLE)
        self.assertIsNone(self.table.current_order_id)
        self.assertEqual(Order.objects.get(pk=self.order_id).status, Order.VOIDED)

    def test_unseat_with_items_fails(self):
        """Test a table that has ordered cannot simply be unseated"""
        send_to_kitchen([{'product_id': self.product.id, 'quantity': 1}], self.actor, order_id=self.order_id)
        response = self.post('unseat_table')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InvalidTransition')
        self.assertEqual(response.data['item_count'], 1)
        # The order void was rolled back with the rejected attempt
        self.assertEqual(Order.objects.get(pk=self.order_id).status, Order.OPEN)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.SEATED)

    def test_clear_requires_settled_order(self):
        """Test clearing a table whose order still owes money is refused"""
        send_to_kitchen([{'product_id': self.product.id, 'quantity': 1}], self.actor, order_id=self.order_id)
        response = self.post('clear_table')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InvalidState')
        self.assertEqual(response.data['order_status'], 'open')

    def test_clear_empty_table_then_clean(self):
        """Test clear voids the empty order, then clean makes the table available again"""
        response = self.post('clear_table')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'needs_cleaning')
        self.assertEqual(response.data['order_status'], 'voided')

        # Step 2: a second clear is an invalid transition
        again = self.post('clear_table')
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data['current_status'], 'needs_cleaning')

        # Step 3: clean
        cleaned = self.post('clean_table')
        self.assertEqual(cleaned.status_code, status.HTTP_200_OK)
        self.assertEqual(cleaned.data['status'], 'available')
        self.assertEqual(cleaned.data['previous_status'], 'needs_cleaning')

    def test_clear_paid_table_closes_order(self):
        Order.objects.filter(pk=self.order_id).update(status=Order.PAID)
        response = self.post('clear_table')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_status'], 'closed')
        self.assertEqual(Order.objects.get(pk=self.order_id).status, Order.CLOSED)


class BlockAndReserveTests(TableAPITestCase):
    def test_block_and_unblock(self):
        response = self.post('block_table')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'blocked')

        seat = self.post('seat_table', {'guest_count': 2})
        self.assertEqual(seat.status_code, status.HTTP_409_CONFLICT)

        response = self.post('unblock_table')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'available')

    def test_unblock_available_table_fails(self):
        response = self.post('unblock_table')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InvalidTransition')
        self.assertEqual(response.data['current_status'], 'available')

    def test_reserve_then_seat(self):
        """Test a reserved table can be seated and the reservation is marked seated"""
        response = self.post('reserve_table', {'customer_name': 'Patel', 'party_size': 6})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'reserved')
        reservation_id = response.data['reservation_id']

        seat = self.post('seat_table', {'guest_count': 6})
        self.assertEqual(seat.status_code, status.HTTP_200_OK)
        self.assertEqual(Reservation.objects.get(pk=reservation_id).status, 'seated')

    def test_cancel_reservation(self):
        reserved = self.post('reserve_table', {'customer_name': 'Patel', 'party_size': 6})
        reservation_id = reserved.data['reservation_id']

        response = self.post('cancel_reservation', reservation_id=reservation_id)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['table_status'], 'available')
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.AVAILABLE)

        # Step 2: cancelling twice is refused
        again = self.post('cancel_reservation', reservation_id=reservation_id)
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data['current_status'], 'cancelled')

    def test_list_reservations(self):
        """Test reservations list in time order and filter by day and status"""
        other = Table.objects.create(number=6, capacity=2)
        late = Reservation.objects.create(table=self.table, customer_name='Patel', party_size=4,
                                          reserved_for=datetime(2026, 3, 1, 20, 0, tzinfo=dt_timezone.utc),
                                          created_by='server-1')
        early = Reservation.objects.create(table=other, customer_name='Nguyen', party_size=2,
                                           reserved_for=datetime(2026, 3, 1, 18, 30, tzinfo=dt_timezone.utc),
                                           created_by='server-1')
        Reservation.objects.create(table=other, customer_name='Okafor', party_size=2,
                                   reserved_for=datetime(2026, 3, 2, 19, 0, tzinfo=dt_timezone.utc),
                                   status='cancelled', created_by='server-1')

        response = self.client.get(reverse('reservations'), {'date': '2026-03-01'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['id'] for r in response.data], [early.id, late.id])
        self.assertEqual(response.data[1]['table_number'], 5)

        response = self.client.get(reverse('reservations'), {'status': 'cancelled'})
        self.assertEqual([r['customer_name'] for r in response.data], ['Okafor'])

        response = self.client.get(reverse('reservations'), {'date': 'tomorrow'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class TableSetupTests(TableAPITestCase):
    def test_list_tables(self):
        response = self.client.get(reverse('tables'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['number'], 5)
        self.assertEqual(response.data[0]['status'], 'available')

    def test_create_table(self):
        response = self.client.post(reverse('tables'), {'number': 12, 'capacity': 6, 'shape': 'booth'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Table.objects.filter(number=12, shape='booth').exists())

    def test_create_duplicate_number(self):
        response = self.client.post(reverse('tables'), {'number': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationFailed')

    def test_update_and_delete_table(self):
        url = reverse('table_detail', kwargs={'table_id': self.table.id})
        response = self.client.put(url, {'capacity': 8}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['capacity'], 8)

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.table.refresh_from_db()
        self.assertFalse(self.table.is_active)

    def test_cannot_edit_seated_table(self):
        services.seat_table(self.table.id, 2, self.actor)
        url = reverse('table_detail', kwargs={'table_id': self.table.id})
        response = self.client.delete(url)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['current_status'], 'seated')


class SeatServiceTests(TestCase):
    def test_each_transition_writes_one_audit_entry(self):
        table = Table.objects.create(number=1)
        actor = Actor.for_role('m1', 'manager')

        services.seat_table(table.id, 2, actor)
        services.clear_table(table.id, actor)
        services.clean_table(table.id, actor)

        actions = list(
            AuditLogEntry.objects.filter(entity_type='table', entity_id=str(table.id))
            .values_list('action', flat=True)
        )
        self.assertEqual(actions, ['table.seated', 'table.cleared', 'table.cleaned'])


class ConcurrentSeatTests(TransactionTestCase):
    """Two tills seating the same table at the same moment"""

    def test_exactly_one_seat_wins(self):
        table = Table.objects.create(number=7)
        barrier = threading.Barrier(2)
        outcomes = []

        def seat(key):
            try:
                barrier.wait()
                outcomes.append(services.seat_table(table.id, 2, Actor(id=key), idempotency_key=key))
            finally:
                connection.close()

        threads = [threading.Thread(target=seat, args=(key,)) for key in ('till-a', 'till-b')]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        statuses = sorted(outcome.status for outcome in outcomes)
        self.assertEqual(statuses, [200, 409])
        loser = next(outcome for outcome in outcomes if outcome.status == 409)
        self.assertEqual(loser.error, 'ConflictAlreadySeated')
        self.assertEqual(Order.objects.filter(table=table).count(), 1)

    def test_same_key_runs_once(self):
        """Test a doubled first attempt with one key seats once and replays for the other"""
        table = Table.objects.create(number=8)
        barrier = threading.Barrier(2)
        outcomes = []

        def seat():
            try:
                barrier.wait()
                outcomes.append(services.seat_table(table.id, 2, Actor(id='till-a'), idempotency_key='seat-8'))
            finally:
                connection.close()

        threads = [threading.Thread(target=seat) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        results = sorted((outcome.status, outcome.replayed) for outcome in outcomes)
        self.assertEqual(results, [(200, False), (200, True)])
        self.assertEqual(outcomes[0].body, outcomes[1].body)
        self.assertEqual(Order.objects.filter(table=table).count(), 1)
        self.assertEqual(AuditLogEntry.objects.filter(action='table.seated').count(), 1)
