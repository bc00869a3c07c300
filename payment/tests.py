import threading

from django.db import connection
from django.test import TransactionTestCase
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status

from engine.actors import Actor
from engine.errors import BillInvariantError
from engine.models import AuditLogEntry, IdempotencyRecord
from orders.models import Order, OrderItem, Product
from orders.services import generate_bill
from .models import Payment
from .services import record_payment


def billed_order(total_quantity=2):
    """An order for total_quantity x 10.00, billed at the configured rates"""
    product = Product.objects.create(name="Burger", unit_price_cents=1000)
    order = Order.objects.create()
    OrderItem.objects.create(order=order, product=product, quantity=total_quantity, unit_price_cents=1000)
    generate_bill(order.id, Actor(id='server-1', role='server'))
    order.refresh_from_db()
    return order


class PaymentAPITests(APITestCase):
    """Test payment API endpoints"""

    def setUp(self):
        self.order = billed_order()
        # Add API key to all requests
        self.client.defaults['HTTP_X_API_KEY'] = 'demo'
        self.client.defaults['HTTP_X_STAFF_ID'] = 'cashier-1'
        self.client.defaults['HTTP_X_STAFF_ROLE'] = 'cashier'
        self.url = reverse('record_payment')

    def pay(self, amount_cents=None, method='card', key=None):
        data = {
            'order_id': self.order.id,
            'method': method,
            'amount_cents': self.order.total_amount_cents if amount_cents is None else amount_cents,
        }
        headers = {'HTTP_IDEMPOTENCY_KEY': key} if key else {}
        return self.client.post(self.url, data, format='json', **headers)

    def test_record_payment(self):
        """Test paying the exact total settles the order"""
        response = self.pay(key='pay-1')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['amount_cents'], 2000)
        self.assertEqual(response.data['status'], 'completed')
        self.assertEqual(response.data['order_status'], 'paid')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.PAID)
        self.assertIsNotNone(self.order.paid_at)
        payment = Payment.objects.get(order=self.order)
        self.assertEqual(payment.recorded_by, 'cashier-1')
        self.assertEqual(payment.idempotency_key, 'pay-1')
        self.assertEqual(AuditLogEntry.objects.filter(action='payment.recorded').count(), 1)

    def test_payment_replay(self):
        """Test a retried payment with the same key replays without a second payment row"""
        first = self.pay(key='pay-1')
        replay = self.pay(key='pay-1')

        self.assertEqual(replay.status_code, status.HTTP_201_CREATED)
        self.assertEqual(replay.data, first.data)
        self.assertEqual(Payment.objects.count(), 1)
        self.assertEqual(AuditLogEntry.objects.filter(action='payment.recorded').count(), 1)

    def test_key_reuse_with_different_method(self):
        self.pay(method='card', key='pay-1')
        response = self.pay(method='cash', key='pay-1')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'ConflictKeyReuse')

    def test_second_payment_conflicts(self):
        self.pay(key='pay-1')
        response = self.pay(method='cash', key='pay-2')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'ConflictAlreadyPaid')
        self.assertEqual(Payment.objects.count(), 1)

    def test_amount_mismatch(self):
        """Test a stale amount is a conflict carrying the current total"""
        response = self.pay(amount_cents=1999)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'AmountMismatch')
        self.assertEqual(response.data['total_amount_cents'], 2000)
        self.assertEqual(response.data['current_status'], 'billed')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.BILLED)

        # The failed attempt is logged against the order
        rejected = AuditLogEntry.objects.get(action='payments.record.rejected')
        self.assertEqual(rejected.entity_id, str(self.order.id))

    def test_unbilled_order(self):
        Order.objects.filter(pk=self.order.pk).update(status=Order.OPEN)
        response = self.pay()

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InvalidState')
        self.assertEqual(response.data['current_status'], 'open')

    def test_invalid_method_and_amount(self):
        self.assertEqual(self.pay(method='cheque').status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.pay(amount_cents=-5).status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(self.url, {
            'order_id': self.order.id, 'method': 'cash', 'amount_cents': '20.5'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_order(self):
        response = self.client.post(self.url, {'order_id': 9999, 'method': 'cash', 'amount_cents': 100},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_close_requires_payment(self):
        url = reverse('close_order', kwargs={'order_id': self.order.id})
        response = self.client.post(url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['current_status'], 'billed')

        self.pay()
        response = self.client.post(url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'closed')

    def test_drifted_bill_is_not_paid(self):
        """Test a stored total that no longer adds up refuses payment and stores nothing"""
        Order.objects.filter(pk=self.order.pk).update(total_amount_cents=1500)

        with self.assertRaises(BillInvariantError):
            record_payment(self.order.id, 'cash', 1500, Actor(id='cashier-1'), idempotency_key='pay-1')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.BILLED)
        self.assertEqual(Payment.objects.count(), 0)
        self.assertEqual(IdempotencyRecord.objects.count(), 0)

    def test_idempotency_key_length(self):
        """Test an oversized key is refused up front and a 255 character key is kept whole"""
        response = self.pay(key='k' * 256)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'ValidationFailed')
        self.assertEqual(response.data['max_length'], 255)
        self.assertEqual(Payment.objects.count(), 0)

        response = self.pay(key='k' * 255)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Payment.objects.get().idempotency_key, 'k' * 255)


class ConcurrentPaymentTests(TransactionTestCase):
    """Two tills taking payment for the same bill at the same moment"""

    def test_exactly_one_payment_wins(self):
        order = billed_order()
        barrier = threading.Barrier(2)
        outcomes = []

        def pay(key, method):
            try:
                barrier.wait()
                outcomes.append(record_payment(
                    order.id, method, order.total_amount_cents, Actor(id=key), idempotency_key=key
                ))
            finally:
                connection.close()

        threads = [
            threading.Thread(target=pay, args=('till-a', 'card')),
            threading.Thread(target=pay, args=('till-b', 'cash')),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        statuses = sorted(outcome.status for outcome in outcomes)
        self.assertEqual(statuses, [201, 409])
        loser = next(outcome for outcome in outcomes if outcome.status == 409)
        self.assertEqual(loser.error, 'ConflictAlreadyPaid')
        self.assertEqual(Payment.objects.filter(order=order).count(), 1)
