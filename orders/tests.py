from django.conf import settings
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status

from engine.actors import Actor
from engine.models import AuditLogEntry
from payment.models import Payment
from tables.models import Table
from tables.services import seat_table
from .billing import compute_bill
from .models import Order, OrderItem, Product, VoidReason, DiscountDefinition, DiscountApplication
from .reports import daily_report
from . import services

TAXED = dict(settings.POS, TAX_RATE_BPS=700)


class OrderAPITestCase(APITestCase):
    """Table 5 seated for two, with a small menu and the usual reasons and discounts"""

    def setUp(self):
        self.burger = Product.objects.create(name='Burger', unit_price_cents=10000)
        self.cola = Product.objects.create(name='Coca Cola', unit_price_cents=333)
        VoidReason.objects.create(code='wrong_item', description='Wrong item rung in')
        VoidReason.objects.create(code='manager_void', description='Manager void', requires_manager=True)
        DiscountDefinition.objects.create(
            code='staff10', name='Staff 10%', kind=DiscountDefinition.PERCENTAGE, value=1000
        )
        DiscountDefinition.objects.create(
            code='loyalty5', name='Loyalty 5.00 off', kind=DiscountDefinition.FIXED, value=500
        )
        DiscountDefinition.objects.create(
            code='manager50', name='Manager 50%', kind=DiscountDefinition.PERCENTAGE, value=5000,
            requires_manager=True
        )

        self.table = Table.objects.create(number=5, name='Table 5')
        self.server = Actor.for_role('server-1', 'server')
        self.manager = Actor.for_role('manager-1', 'manager')
        seated = seat_table(self.table.id, 2, self.server)
        self.order = Order.objects.get(pk=seated.body['order_id'])

        # Add API key and staff identity to all requests
        self.client.defaults['HTTP_X_API_KEY'] = 'demo'
        self.as_staff('server-1', 'server')

    def as_staff(self, staff_id, role, permissions=''):
        self.client.defaults['HTTP_X_STAFF_ID'] = staff_id
        self.client.defaults['HTTP_X_STAFF_ROLE'] = role
        self.client.defaults['HTTP_X_STAFF_PERMISSIONS'] = permissions

    def send(self, *lines, key=None):
        """Send (product, quantity) lines to the seated table's order"""
        data = {
            'order_id': self.order.id,
            'items': [{'product_id': product.id, 'quantity': qty} for product, qty in lines],
        }
        headers = {'HTTP_IDEMPOTENCY_KEY': key} if key else {}
        return self.client.post(reverse('send_to_kitchen'), data, format='json', **headers)

    def item_url(self, name, item_id):
        return reverse(name, kwargs={'order_id': self.order.id, 'item_id': item_id})

    def order_url(self, name):
        return reverse(name, kwargs={'order_id': self.order.id})


@override_settings(POS=TAXED)
class OrderLifecycleTests(OrderAPITestCase):
    """Seat, order, bill, pay, close"""

    def test_full_service(self):
        """Test two burgers billed at 7% tax and paid in cash, then a second payment is refused"""
        self.assertEqual(self.order.status, Order.OPEN)

        # Step 1: send two burgers
        response = self.send((self.burger, 1), (self.burger, 1))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items_sent'], 2)
        self.assertEqual(response.data['totals']['subtotalCents'], 20000)

        # Step 2: bill
        response = self.client.post(self.order_url('generate_bill'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        bill = response.data['bill']
        self.assertEqual(bill['subtotalCents'], 20000)
        self.assertEqual(bill['taxAmountCents'], 1400)
        self.assertEqual(bill['totalAmountCents'], 21400)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.BILLED)

        # Step 3: pay in cash
        response = self.client.post(reverse('record_payment'), {
            'order_id': self.order.id, 'method': 'cash', 'amount_cents': 21400
        }, format='json', HTTP_IDEMPOTENCY_KEY='pay-1')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order_status'], 'paid')

        # Step 4: a second payment with any key is refused
        response = self.client.post(reverse('record_payment'), {
            'order_id': self.order.id, 'method': 'card', 'amount_cents': 21400
        }, format='json', HTTP_IDEMPOTENCY_KEY='pay-2')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'ConflictAlreadyPaid')
        self.assertEqual(response.data['current_status'], 'paid')
        self.assertEqual(Payment.objects.filter(order=self.order).count(), 1)

        # Step 5: close; the table needs cleaning
        response = self.client.post(self.order_url('close_order'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['table_status'], 'needs_cleaning')
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, Table.NEEDS_CLEANING)
        self.assertIsNone(self.table.current_order_id)

    def test_billing_twice_returns_stored_bill(self):
        """Test a repeat bill request returns the same figures even if rates change"""
        self.send((self.burger, 2))
        first = self.client.post(self.order_url('generate_bill'), {}, format='json')

        with self.settings(POS=dict(TAXED, TAX_RATE_BPS=2000)):
            second = self.client.post(self.order_url('generate_bill'), {}, format='json')

        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second.data['bill'], first.data['bill'])
        self.assertEqual(AuditLogEntry.objects.filter(action='order.billed').count(), 1)

    def test_bill_empty_order(self):
        response = self.client.post(self.order_url('generate_bill'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InvalidState')

    def test_billed_order_is_frozen(self):
        """Test items cannot change once the bill is printed"""
        self.send((self.burger, 1))
        item = self.order.items.get()
        self.client.post(self.order_url('generate_bill'), {}, format='json')

        response = self.client.post(self.item_url('void_item', item.id), {'reason': 'wrong_item'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InvalidState')
        self.assertEqual(response.data['current_status'], 'billed')

        response = self.send((self.cola, 1))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_order_detail(self):
        self.send((self.burger, 1))
        response = self.client.get(self.order_url('order_detail'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'open')
        self.assertEqual(response.data['bill']['subtotalCents'], 10000)
        self.assertEqual(response.data['items'][0]['product_name'], 'Burger')


class SendToKitchenTests(OrderAPITestCase):
    def test_send_replay_creates_items_once(self):
        """Test a retried send with the same key does not duplicate items"""
        first = self.send((self.burger, 2), key='send-1')
        replay = self.send((self.burger, 2), key='send-1')

        self.assertEqual(replay.data, first.data)
        self.assertEqual(self.order.items.count(), 1)

    def test_send_key_reuse(self):
        self.send((self.burger, 2), key='send-1')
        response = self.send((self.burger, 3), key='send-1')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'ConflictKeyReuse')
        self.assertEqual(self.order.items.get().quantity, 2)

    def test_send_by_table(self):
        response = self.client.post(reverse('send_to_kitchen'), {
            'table_id': self.table.id, 'items': [{'product_id': self.cola.id, 'quantity': 2}]
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['order_id'], self.order.id)
        self.assertEqual(response.data['totals']['subtotalCents'], 666)

    def test_takeaway_order(self):
        """Test sending without an order or table opens a takeaway order"""
        response = self.client.post(reverse('send_to_kitchen'), {
            'items': [{'product_id': self.cola.id, 'quantity': 1}]
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['created_order'])
        self.assertIsNone(Order.objects.get(pk=response.data['order_id']).table_id)

    def test_unknown_product(self):
        response = self.client.post(reverse('send_to_kitchen'), {
            'order_id': self.order.id, 'items': [{'product_id': 9999, 'quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.order.items.count(), 0)


class VoidItemTests(OrderAPITestCase):
    def setUp(self):
        super().setUp()
        self.send((self.burger, 1), (self.burger, 1))
        self.first, self.second = self.order.items.all()

    def test_void_item(self):
        """Test a voided line stays on the order and contributes nothing"""
        response = self.client.post(self.item_url('void_item', self.first.id), {'reason': 'wrong_item'},
                                    format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'voided')
        self.assertEqual(response.data['void_reason'], 'wrong_item')
        self.assertEqual(response.data['totals']['subtotalCents'], 10000)

        self.first.refresh_from_db()
        self.assertEqual(self.first.status, OrderItem.VOIDED)
        self.assertEqual(self.first.voided_by, 'server-1')
        self.assertEqual(self.order.items.count(), 2)

    def test_free_text_reason(self):
        response = self.client.post(self.item_url('void_item', self.first.id),
                                    {'reason': 'Dropped on the floor'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['void_reason'], 'custom')
        self.assertEqual(response.data['void_reason_text'], 'Dropped on the floor')

    def test_void_twice(self):
        self.client.post(self.item_url('void_item', self.first.id), {'reason': 'wrong_item'}, format='json')
        response = self.client.post(self.item_url('void_item', self.first.id), {'reason': 'wrong_item'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['current_status'], 'voided')

    def test_kitchen_role_cannot_void(self):
        self.as_staff('chef-1', 'kitchen')
        response = self.client.post(self.item_url('void_item', self.first.id), {'reason': 'wrong_item'},
                                    format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'PermissionDenied')
        self.assertEqual(response.data['required_permission'], 'void_item')
        self.first.refresh_from_db()
        self.assertEqual(self.first.status, OrderItem.PENDING)

    def test_manager_reason_needs_override(self):
        """Test a manager-only reason is refused for a server and accepted for a manager"""
        url = self.item_url('void_item', self.first.id)
        response = self.client.post(url, {'reason': 'manager_void'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['required_permission'], 'manager_override')

        self.as_staff('manager-1', 'manager')
        response = self.client.post(url, {'reason': 'manager_void'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class DiscountTests(OrderAPITestCase):
    def setUp(self):
        super().setUp()
        self.send((self.burger, 1), (self.burger, 1))
        self.item = self.order.items.first()

    def test_apply_and_remove_item_discount(self):
        """Test a 10% discount takes 1000 off a 10000 line and removal restores it"""
        url = self.item_url('item_discount', self.item.id)
        response = self.client.post(url, {'discount_code': 'staff10'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['discount_amount_cents'], 1000)
        self.assertEqual(response.data['amount_cents'], 9000)
        self.assertEqual(response.data['totals']['subtotalCents'], 19000)

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['amount_cents'], 10000)
        self.assertEqual(response.data['totals']['subtotalCents'], 20000)

        # The applied row is kept and a reversal appended
        applied, reversal = DiscountApplication.objects.filter(item=self.item)
        self.assertEqual(reversal.reversal_of_id, applied.id)
        self.item.refresh_from_db()
        self.assertIsNone(self.item.active_discount_id)

    def test_second_discount_conflicts(self):
        url = self.item_url('item_discount', self.item.id)
        self.client.post(url, {'discount_code': 'staff10'}, format='json')
        response = self.client.post(url, {'discount_code': 'loyalty5'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'ConflictDiscountExists')
        self.assertEqual(response.data['discount_amount_cents'], 1000)

    def test_manager_discount_needs_override(self):
        url = self.item_url('item_discount', self.item.id)
        response = self.client.post(url, {'discount_code': 'manager50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.as_staff('manager-1', 'manager')
        response = self.client.post(url, {'discount_code': 'manager50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['discount_amount_cents'], 5000)

    def test_remove_missing_discount(self):
        response = self.client.delete(self.item_url('item_discount', self.item.id))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_order_discount(self):
        """Test an order-level discount is reported as discountCents"""
        url = self.order_url('order_discount')
        response = self.client.post(url, {'discount_code': 'loyalty5'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totals']['discountCents'], 500)
        self.assertEqual(response.data['totals']['totalAmountCents'], 19500)

        response = self.client.post(url, {'discount_code': 'staff10'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['totals']['discountCents'], 0)

    def test_unknown_discount_code(self):
        response = self.client.post(self.item_url('item_discount', self.item.id), {'discount_code': 'nope'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class CompTests(OrderAPITestCase):
    def setUp(self):
        super().setUp()
        self.send((self.burger, 3))
        self.item = self.order.items.get()

    def test_server_cannot_comp(self):
        response = self.client.post(self.item_url('comp_item', self.item.id), {'reason': 'Birthday'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['required_permission'], 'comp_item')

    def test_partial_comp_splits_line(self):
        """Test comping one of three burgers leaves two live and one comped"""
        self.as_staff('manager-1', 'manager')
        response = self.client.post(self.item_url('comp_item', self.item.id),
                                    {'reason': 'Birthday', 'quantity': 1}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_partial_comp'])
        self.assertEqual(response.data['remaining_quantity'], 2)
        self.assertEqual(response.data['comp_amount_cents'], 10000)
        self.assertEqual(response.data['totals']['subtotalCents'], 20000)

        comped = OrderItem.objects.get(pk=response.data['comped_item_id'])
        self.assertEqual(comped.status, OrderItem.COMPED)
        self.assertEqual(comped.quantity, 1)
        self.assertEqual(comped.comped_from_id, self.item.id)

    def test_full_comp(self):
        self.as_staff('manager-1', 'manager')
        response = self.client.post(self.item_url('comp_item', self.item.id), {'reason': 'Birthday'},
                                    format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_partial_comp'])
        self.assertEqual(response.data['totals']['subtotalCents'], 0)

    def test_comp_more_than_ordered(self):
        self.as_staff('manager-1', 'manager')
        response = self.client.post(self.item_url('comp_item', self.item.id),
                                    {'reason': 'Birthday', 'quantity': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_partial_comp_of_discounted_item(self):
        services.apply_item_discount(self.order.id, self.item.id, 'staff10', self.manager)
        self.as_staff('manager-1', 'manager')
        response = self.client.post(self.item_url('comp_item', self.item.id),
                                    {'reason': 'Birthday', 'quantity': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InvalidState')


class KitchenFlowTests(OrderAPITestCase):
    def setUp(self):
        super().setUp()
        self.send((self.burger, 1))
        self.item = self.order.items.get()

    def advance(self, new_status):
        url = reverse('item_status', kwargs={'item_id': self.item.id})
        return self.client.post(url, {'status': new_status}, format='json')

    def test_items_move_one_step_at_a_time(self):
        self.assertEqual(self.advance('preparing').status_code, status.HTTP_200_OK)

        response = self.advance('served')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'InvalidTransition')
        self.assertEqual(response.data['current_status'], 'preparing')

        self.assertEqual(self.advance('ready').status_code, status.HTTP_200_OK)
        self.assertEqual(self.advance('served').status_code, status.HTTP_200_OK)

    def test_queue_and_complete(self):
        """Test completing an order waits for the kitchen, then serves ready items"""
        complete_url = reverse('complete_order', kwargs={'order_id': self.order.id})
        response = self.client.post(complete_url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        queue = self.client.get(reverse('kitchen_queue'))
        self.assertEqual([line['item_id'] for line in queue.data['items']], [self.item.id])

        self.advance('preparing')
        self.advance('ready')
        response = self.client.post(complete_url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['served_item_ids'], [self.item.id])

        queue = self.client.get(reverse('kitchen_queue'))
        self.assertEqual(queue.data['items'], [])

    def test_voided_item_leaves_queue(self):
        services.void_item(self.order.id, self.item.id, 'wrong_item', self.server)
        queue = self.client.get(reverse('kitchen_queue'))
        self.assertEqual(queue.data['items'], [])

        response = self.advance('preparing')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_reopen_served_item(self):
        OrderItem.objects.filter(pk=self.item.pk).update(status=OrderItem.SERVED)
        url = reverse('reopen_item', kwargs={'item_id': self.item.id})

        response = self.client.post(url, {'reason': 'Sent back cold'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'pending')
        self.assertTrue(AuditLogEntry.objects.filter(action='order_item.reopened').exists())

        response = self.client.post(url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class VoidOrderTests(OrderAPITestCase):
    def test_void_order_needs_manager(self):
        url = self.order_url('void_order')
        response = self.client.post(url, {'reason': 'Walked out'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.as_staff('manager-1', 'manager')
        response = self.client.post(url, {'reason': 'Walked out'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['table_status'], 'needs_cleaning')
        self.table.refresh_from_db()
        self.assertIsNone(self.table.current_order_id)


class AuditCompletenessTests(OrderAPITestCase):
    """Every money-affecting action writes exactly one audit entry"""

    def assertOneEntry(self, action, call):
        before = AuditLogEntry.objects.count()
        outcome = call()
        self.assertTrue(outcome.ok, outcome.body)
        self.assertEqual(AuditLogEntry.objects.count(), before + 1)
        self.assertEqual(AuditLogEntry.objects.last().action, action)

    def test_one_entry_per_action(self):
        services.send_to_kitchen(
            [{'product_id': self.burger.id, 'quantity': 2}, {'product_id': self.cola.id, 'quantity': 1}],
            self.server, order_id=self.order.id
        )
        burger, cola = self.order.items.all()

        self.assertOneEntry('order_item.discounted',
                            lambda: services.apply_item_discount(self.order.id, burger.id, 'staff10', self.server))
        self.assertOneEntry('order_item.discount_removed',
                            lambda: services.remove_item_discount(self.order.id, burger.id, self.server))
        self.assertOneEntry('order_item.partial_comped',
                            lambda: services.comp_item(self.order.id, burger.id, 'Birthday', self.manager, 1))
        self.assertOneEntry('order_item.voided',
                            lambda: services.void_item(self.order.id, cola.id, 'wrong_item', self.server))
        self.assertOneEntry('order.billed', lambda: services.generate_bill(self.order.id, self.server))


class BillEngineTests(TestCase):
    """Bill totals always satisfy total = subtotal + tax + service - discount"""

    def setUp(self):
        product = Product.objects.create(name='Coca Cola', unit_price_cents=333)
        self.order = Order.objects.create()
        OrderItem.objects.create(order=self.order, product=product, quantity=3, unit_price_cents=333)
        OrderItem.objects.create(
            order=self.order, product=product, quantity=1, unit_price_cents=333, status=OrderItem.VOIDED
        )

    def test_rates_round_half_up(self):
        bill = compute_bill(self.order.items.all(), order_discount_cents=500,
                            tax_rate_bps=700, service_rate_bps=1250)

        self.assertEqual(bill['subtotalCents'], 999)
        # 69.93 and 124.875 cents
        self.assertEqual(bill['taxAmountCents'], 70)
        self.assertEqual(bill['serviceCents'], 125)
        self.assertEqual(bill['discountCents'], 500)
        self.assertEqual(bill['totalAmountCents'], 694)

    def test_order_discount_never_exceeds_subtotal(self):
        bill = compute_bill(self.order.items.all(), order_discount_cents=5000)
        self.assertEqual(bill['discountCents'], 999)
        self.assertEqual(bill['totalAmountCents'], 0)

    def test_invariant_after_generate_bill(self):
        actor = Actor.for_role('m1', 'manager')
        with self.settings(POS=dict(settings.POS, TAX_RATE_BPS=825, SERVICE_RATE_BPS=1000)):
            outcome = services.generate_bill(self.order.id, actor)

        bill = outcome.body['bill']
        self.assertEqual(
            bill['totalAmountCents'],
            bill['subtotalCents'] + bill['taxAmountCents'] + bill['serviceCents'] - bill['discountCents']
        )
        self.assertEqual(outcome.body['tax_rate_bps'], 825)


@override_settings(POS=TAXED)
class ReportAndConfigTests(OrderAPITestCase):
    def test_daily_report(self):
        services.send_to_kitchen([{'product_id': self.burger.id, 'quantity': 2}], self.server,
                                 order_id=self.order.id)
        services.generate_bill(self.order.id, self.server)
        self.client.post(reverse('record_payment'), {
            'order_id': self.order.id, 'method': 'cash', 'amount_cents': 21400
        }, format='json')

        report = daily_report()
        self.assertEqual(report['settled_order_count'], 1)
        self.assertEqual(report['revenue_cents'], 21400)
        self.assertEqual(report['tax_amount_cents'], 1400)
        self.assertEqual(report['payments_by_method'], {'cash': {'count': 1, 'amount_cents': 21400}})
        self.assertEqual(report['top_items'], [{'product_name': 'Burger', 'quantity': 2, 'amount_cents': 20000}])
        self.assertEqual(report['tables_served'], 1)

        response = self.client.get(reverse('daily_report'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['revenue_cents'], 21400)

    def test_config_lists(self):
        response = self.client.get(reverse('void_reasons'))
        self.assertEqual([reason['code'] for reason in response.data], ['manager_void', 'wrong_item'])

        response = self.client.get(reverse('discount_types'))
        self.assertEqual(len(response.data), 3)

    def test_product_list(self):
        """Test the menu lists active products with the ids the kitchen send expects"""
        Product.objects.create(name='Old Special', unit_price_cents=900, is_active=False)

        response = self.client.get(reverse('products'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [
            {'id': self.burger.id, 'name': 'Burger', 'unit_price_cents': 10000},
            {'id': self.cola.id, 'name': 'Coca Cola', 'unit_price_cents': 333},
        ])
