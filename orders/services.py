"""
Order and order item state machine.

Order:  open -> billed -> paid -> closed, and open -> voided
Item:   pending -> preparing -> ready -> served, with voided/comped side states

Every change to an order's items takes the order row lock first and checks
the order is still open, so a bill can never be generated from a half-applied
void, discount or comp. Totals are always recomputed by the bill engine from
item state after the change.
"""
import logging

from django.utils import timezone

from engine import audit
from engine.actors import COMP_ITEM, DISCOUNT_ITEM, MANAGER_OVERRIDE, ORDER_DISCOUNT, VOID_ITEM
from engine.errors import (
    ConflictDiscountExists,
    InvalidState,
    NotFound,
    ValidationFailed,
)
from engine.idempotency import Outcome, execute, fingerprint
from engine.lookups import fetch
from engine.money import percent_of
from tables.models import Table

from .billing import current_rates, refresh_totals
from .models import DiscountApplication, DiscountDefinition, Order, OrderItem, Product, VoidReason

logger = logging.getLogger(__name__)


def lock_open_order(order_id):
    """Lock the order row for this unit of work and insist it is still open"""
    order = fetch(Order, for_update=True, pk=order_id)
    if order.status != Order.OPEN:
        raise InvalidState(
            f"Order is {order.status}; only open orders can be changed",
            order_id=order.id,
            current_status=order.status,
        )
    return order


def _order_item(order, item_id):
    return fetch(
        OrderItem.objects.select_related('product', 'active_discount'),
        pk=item_id,
        order_id=order.id,
    )


def _require_live_item(item):
    if item.status in OrderItem.TERMINAL:
        raise InvalidState(
            f"Item is already {item.status}",
            item_id=item.id,
            order_id=item.order_id,
            current_status=item.status,
        )


def _positive_int(value, field):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationFailed(f"{field} must be a positive integer", field=field)
    return value


def item_body(item):
    return {
        'id': item.id,
        'product_id': item.product_id,
        'product_name': item.product.name,
        'quantity': item.quantity,
        'unit_price_cents': item.unit_price_cents,
        'discount_cents': item.discount_cents,
        'amount_cents': item.amount_cents,
        'status': item.status,
    }


def discount_amount(definition, base_cents):
    """
    Compute a discount against an amount

    Percentages round half up and respect the definition's cap; no discount
    ever exceeds the amount it is applied to.
    """
    if definition.kind == DiscountDefinition.PERCENTAGE:
        amount = percent_of(base_cents, definition.value)
        if definition.max_amount_cents is not None:
            amount = min(amount, definition.max_amount_cents)
    else:
        amount = definition.value
    return min(amount, base_cents)


def _definition(code, actor):
    definition = DiscountDefinition.objects.filter(code=code, is_active=True).first()
    if definition is None:
        raise ValidationFailed(f"Unknown discount type '{code}'", field='discount_code')
    if definition.requires_manager:
        actor.require(MANAGER_OVERRIDE, 'This discount type requires manager approval')
    return definition


def send_to_kitchen(items, actor, order_id=None, table_id=None, idempotency_key=None):
    """
    Append pending items to an open order.

    With order_id the items go on that order; with table_id they go on the
    seated table's order; with neither a takeaway order is opened first. The
    whole send is one unit of work, so a replayed key never duplicates items.
    """
    payload = {'items': items, 'order_id': order_id, 'table_id': table_id, 'actor': actor.id}

    def work():
        if not items:
            raise ValidationFailed('No items to send', field='items')

        lines = []
        for line in items:
            product_id = line.get('product_id')
            quantity = _positive_int(line.get('quantity'), 'quantity')
            product = Product.objects.filter(pk=product_id, is_active=True).first()
            if product is None:
                raise ValidationFailed(f"Product not found: {product_id}", field='product_id')
            lines.append((product, quantity, line.get('notes') or ''))

        created_order = False
        if order_id is not None:
            order = lock_open_order(order_id)
        elif table_id is not None:
            table = fetch(Table, pk=table_id, is_active=True)
            if table.status != Table.SEATED or table.current_order_id is None:
                raise InvalidState(
                    'Table must be seated before sending items',
                    table_id=table_id,
                    current_status=table.status,
                )
            order = lock_open_order(table.current_order_id)
        else:
            order = Order.objects.create(opened_by=actor.id)
            created_order = True

        sent = []
        for product, quantity, notes in lines:
            item = OrderItem.objects.create(
                order=order,
                product=product,
                quantity=quantity,
                unit_price_cents=product.unit_price_cents,
                notes=notes,
            )
            sent.append(item_body(item))

        bill = refresh_totals(order)
        audit.record(actor, 'kitchen.items_sent', 'order', order.id, after={
            'item_count': len(sent),
            'items': sent,
            'created_order': created_order,
        })
        logger.info("Sent %d items to kitchen for order %s", len(sent), order.id)
        return Outcome(200, {
            'order_id': order.id,
            'order_number': order.number,
            'created_order': created_order,
            'items_sent': len(sent),
            'items': sent,
            'totals': bill,
        })

    target = ('order', order_id) if order_id is not None else ('table', table_id)
    return execute('kitchen.send', idempotency_key, fingerprint(payload), work, actor=actor, target=target)


def void_item(order_id, item_id, reason, actor, idempotency_key=None):
    """
    Void an item: it stays on the order for audit but contributes nothing.

    ``reason`` is either a VoidReason code (some need manager_override) or
    free text.
    """
    payload = {'order_id': order_id, 'item_id': item_id, 'reason': reason, 'actor': actor.id}

    def work():
        actor.require(VOID_ITEM)
        if not reason:
            raise ValidationFailed('A void reason is required', field='reason')
        coded = VoidReason.objects.filter(code=reason, is_active=True).first()
        if coded is not None and coded.requires_manager:
            actor.require(MANAGER_OVERRIDE, 'This void reason requires manager approval')

        order = lock_open_order(order_id)
        item = _order_item(order, item_id)
        _require_live_item(item)
        before = {'status': item.status, 'amount_cents': item.amount_cents}

        changed = OrderItem.objects.filter(pk=item.id, status__in=OrderItem.KITCHEN_FLOW).update(
            status=OrderItem.VOIDED,
            void_reason=coded,
            void_reason_text='' if coded else reason,
            voided_by=actor.id,
            voided_at=timezone.now(),
        )
        if not changed:
            item.refresh_from_db()
            _require_live_item(item)

        bill = refresh_totals(order)
        reason_code = coded.code if coded else 'custom'
        audit.record(actor, 'order_item.voided', 'order_item', item.id, before=before, after={
            'status': OrderItem.VOIDED,
            'void_reason': reason_code,
            'void_reason_text': '' if coded else reason,
        }, metadata={'order_id': order.id})
        return Outcome(200, {
            'item_id': item.id,
            'order_id': order.id,
            'status': OrderItem.VOIDED,
            'void_reason': reason_code,
            'void_reason_text': '' if coded else reason,
            'totals': bill,
        })

    return execute('orders.void_item', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order_item', item_id))


def apply_item_discount(order_id, item_id, discount_code, actor, reason='', idempotency_key=None):
    payload = {
        'order_id': order_id, 'item_id': item_id, 'discount_code': discount_code,
        'reason': reason, 'actor': actor.id,
    }

    def work():
        actor.require(DISCOUNT_ITEM)
        definition = _definition(discount_code, actor)
        order = lock_open_order(order_id)
        item = _order_item(order, item_id)
        _require_live_item(item)
        if item.active_discount_id is not None:
            raise ConflictDiscountExists(
                'Item already has a discount applied',
                item_id=item.id,
                discount_application_id=item.active_discount_id,
                discount_amount_cents=item.discount_cents,
            )

        original_cents = item.gross_cents
        amount_cents = discount_amount(definition, original_cents)
        application = DiscountApplication.objects.create(
            order=order,
            item=item,
            definition=definition,
            discount_amount_cents=amount_cents,
            original_amount_cents=original_cents,
            applied_by=actor.id,
            approved_by=actor.id if definition.requires_manager else '',
            reason=reason or '',
        )
        linked = OrderItem.objects.filter(pk=item.id, active_discount__isnull=True).update(
            active_discount=application
        )
        if not linked:
            raise ConflictDiscountExists('Item already has a discount applied', item_id=item.id)

        bill = refresh_totals(order)
        audit.record(actor, 'order_item.discounted', 'order_item', item.id,
                     before={'amount_cents': original_cents},
                     after={
                         'amount_cents': original_cents - amount_cents,
                         'discount_amount_cents': amount_cents,
                         'discount_code': definition.code,
                         'discount_application_id': application.id,
                     },
                     metadata={'order_id': order.id})
        return Outcome(200, {
            'item_id': item.id,
            'order_id': order.id,
            'discount_application_id': application.id,
            'discount_code': definition.code,
            'discount_kind': definition.kind,
            'discount_amount_cents': amount_cents,
            'original_amount_cents': original_cents,
            'amount_cents': original_cents - amount_cents,
            'totals': bill,
        })

    return execute('orders.discount_item', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order_item', item_id))


def remove_item_discount(order_id, item_id, actor, idempotency_key=None):
    """Clear the active discount pointer and append a reversing record"""
    payload = {'order_id': order_id, 'item_id': item_id, 'actor': actor.id}

    def work():
        actor.require(DISCOUNT_ITEM)
        order = lock_open_order(order_id)
        item = _order_item(order, item_id)
        applied = item.active_discount
        if applied is None:
            raise NotFound('No discount found for this item', item_id=item.id)

        unlinked = OrderItem.objects.filter(pk=item.id, active_discount=applied).update(active_discount=None)
        if not unlinked:
            raise NotFound('No discount found for this item', item_id=item.id)
        reversal = DiscountApplication.objects.create(
            order=order,
            item=item,
            definition_id=applied.definition_id,
            discount_amount_cents=applied.discount_amount_cents,
            original_amount_cents=applied.original_amount_cents,
            applied_by=actor.id,
            reversal_of=applied,
        )

        bill = refresh_totals(order)
        audit.record(actor, 'order_item.discount_removed', 'order_item', item.id,
                     before={
                         'amount_cents': applied.original_amount_cents - applied.discount_amount_cents,
                         'discount_application_id': applied.id,
                     },
                     after={'amount_cents': applied.original_amount_cents, 'reversal_id': reversal.id},
                     metadata={'order_id': order.id})
        return Outcome(200, {
            'item_id': item.id,
            'order_id': order.id,
            'reversal_id': reversal.id,
            'restored_amount_cents': applied.original_amount_cents,
            'amount_cents': item.gross_cents if item.status not in OrderItem.TERMINAL else 0,
            'totals': bill,
        })

    return execute('orders.remove_item_discount', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order_item', item_id))


def comp_item(order_id, item_id, reason, actor, quantity=None, idempotency_key=None):
    """
    Comp all or part of an item.

    A partial comp splits the row: the original keeps the remaining quantity
    and a new comped line takes the comped quantity.
    """
    payload = {
        'order_id': order_id, 'item_id': item_id, 'reason': reason,
        'quantity': quantity, 'actor': actor.id,
    }

    def work():
        actor.require(COMP_ITEM, 'Permission denied: comp_item requires a manager')
        if not reason:
            raise ValidationFailed('A comp reason is required', field='reason')
        order = lock_open_order(order_id)
        item = _order_item(order, item_id)
        _require_live_item(item)

        comp_qty = item.quantity if quantity is None else _positive_int(quantity, 'quantity')
        if comp_qty > item.quantity:
            raise ValidationFailed(
                f"Cannot comp {comp_qty} of {item.quantity}", field='quantity', item_quantity=item.quantity
            )
        partial = comp_qty < item.quantity
        if partial and item.active_discount_id is not None:
            raise InvalidState(
                'Remove the discount before a partial comp',
                item_id=item.id,
                discount_application_id=item.active_discount_id,
            )

        now = timezone.now()
        before = {'status': item.status, 'quantity': item.quantity, 'amount_cents': item.amount_cents}
        comp_fields = dict(comp_reason=reason, comped_by=actor.id, comped_at=now)
        comped_line = None
        if partial:
            remaining = item.quantity - comp_qty
            changed = OrderItem.objects.filter(
                pk=item.id, status__in=OrderItem.KITCHEN_FLOW, quantity=item.quantity
            ).update(quantity=remaining)
            if changed:
                comped_line = OrderItem.objects.create(
                    order=order,
                    product_id=item.product_id,
                    quantity=comp_qty,
                    unit_price_cents=item.unit_price_cents,
                    status=OrderItem.COMPED,
                    notes=item.notes,
                    comped_from=item,
                    **comp_fields,
                )
        else:
            remaining = 0
            changed = OrderItem.objects.filter(
                pk=item.id, status__in=OrderItem.KITCHEN_FLOW
            ).update(status=OrderItem.COMPED, **comp_fields)
        if not changed:
            item.refresh_from_db()
            _require_live_item(item)
            raise InvalidState('Item changed while comping, refresh and retry', item_id=item.id)

        bill = refresh_totals(order)
        comp_amount = item.unit_price_cents * comp_qty
        audit.record(actor, 'order_item.partial_comped' if partial else 'order_item.comped',
                     'order_item', item.id, before=before, after={
                         'comped_quantity': comp_qty,
                         'remaining_quantity': remaining,
                         'comp_amount_cents': comp_amount,
                         'comp_reason': reason,
                         'comped_item_id': comped_line.id if comped_line else item.id,
                     }, metadata={'order_id': order.id})
        return Outcome(200, {
            'item_id': item.id,
            'order_id': order.id,
            'is_partial_comp': partial,
            'comp_quantity': comp_qty,
            'remaining_quantity': remaining,
            'comp_amount_cents': comp_amount,
            'comped_item_id': comped_line.id if comped_line else item.id,
            'comp_reason': reason,
            'totals': bill,
        })

    return execute('orders.comp_item', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order_item', item_id))


def apply_order_discount(order_id, discount_code, actor, reason='', idempotency_key=None):
    """Order-level discount against the current subtotal; reported as discountCents on the bill"""
    payload = {'order_id': order_id, 'discount_code': discount_code, 'reason': reason, 'actor': actor.id}

    def work():
        actor.require(ORDER_DISCOUNT)
        definition = _definition(discount_code, actor)
        order = lock_open_order(order_id)
        if order.active_discount_id is not None:
            raise ConflictDiscountExists(
                'Order already has a discount applied',
                order_id=order.id,
                discount_application_id=order.active_discount_id,
            )

        subtotal_cents = refresh_totals(order)['subtotalCents']
        amount_cents = discount_amount(definition, subtotal_cents)
        application = DiscountApplication.objects.create(
            order=order,
            definition=definition,
            discount_amount_cents=amount_cents,
            original_amount_cents=subtotal_cents,
            applied_by=actor.id,
            approved_by=actor.id if definition.requires_manager else '',
            reason=reason or '',
        )
        linked = Order.objects.filter(
            pk=order.id, status=Order.OPEN, active_discount__isnull=True
        ).update(active_discount=application)
        if not linked:
            raise ConflictDiscountExists('Order already has a discount applied', order_id=order.id)
        order.refresh_from_db()

        bill = refresh_totals(order)
        audit.record(actor, 'order.discounted', 'order', order.id,
                     before={'discount_cents': 0},
                     after={
                         'discount_cents': amount_cents,
                         'discount_code': definition.code,
                         'discount_application_id': application.id,
                     })
        return Outcome(200, {
            'order_id': order.id,
            'discount_application_id': application.id,
            'discount_code': definition.code,
            'discount_amount_cents': amount_cents,
            'original_subtotal_cents': subtotal_cents,
            'totals': bill,
        })

    return execute('orders.discount', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order', order_id))


def remove_order_discount(order_id, actor, idempotency_key=None):
    payload = {'order_id': order_id, 'actor': actor.id}

    def work():
        actor.require(ORDER_DISCOUNT)
        order = lock_open_order(order_id)
        applied = order.active_discount
        if applied is None:
            raise NotFound('No discount found for this order', order_id=order.id)

        Order.objects.filter(pk=order.id, active_discount=applied).update(active_discount=None)
        reversal = DiscountApplication.objects.create(
            order=order,
            definition_id=applied.definition_id,
            discount_amount_cents=applied.discount_amount_cents,
            original_amount_cents=applied.original_amount_cents,
            applied_by=actor.id,
            reversal_of=applied,
        )
        order.refresh_from_db()

        bill = refresh_totals(order)
        audit.record(actor, 'order.discount_removed', 'order', order.id,
                     before={'discount_cents': applied.discount_amount_cents, 'discount_application_id': applied.id},
                     after={'discount_cents': 0, 'reversal_id': reversal.id})
        return Outcome(200, {'order_id': order.id, 'reversal_id': reversal.id, 'totals': bill})

    return execute('orders.remove_discount', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order', order_id))


def bill_body(order):
    items = order.items.select_related('product', 'active_discount')
    return {
        'order_id': order.id,
        'order_number': order.number,
        'status': order.status,
        'table_id': order.table_id,
        'customer_ref': order.customer_ref,
        'tax_rate_bps': order.tax_rate_bps,
        'service_rate_bps': order.service_rate_bps,
        'bill': order.totals(),
        'items': [item_body(item) for item in items],
    }


def generate_bill(order_id, actor, customer_ref='', idempotency_key=None):
    """
    open -> billed. Billing again returns the stored bill instead of
    recomputing it, so the printed figures never drift.
    """
    payload = {'order_id': order_id, 'customer_ref': customer_ref, 'actor': actor.id}

    def work():
        order = fetch(Order, pk=order_id)
        if order.status == Order.BILLED:
            return Outcome(200, bill_body(order))
        if order.status != Order.OPEN:
            raise InvalidState(f"Order is already {order.status}", order_id=order.id, current_status=order.status)
        if not order.items.exclude(status=OrderItem.VOIDED).exists():
            raise InvalidState('Cannot bill an order without items', order_id=order.id, current_status=order.status)

        tax_rate_bps, service_rate_bps = current_rates()
        changes = dict(
            status=Order.BILLED,
            billed_at=timezone.now(),
            tax_rate_bps=tax_rate_bps,
            service_rate_bps=service_rate_bps,
        )
        if customer_ref:
            changes['customer_ref'] = customer_ref
        won = Order.objects.filter(pk=order.id, status=Order.OPEN).update(**changes)
        order.refresh_from_db()
        if not won:
            if order.status == Order.BILLED:
                return Outcome(200, bill_body(order))
            raise InvalidState(f"Order is already {order.status}", order_id=order.id, current_status=order.status)

        bill = refresh_totals(order, tax_rate_bps, service_rate_bps)
        table_status = None
        if order.table_id is not None:
            moved = Table.objects.filter(
                pk=order.table_id, status=Table.SEATED, current_order_id=order.id
            ).update(status=Table.BILLED, updated_at=timezone.now())
            table_status = Table.BILLED if moved else Table.objects.get(pk=order.table_id).status

        audit.record(actor, 'order.billed', 'order', order.id, before={'status': Order.OPEN}, after={
            'status': Order.BILLED,
            'bill': bill,
            'table_id': order.table_id,
            'table_status': table_status,
        })
        logger.info("Billed order %s: %s", order.id, bill)
        return Outcome(200, bill_body(order))

    return execute('orders.bill', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order', order_id))


def void_order(order_id, reason, actor, idempotency_key=None):
    """open -> voided (manager only); a table seated on the order goes to needs_cleaning"""
    payload = {'order_id': order_id, 'reason': reason, 'actor': actor.id}

    def work():
        actor.require(MANAGER_OVERRIDE)
        if not reason:
            raise ValidationFailed('A void reason is required', field='reason')
        order = fetch(Order, pk=order_id)
        won = Order.objects.filter(pk=order.id, status=Order.OPEN).update(
            status=Order.VOIDED, closed_at=timezone.now()
        )
        if not won:
            order.refresh_from_db()
            raise InvalidState(
                f"Only open orders can be voided; order is {order.status}",
                order_id=order.id,
                current_status=order.status,
            )

        table_status = None
        if order.table_id is not None:
            moved = Table.objects.filter(
                pk=order.table_id, current_order_id=order.id, status=Table.SEATED
            ).update(status=Table.NEEDS_CLEANING, current_order=None, guest_count=0, updated_at=timezone.now())
            table_status = Table.NEEDS_CLEANING if moved else None

        audit.record(actor, 'order.voided', 'order', order.id,
                     before={'status': Order.OPEN},
                     after={'status': Order.VOIDED, 'reason': reason, 'table_status': table_status})
        return Outcome(200, {
            'order_id': order.id,
            'status': Order.VOIDED,
            'table_id': order.table_id,
            'table_status': table_status,
        })

    return execute('orders.void', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order', order_id))
