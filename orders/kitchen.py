"""
Kitchen side of the item state machine.

Items move one step at a time along pending -> preparing -> ready -> served.
Skipping a step, moving backwards or touching a voided/comped line is an
invalid transition. ``reopen_item`` is the one audited way back.
"""
import logging

from engine import audit
from engine.errors import InvalidState, InvalidTransition, ValidationFailed
from engine.idempotency import Outcome, execute, fingerprint
from engine.lookups import fetch

from .models import Order, OrderItem

logger = logging.getLogger(__name__)

QUEUE_STATUSES = (OrderItem.PENDING, OrderItem.PREPARING, OrderItem.READY)
CLOSED_ORDERS = (Order.CLOSED, Order.VOIDED)


def _kitchen_item(item_id):
    item = fetch(OrderItem.objects.select_related('order', 'product'), pk=item_id)
    if item.order.status in CLOSED_ORDERS:
        raise InvalidState(
            f"Order is {item.order.status}",
            order_id=item.order_id,
            current_status=item.order.status,
        )
    return item


def advance_item(item_id, new_status, actor, idempotency_key=None):
    payload = {'item_id': item_id, 'status': new_status, 'actor': actor.id}

    def work():
        if new_status not in OrderItem.KITCHEN_FLOW:
            raise ValidationFailed(f"Unknown kitchen status '{new_status}'", field='status')
        item = _kitchen_item(item_id)
        step = OrderItem.KITCHEN_FLOW.index(new_status)
        previous = OrderItem.KITCHEN_FLOW[step - 1] if step else None

        changed = 0
        if previous is not None and item.status == previous:
            changed = OrderItem.objects.filter(pk=item.id, status=previous).update(status=new_status)
        if not changed:
            item.refresh_from_db()
            raise InvalidTransition(
                f"Cannot move item from {item.status} to {new_status}",
                item_id=item.id,
                current_status=item.status,
                target_status=new_status,
            )

        audit.record(actor, 'kitchen.item.status_changed', 'order_item', item.id,
                     before={'status': previous}, after={'status': new_status},
                     metadata={'order_id': item.order_id})
        return Outcome(200, {
            'item_id': item.id,
            'order_id': item.order_id,
            'previous_status': previous,
            'status': new_status,
        })

    return execute('kitchen.advance', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order_item', item_id))


def reopen_item(item_id, actor, reason='', idempotency_key=None):
    """served -> pending, for a dish that has to go back to the kitchen"""
    payload = {'item_id': item_id, 'reason': reason, 'actor': actor.id}

    def work():
        item = _kitchen_item(item_id)
        changed = OrderItem.objects.filter(pk=item.id, status=OrderItem.SERVED).update(status=OrderItem.PENDING)
        if not changed:
            item.refresh_from_db()
            raise InvalidTransition(
                f"Only served items can be reopened; item is {item.status}",
                item_id=item.id,
                current_status=item.status,
                target_status=OrderItem.PENDING,
            )

        audit.record(actor, 'order_item.reopened', 'order_item', item.id,
                     before={'status': OrderItem.SERVED},
                     after={'status': OrderItem.PENDING, 'reason': reason},
                     metadata={'order_id': item.order_id})
        return Outcome(200, {
            'item_id': item.id,
            'order_id': item.order_id,
            'previous_status': OrderItem.SERVED,
            'status': OrderItem.PENDING,
        })

    return execute('kitchen.reopen', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order_item', item_id))


def complete_order(order_id, actor, idempotency_key=None):
    """Serve every ready item on the order; fails while anything is still cooking"""
    payload = {'order_id': order_id, 'actor': actor.id}

    def work():
        order = fetch(Order, for_update=True, pk=order_id)
        if order.status in CLOSED_ORDERS:
            raise InvalidState(f"Order is {order.status}", order_id=order.id, current_status=order.status)

        cooking = list(
            order.items.filter(status__in=(OrderItem.PENDING, OrderItem.PREPARING)).values_list('id', flat=True)
        )
        if cooking:
            raise InvalidTransition(
                'Items are still being prepared',
                order_id=order.id,
                item_ids=cooking,
                target_status=OrderItem.SERVED,
            )

        ready = list(order.items.filter(status=OrderItem.READY).values_list('id', flat=True))
        served = OrderItem.objects.filter(pk__in=ready, status=OrderItem.READY).update(status=OrderItem.SERVED)

        audit.record(actor, 'kitchen.order.completed', 'order', order.id,
                     after={'served_item_ids': ready, 'served_count': served})
        return Outcome(200, {'order_id': order.id, 'served_count': served, 'served_item_ids': ready})

    return execute('kitchen.complete', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order', order_id))


def kitchen_queue():
    """Live kitchen work, oldest first. Voided and comped lines never show up here."""
    items = (
        OrderItem.objects
        .filter(status__in=QUEUE_STATUSES)
        .exclude(order__status__in=CLOSED_ORDERS)
        .select_related('order', 'order__table', 'product')
        .order_by('created_at', 'id')
    )
    return [
        {
            'item_id': item.id,
            'order_id': item.order_id,
            'order_number': item.order.number,
            'table_number': item.order.table.number if item.order.table_id else None,
            'product_name': item.product.name,
            'quantity': item.quantity,
            'notes': item.notes,
            'status': item.status,
            'created_at': item.created_at,
        }
        for item in items
    ]
