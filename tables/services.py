"""
Table state machine.

    available -> seated            seat (creates the order)
    reserved  -> seated            seat (arriving reservation)
    seated    -> available         unseat (empty order only)
    seated/billed -> needs_cleaning -> available   clear / clean
    available <-> blocked          block / unblock
    available <-> reserved         reserve / cancel reservation

Every transition is a single conditional UPDATE ("set status iff status is
still what we expect"). A zero row count means another request got there
first and is reported as a conflict, never retried.
"""
import logging

from django.db.models import Q
from django.utils import timezone

from engine import audit
from engine.errors import (
    ConflictAlreadySeated,
    InvalidState,
    InvalidTransition,
    ValidationFailed,
)
from engine.idempotency import Outcome, execute, fingerprint
from engine.lookups import fetch
from orders.models import Order

from .models import Reservation, Table

logger = logging.getLogger(__name__)

SEATABLE = (Table.AVAILABLE, Table.RESERVED)
EDITABLE = (Table.AVAILABLE, Table.BLOCKED)
CLEARABLE = (Table.SEATED, Table.BILLED)


def _cas(table_id, expected, new_status, **changes):
    """Conditional status write; True if this request won the transition"""
    updated = Table.objects.filter(
        pk=table_id, is_active=True, status__in=expected
    ).update(status=new_status, updated_at=timezone.now(), **changes)
    return updated == 1


def _current(table_id):
    return fetch(Table, pk=table_id, is_active=True)


def _reject_transition(table_id, action, target_status=None):
    table = Table.objects.get(pk=table_id)
    logger.warning("Table %s: %s refused in status %s", table_id, action, table.status)
    context = {'table_id': table_id, 'current_status': table.status}
    if target_status is not None:
        context['requested_status'] = target_status
    raise InvalidTransition(f"Cannot {action} table while status is '{table.status}'", **context)


def _positive_int(value, field):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationFailed(f"{field} must be a positive integer", field=field)
    return value


def table_body(table):
    return {
        'table_id': table.id,
        'number': table.number,
        'status': table.status,
        'order_id': table.current_order_id,
        'guest_count': table.guest_count,
    }


def create_table(number, actor, name='', capacity=4, shape='round', idempotency_key=None):
    payload = {'number': number, 'name': name, 'capacity': capacity, 'shape': shape, 'actor': actor.id}

    def work():
        _positive_int(number, 'number')
        _positive_int(capacity, 'capacity')
        if shape not in dict(Table.SHAPE_CHOICES):
            raise ValidationFailed(f"Unknown table shape '{shape}'", field='shape')
        if Table.objects.filter(number=number).exists():
            raise ValidationFailed(f"Table number {number} already exists", field='number')

        table = Table.objects.create(
            number=number, name=name or f"Table {number}", capacity=capacity, shape=shape
        )
        audit.record(actor, 'table.created', 'table', table.id, after={
            'number': number, 'name': table.name, 'capacity': capacity, 'shape': shape, 'status': table.status,
        })
        return Outcome(201, table_body(table))

    return execute('tables.create', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('table', number))


def update_table(table_id, actor, name=None, capacity=None, shape=None, idempotency_key=None):
    payload = {'table_id': table_id, 'name': name, 'capacity': capacity, 'shape': shape, 'actor': actor.id}

    def work():
        table = _current(table_id)
        changes = {}
        if name is not None:
            changes['name'] = name
        if capacity is not None:
            changes['capacity'] = _positive_int(capacity, 'capacity')
        if shape is not None:
            if shape not in dict(Table.SHAPE_CHOICES):
                raise ValidationFailed(f"Unknown table shape '{shape}'", field='shape')
            changes['shape'] = shape

        updated = Table.objects.filter(
            pk=table_id, is_active=True, status__in=EDITABLE
        ).update(updated_at=timezone.now(), **changes)
        if not updated:
            _reject_transition(table_id, 'edit')

        before = {'name': table.name, 'capacity': table.capacity, 'shape': table.shape}
        table.refresh_from_db()
        after = {'name': table.name, 'capacity': table.capacity, 'shape': table.shape}
        audit.record(actor, 'table.updated', 'table', table_id, before=before, after=after)
        return Outcome(200, dict(table_body(table), **after))

    return execute('tables.update', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('table', table_id))


def delete_table(table_id, actor, idempotency_key=None):
    """Soft delete: historical orders keep pointing at the row"""
    payload = {'table_id': table_id, 'actor': actor.id}

    def work():
        table = _current(table_id)
        updated = Table.objects.filter(
            pk=table_id, is_active=True, status__in=EDITABLE
        ).update(is_active=False, updated_at=timezone.now())
        if not updated:
            _reject_transition(table_id, 'delete')
        audit.record(actor, 'table.deleted', 'table', table_id,
                     before={'is_active': True, 'status': table.status},
                     after={'is_active': False})
        return Outcome(200, {'table_id': table_id, 'is_active': False})

    return execute('tables.delete', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('table', table_id))


def seat_table(table_id, guest_count, actor, idempotency_key=None):
    """
    Seat guests at a table and open their order.

    Two concurrent seats on the same table produce one success and one
    ConflictAlreadySeated: the status write only matches while the table is
    still available (or reserved), so the loser updates zero rows.
    """
    payload = {'table_id': table_id, 'guest_count': guest_count, 'actor': actor.id}

    def work():
        _positive_int(guest_count, 'guest_count')
        table = _current(table_id)
        before = table.snapshot()

        if not _cas(table_id, SEATABLE, Table.SEATED, guest_count=guest_count):
            table.refresh_from_db()
            if table.status in (Table.SEATED, Table.BILLED):
                logger.warning("Table %s already seated (order %s)", table_id, table.current_order_id)
                raise ConflictAlreadySeated(
                    table_id=table_id,
                    current_status=table.status,
                    current_order_id=table.current_order_id,
                )
            _reject_transition(table_id, 'seat', Table.SEATED)

        order = Order.objects.create(
            table_id=table_id, guest_count=guest_count, opened_by=actor.id
        )
        Table.objects.filter(pk=table_id).update(current_order=order)
        if before['status'] == Table.RESERVED:
            Reservation.objects.filter(table_id=table_id, status='pending').update(status='seated')

        audit.record(actor, 'table.seated', 'table', table_id, before=before, after={
            'status': Table.SEATED, 'order_id': order.id, 'order_number': order.number, 'guest_count': guest_count,
        })
        logger.info("Seated table %s with %s guests, order %s", table_id, guest_count, order.id)
        return Outcome(200, {
            'table_id': table_id,
            'status': Table.SEATED,
            'order_id': order.id,
            'order_number': order.number,
            'guest_count': guest_count,
        })

    return execute('tables.seat', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('table', table_id))


def unseat_table(table_id, actor, idempotency_key=None):
    """Walk-in left before ordering: void the empty order and free the table"""
    payload = {'table_id': table_id, 'actor': actor.id}

    def work():
        table = _current(table_id)
        before = table.snapshot()
        if table.status != Table.SEATED:
            _reject_transition(table_id, 'unseat', Table.AVAILABLE)

        order_id = table.current_order_id
        if order_id is not None:
            Order.objects.filter(pk=order_id, status=Order.OPEN).update(status=Order.VOIDED, closed_at=timezone.now())
            # Counted after the order write so items committed by a concurrent send are seen
            live_items = Order.objects.get(pk=order_id).items.exclude(status='voided').count()
            if live_items:
                raise InvalidTransition(
                    'Cannot unseat - table has ordered items. Use the bill flow instead.',
                    table_id=table_id,
                    current_status=table.status,
                    order_id=order_id,
                    item_count=live_items,
                )

        changed = Table.objects.filter(
            pk=table_id, is_active=True, status=Table.SEATED, current_order_id=order_id
        ).update(status=Table.AVAILABLE, current_order=None, guest_count=0, updated_at=timezone.now())
        if not changed:
            _reject_transition(table_id, 'unseat', Table.AVAILABLE)

        audit.record(actor, 'table.unseated', 'table', table_id, before=before,
                     after={'status': Table.AVAILABLE, 'order_id': None, 'voided_order_id': order_id})
        return Outcome(200, {'table_id': table_id, 'status': Table.AVAILABLE, 'voided_order_id': order_id})

    return execute('tables.unseat', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('table', table_id))


def clear_table(table_id, actor, idempotency_key=None):
    """
    Guests have left: seated/billed -> needs_cleaning.

    The linked order must be settled. An empty open order is voided and a
    paid order is closed as part of clearing; anything else still owes money.
    """
    payload = {'table_id': table_id, 'actor': actor.id}

    def work():
        table = _current(table_id)
        before = table.snapshot()
        if table.status not in CLEARABLE:
            _reject_transition(table_id, 'clear', Table.NEEDS_CLEANING)

        order_id = table.current_order_id
        order_after = None
        if order_id is not None:
            order = fetch(Order, for_update=True, pk=order_id)
            now = timezone.now()
            if order.status == Order.OPEN and not order.items.exclude(status='voided').exists():
                Order.objects.filter(pk=order_id, status=Order.OPEN).update(status=Order.VOIDED, closed_at=now)
                order_after = Order.VOIDED
            elif order.status == Order.PAID:
                Order.objects.filter(pk=order_id, status=Order.PAID).update(status=Order.CLOSED, closed_at=now)
                order_after = Order.CLOSED
            elif order.status in (Order.CLOSED, Order.VOIDED):
                order_after = order.status
            else:
                raise InvalidState(
                    'Order must be paid or closed before clearing the table.',
                    table_id=table_id,
                    current_status=table.status,
                    order_id=order_id,
                    order_status=order.status,
                )

        changed = Table.objects.filter(
            pk=table_id, is_active=True, status__in=CLEARABLE, current_order_id=order_id
        ).update(status=Table.NEEDS_CLEANING, current_order=None, guest_count=0, updated_at=timezone.now())
        if not changed:
            _reject_transition(table_id, 'clear', Table.NEEDS_CLEANING)

        audit.record(actor, 'table.cleared', 'table', table_id, before=before, after={
            'status': Table.NEEDS_CLEANING, 'order_id': None, 'order_status': order_after,
        })
        return Outcome(200, {
            'table_id': table_id,
            'status': Table.NEEDS_CLEANING,
            'order_id': order_id,
            'order_status': order_after,
        })

    return execute('tables.clear', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('table', table_id))


def _simple_transition(operation, action, audit_action, table_id, expected, new_status, actor, idempotency_key):
    payload = {'table_id': table_id, 'actor': actor.id}

    def work():
        table = _current(table_id)
        before = table.snapshot()
        if not _cas(table_id, expected, new_status):
            _reject_transition(table_id, action, new_status)
        audit.record(actor, audit_action, 'table', table_id, before=before, after={'status': new_status})
        return Outcome(200, {'table_id': table_id, 'status': new_status, 'previous_status': before['status']})

    return execute(operation, idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('table', table_id))


def clean_table(table_id, actor, idempotency_key=None):
    return _simple_transition('tables.clean', 'clean', 'table.cleaned', table_id, (Table.NEEDS_CLEANING,),
                              Table.AVAILABLE, actor, idempotency_key)


def block_table(table_id, actor, idempotency_key=None):
    return _simple_transition('tables.block', 'block', 'table.blocked', table_id, (Table.AVAILABLE,),
                              Table.BLOCKED, actor, idempotency_key)


def unblock_table(table_id, actor, idempotency_key=None):
    return _simple_transition('tables.unblock', 'unblock', 'table.unblocked', table_id, (Table.BLOCKED,),
                              Table.AVAILABLE, actor, idempotency_key)


def reserve_table(table_id, customer_name, party_size, actor, reserved_for=None, notes='',
                  idempotency_key=None):
    """available -> reserved; records the reservation, does not open an order"""
    payload = {
        'table_id': table_id,
        'customer_name': customer_name,
        'party_size': party_size,
        'reserved_for': reserved_for,
        'notes': notes,
        'actor': actor.id,
    }

    def work():
        if not customer_name:
            raise ValidationFailed('customer_name is required', field='customer_name')
        _positive_int(party_size, 'party_size')
        table = _current(table_id)
        before = table.snapshot()
        if not _cas(table_id, (Table.AVAILABLE,), Table.RESERVED):
            _reject_transition(table_id, 'reserve', Table.RESERVED)

        reservation = Reservation.objects.create(
            table_id=table_id,
            customer_name=customer_name,
            party_size=party_size,
            reserved_for=reserved_for,
            notes=notes,
            created_by=actor.id,
        )
        audit.record(actor, 'table.reserved', 'table', table_id, before=before, after={
            'status': Table.RESERVED, 'reservation_id': reservation.id, 'party_size': party_size,
        })
        return Outcome(201, {
            'reservation_id': reservation.id,
            'table_id': table_id,
            'status': Table.RESERVED,
            'customer_name': customer_name,
            'party_size': party_size,
        })

    return execute('tables.reserve', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('table', table_id))


def cancel_reservation(reservation_id, actor, idempotency_key=None):
    payload = {'reservation_id': reservation_id, 'actor': actor.id}

    def work():
        reservation = fetch(Reservation, pk=reservation_id)
        cancelled = Reservation.objects.filter(
            pk=reservation_id, status='pending'
        ).update(status='cancelled')
        if not cancelled:
            raise InvalidState(
                f"Reservation is already {reservation.status}",
                reservation_id=reservation_id,
                current_status=reservation.status,
            )

        # Free the table unless another pending reservation still holds it
        still_held = Reservation.objects.filter(
            ~Q(pk=reservation_id), table_id=reservation.table_id, status='pending'
        ).exists()
        table_status = Table.RESERVED
        if not still_held and _cas(reservation.table_id, (Table.RESERVED,), Table.AVAILABLE):
            table_status = Table.AVAILABLE
        elif not still_held:
            table_status = Table.objects.get(pk=reservation.table_id).status

        audit.record(actor, 'reservation.cancelled', 'reservation', reservation_id,
                     before={'status': 'pending'},
                     after={'status': 'cancelled', 'table_id': reservation.table_id, 'table_status': table_status})
        return Outcome(200, {
            'reservation_id': reservation_id,
            'status': 'cancelled',
            'table_id': reservation.table_id,
            'table_status': table_status,
        })

    return execute('reservations.cancel', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('reservation', reservation_id))
