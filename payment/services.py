"""
Payment recorder.

Recording a payment is the billed -> paid transition of the order; the
conditional UPDATE decides the single winner, so two tills paying the same
order with different idempotency keys cannot both succeed.
"""
import logging

from django.conf import settings
from django.utils import timezone

from engine import audit
from engine.errors import AmountMismatch, ConflictAlreadyPaid, InvalidState, ValidationFailed
from engine.idempotency import Outcome, execute, fingerprint
from engine.lookups import fetch
from orders.billing import check_invariant
from orders.models import Order
from tables.models import Table

from .models import Payment

logger = logging.getLogger(__name__)

SETTLED = (Order.PAID, Order.CLOSED)


def _already_paid(order):
    return ConflictAlreadyPaid(order_id=order.id, current_status=order.status)


def payment_body(payment, order):
    return {
        'payment_id': payment.id,
        'order_id': order.id,
        'order_number': order.number,
        'method': payment.method,
        'amount_cents': payment.amount_cents,
        'currency': payment.currency,
        'status': payment.status,
        'order_status': order.status,
        'paid_at': order.paid_at,
    }


def record_payment(order_id, method, amount_cents, actor, reference='', idempotency_key=None):
    """
    Record the single payment that settles a billed order

    Args:
        order_id: Order being paid
        method: One of settings.POS["PAYMENT_METHODS"]
        amount_cents: Must equal the order's current totalAmountCents
        actor: Staff member taking the payment
        reference: Optional terminal/receipt reference
        idempotency_key: Caller-supplied replay key

    Returns:
        Outcome with the payment body (201) or the stored error
    """
    payload = {
        'order_id': order_id, 'method': method, 'amount_cents': amount_cents,
        'reference': reference, 'actor': actor.id,
    }

    def work():
        if method not in settings.POS['PAYMENT_METHODS']:
            raise ValidationFailed(f"Unknown payment method '{method}'", field='method')
        if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents < 0:
            raise ValidationFailed('amount_cents must be a non-negative integer', field='amount_cents')

        order = fetch(Order, pk=order_id)
        if order.status in SETTLED:
            raise _already_paid(order)
        if order.status != Order.BILLED:
            raise InvalidState(
                f"Order must be billed before payment; order is {order.status}",
                order_id=order.id,
                current_status=order.status,
            )
        # A stored bill that no longer adds up is never settled
        check_invariant(order.totals())
        if amount_cents != order.total_amount_cents:
            raise AmountMismatch(
                order_id=order.id,
                current_status=order.status,
                amount_cents=amount_cents,
                total_amount_cents=order.total_amount_cents,
            )

        paid_at = timezone.now()
        won = Order.objects.filter(
            pk=order.id, status=Order.BILLED, total_amount_cents=amount_cents
        ).update(status=Order.PAID, paid_at=paid_at)
        if not won:
            order.refresh_from_db()
            logger.warning("Payment on order %s lost the race (status %s)", order.id, order.status)
            if order.status in SETTLED:
                raise _already_paid(order)
            raise InvalidState(order_id=order.id, current_status=order.status)
        order.refresh_from_db()

        payment = Payment.objects.create(
            order=order,
            method=method,
            amount_cents=amount_cents,
            currency=settings.POS['CURRENCY'],
            reference=reference or '',
            idempotency_key=idempotency_key or '',
            recorded_by=actor.id,
        )
        audit.record(actor, 'payment.recorded', 'order', order.id,
                     before={'status': Order.BILLED},
                     after={'status': Order.PAID, 'payment_id': payment.id, 'method': method,
                            'amount_cents': amount_cents})
        logger.info("Order %s paid %s by %s", order.id, amount_cents, method)
        return Outcome(201, payment_body(payment, order))

    return execute('payments.record', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order', order_id))


def close_order(order_id, actor, idempotency_key=None):
    """paid -> closed; the table goes to needs_cleaning and drops its order link"""
    payload = {'order_id': order_id, 'actor': actor.id}

    def work():
        order = fetch(Order, pk=order_id)
        won = Order.objects.filter(pk=order.id, status=Order.PAID).update(
            status=Order.CLOSED, closed_at=timezone.now()
        )
        if not won:
            order.refresh_from_db()
            raise InvalidState(
                f"Only paid orders can be closed; order is {order.status}",
                order_id=order.id,
                current_status=order.status,
            )

        table_status = None
        if order.table_id is not None:
            moved = Table.objects.filter(
                pk=order.table_id, current_order_id=order.id, status__in=(Table.SEATED, Table.BILLED)
            ).update(status=Table.NEEDS_CLEANING, current_order=None, guest_count=0, updated_at=timezone.now())
            table_status = Table.NEEDS_CLEANING if moved else None

        audit.record(actor, 'order.closed', 'order', order.id,
                     before={'status': Order.PAID},
                     after={'status': Order.CLOSED, 'table_id': order.table_id, 'table_status': table_status})
        return Outcome(200, {
            'order_id': order.id,
            'status': Order.CLOSED,
            'table_id': order.table_id,
            'table_status': table_status,
        })

    return execute('orders.close', idempotency_key, fingerprint(payload), work,
                   actor=actor, target=('order', order_id))
