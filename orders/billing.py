"""
Bill engine.

A pure function of order item state; ``refresh_totals`` stores the derived
numbers on the order so reads and reports do not recompute them.
"""
from typing import Dict, Iterable

from django.conf import settings

from engine.errors import BillInvariantError
from engine.money import percent_of, sum_cents

BILL_FIELDS = ('subtotalCents', 'taxAmountCents', 'serviceCents', 'discountCents', 'totalAmountCents')


def compute_bill(items: Iterable, order_discount_cents: int = 0,
                 tax_rate_bps: int = 0, service_rate_bps: int = 0) -> Dict[str, int]:
    """
    Derive bill totals from order items

    Args:
        items: OrderItems (voided/comped lines contribute zero)
        order_discount_cents: Active order-level discount
        tax_rate_bps: Tax rate applied to the subtotal
        service_rate_bps: Service charge rate applied to the subtotal

    Returns:
        Dict with subtotalCents, taxAmountCents, serviceCents, discountCents, totalAmountCents
    """
    subtotal_cents = sum_cents(item.amount_cents for item in items)
    tax_amount_cents = percent_of(subtotal_cents, tax_rate_bps)
    service_cents = percent_of(subtotal_cents, service_rate_bps)
    # An order discount can never take the subtotal below zero, even after later voids
    discount_cents = min(order_discount_cents, subtotal_cents)
    total_amount_cents = subtotal_cents + tax_amount_cents + service_cents - discount_cents

    bill = {
        'subtotalCents': subtotal_cents,
        'taxAmountCents': tax_amount_cents,
        'serviceCents': service_cents,
        'discountCents': discount_cents,
        'totalAmountCents': total_amount_cents,
    }
    check_invariant(bill)
    return bill


def check_invariant(bill: Dict[str, int]) -> None:
    expected = bill['subtotalCents'] + bill['taxAmountCents'] + bill['serviceCents'] - bill['discountCents']
    if bill['totalAmountCents'] != expected or bill['totalAmountCents'] < 0:
        raise BillInvariantError(bill=bill)


def current_rates():
    pos = settings.POS
    return pos['TAX_RATE_BPS'], pos['SERVICE_RATE_BPS']


def bill_for_order(order, tax_rate_bps=None, service_rate_bps=None) -> Dict[str, int]:
    if tax_rate_bps is None or service_rate_bps is None:
        tax_rate_bps, service_rate_bps = current_rates()
    items = order.items.select_related('active_discount')
    order_discount = order.active_discount.discount_amount_cents if order.active_discount_id else 0
    return compute_bill(items, order_discount, tax_rate_bps, service_rate_bps)


def refresh_totals(order, tax_rate_bps=None, service_rate_bps=None) -> Dict[str, int]:
    """Recompute and store the order's derived totals"""
    bill = bill_for_order(order, tax_rate_bps, service_rate_bps)
    order.subtotal_cents = bill['subtotalCents']
    order.tax_amount_cents = bill['taxAmountCents']
    order.service_cents = bill['serviceCents']
    order.discount_cents = bill['discountCents']
    order.total_amount_cents = bill['totalAmountCents']
    order.save(update_fields=[
        'subtotal_cents', 'tax_amount_cents', 'service_cents', 'discount_cents', 'total_amount_cents',
    ])
    return bill
