"""Daily sales report, read-only aggregate over settled orders."""
from collections import defaultdict
from datetime import datetime, time, timedelta

from django.db.models import Count, Sum
from django.utils import timezone

from payment.models import Payment

from .models import Order, OrderItem

SETTLED = (Order.PAID, Order.CLOSED)


def day_bounds(day):
    """Start and end of a local calendar day as aware datetimes"""
    start = timezone.make_aware(datetime.combine(day, time.min))
    return start, start + timedelta(days=1)


def daily_report(day=None, top_n=10):
    """
    Aggregate one day's trading

    Args:
        day: date to report on, defaults to today (local time)
        top_n: How many best-selling products to list

    Returns:
        Dict of cent totals, payment method breakdown, void/comp counts and top items
    """
    day = day or timezone.localdate()
    start, end = day_bounds(day)

    orders = Order.objects.filter(created_at__gte=start, created_at__lt=end)
    settled = orders.filter(status__in=SETTLED)
    sums = settled.aggregate(
        subtotal=Sum('subtotal_cents'),
        tax=Sum('tax_amount_cents'),
        service=Sum('service_cents'),
        discount=Sum('discount_cents'),
        total=Sum('total_amount_cents'),
    )

    by_method = {
        row['method']: {'count': row['count'], 'amount_cents': row['amount'] or 0}
        for row in Payment.objects.filter(
            status=Payment.COMPLETED, created_at__gte=start, created_at__lt=end
        ).values('method').annotate(count=Count('id'), amount=Sum('amount_cents')).order_by('method')
    }

    items = OrderItem.objects.filter(order__in=orders).select_related('order', 'product', 'active_discount')
    top = defaultdict(lambda: {'quantity': 0, 'amount_cents': 0})
    voided = {'count': 0, 'amount_cents': 0}
    comped = {'count': 0, 'amount_cents': 0}
    for item in items:
        if item.status == OrderItem.VOIDED:
            voided['count'] += 1
            voided['amount_cents'] += item.gross_cents
        elif item.status == OrderItem.COMPED:
            comped['count'] += 1
            comped['amount_cents'] += item.gross_cents
        elif item.order.status in SETTLED:
            line = top[item.product.name]
            line['quantity'] += item.quantity
            line['amount_cents'] += item.amount_cents

    top_items = sorted(
        ({'product_name': name, **line} for name, line in top.items()),
        key=lambda line: (-line['amount_cents'], line['product_name']),
    )[:top_n]

    return {
        'date': day.isoformat(),
        'order_count': orders.count(),
        'settled_order_count': settled.count(),
        'voided_order_count': orders.filter(status=Order.VOIDED).count(),
        'tables_served': settled.exclude(table=None).values('table').distinct().count(),
        'subtotal_cents': sums['subtotal'] or 0,
        'tax_amount_cents': sums['tax'] or 0,
        'service_cents': sums['service'] or 0,
        'discount_cents': sums['discount'] or 0,
        'revenue_cents': sums['total'] or 0,
        'payments_by_method': by_method,
        'voided_items': voided,
        'comped_items': comped,
        'top_items': top_items,
    }
