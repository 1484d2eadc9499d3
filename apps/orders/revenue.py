"""Revenue aggregation over plain order collections.

Every function here works on already-loaded orders (anything exposing
``price``, ``actual_revenue``, ``agent_id``, ``sold_at`` and
``payment_status``) and a ``{agent_id: discount_percentage}`` mapping, so the
same arithmetic serves API views, CSV reports and tests without touching the
database. Calendar days are local days in the configured time zone.
"""
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal

from django.utils import timezone

from apps.debts.models import DebtStatus
from apps.orders.models import PaymentStatus

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

SERIES_PERIODS = ("week", "month", "year")


def to_decimal(value):
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value):
    return to_decimal(value).quantize(CENT)


def local_day(value):
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            return value.date()
        return timezone.localtime(value).date()
    return value


def discount_map(agents):
    return {agent.id: to_decimal(agent.discount_percentage) for agent in agents}


def agent_discount(discounts, agent_id):
    return to_decimal(discounts.get(agent_id))


def apply_discount(amount, discount):
    return to_decimal(amount) * (Decimal("1") - to_decimal(discount) / HUNDRED)


def order_net_revenue(order, discounts):
    """Net revenue of one order: the explicit override when set, else the discounted price."""
    if order.actual_revenue is not None:
        return to_decimal(order.actual_revenue)
    return apply_discount(order.price, agent_discount(discounts, order.agent_id))


def gross_revenue(orders):
    return sum((to_decimal(order.price) for order in orders), Decimal("0"))


def net_revenue(orders, discounts):
    return sum((order_net_revenue(order, discounts) for order in orders), Decimal("0"))


def outstanding_revenue(orders, discounts):
    return net_revenue([order for order in orders if order.payment_status == PaymentStatus.UNPAID], discounts)


def _shift_month(day, months_back):
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def revenue_series(orders, discounts, period="week", now=None):
    """Gross/net revenue per bucket, most recent bucket last.

    ``week`` and ``month`` yield 7 and 30 daily buckets ending today, ``year``
    yields 12 monthly buckets ending with the current month.
    """
    if period not in SERIES_PERIODS:
        raise ValueError(f"Unknown period {period!r}")
    today = local_day(now or timezone.now())

    orders_by_bucket = defaultdict(list)
    for order in orders:
        day = local_day(order.sold_at)
        bucket = (day.year, day.month) if period == "year" else day
        orders_by_bucket[bucket].append(order)

    series = []
    if period == "year":
        for months_back in range(11, -1, -1):
            start = _shift_month(today, months_back)
            bucket_orders = orders_by_bucket.get((start.year, start.month), [])
            series.append(
                {
                    "label": start.strftime("%m/%Y"),
                    "start": start,
                    "revenue": money(gross_revenue(bucket_orders)),
                    "net_revenue": money(net_revenue(bucket_orders, discounts)),
                }
            )
        return series

    days = 7 if period == "week" else 30
    for days_back in range(days - 1, -1, -1):
        day = today - timedelta(days=days_back)
        bucket_orders = orders_by_bucket.get(day, [])
        series.append(
            {
                "label": day.strftime("%d/%m"),
                "start": day,
                "revenue": money(gross_revenue(bucket_orders)),
                "net_revenue": money(net_revenue(bucket_orders, discounts)),
            }
        )
    return series


def revenue_snapshot(orders, discounts, now=None):
    today = local_day(now or timezone.now())
    week_start = today - timedelta(days=today.weekday())
    week_end = week_start + timedelta(days=6)

    today_orders = []
    week_orders = []
    for order in orders:
        day = local_day(order.sold_at)
        if day == today:
            today_orders.append(order)
        if week_start <= day <= week_end:
            week_orders.append(order)

    return {
        "total_gross_revenue": money(gross_revenue(orders)),
        "total_net_revenue": money(net_revenue(orders, discounts)),
        "total_orders": len(orders),
        "today_revenue": money(gross_revenue(today_orders)),
        "this_week_revenue": money(gross_revenue(week_orders)),
    }


def agent_commission_stats(orders, commission_pct, now=None):
    """This month's gross sales of one agent and the commission earned on its paid part."""
    today = local_day(now or timezone.now())
    month_start = today.replace(day=1)
    month_orders = [order for order in orders if local_day(order.sold_at).replace(day=1) == month_start]
    paid_gross = gross_revenue([order for order in month_orders if order.payment_status == PaymentStatus.PAID])
    return {
        "commission_percentage": money(commission_pct),
        "month_revenue": money(gross_revenue(month_orders)),
        "month_commission_received": money(paid_gross * to_decimal(commission_pct) / HUNDRED),
    }


def debt_key(agent_id, day):
    return f"{agent_id}_{day:%Y-%m-%d}"


def parse_debt_key(key):
    agent_part, _, day_part = str(key).partition("_")
    try:
        agent_id = int(agent_part)
        day = datetime.strptime(day_part, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValueError(f"Malformed debt key {key!r}") from exc
    return agent_id, day


def daily_debt_buckets(orders, discounts, statuses):
    """Group orders by agent and local sale day into settlement buckets.

    Net revenue of a bucket applies the agent's current discount to the
    bucket's gross total; per-order ``actual_revenue`` overrides do not take
    part here. Buckets without a stored status are UNPAID. Newest day first.
    """
    grouped = defaultdict(list)
    for order in orders:
        grouped[(order.agent_id, local_day(order.sold_at))].append(order)

    buckets = []
    for (agent_id, day), bucket_orders in grouped.items():
        key = debt_key(agent_id, day)
        gross = gross_revenue(bucket_orders)
        buckets.append(
            {
                "id": key,
                "agent_id": agent_id,
                "date": day,
                "total_gross_revenue": money(gross),
                "total_net_revenue": money(apply_discount(gross, agent_discount(discounts, agent_id))),
                "status": statuses.get(key, DebtStatus.UNPAID),
                "order_count": len(bucket_orders),
            }
        )

    buckets.sort(key=lambda bucket: (bucket["date"], bucket["agent_id"]), reverse=True)
    return buckets
