import logging

from django.db import transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.audit.services import record_admin_action
from apps.debts.models import DebtStatus, DebtStatusRecord
from apps.orders.models import Order, PaymentStatus
from apps.orders.revenue import daily_debt_buckets, debt_key, parse_debt_key
from apps.orders.services import agent_discounts, orders_for_agent_day

logger = logging.getLogger(__name__)

DEBT_TO_PAYMENT_STATUS = {
    DebtStatus.PAID: PaymentStatus.PAID,
    DebtStatus.UNPAID: PaymentStatus.UNPAID,
}


def debt_statuses():
    return dict(DebtStatusRecord.objects.values_list("key", "status"))


def list_daily_debts(*, agent_id=None, status=None):
    orders = Order.objects.only("id", "price", "agent", "sold_at")
    if agent_id is not None:
        orders = orders.filter(agent_id=agent_id)
    orders = list(orders)
    buckets = daily_debt_buckets(orders, agent_discounts({order.agent_id for order in orders}), debt_statuses())
    if status:
        buckets = [bucket for bucket in buckets if bucket["status"] == status]
    return buckets


def get_daily_debt(key):
    """Return ``(bucket, orders)`` for a debt key, or ``(None, [])`` when no order falls in it."""
    agent_id, day = parse_debt_key(key)
    orders = list(orders_for_agent_day(agent_id, day).select_related("package").order_by("sold_at", "id"))
    if not orders:
        return None, []
    status = DebtStatusRecord.objects.filter(key=debt_key(agent_id, day)).values_list("status", flat=True).first()
    statuses = {debt_key(agent_id, day): status} if status else {}
    buckets = daily_debt_buckets(orders, agent_discounts([agent_id]), statuses)
    return buckets[0], orders


def set_debt_status(key, status, *, actor):
    """Persist a bucket's settlement status and mirror it onto every order of the bucket.

    The status write, the order updates and the audit entry commit together.
    """
    agent_id, day = parse_debt_key(key)
    key = debt_key(agent_id, day)
    with transaction.atomic():
        DebtStatusRecord.objects.update_or_create(
            key=key,
            defaults={"agent_id": agent_id, "date": day, "status": status},
        )
        updated = orders_for_agent_day(agent_id, day).update(
            payment_status=DEBT_TO_PAYMENT_STATUS[status],
            updated_at=timezone.now(),
        )

        agent = User.objects.filter(id=agent_id).first()
        agent_name = agent.display_name if agent else "N/A"
        record_admin_action(
            actor=actor,
            description=f"Updated settlement for {agent_name} on {day:%d/%m/%Y} to '{DebtStatus(status).label}'.",
        )
    logger.info("Debt %s set to %s, %s orders synced", key, status, updated)
    return updated


def reopen_settled_bucket(order, *, actor):
    """Put an UNPAID order's settled bucket back to UNPAID, together with the bucket's orders.

    Runs inside the caller's transaction. Returns True when a PAID bucket was reopened.
    """
    if order.payment_status == PaymentStatus.PAID:
        return False
    day = order.sale_day
    key = debt_key(order.agent_id, day)
    reopened = DebtStatusRecord.objects.filter(key=key, status=DebtStatus.PAID).update(
        status=DebtStatus.UNPAID,
        updated_at=timezone.now(),
    )
    if not reopened:
        return False

    orders_for_agent_day(order.agent_id, day).update(
        payment_status=PaymentStatus.UNPAID,
        updated_at=timezone.now(),
    )
    record_admin_action(
        actor=actor,
        description=f"Reopened settlement for {order.agent.display_name} on {day:%d/%m/%Y} after order #{order.id}.",
    )
    logger.info("Debt %s reopened by order %s", key, order.id)
    return True
