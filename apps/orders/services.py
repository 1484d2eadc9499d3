from datetime import datetime, time

from django.utils import timezone

from apps.accounts.models import User, UserRole
from apps.orders.models import Order
from apps.orders.revenue import discount_map


def agent_discounts(agent_ids=None):
    agents = User.objects.filter(role=UserRole.AGENT)
    if agent_ids is not None:
        agents = agents.filter(id__in=set(agent_ids))
    return discount_map(agents.only("id", "discount_percentage"))


def local_day_bounds(day):
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    end = timezone.make_aware(datetime.combine(day, time.max), tz)
    return start, end


def orders_for_agent_day(agent_id, day):
    start, end = local_day_bounds(day)
    return Order.objects.filter(agent_id=agent_id, sold_at__gte=start, sold_at__lte=end)


def has_same_day_order(email, sold_at, exclude_id=None):
    email = (email or "").strip()
    if not email:
        return False
    start, end = local_day_bounds(timezone.localdate(sold_at))
    queryset = Order.objects.filter(account_email__iexact=email, sold_at__gte=start, sold_at__lte=end)
    if exclude_id is not None:
        queryset = queryset.exclude(id=exclude_id)
    return queryset.exists()
