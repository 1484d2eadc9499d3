from django.utils import timezone
from rest_framework import generics
from rest_framework import serializers
from rest_framework.response import Response

from apps.common.permissions import RolePermission, is_admin
from apps.orders.models import Order
from apps.orders.revenue import SERIES_PERIODS, agent_commission_stats, revenue_series, revenue_snapshot
from apps.orders.services import agent_discounts


class RevenueMetricsQuerySerializer(serializers.Serializer):
    period = serializers.ChoiceField(choices=SERIES_PERIODS, required=False, default="week")


class RevenueMetricsView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {"get": ["metrics.view"]}

    def get(self, request, *args, **kwargs):
        query = RevenueMetricsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        period = query.validated_data["period"]
        now = timezone.now()

        orders = Order.objects.only("id", "price", "actual_revenue", "agent", "sold_at", "payment_status")
        if is_admin(request.user):
            orders = list(orders)
            discounts = agent_discounts()
            return Response(
                {
                    "period": period,
                    "summary": revenue_snapshot(orders, discounts, now=now),
                    "series": revenue_series(orders, discounts, period=period, now=now),
                }
            )

        orders = list(orders.filter(agent=request.user))
        discounts = {request.user.id: request.user.discount_percentage}
        return Response(
            {
                "period": period,
                "summary": agent_commission_stats(orders, request.user.discount_percentage, now=now),
                "series": revenue_series(orders, discounts, period=period, now=now),
            }
        )
