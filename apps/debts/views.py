from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from apps.accounts.models import User
from apps.common.exceptions import BusinessRuleError
from apps.common.permissions import RolePermission
from apps.debts.serializers import (
    DailyDebtFilterSerializer,
    DailyDebtSerializer,
    DebtOrderSerializer,
    DebtStatusUpdateSerializer,
)
from apps.debts.services import get_daily_debt, list_daily_debts, set_debt_status


def _with_agent_names(buckets):
    names = {user.id: user.display_name for user in User.objects.filter(id__in={b["agent_id"] for b in buckets})}
    return [{**bucket, "agent_name": names.get(bucket["agent_id"], "N/A")} for bucket in buckets]


def _invalid_key(exc):
    return BusinessRuleError("invalid_debt_key", str(exc), fields={"key": [str(exc)]})


class DailyDebtViewSet(viewsets.GenericViewSet):
    """Per-agent, per-day settlement buckets derived from orders."""

    serializer_class = DailyDebtSerializer
    permission_classes = [RolePermission]
    lookup_field = "key"
    lookup_value_regex = r"[^/]+"
    capability_map = {
        "list": ["debts.view"],
        "retrieve": ["debts.view"],
        "set_status": ["debts.manage"],
    }

    def _load(self, key):
        try:
            bucket, orders = get_daily_debt(key)
        except ValueError as exc:
            raise _invalid_key(exc) from exc
        if bucket is None:
            raise NotFound("No orders exist for this agent and day.")
        return bucket, orders

    def list(self, request, *args, **kwargs):
        filters = DailyDebtFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        buckets = list_daily_debts(
            agent_id=filters.validated_data.get("agent"),
            status=filters.validated_data.get("status"),
        )
        page = self.paginate_queryset(buckets)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(_with_agent_names(page), many=True).data)
        return Response(self.get_serializer(_with_agent_names(buckets), many=True).data)

    def retrieve(self, request, key=None, *args, **kwargs):
        bucket, orders = self._load(key)
        data = self.get_serializer(_with_agent_names([bucket])[0]).data
        data["orders"] = DebtOrderSerializer(orders, many=True).data
        return Response(data)

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, key=None):
        serializer = DebtStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]
        try:
            updated = set_debt_status(key, new_status, actor=request.user)
        except ValueError as exc:
            raise _invalid_key(exc) from exc

        bucket, _ = get_daily_debt(key)
        if bucket is None:
            return Response({"id": key, "status": new_status, "orders_updated": updated})
        data = self.get_serializer(_with_agent_names([bucket])[0]).data
        data["orders_updated"] = updated
        return Response(data)
