from django.db import transaction
from django.utils import timezone
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.audit.services import record_admin_action
from apps.common.exceptions import BusinessRuleError
from apps.common.exports import csv_attachment
from apps.common.permissions import RolePermission, is_admin
from apps.debts.services import reopen_settled_bucket
from apps.orders.models import ActivationStatus, Order, PaymentStatus
from apps.orders.revenue import gross_revenue, money, net_revenue, order_net_revenue, outstanding_revenue
from apps.orders.serializers import OrderFilterSerializer, OrderSerializer, OrderStatusSerializer
from apps.orders.services import agent_discounts, local_day_bounds

ADMIN_EXPORT_HEADERS = {
    "stt": "No.",
    "account": "Account",
    "package": "Package",
    "price": "Price",
    "net_revenue": "Net revenue",
    "notes": "Notes",
    "agent": "Agent",
    "sold_at": "Sold on",
    "status": "Activation",
    "payment_status": "Payment",
}

AGENT_EXPORT_HEADERS = {
    "id": "ID",
    "account_name": "Account name",
    "account_email": "Email",
    "package": "Package",
    "price": "Price",
    "net_revenue": "Amount due",
    "status": "Status",
    "payment_status": "Payment",
    "sold_at": "Sold at",
}


class OrderViewSet(viewsets.ModelViewSet):
    serializer_class = OrderSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["orders.view"],
        "retrieve": ["orders.view"],
        "summary": ["orders.view"],
        "create": ["orders.create"],
        "partial_update": ["orders.manage"],
        "update": ["orders.manage"],
        "destroy": ["orders.manage"],
        "set_status": ["orders.manage"],
        "export": ["orders.export"],
    }

    def get_queryset(self):
        queryset = Order.objects.select_related("agent", "package").order_by("-sold_at", "-id")
        if not is_admin(self.request.user):
            queryset = queryset.filter(agent=self.request.user)
        if self.action in ("list", "summary", "export"):
            queryset = self._apply_filters(queryset)
        return queryset

    def _apply_filters(self, queryset):
        filters = OrderFilterSerializer(data=self.request.query_params)
        filters.is_valid(raise_exception=True)
        params = filters.validated_data

        if params.get("agent") is not None:
            queryset = queryset.filter(agent_id=params["agent"])
        if params.get("package") is not None:
            queryset = queryset.filter(package_id=params["package"])
        if params.get("email"):
            queryset = queryset.filter(account_email__icontains=params["email"].strip())
        if params.get("date_from"):
            queryset = queryset.filter(sold_at__gte=local_day_bounds(params["date_from"])[0])
        if params.get("date_to"):
            queryset = queryset.filter(sold_at__lte=local_day_bounds(params["date_to"])[1])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("payment_status"):
            queryset = queryset.filter(payment_status=params["payment_status"])
        return queryset

    def perform_create(self, serializer):
        with transaction.atomic():
            order = serializer.save()
            reopen_settled_bucket(order, actor=self.request.user)
            if is_admin(self.request.user):
                record_admin_action(
                    actor=self.request.user,
                    description=f"Created order #{order.id} ({order.price}) for agent '{order.agent.display_name}'.",
                )

    def perform_update(self, serializer):
        with transaction.atomic():
            order = serializer.save()
            reopen_settled_bucket(order, actor=self.request.user)
            record_admin_action(actor=self.request.user, description=f"Updated order #{order.id}.")

    def perform_destroy(self, instance):
        if instance.payment_status == PaymentStatus.PAID:
            raise BusinessRuleError("order_paid", "Paid orders cannot be deleted.")
        order_id = instance.id
        with transaction.atomic():
            super().perform_destroy(instance)
            record_admin_action(actor=self.request.user, description=f"Deleted order #{order_id}.")

    @action(detail=True, methods=["post"], url_path="set-status")
    def set_status(self, request, pk=None):
        order = self.get_object()
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]

        with transaction.atomic():
            order.status = new_status
            order.save(update_fields=["status", "updated_at"])
            record_admin_action(
                actor=request.user,
                description=f"Updated order #{order.id} status to '{ActivationStatus(new_status).label}'.",
            )
        return Response(self.get_serializer(order).data, status=200)

    @action(detail=False, methods=["get"])
    def summary(self, request):
        orders = list(self.get_queryset())
        discounts = agent_discounts({order.agent_id for order in orders})
        return Response(
            {
                "order_count": len(orders),
                "gross_revenue": money(gross_revenue(orders)),
                "net_revenue": money(net_revenue(orders, discounts)),
                "outstanding_revenue": money(outstanding_revenue(orders, discounts)),
            }
        )

    @action(detail=False, methods=["get"])
    def export(self, request):
        orders = list(self.get_queryset())
        discounts = {order.agent_id: order.agent.discount_percentage for order in orders}
        now = timezone.localtime()

        if is_admin(request.user):
            rows = [
                {
                    "stt": index,
                    "account": f"{order.account_name}\n{order.account_email}",
                    "package": order.package.name,
                    "price": money(order.price),
                    "net_revenue": money(order_net_revenue(order, discounts)),
                    "notes": order.notes,
                    "agent": order.agent.display_name,
                    "sold_at": f"{order.sale_day:%d/%m/%Y}",
                    "status": ActivationStatus(order.status).label,
                    "payment_status": PaymentStatus(order.payment_status).label,
                }
                for index, order in enumerate(orders, start=1)
            ]
            return csv_attachment(rows, ADMIN_EXPORT_HEADERS, f"tsoft_all_orders_{now:%Y%m%d_%H%M%S}")

        rows = [
            {
                "id": order.id,
                "account_name": order.account_name,
                "account_email": order.account_email,
                "package": order.package.name,
                "price": money(order.price),
                "net_revenue": money(order_net_revenue(order, discounts)),
                "status": ActivationStatus(order.status).label,
                "payment_status": PaymentStatus(order.payment_status).label,
                "sold_at": f"{timezone.localtime(order.sold_at):%d/%m/%Y %H:%M}",
            }
            for order in orders
        ]
        return csv_attachment(rows, AGENT_EXPORT_HEADERS, f"tsoft_revenue_{request.user.username}_orders")
