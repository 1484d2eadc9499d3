from django.db import transaction
from rest_framework import viewsets

from apps.audit.services import record_admin_action
from apps.catalog.models import Package
from apps.catalog.querysets import with_order_counts
from apps.catalog.serializers import PackageSerializer
from apps.common.exceptions import BusinessRuleError
from apps.common.permissions import RolePermission


class PackageViewSet(viewsets.ModelViewSet):
    serializer_class = PackageSerializer
    permission_classes = [RolePermission]
    pagination_class = None
    capability_map = {
        "list": ["packages.view"],
        "retrieve": ["packages.view"],
        "create": ["packages.manage"],
        "partial_update": ["packages.manage"],
        "update": ["packages.manage"],
        "destroy": ["packages.manage"],
    }

    def get_queryset(self):
        queryset = with_order_counts(Package.objects.all()).order_by("id")
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(name__icontains=query.strip())
        return queryset

    def perform_create(self, serializer):
        with transaction.atomic():
            package = serializer.save()
            record_admin_action(
                actor=self.request.user,
                description=f"Created package '{package.name}' ({package.price}).",
            )

    def perform_update(self, serializer):
        old_package = self.get_object()
        before = f"'{old_package.name}' ({old_package.price})"
        with transaction.atomic():
            package = serializer.save()
            record_admin_action(
                actor=self.request.user,
                description=f"Updated package {before} to '{package.name}' ({package.price}).",
            )

    def perform_destroy(self, instance):
        if instance.orders.exists():
            raise BusinessRuleError(
                "package_in_use",
                "This package is referenced by existing orders and cannot be deleted.",
                status_code=409,
            )
        with transaction.atomic():
            record_admin_action(actor=self.request.user, description=f"Deleted package '{instance.name}'.")
            super().perform_destroy(instance)
