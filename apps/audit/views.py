from rest_framework import generics

from apps.audit.models import AdminLog
from apps.audit.serializers import AdminLogSerializer
from apps.common.permissions import RolePermission


class AdminLogListView(generics.ListAPIView):
    serializer_class = AdminLogSerializer
    permission_classes = [RolePermission]
    capability_map = {"get": ["logs.view"]}

    def get_queryset(self):
        queryset = AdminLog.objects.order_by("-timestamp", "-id")
        admin_id = self.request.query_params.get("admin")
        if admin_id:
            queryset = queryset.filter(admin_id=admin_id)
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(description__icontains=query.strip())
        return queryset
