import logging

from django.db import transaction
from django.db.models import Q
from rest_framework import generics, viewsets
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView

from apps.accounts.models import User, UserRole
from apps.accounts.serializers import AgentSerializer, LoginSerializer, UserSerializer
from apps.audit.services import record_admin_action
from apps.common.permissions import RolePermission
from apps.debts.models import DebtStatusRecord

logger = logging.getLogger(__name__)


class LoginView(TokenObtainPairView):
    serializer_class = LoginSerializer


class MeView(generics.GenericAPIView):
    serializer_class = UserSerializer

    def get(self, request, *args, **kwargs):
        return Response(self.get_serializer(request.user).data)


class UserListView(generics.ListAPIView):
    serializer_class = UserSerializer
    permission_classes = [RolePermission]
    capability_map = {"get": ["users.view"]}

    def get_queryset(self):
        queryset = User.objects.order_by("id")
        role = self.request.query_params.get("role")
        if role:
            queryset = queryset.filter(role=role.strip().upper())
        return queryset


class AgentViewSet(viewsets.ModelViewSet):
    serializer_class = AgentSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["agents.manage"],
        "retrieve": ["agents.manage"],
        "create": ["agents.manage"],
        "partial_update": ["agents.manage"],
        "update": ["agents.manage"],
        "destroy": ["agents.manage"],
    }

    def get_queryset(self):
        queryset = User.objects.filter(role=UserRole.AGENT).order_by("id")
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(Q(name__icontains=query.strip()) | Q(username__icontains=query.strip()))
        return queryset

    def perform_create(self, serializer):
        with transaction.atomic():
            agent = serializer.save()
            record_admin_action(actor=self.request.user, description=f"Created agent '{agent.display_name}'.")

    def perform_update(self, serializer):
        with transaction.atomic():
            agent = serializer.save()
            record_admin_action(actor=self.request.user, description=f"Updated agent '{agent.display_name}'.")

    def perform_destroy(self, instance):
        name = instance.display_name
        with transaction.atomic():
            order_count = instance.orders.count()
            DebtStatusRecord.objects.filter(agent_id=instance.id).delete()
            instance.delete()
            record_admin_action(actor=self.request.user, description=f"Deleted agent '{name}'.")
        logger.info("Agent %s deleted together with %s orders", name, order_count)
