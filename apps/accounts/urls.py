from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.accounts.views import AgentViewSet, MeView, UserListView

router = DefaultRouter()
router.register("agents", AgentViewSet, basename="agent")

urlpatterns = [
    path("auth/me/", MeView.as_view(), name="auth-me"),
    path("users/", UserListView.as_view(), name="user-list"),
]
urlpatterns += router.urls
