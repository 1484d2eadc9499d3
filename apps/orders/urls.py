from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.orders.views import OrderViewSet
from apps.orders.views_metrics import RevenueMetricsView

router = DefaultRouter()
router.register("orders", OrderViewSet, basename="order")

urlpatterns = [
    path("metrics/", RevenueMetricsView.as_view(), name="revenue-metrics"),
]
urlpatterns += router.urls
