from rest_framework.routers import DefaultRouter

from apps.debts.views import DailyDebtViewSet

router = DefaultRouter()
router.register("debts", DailyDebtViewSet, basename="debt")

urlpatterns = router.urls
