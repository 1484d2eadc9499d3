from django.contrib import admin

from apps.debts.models import DebtStatusRecord


@admin.register(DebtStatusRecord)
class DebtStatusRecordAdmin(admin.ModelAdmin):
    list_display = ("key", "agent_id", "date", "status", "updated_at")
    list_filter = ("status", "date")
    search_fields = ("key",)
    readonly_fields = ("key", "agent_id", "date", "status", "updated_at")

    def has_add_permission(self, request):
        return False
