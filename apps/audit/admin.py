from django.contrib import admin

from apps.audit.models import AdminLog


@admin.register(AdminLog)
class AdminLogAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "admin_name", "description")
    search_fields = ("admin_name", "description")
    readonly_fields = ("timestamp", "admin_id", "admin_name", "description")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
