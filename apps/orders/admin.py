from django.contrib import admin

from apps.orders.models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "account_email", "package", "agent", "price", "actual_revenue", "status", "payment_status", "sold_at")
    list_filter = ("status", "payment_status", "package", "agent")
    search_fields = ("id", "account_name", "account_email", "agent__username", "agent__name")
    autocomplete_fields = ("agent", "package")
    date_hierarchy = "sold_at"
