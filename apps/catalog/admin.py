from django.contrib import admin

from apps.catalog.models import Package


@admin.register(Package)
class PackageAdmin(admin.ModelAdmin):
    list_display = ("name", "price", "updated_at")
    search_fields = ("name",)
    ordering = ("id",)
