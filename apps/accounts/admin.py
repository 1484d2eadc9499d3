from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    fieldsets = DjangoUserAdmin.fieldsets + (("Reseller", {"fields": ("role", "name", "discount_percentage")}),)
    list_display = ("username", "name", "role", "discount_percentage", "is_active")
    list_filter = ("role", "is_active")
    search_fields = ("username", "name")
