from rest_framework import serializers

from apps.audit.models import AdminLog


class AdminLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AdminLog
        fields = ["id", "timestamp", "admin_id", "admin_name", "description"]
        read_only_fields = fields
