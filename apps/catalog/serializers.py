from rest_framework import serializers

from apps.catalog.models import Package


class PackageSerializer(serializers.ModelSerializer):
    order_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Package
        fields = ["id", "name", "price", "order_count", "created_at", "updated_at"]
        read_only_fields = ["id", "order_count", "created_at", "updated_at"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("price must be greater than or equal to 0")
        return value
