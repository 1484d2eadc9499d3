from django.utils import timezone
from rest_framework import serializers

from apps.accounts.models import User, UserRole
from apps.catalog.models import Package
from apps.common.exceptions import BusinessRuleError
from apps.common.permissions import is_admin
from apps.orders.models import ActivationStatus, Order, PaymentStatus
from apps.orders.revenue import money, order_net_revenue
from apps.orders.services import has_same_day_order


class OrderSerializer(serializers.ModelSerializer):
    package = serializers.PrimaryKeyRelatedField(queryset=Package.objects.all())
    package_name = serializers.CharField(source="package.name", read_only=True)
    agent = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(role=UserRole.AGENT), required=False)
    agent_name = serializers.CharField(source="agent.display_name", read_only=True)
    price = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    net_revenue = serializers.SerializerMethodField()
    sold_at = serializers.DateTimeField(required=False)

    class Meta:
        model = Order
        fields = [
            "id",
            "account_name",
            "account_email",
            "package",
            "package_name",
            "price",
            "actual_revenue",
            "net_revenue",
            "status",
            "payment_status",
            "agent",
            "agent_name",
            "sold_at",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "package_name", "agent_name", "net_revenue", "created_at", "updated_at"]

    def get_net_revenue(self, obj):
        discounts = {obj.agent_id: obj.agent.discount_percentage}
        return str(money(order_net_revenue(obj, discounts)))

    def validate_account_email(self, value):
        return value.strip()

    def validate_account_name(self, value):
        return value.strip()

    def validate_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("price must be greater than or equal to 0")
        return value

    def validate_actual_revenue(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("actual_revenue must be greater than or equal to 0")
        return value

    def validate(self, attrs):
        request = self.context["request"]
        if is_admin(request.user):
            attrs = self._validate_admin(attrs)
        else:
            attrs = self._validate_agent(attrs, request.user)

        account_name = attrs.get("account_name", getattr(self.instance, "account_name", ""))
        account_email = attrs.get("account_email", getattr(self.instance, "account_email", ""))
        if not account_name and not account_email:
            raise serializers.ValidationError({"account_name": "account_name or account_email is required."})
        if not account_name:
            attrs["account_name"] = account_email.split("@")[0]

        if self.instance is None and has_same_day_order(account_email, attrs["sold_at"]):
            raise BusinessRuleError(
                "duplicate_order",
                "An order with this email already exists for that day.",
                fields={"account_email": ["An order with this email already exists for that day."]},
            )
        return attrs

    def _validate_admin(self, attrs):
        if self.instance is None:
            if not attrs.get("agent"):
                raise serializers.ValidationError({"agent": "agent is required."})
            if attrs.get("price") is None:
                attrs["price"] = attrs["package"].price
            attrs.setdefault("sold_at", timezone.now())
        elif "price" in attrs and attrs["price"] is None:
            raise serializers.ValidationError({"price": "price may not be null."})
        return attrs

    def _validate_agent(self, attrs, user):
        package = attrs["package"]
        attrs.update(
            {
                "agent": user,
                "price": package.price,
                "actual_revenue": None,
                "status": ActivationStatus.NOT_ACTIVATED,
                "payment_status": PaymentStatus.UNPAID,
                "sold_at": timezone.now(),
            }
        )
        return attrs


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ActivationStatus.choices)


class OrderFilterSerializer(serializers.Serializer):
    agent = serializers.IntegerField(required=False)
    package = serializers.IntegerField(required=False)
    email = serializers.CharField(required=False, allow_blank=True)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=ActivationStatus.choices, required=False)
    payment_status = serializers.ChoiceField(choices=PaymentStatus.choices, required=False)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({"date_from": "date_from must be before or equal to date_to."})
        return attrs
