from decimal import Decimal

from django.conf import settings
from rest_framework import exceptions, serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from apps.accounts.models import User, UserRole


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "name", "role", "is_active", "discount_percentage", "date_joined"]
        read_only_fields = fields


class AgentSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, allow_blank=True, trim_whitespace=False)
    discount_percentage = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
        required=False,
    )

    class Meta:
        model = User
        fields = ["id", "username", "password", "name", "role", "is_active", "discount_percentage", "date_joined"]
        read_only_fields = ["id", "role", "date_joined"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("name is required")
        return value

    def validate_username(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("username is required")
        return value

    def validate(self, attrs):
        if self.instance is None:
            if not attrs.get("name"):
                raise serializers.ValidationError({"name": "name is required"})
            if not attrs.get("password"):
                raise serializers.ValidationError({"password": "password is required when creating an agent"})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        validated_data.setdefault("discount_percentage", Decimal(settings.DEFAULT_AGENT_DISCOUNT))
        agent = User(role=UserRole.AGENT, **validated_data)
        agent.set_password(password)
        agent.save()
        return agent

    def update(self, instance, validated_data):
        password = validated_data.pop("password", "")
        for field, value in validated_data.items():
            setattr(instance, field, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


class LoginSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        candidate = User.objects.filter(username=attrs.get(self.username_field)).first()
        if candidate is not None and not candidate.is_active and candidate.check_password(attrs.get("password")):
            raise exceptions.AuthenticationFailed("This account has been disabled.", "account_disabled")

        data = super().validate(attrs)
        data["user"] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["role"] = user.role
        return token
