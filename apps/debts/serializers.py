from rest_framework import serializers

from apps.debts.models import DebtStatus


class DailyDebtSerializer(serializers.Serializer):
    id = serializers.CharField()
    agent_id = serializers.IntegerField()
    agent_name = serializers.CharField()
    date = serializers.DateField()
    total_gross_revenue = serializers.DecimalField(max_digits=16, decimal_places=2)
    total_net_revenue = serializers.DecimalField(max_digits=16, decimal_places=2)
    status = serializers.ChoiceField(choices=DebtStatus.choices)
    order_count = serializers.IntegerField()


class DebtOrderSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    account_name = serializers.CharField()
    account_email = serializers.CharField()
    package_name = serializers.CharField(source="package.name")
    price = serializers.DecimalField(max_digits=14, decimal_places=2)
    status = serializers.CharField()
    payment_status = serializers.CharField()
    sold_at = serializers.DateTimeField()


class DebtStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DebtStatus.choices)


class DailyDebtFilterSerializer(serializers.Serializer):
    agent = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=DebtStatus.choices, required=False)
