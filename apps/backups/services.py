"""Whole-store backup snapshots in the ``AppDataBackup`` interchange shape.

A snapshot holds four top-level keys: ``users``, ``orders``, ``daily_debts``
and ``admin_logs``. Restoring one replaces every user, order, settlement
status and admin log in a single transaction. Packages are reference data
and stay as they are; orders in a snapshot must point at existing packages.
"""
import json
import logging
from decimal import Decimal

from django.conf import settings
from django.contrib.auth.hashers import identify_hasher, make_password
from django.core.management.color import no_style
from django.core.serializers.json import DjangoJSONEncoder
from django.db import connection, transaction
from django.utils import timezone
from rest_framework import serializers

from apps.accounts.models import User, UserRole
from apps.audit.models import AdminLog
from apps.audit.services import record_admin_action
from apps.catalog.models import Package
from apps.common.exceptions import BusinessRuleError
from apps.debts.models import DebtStatus, DebtStatusRecord
from apps.orders.models import ActivationStatus, Order, PaymentStatus
from apps.orders.revenue import debt_key, parse_debt_key

logger = logging.getLogger(__name__)

BACKUP_KEYS = ("users", "orders", "daily_debts", "admin_logs")


class BackupJSONEncoder(DjangoJSONEncoder):
    """Writes money as plain JSON numbers instead of strings."""

    def default(self, o):
        if isinstance(o, Decimal):
            return int(o) if o == o.to_integral_value() else float(o)
        return super().default(o)


class UserBackupSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(allow_blank=True, required=False, default="")
    name = serializers.CharField(allow_blank=True, required=False, default="")
    role = serializers.ChoiceField(choices=UserRole.choices)
    isActive = serializers.BooleanField(source="is_active", required=False, default=True)
    discountPercentage = serializers.DecimalField(
        source="discount_percentage",
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
        allow_null=True,
        required=False,
        default=None,
        coerce_to_string=False,
    )


class OrderBackupSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)
    account_name = serializers.CharField(allow_blank=True, required=False, default="")
    account_email = serializers.CharField(allow_blank=True, required=False, default="")
    packageId = serializers.IntegerField(source="package_id")
    price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0"), coerce_to_string=False)
    actual_revenue = serializers.DecimalField(
        max_digits=14, decimal_places=2, allow_null=True, required=False, default=None, coerce_to_string=False
    )
    status = serializers.ChoiceField(choices=ActivationStatus.choices)
    paymentStatus = serializers.ChoiceField(source="payment_status", choices=PaymentStatus.choices)
    agentId = serializers.IntegerField(source="agent_id")
    sold_at = serializers.DateTimeField()
    notes = serializers.CharField(allow_blank=True, required=False, default="")


class AdminLogBackupSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)
    timestamp = serializers.DateTimeField()
    adminId = serializers.IntegerField(source="admin_id", allow_null=True, required=False, default=None)
    adminName = serializers.CharField(source="admin_name", allow_blank=True)
    description = serializers.CharField(allow_blank=True)


def backup_filename(today=None):
    today = today or timezone.localdate()
    return f"{settings.BACKUP_FILENAME_PREFIX}-{today:%Y-%m-%d}.json"


def export_snapshot():
    snapshot = {
        "users": UserBackupSerializer(User.objects.order_by("id"), many=True).data,
        "orders": OrderBackupSerializer(Order.objects.order_by("id"), many=True).data,
        "daily_debts": dict(DebtStatusRecord.objects.order_by("key").values_list("key", "status")),
        "admin_logs": AdminLogBackupSerializer(AdminLog.objects.order_by("id"), many=True).data,
    }
    logger.info("Backup exported: %s", {key: len(snapshot[key]) for key in BACKUP_KEYS})
    return snapshot


def dump_snapshot(snapshot):
    return json.dumps(snapshot, cls=BackupJSONEncoder, indent=2, ensure_ascii=False)


def load_snapshot(raw):
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise BusinessRuleError("invalid_backup", "Backup file is not valid UTF-8.") from exc
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise BusinessRuleError("invalid_backup", f"Backup file is not valid JSON: {exc}") from exc


def _validated_rows(serializer_class, rows, key):
    if not isinstance(rows, list):
        raise BusinessRuleError("invalid_backup", f"'{key}' must be a list.", fields={key: ["Expected a list."]})
    serializer = serializer_class(data=rows, many=True)
    if not serializer.is_valid():
        raise BusinessRuleError("invalid_backup", f"'{key}' contains invalid rows.", fields={key: serializer.errors})
    return serializer.validated_data


def _validated_debts(daily_debts):
    if not isinstance(daily_debts, dict):
        raise BusinessRuleError(
            "invalid_backup", "'daily_debts' must be an object.", fields={"daily_debts": ["Expected an object."]}
        )
    records = []
    errors = {}
    seen = {}
    for key, status in daily_debts.items():
        try:
            agent_id, day = parse_debt_key(key)
        except ValueError as exc:
            errors[key] = [str(exc)]
            continue
        if status not in DebtStatus.values:
            errors[key] = [f"Unknown status {status!r}."]
            continue
        normalized = debt_key(agent_id, day)
        if normalized in seen:
            errors[key] = [f"Same agent and day as {seen[normalized]!r}."]
            continue
        seen[normalized] = key
        records.append({"key": normalized, "agent_id": agent_id, "date": day, "status": status})
    if errors:
        raise BusinessRuleError("invalid_backup", "'daily_debts' contains invalid entries.", fields={"daily_debts": errors})
    return records


def _require_unique(rows, field, key):
    values = [row[field] for row in rows]
    if len(set(values)) != len(values):
        raise BusinessRuleError(
            "invalid_backup", f"'{key}' contains duplicate {field} values.", fields={key: [f"Duplicate {field}."]}
        )


def validate_snapshot(payload):
    """Check shape and references of a snapshot without touching the store."""
    if not isinstance(payload, dict):
        raise BusinessRuleError("invalid_backup", "Backup must be a JSON object.")
    missing = [key for key in BACKUP_KEYS if key not in payload]
    if missing:
        raise BusinessRuleError(
            "invalid_backup",
            f"Backup is missing required keys: {', '.join(missing)}.",
            fields={key: ["This key is required."] for key in missing},
        )

    users = _validated_rows(UserBackupSerializer, payload["users"], "users")
    orders = _validated_rows(OrderBackupSerializer, payload["orders"], "orders")
    admin_logs = _validated_rows(AdminLogBackupSerializer, payload["admin_logs"], "admin_logs")
    debts = _validated_debts(payload["daily_debts"])

    _require_unique(users, "username", "users")
    for key, rows in (("users", users), ("orders", orders), ("admin_logs", admin_logs)):
        _require_unique(rows, "id", key)

    user_ids = {row["id"] for row in users}
    unknown_agents = sorted({row["agent_id"] for row in orders} - user_ids)
    if unknown_agents:
        raise BusinessRuleError(
            "invalid_backup",
            "Orders reference users that are not in the backup.",
            fields={"orders": [f"Unknown agentId {agent_id}." for agent_id in unknown_agents]},
        )
    package_ids = {row["package_id"] for row in orders}
    unknown_packages = sorted(package_ids - set(Package.objects.filter(id__in=package_ids).values_list("id", flat=True)))
    if unknown_packages:
        raise BusinessRuleError(
            "invalid_backup",
            "Orders reference packages that do not exist.",
            fields={"orders": [f"Unknown packageId {package_id}." for package_id in unknown_packages]},
        )

    return {"users": users, "orders": orders, "daily_debts": debts, "admin_logs": admin_logs}


def _password_hash(raw):
    if not raw:
        return make_password(None)
    try:
        identify_hasher(raw)
    except ValueError:
        return make_password(raw)
    return raw


def _reset_sequences(models):
    statements = connection.ops.sequence_reset_sql(no_style(), models)
    if not statements:
        return
    with connection.cursor() as cursor:
        for sql in statements:
            cursor.execute(sql)


def import_snapshot(payload, *, actor=None):
    """Replace users, orders, settlement statuses and logs with the snapshot's rows.

    Validation runs before anything is deleted. The replace and the audit
    entry commit together or not at all.
    """
    data = validate_snapshot(payload)

    with transaction.atomic():
        Order.objects.all().delete()
        DebtStatusRecord.objects.all().delete()
        AdminLog.objects.all().delete()
        User.objects.all().delete()

        User.objects.bulk_create(
            [
                User(
                    id=row["id"],
                    username=row["username"],
                    password=_password_hash(row["password"]),
                    name=row["name"],
                    role=row["role"],
                    is_active=row["is_active"],
                    discount_percentage=row["discount_percentage"],
                )
                for row in data["users"]
            ]
        )
        Order.objects.bulk_create([Order(**row) for row in data["orders"]])
        DebtStatusRecord.objects.bulk_create([DebtStatusRecord(**row) for row in data["daily_debts"]])
        AdminLog.objects.bulk_create([AdminLog(**row) for row in data["admin_logs"]])
        _reset_sequences([User, Order, AdminLog, DebtStatusRecord])

        counts = {key: len(data[key]) for key in BACKUP_KEYS}
        record_admin_action(
            actor=actor,
            description=(
                f"Restored data from backup ({counts['users']} users, {counts['orders']} orders, "
                f"{counts['daily_debts']} settlement statuses, {counts['admin_logs']} log entries)."
            ),
        )

    logger.info("Backup restored: %s", counts)
    return counts
