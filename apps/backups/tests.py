import json
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import CommandError, call_command
from django.db import DatabaseError
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AdminLog
from apps.audit.services import record_admin_action
from apps.backups.services import BACKUP_KEYS, dump_snapshot, export_snapshot, import_snapshot
from apps.catalog.models import Package
from apps.common.exceptions import BusinessRuleError
from apps.debts.models import DebtStatus, DebtStatusRecord
from apps.debts.services import set_debt_status
from apps.orders.models import Order, PaymentStatus

User = get_user_model()


class BackupTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN", name="Boss")
        self.agent = User.objects.create_user(
            username="agent", password="agent123", role="AGENT", name="Agent A", discount_percentage=Decimal("25")
        )
        self.package = Package.objects.create(name="1 year", price=Decimal("1200000"))
        self.order = Order.objects.create(
            agent=self.agent,
            package=self.package,
            price=self.package.price,
            account_name="Jane",
            account_email="jane@example.com",
            sold_at=timezone.make_aware(datetime(2024, 1, 5, 10)),
            notes="first sale",
        )
        set_debt_status(f"{self.agent.id}_2024-01-05", DebtStatus.PAID, actor=self.admin)

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def snapshot(self):
        return json.loads(dump_snapshot(export_snapshot()))

    def test_export_uses_interchange_keys_and_numbers(self):
        snapshot = self.snapshot()
        self.assertEqual(set(snapshot), set(BACKUP_KEYS))

        agent_row = next(row for row in snapshot["users"] if row["username"] == "agent")
        self.assertEqual(agent_row["role"], "AGENT")
        self.assertTrue(agent_row["isActive"])
        self.assertEqual(agent_row["discountPercentage"], 25)

        order_row = snapshot["orders"][0]
        self.assertEqual(order_row["packageId"], self.package.id)
        self.assertEqual(order_row["agentId"], self.agent.id)
        self.assertEqual(order_row["price"], 1200000)
        self.assertIsNone(order_row["actual_revenue"])
        self.assertEqual(order_row["paymentStatus"], "PAID")

        self.assertEqual(snapshot["daily_debts"], {f"{self.agent.id}_2024-01-05": "PAID"})
        self.assertEqual(snapshot["admin_logs"][0]["adminName"], "Boss")

    def test_round_trip_restores_the_same_state(self):
        snapshot = self.snapshot()

        Order.objects.all().delete()
        DebtStatusRecord.objects.all().delete()
        User.objects.filter(username="agent").delete()
        record_admin_action(actor=self.admin, description="Noise after export.")

        counts = import_snapshot(snapshot, actor=self.admin)
        self.assertEqual(counts, {"users": 2, "orders": 1, "daily_debts": 1, "admin_logs": 1})

        restored = self.snapshot()
        self.assertEqual(restored["users"], snapshot["users"])
        self.assertEqual(restored["orders"], snapshot["orders"])
        self.assertEqual(restored["daily_debts"], snapshot["daily_debts"])
        self.assertEqual(restored["admin_logs"][: len(snapshot["admin_logs"])], snapshot["admin_logs"])
        self.assertFalse(AdminLog.objects.filter(description="Noise after export.").exists())
        self.assertTrue(AdminLog.objects.filter(description__startswith="Restored data from backup").exists())

        agent = User.objects.get(username="agent")
        self.assertTrue(agent.check_password("agent123"))
        self.assertEqual(Order.objects.get().payment_status, PaymentStatus.PAID)

    def test_new_rows_after_import_get_fresh_ids(self):
        import_snapshot(self.snapshot())
        package = Package.objects.get()
        order = Order.objects.create(
            agent=User.objects.get(username="agent"), package=package, price=package.price, account_email="new@x.com"
        )
        self.assertGreater(order.id, self.order.id)

    def test_plaintext_passwords_are_hashed_on_import(self):
        snapshot = self.snapshot()
        for row in snapshot["users"]:
            if row["username"] == "agent":
                row["password"] = "plain-secret"

        import_snapshot(snapshot)
        agent = User.objects.get(username="agent")
        self.assertNotEqual(agent.password, "plain-secret")
        self.assertTrue(agent.check_password("plain-secret"))

    def test_missing_key_is_rejected_without_changes(self):
        snapshot = self.snapshot()
        del snapshot["admin_logs"]
        before = (User.objects.count(), Order.objects.count(), DebtStatusRecord.objects.count(), AdminLog.objects.count())

        with self.assertRaises(BusinessRuleError) as ctx:
            import_snapshot(snapshot, actor=self.admin)
        self.assertEqual(ctx.exception.code, "invalid_backup")
        self.assertIn("admin_logs", ctx.exception.fields)

        after = (User.objects.count(), Order.objects.count(), DebtStatusRecord.objects.count(), AdminLog.objects.count())
        self.assertEqual(before, after)

    def test_orders_must_reference_known_agents_and_packages(self):
        snapshot = self.snapshot()
        snapshot["orders"][0]["agentId"] = 9999
        with self.assertRaises(BusinessRuleError):
            import_snapshot(snapshot)

        snapshot = self.snapshot()
        snapshot["orders"][0]["packageId"] = 9999
        with self.assertRaises(BusinessRuleError):
            import_snapshot(snapshot)

        snapshot = self.snapshot()
        snapshot["daily_debts"] = {"garbage": "PAID"}
        with self.assertRaises(BusinessRuleError):
            import_snapshot(snapshot)
        self.assertEqual(Order.objects.count(), 1)

    def test_keys_for_same_agent_and_day_are_rejected(self):
        snapshot = self.snapshot()
        snapshot["daily_debts"] = {
            f"{self.agent.id}_2024-01-05": "PAID",
            f"{self.agent.id}_2024-1-5": "UNPAID",
        }

        with self.assertRaises(BusinessRuleError) as ctx:
            import_snapshot(snapshot, actor=self.admin)
        self.assertEqual(ctx.exception.code, "invalid_backup")
        self.assertIn(f"{self.agent.id}_2024-1-5", ctx.exception.fields["daily_debts"])
        self.assertEqual(DebtStatusRecord.objects.get().status, DebtStatus.PAID)

    def test_failed_import_keeps_previous_state(self):
        snapshot = self.snapshot()
        snapshot["orders"] = []
        snapshot["daily_debts"] = {}
        before = self.snapshot()

        with mock.patch("apps.backups.services.record_admin_action", side_effect=DatabaseError("log table locked")):
            with self.assertRaises(DatabaseError):
                import_snapshot(snapshot, actor=self.admin)

        self.assertEqual(self.snapshot(), before)
        self.assertEqual(Order.objects.get().payment_status, PaymentStatus.PAID)
        self.assertTrue(User.objects.get(username="agent").check_password("agent123"))

    def test_import_endpoint_reports_store_error(self):
        snapshot = self.snapshot()
        snapshot["orders"] = []
        self.auth_as("admin", "admin123")

        with mock.patch("apps.backups.services.record_admin_action", side_effect=DatabaseError("log table locked")):
            response = self.client.post("/api/v1/backups/import/", snapshot, format="json")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["code"], "store_error")
        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(DebtStatusRecord.objects.count(), 1)

    def test_export_endpoint_serves_attachment(self):
        self.auth_as("admin", "admin123")
        response = self.client.get("/api/v1/backups/export/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response["Content-Disposition"],
            f'attachment; filename="tsoft-backup-{timezone.localdate():%Y-%m-%d}.json"',
        )
        payload = json.loads(response.content)
        self.assertEqual(len(payload["orders"]), 1)
        self.assertIn('\n  "users"', response.content.decode("utf-8"))

    def test_import_endpoint_accepts_json_and_file(self):
        snapshot = self.snapshot()
        self.auth_as("admin", "admin123")

        as_json = self.client.post("/api/v1/backups/import/", snapshot, format="json")
        self.assertEqual(as_json.status_code, 200)
        self.assertEqual(as_json.data["restored"]["orders"], 1)

        upload = SimpleUploadedFile("backup.json", dump_snapshot(snapshot).encode("utf-8"), content_type="application/json")
        as_file = self.client.post("/api/v1/backups/import/", {"file": upload}, format="multipart")
        self.assertEqual(as_file.status_code, 200)

        broken = SimpleUploadedFile("backup.json", b"{not json", content_type="application/json")
        refused = self.client.post("/api/v1/backups/import/", {"file": broken}, format="multipart")
        self.assertEqual(refused.status_code, 400)
        self.assertEqual(refused.data["code"], "invalid_backup")

    def test_import_endpoint_rejects_missing_keys(self):
        self.auth_as("admin", "admin123")
        response = self.client.post("/api/v1/backups/import/", {"users": [], "orders": []}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_backup")
        self.assertEqual(set(response.data["fields"]), {"daily_debts", "admin_logs"})
        self.assertEqual(Order.objects.count(), 1)

    def test_agents_cannot_use_backups(self):
        self.auth_as("agent", "agent123")
        self.assertEqual(self.client.get("/api/v1/backups/export/").status_code, 403)

    def test_management_commands_round_trip(self):
        with tempfile.TemporaryDirectory() as directory:
            call_command("export_backup", directory)
            files = list(Path(directory).glob("tsoft-backup-*.json"))
            self.assertEqual(len(files), 1)

            Order.objects.all().delete()
            call_command("import_backup", str(files[0]))
            self.assertEqual(Order.objects.count(), 1)
            self.assertTrue(AdminLog.objects.filter(admin_name="system").exists())

            broken = Path(directory) / "broken.json"
            broken.write_text(json.dumps({"users": []}), encoding="utf-8")
            with self.assertRaises(CommandError):
                call_command("import_backup", str(broken))
