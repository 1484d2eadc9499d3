from datetime import datetime
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AdminLog
from apps.catalog.models import Package
from apps.debts.models import DebtStatus, DebtStatusRecord
from apps.debts.services import list_daily_debts, set_debt_status
from apps.orders.models import Order, PaymentStatus

User = get_user_model()


def local_dt(year, month, day, hour=10):
    return timezone.make_aware(datetime(year, month, day, hour))


class DailyDebtTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN", name="Boss")
        self.agent = User.objects.create_user(
            username="agent", password="agent123", role="AGENT", name="Agent A", discount_percentage=Decimal("25")
        )
        self.month = Package.objects.create(name="1 month", price=Decimal("400000"))
        self.three_months = Package.objects.create(name="3 months", price=Decimal("800000"))
        self.first = Order.objects.create(
            agent=self.agent, package=self.month, price=self.month.price, account_email="a@x.com", sold_at=local_dt(2024, 1, 5, 9)
        )
        self.second = Order.objects.create(
            agent=self.agent,
            package=self.three_months,
            price=self.three_months.price,
            account_email="b@x.com",
            sold_at=local_dt(2024, 1, 5, 20),
        )
        self.next_day = Order.objects.create(
            agent=self.agent, package=self.month, price=self.month.price, account_email="c@x.com", sold_at=local_dt(2024, 1, 6)
        )
        self.key = f"{self.agent.id}_2024-01-05"

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_buckets_are_derived_from_orders(self):
        buckets = {bucket["id"]: bucket for bucket in list_daily_debts()}
        self.assertEqual(set(buckets), {self.key, f"{self.agent.id}_2024-01-06"})
        bucket = buckets[self.key]
        self.assertEqual(bucket["total_gross_revenue"], Decimal("1200000.00"))
        self.assertEqual(bucket["total_net_revenue"], Decimal("900000.00"))
        self.assertEqual(bucket["status"], DebtStatus.UNPAID)
        self.assertEqual(bucket["order_count"], 2)

    def test_marking_paid_and_unpaid_syncs_bucket_orders(self):
        self.assertEqual(set_debt_status(self.key, DebtStatus.PAID, actor=self.admin), 2)
        self.first.refresh_from_db()
        self.second.refresh_from_db()
        self.next_day.refresh_from_db()
        self.assertEqual(self.first.payment_status, PaymentStatus.PAID)
        self.assertEqual(self.second.payment_status, PaymentStatus.PAID)
        self.assertEqual(self.next_day.payment_status, PaymentStatus.UNPAID)

        set_debt_status(self.key, DebtStatus.PAID, actor=self.admin)
        self.first.refresh_from_db()
        self.assertEqual(self.first.payment_status, PaymentStatus.PAID)
        self.assertEqual(DebtStatusRecord.objects.filter(key=self.key).count(), 1)

        set_debt_status(self.key, DebtStatus.UNPAID, actor=self.admin)
        self.assertEqual(
            set(Order.objects.filter(id__in=[self.first.id, self.second.id]).values_list("payment_status", flat=True)),
            {PaymentStatus.UNPAID},
        )
        self.assertEqual(DebtStatusRecord.objects.get(key=self.key).status, DebtStatus.UNPAID)
        self.assertEqual(
            AdminLog.objects.filter(description__startswith="Updated settlement for Agent A on 05/01/2024").count(),
            3,
        )

    def test_failed_log_write_rolls_back_status_change(self):
        set_debt_status(self.key, DebtStatus.PAID, actor=self.admin)

        with mock.patch("apps.debts.services.record_admin_action", side_effect=DatabaseError("log table locked")):
            with self.assertRaises(DatabaseError):
                set_debt_status(self.key, DebtStatus.UNPAID, actor=self.admin)

        self.assertEqual(DebtStatusRecord.objects.get(key=self.key).status, DebtStatus.PAID)
        self.first.refresh_from_db()
        self.second.refresh_from_db()
        self.assertEqual(self.first.payment_status, PaymentStatus.PAID)
        self.assertEqual(self.second.payment_status, PaymentStatus.PAID)

    def test_failed_first_status_change_leaves_no_record(self):
        with mock.patch("apps.debts.services.record_admin_action", side_effect=DatabaseError("log table locked")):
            with self.assertRaises(DatabaseError):
                set_debt_status(self.key, DebtStatus.PAID, actor=self.admin)

        self.assertFalse(DebtStatusRecord.objects.exists())
        self.assertEqual(set(Order.objects.values_list("payment_status", flat=True)), {PaymentStatus.UNPAID})
        self.assertFalse(AdminLog.objects.exists())

    def test_status_endpoint_reports_store_error(self):
        self.auth_as("admin", "admin123")
        with mock.patch("apps.debts.services.record_admin_action", side_effect=DatabaseError("log table locked")):
            response = self.client.post(f"/api/v1/debts/{self.key}/status/", {"status": "PAID"}, format="json")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["code"], "store_error")
        self.assertFalse(DebtStatusRecord.objects.exists())
        self.first.refresh_from_db()
        self.assertEqual(self.first.payment_status, PaymentStatus.UNPAID)

    def test_list_filters_and_names_agents(self):
        DebtStatusRecord.objects.create(key=self.key, agent_id=self.agent.id, date="2024-01-05", status=DebtStatus.PAID)
        self.auth_as("admin", "admin123")

        response = self.client.get("/api/v1/debts/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual(response.data["results"][0]["id"], f"{self.agent.id}_2024-01-06")
        self.assertEqual(response.data["results"][0]["agent_name"], "Agent A")

        paid = self.client.get("/api/v1/debts/", {"status": "PAID"})
        self.assertEqual([row["id"] for row in paid.data["results"]], [self.key])

        other_agent = self.client.get("/api/v1/debts/", {"agent": self.agent.id + 100})
        self.assertEqual(other_agent.data["count"], 0)

    def test_retrieve_bucket_with_orders(self):
        self.auth_as("admin", "admin123")
        response = self.client.get(f"/api/v1/debts/{self.key}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["total_net_revenue"], "900000.00")
        self.assertEqual([row["id"] for row in response.data["orders"]], [self.first.id, self.second.id])

        empty = self.client.get(f"/api/v1/debts/{self.agent.id}_2023-01-01/")
        self.assertEqual(empty.status_code, 404)

        malformed = self.client.get("/api/v1/debts/not-a-key/")
        self.assertEqual(malformed.status_code, 400)
        self.assertEqual(malformed.data["code"], "invalid_debt_key")

    def test_status_endpoint_updates_orders(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(f"/api/v1/debts/{self.key}/status/", {"status": "PAID"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "PAID")
        self.assertEqual(response.data["orders_updated"], 2)
        self.second.refresh_from_db()
        self.assertEqual(self.second.payment_status, PaymentStatus.PAID)

        invalid = self.client.post(f"/api/v1/debts/{self.key}/status/", {"status": "SETTLED"}, format="json")
        self.assertEqual(invalid.status_code, 400)

        malformed = self.client.post("/api/v1/debts/bad_key/status/", {"status": "PAID"}, format="json")
        self.assertEqual(malformed.status_code, 400)
        self.assertEqual(malformed.data["code"], "invalid_debt_key")

    def test_status_for_day_without_orders_is_stored(self):
        self.auth_as("admin", "admin123")
        key = f"{self.agent.id}_2023-12-31"
        response = self.client.post(f"/api/v1/debts/{key}/status/", {"status": "PAID"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["orders_updated"], 0)
        self.assertEqual(DebtStatusRecord.objects.get(key=key).status, DebtStatus.PAID)

    def test_agents_cannot_view_or_change_debts(self):
        self.auth_as("agent", "agent123")
        self.assertEqual(self.client.get("/api/v1/debts/").status_code, 403)
        response = self.client.post(f"/api/v1/debts/{self.key}/status/", {"status": "PAID"}, format="json")
        self.assertEqual(response.status_code, 403)
        self.assertFalse(DebtStatusRecord.objects.exists())
