import csv
import io
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AdminLog
from apps.catalog.models import Package
from apps.common.exports import UTF8_BOM, build_csv
from apps.debts.models import DebtStatus, DebtStatusRecord
from apps.debts.services import set_debt_status
from apps.orders.models import ActivationStatus, Order, PaymentStatus
from apps.orders.revenue import (
    agent_commission_stats,
    daily_debt_buckets,
    debt_key,
    order_net_revenue,
    parse_debt_key,
    revenue_series,
    revenue_snapshot,
)

User = get_user_model()


def local_dt(year, month, day, hour=10, minute=0):
    return timezone.make_aware(datetime(year, month, day, hour, minute))


def make_order(price, agent_id=1, sold_at=None, actual_revenue=None, payment_status=PaymentStatus.UNPAID):
    return SimpleNamespace(
        price=Decimal(price),
        actual_revenue=None if actual_revenue is None else Decimal(actual_revenue),
        agent_id=agent_id,
        sold_at=sold_at or local_dt(2024, 1, 5),
        payment_status=payment_status,
    )


class RevenueCalculationTests(SimpleTestCase):
    def test_net_revenue_applies_agent_discount(self):
        order = make_order("1200000")
        self.assertEqual(order_net_revenue(order, {1: Decimal("25")}), Decimal("900000"))

    def test_net_revenue_prefers_actual_revenue(self):
        order = make_order("1200000", actual_revenue="1000000")
        self.assertEqual(order_net_revenue(order, {1: Decimal("25")}), Decimal("1000000"))

    def test_missing_discount_counts_as_zero(self):
        self.assertEqual(order_net_revenue(make_order("400000", agent_id=9), {}), Decimal("400000"))

    def test_daily_bucket_groups_agent_and_local_day(self):
        orders = [
            make_order("400000", agent_id=7, sold_at=local_dt(2024, 1, 5, 9)),
            make_order("800000", agent_id=7, sold_at=local_dt(2024, 1, 5, 21)),
            make_order("400000", agent_id=7, sold_at=local_dt(2024, 1, 6, 0, 30)),
        ]
        buckets = daily_debt_buckets(orders, {7: Decimal("25")}, {})

        self.assertEqual([bucket["id"] for bucket in buckets], ["7_2024-01-06", "7_2024-01-05"])
        bucket = buckets[1]
        self.assertEqual(bucket["total_gross_revenue"], Decimal("1200000.00"))
        self.assertEqual(bucket["total_net_revenue"], Decimal("900000.00"))
        self.assertEqual(bucket["status"], "UNPAID")
        self.assertEqual(bucket["order_count"], 2)

    def test_daily_bucket_uses_stored_status(self):
        orders = [make_order("400000", agent_id=7)]
        buckets = daily_debt_buckets(orders, {7: Decimal("25")}, {"7_2024-01-05": "PAID"})
        self.assertEqual(buckets[0]["status"], "PAID")

    def test_debt_key_round_trip_and_malformed_key(self):
        key = debt_key(12, local_dt(2024, 3, 9).date())
        self.assertEqual(key, "12_2024-03-09")
        self.assertEqual(parse_debt_key(key), (12, local_dt(2024, 3, 9).date()))
        with self.assertRaises(ValueError):
            parse_debt_key("abc_2024-01-01")
        with self.assertRaises(ValueError):
            parse_debt_key("12_2024-13-01")

    def test_weekly_series_has_seven_days_ending_today(self):
        now = local_dt(2024, 1, 10, 12)
        orders = [
            make_order("400000", sold_at=local_dt(2024, 1, 10, 8)),
            make_order("800000", sold_at=local_dt(2024, 1, 4, 8)),
            make_order("800000", sold_at=local_dt(2024, 1, 3, 8)),
        ]
        series = revenue_series(orders, {1: Decimal("25")}, period="week", now=now)

        self.assertEqual(len(series), 7)
        self.assertEqual(series[-1]["label"], "10/01")
        self.assertEqual(series[-1]["revenue"], Decimal("400000.00"))
        self.assertEqual(series[-1]["net_revenue"], Decimal("300000.00"))
        self.assertEqual(series[0]["label"], "04/01")
        self.assertEqual(series[0]["revenue"], Decimal("800000.00"))

    def test_yearly_series_buckets_by_month(self):
        now = local_dt(2024, 2, 15)
        orders = [make_order("400000", sold_at=local_dt(2023, 3, 1)), make_order("400000", sold_at=local_dt(2024, 2, 1))]
        series = revenue_series(orders, {}, period="year", now=now)

        self.assertEqual(len(series), 12)
        self.assertEqual(series[0]["label"], "03/2023")
        self.assertEqual(series[0]["revenue"], Decimal("400000.00"))
        self.assertEqual(series[-1]["label"], "02/2024")
        with self.assertRaises(ValueError):
            revenue_series(orders, {}, period="decade", now=now)

    def test_snapshot_counts_today_and_monday_based_week(self):
        now = local_dt(2024, 1, 10, 12)  # Wednesday
        orders = [
            make_order("400000", sold_at=local_dt(2024, 1, 10, 8)),
            make_order("800000", sold_at=local_dt(2024, 1, 8, 8)),
            make_order("1200000", sold_at=local_dt(2024, 1, 7, 8)),
        ]
        snapshot = revenue_snapshot(orders, {1: Decimal("25")}, now=now)

        self.assertEqual(snapshot["total_orders"], 3)
        self.assertEqual(snapshot["total_gross_revenue"], Decimal("2400000.00"))
        self.assertEqual(snapshot["total_net_revenue"], Decimal("1800000.00"))
        self.assertEqual(snapshot["today_revenue"], Decimal("400000.00"))
        self.assertEqual(snapshot["this_week_revenue"], Decimal("1200000.00"))

    def test_commission_counts_only_paid_orders_of_current_month(self):
        now = local_dt(2024, 1, 20)
        orders = [
            make_order("400000", sold_at=local_dt(2024, 1, 2), payment_status=PaymentStatus.PAID),
            make_order("800000", sold_at=local_dt(2024, 1, 3)),
            make_order("1200000", sold_at=local_dt(2023, 12, 30), payment_status=PaymentStatus.PAID),
        ]
        stats = agent_commission_stats(orders, Decimal("25"), now=now)

        self.assertEqual(stats["month_revenue"], Decimal("1200000.00"))
        self.assertEqual(stats["month_commission_received"], Decimal("100000.00"))
        self.assertEqual(stats["commission_percentage"], Decimal("25.00"))


class CsvExportTests(SimpleTestCase):
    def test_build_csv_quotes_delimiters_and_blanks_none(self):
        text = build_csv(
            [{"name": "Doe, Jane", "note": None}, {"name": 'Say "hi"', "note": "two\nlines"}],
            {"name": "Name", "note": "Note"},
        )
        rows = list(csv.reader(io.StringIO(text)))
        self.assertEqual(rows, [["Name", "Note"], ["Doe, Jane", ""], ['Say "hi"', "two\nlines"]])


class OrderApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN", name="Boss")
        self.agent = User.objects.create_user(
            username="agent", password="agent123", role="AGENT", name="Agent A", discount_percentage=Decimal("25")
        )
        self.other_agent = User.objects.create_user(
            username="agent2", password="agent123", role="AGENT", name="Agent B", discount_percentage=Decimal("10")
        )
        self.month = Package.objects.create(name="1 month", price=Decimal("400000"))
        self.year = Package.objects.create(name="1 year", price=Decimal("1200000"))

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def create_order(self, agent, package, email, **extra):
        return Order.objects.create(agent=agent, package=package, price=package.price, account_email=email, **extra)

    def test_admin_creates_order_with_package_price_default(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/orders/",
            {"package": self.year.id, "agent": self.agent.id, "account_email": "buyer@example.com"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["price"], "1200000.00")
        self.assertEqual(response.data["account_name"], "buyer")
        self.assertEqual(response.data["net_revenue"], "900000.00")
        self.assertEqual(response.data["payment_status"], "UNPAID")
        self.assertEqual(response.data["status"], "NOT_ACTIVATED")
        self.assertTrue(AdminLog.objects.filter(description__startswith=f"Created order #{response.data['id']}").exists())

    def test_admin_order_requires_agent_and_some_account_identity(self):
        self.auth_as("admin", "admin123")
        no_agent = self.client.post(
            "/api/v1/orders/", {"package": self.year.id, "account_email": "x@example.com"}, format="json"
        )
        self.assertEqual(no_agent.status_code, 400)
        self.assertIn("agent", no_agent.data["fields"])

        no_identity = self.client.post(
            "/api/v1/orders/", {"package": self.year.id, "agent": self.agent.id}, format="json"
        )
        self.assertEqual(no_identity.status_code, 400)
        self.assertIn("account_name", no_identity.data["fields"])

    def test_agent_order_fields_are_forced(self):
        self.auth_as("agent", "agent123")
        response = self.client.post(
            "/api/v1/orders/",
            {
                "package": self.month.id,
                "account_email": "friend@example.com",
                "price": "1",
                "actual_revenue": "5",
                "payment_status": "PAID",
                "status": "ACTIVATED",
                "agent": self.other_agent.id,
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        order = Order.objects.get(id=response.data["id"])
        self.assertEqual(order.agent, self.agent)
        self.assertEqual(order.price, Decimal("400000.00"))
        self.assertIsNone(order.actual_revenue)
        self.assertEqual(order.payment_status, PaymentStatus.UNPAID)
        self.assertEqual(order.status, ActivationStatus.NOT_ACTIVATED)
        self.assertFalse(AdminLog.objects.exists())

    def test_same_email_twice_on_one_day_is_rejected(self):
        self.create_order(self.other_agent, self.month, "dup@example.com")
        self.auth_as("agent", "agent123")
        response = self.client.post(
            "/api/v1/orders/", {"package": self.month.id, "account_email": "DUP@example.com"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "duplicate_order")
        self.assertIn("account_email", response.data["fields"])

    def test_agent_sees_only_own_orders_and_cannot_manage(self):
        mine = self.create_order(self.agent, self.month, "mine@example.com")
        theirs = self.create_order(self.other_agent, self.month, "theirs@example.com")

        self.auth_as("agent", "agent123")
        listing = self.client.get("/api/v1/orders/")
        self.assertEqual([row["id"] for row in listing.data["results"]], [mine.id])
        self.assertEqual(self.client.get(f"/api/v1/orders/{theirs.id}/").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/v1/orders/{mine.id}/").status_code, 403)
        self.assertEqual(
            self.client.patch(f"/api/v1/orders/{mine.id}/", {"notes": "x"}, format="json").status_code,
            403,
        )

    def test_admin_filters_orders(self):
        self.create_order(self.agent, self.month, "a@example.com", sold_at=local_dt(2024, 1, 5))
        self.create_order(self.agent, self.year, "b@example.com", sold_at=local_dt(2024, 1, 6))
        self.create_order(self.other_agent, self.year, "c@example.com", sold_at=local_dt(2024, 1, 6, 23, 59))

        self.auth_as("admin", "admin123")
        by_agent = self.client.get("/api/v1/orders/", {"agent": self.agent.id})
        self.assertEqual(by_agent.data["count"], 2)

        by_day = self.client.get("/api/v1/orders/", {"date_from": "2024-01-06", "date_to": "2024-01-06"})
        self.assertEqual(
            sorted(row["account_email"] for row in by_day.data["results"]), ["b@example.com", "c@example.com"]
        )

        by_email = self.client.get("/api/v1/orders/", {"email": "A@EXAMPLE"})
        self.assertEqual(by_email.data["count"], 1)

        bad_range = self.client.get("/api/v1/orders/", {"date_from": "2024-01-07", "date_to": "2024-01-06"})
        self.assertEqual(bad_range.status_code, 400)

    def test_new_order_reopens_settled_day(self):
        existing = self.create_order(self.agent, self.month, "first@example.com")
        key = debt_key(self.agent.id, existing.sale_day)
        set_debt_status(key, DebtStatus.PAID, actor=self.admin)

        self.auth_as("agent", "agent123")
        response = self.client.post(
            "/api/v1/orders/", {"package": self.month.id, "account_email": "second@example.com"}, format="json"
        )
        self.assertEqual(response.status_code, 201)

        self.assertEqual(DebtStatusRecord.objects.get(key=key).status, DebtStatus.UNPAID)
        self.assertEqual(
            set(Order.objects.filter(agent=self.agent).values_list("payment_status", flat=True)),
            {PaymentStatus.UNPAID},
        )
        self.assertTrue(AdminLog.objects.filter(description__startswith="Reopened settlement for Agent A").exists())

    def test_moving_order_into_settled_day_reopens_it(self):
        settled = self.create_order(self.agent, self.month, "s@example.com", sold_at=local_dt(2024, 1, 5))
        moved = self.create_order(self.agent, self.year, "m@example.com", sold_at=local_dt(2024, 1, 6))
        key = f"{self.agent.id}_2024-01-05"
        set_debt_status(key, DebtStatus.PAID, actor=self.admin)

        self.auth_as("admin", "admin123")
        response = self.client.patch(
            f"/api/v1/orders/{moved.id}/", {"sold_at": "2024-01-05T15:00:00+07:00"}, format="json"
        )
        self.assertEqual(response.status_code, 200)

        self.assertEqual(DebtStatusRecord.objects.get(key=key).status, DebtStatus.UNPAID)
        settled.refresh_from_db()
        moved.refresh_from_db()
        self.assertEqual(settled.payment_status, PaymentStatus.UNPAID)
        self.assertEqual(moved.payment_status, PaymentStatus.UNPAID)

    def test_paid_order_added_to_settled_day_keeps_it_settled(self):
        self.create_order(self.agent, self.month, "s@example.com", sold_at=local_dt(2024, 1, 5))
        key = f"{self.agent.id}_2024-01-05"
        set_debt_status(key, DebtStatus.PAID, actor=self.admin)

        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/orders/",
            {
                "package": self.year.id,
                "agent": self.agent.id,
                "account_email": "late@example.com",
                "sold_at": "2024-01-05T18:00:00+07:00",
                "payment_status": "PAID",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(DebtStatusRecord.objects.get(key=key).status, DebtStatus.PAID)
        self.assertEqual(
            set(Order.objects.filter(agent=self.agent).values_list("payment_status", flat=True)),
            {PaymentStatus.PAID},
        )

    def test_paid_order_cannot_be_deleted(self):
        paid = self.create_order(self.agent, self.month, "paid@example.com", payment_status=PaymentStatus.PAID)
        unpaid = self.create_order(self.agent, self.month, "unpaid@example.com")

        self.auth_as("admin", "admin123")
        refused = self.client.delete(f"/api/v1/orders/{paid.id}/")
        self.assertEqual(refused.status_code, 400)
        self.assertEqual(refused.data["code"], "order_paid")
        self.assertTrue(Order.objects.filter(id=paid.id).exists())

        deleted = self.client.delete(f"/api/v1/orders/{unpaid.id}/")
        self.assertEqual(deleted.status_code, 204)
        self.assertTrue(AdminLog.objects.filter(description=f"Deleted order #{unpaid.id}.").exists())

    def test_admin_updates_order_and_status(self):
        order = self.create_order(self.agent, self.month, "u@example.com")
        self.auth_as("admin", "admin123")

        updated = self.client.patch(
            f"/api/v1/orders/{order.id}/", {"actual_revenue": "350000", "notes": "renewal"}, format="json"
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.data["net_revenue"], "350000.00")

        activated = self.client.post(f"/api/v1/orders/{order.id}/set-status/", {"status": "ACTIVATED"}, format="json")
        self.assertEqual(activated.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.status, ActivationStatus.ACTIVATED)
        self.assertEqual(AdminLog.objects.count(), 2)

        invalid = self.client.post(f"/api/v1/orders/{order.id}/set-status/", {"status": "DONE"}, format="json")
        self.assertEqual(invalid.status_code, 400)

    def test_summary_reports_gross_net_and_outstanding(self):
        self.create_order(self.agent, self.month, "s1@example.com")
        self.create_order(self.agent, self.year, "s2@example.com", payment_status=PaymentStatus.PAID)

        self.auth_as("admin", "admin123")
        response = self.client.get("/api/v1/orders/summary/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["order_count"], 2)
        self.assertEqual(response.data["gross_revenue"], Decimal("1600000.00"))
        self.assertEqual(response.data["net_revenue"], Decimal("1200000.00"))
        self.assertEqual(response.data["outstanding_revenue"], Decimal("300000.00"))

    def test_admin_export_is_bom_prefixed_csv(self):
        self.create_order(self.agent, self.year, "e1@example.com", account_name="Doe, Jane", sold_at=local_dt(2024, 1, 5))
        self.auth_as("admin", "admin123")

        response = self.client.get("/api/v1/orders/export/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv; charset=utf-8")
        self.assertIn('filename="tsoft_all_orders_', response["Content-Disposition"])

        text = response.content.decode("utf-8")
        self.assertTrue(text.startswith(UTF8_BOM))
        rows = list(csv.reader(io.StringIO(text[len(UTF8_BOM):])))
        self.assertEqual(rows[0][0], "No.")
        self.assertEqual(rows[1][1], "Doe, Jane\ne1@example.com")
        self.assertEqual(rows[1][4], "900000.00")
        self.assertEqual(rows[1][7], "05/01/2024")

    def test_agent_export_contains_only_own_orders(self):
        self.create_order(self.agent, self.month, "own@example.com")
        self.create_order(self.other_agent, self.month, "other@example.com")
        self.auth_as("agent", "agent123")

        response = self.client.get("/api/v1/orders/export/")
        self.assertEqual(response.status_code, 200)
        self.assertIn('filename="tsoft_revenue_agent_orders.csv"', response["Content-Disposition"])
        rows = list(csv.reader(io.StringIO(response.content.decode("utf-8-sig"))))
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][2], "own@example.com")
        self.assertEqual(rows[1][5], "300000.00")


class RevenueMetricsApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.agent = User.objects.create_user(
            username="agent", password="agent123", role="AGENT", discount_percentage=Decimal("25")
        )
        self.package = Package.objects.create(name="1 year", price=Decimal("1200000"))
        Order.objects.create(
            agent=self.agent,
            package=self.package,
            price=self.package.price,
            account_email="m@example.com",
            payment_status=PaymentStatus.PAID,
        )

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_admin_metrics_include_snapshot_and_series(self):
        self.auth_as("admin", "admin123")
        response = self.client.get("/api/v1/metrics/", {"period": "month"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["summary"]["total_orders"], 1)
        self.assertEqual(response.data["summary"]["total_net_revenue"], Decimal("900000.00"))
        self.assertEqual(response.data["summary"]["today_revenue"], Decimal("1200000.00"))
        self.assertEqual(len(response.data["series"]), 30)

    def test_agent_metrics_report_commission(self):
        self.auth_as("agent", "agent123")
        response = self.client.get("/api/v1/metrics/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["period"], "week")
        self.assertEqual(response.data["summary"]["month_revenue"], Decimal("1200000.00"))
        self.assertEqual(response.data["summary"]["month_commission_received"], Decimal("300000.00"))
        self.assertEqual(len(response.data["series"]), 7)

    def test_unknown_period_is_rejected(self):
        self.auth_as("admin", "admin123")
        response = self.client.get("/api/v1/metrics/", {"period": "decade"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("period", response.data["fields"])

    def test_series_ends_today(self):
        self.auth_as("admin", "admin123")
        response = self.client.get("/api/v1/metrics/", {"period": "week"})
        today = timezone.localdate()
        self.assertEqual(response.data["series"][-1]["start"], today)
        self.assertEqual(response.data["series"][0]["start"], today - timedelta(days=6))
