from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management import call_command
from rest_framework.test import APITestCase

from apps.audit.models import AdminLog
from apps.catalog.models import Package
from apps.debts.models import DebtStatusRecord
from apps.orders.models import Order

User = get_user_model()


class AccountApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN", name="Boss")
        self.agent = User.objects.create_user(
            username="agent", password="agent123", role="AGENT", name="Agent A", discount_percentage=Decimal("25")
        )
        self.package = Package.objects.create(name="1 month", price=Decimal("400000"))

    def auth(self, username, password):
        return self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )

    def auth_as(self, username, password):
        token = self.auth(username, password).data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

    def test_login_returns_tokens_and_profile(self):
        ok = self.auth("agent", "agent123")
        self.assertEqual(ok.status_code, 200)
        self.assertIn("access", ok.data)
        self.assertIn("refresh", ok.data)
        self.assertEqual(ok.data["user"]["role"], "AGENT")
        self.assertEqual(ok.data["user"]["discount_percentage"], "25.00")

        bad = self.auth("agent", "wrong")
        self.assertEqual(bad.status_code, 401)
        self.assertEqual(set(bad.data), {"code", "detail", "fields"})

    def test_disabled_account_cannot_log_in(self):
        self.agent.is_active = False
        self.agent.save(update_fields=["is_active"])

        response = self.auth("agent", "agent123")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "account_disabled")

    def test_me_returns_current_user(self):
        self.auth_as("agent", "agent123")
        response = self.client.get("/api/v1/auth/me/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["username"], "agent")
        self.assertNotIn("password", response.data)

    def test_unauthenticated_requests_are_rejected(self):
        response = self.client.get("/api/v1/orders/")
        self.assertEqual(response.status_code, 401)

    def test_admin_creates_agent_with_default_discount(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/agents/",
            {"username": "agent2", "password": "secret-pass", "name": " Agent B "},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["role"], "AGENT")
        self.assertEqual(response.data["name"], "Agent B")
        self.assertEqual(response.data["discount_percentage"], "25.00")
        self.assertNotIn("password", response.data)

        created = User.objects.get(username="agent2")
        self.assertTrue(created.check_password("secret-pass"))
        self.assertTrue(AdminLog.objects.filter(description="Created agent 'Agent B'.").exists())

    def test_agent_create_requires_name_and_password(self):
        self.auth_as("admin", "admin123")
        response = self.client.post("/api/v1/agents/", {"username": "agent3"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("name", response.data["fields"])

    def test_agent_update_keeps_password_when_omitted(self):
        self.auth_as("admin", "admin123")
        response = self.client.patch(
            f"/api/v1/agents/{self.agent.id}/",
            {"discount_percentage": "30", "is_active": False},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.discount_percentage, Decimal("30.00"))
        self.assertFalse(self.agent.is_active)
        self.assertTrue(self.agent.check_password("agent123"))

        out_of_range = self.client.patch(
            f"/api/v1/agents/{self.agent.id}/", {"discount_percentage": "120"}, format="json"
        )
        self.assertEqual(out_of_range.status_code, 400)
        self.assertIn("discount_percentage", out_of_range.data["fields"])

    def test_deleting_agent_removes_orders_and_settlement_records(self):
        for email in ("a@x.com", "b@x.com", "c@x.com"):
            Order.objects.create(account_email=email, package=self.package, price=self.package.price, agent=self.agent)
        DebtStatusRecord.objects.create(key=f"{self.agent.id}_2024-01-05", agent_id=self.agent.id, date="2024-01-05")

        self.auth_as("admin", "admin123")
        response = self.client.delete(f"/api/v1/agents/{self.agent.id}/")
        self.assertEqual(response.status_code, 204)

        self.assertFalse(User.objects.filter(id=self.agent.id).exists())
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(DebtStatusRecord.objects.count(), 0)
        self.assertTrue(AdminLog.objects.filter(description="Deleted agent 'Agent A'.").exists())

    def test_agent_cannot_manage_agents_or_list_users(self):
        self.auth_as("agent", "agent123")
        self.assertEqual(self.client.get("/api/v1/agents/").status_code, 403)
        self.assertEqual(self.client.get("/api/v1/users/").status_code, 403)

    def test_user_list_filters_by_role(self):
        self.auth_as("admin", "admin123")
        response = self.client.get("/api/v1/users/", {"role": "agent"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["username"] for row in response.data["results"]], ["agent"])

    def test_seed_roles_creates_groups_and_admin(self):
        call_command("seed_roles", "--admin-username", "root", "--admin-password", "root-pass")
        root = User.objects.get(username="root")
        self.assertEqual(root.role, "ADMIN")
        self.assertTrue(root.check_password("root-pass"))
