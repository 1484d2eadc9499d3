from datetime import timedelta

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.audit.models import AdminLog
from apps.audit.services import record_admin_action

User = get_user_model()


class AdminLogTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN", name="Boss")
        self.other_admin = User.objects.create_user(username="admin2", password="admin123", role="ADMIN")
        self.agent = User.objects.create_user(username="agent", password="agent123", role="AGENT")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_record_admin_action_snapshots_actor_name(self):
        entry = record_admin_action(actor=self.admin, description="Did a thing.")
        self.assertEqual(entry.admin_id, self.admin.id)
        self.assertEqual(entry.admin_name, "Boss")

        unnamed = record_admin_action(actor=self.other_admin, description="Did another thing.")
        self.assertEqual(unnamed.admin_name, "admin2")

        system = record_admin_action(actor=None, description="Restored.")
        self.assertIsNone(system.admin_id)
        self.assertEqual(system.admin_name, "system")

    def test_logs_are_listed_newest_first_and_filterable(self):
        old = record_admin_action(actor=self.admin, description="Created package '1 month'.")
        AdminLog.objects.filter(id=old.id).update(timestamp=timezone.now() - timedelta(days=1))
        record_admin_action(actor=self.other_admin, description="Deleted order #4.")

        self.auth_as("admin", "admin123")
        response = self.client.get("/api/v1/admin-logs/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [row["description"] for row in response.data["results"]],
            ["Deleted order #4.", "Created package '1 month'."],
        )

        by_admin = self.client.get("/api/v1/admin-logs/", {"admin": self.admin.id})
        self.assertEqual(by_admin.data["count"], 1)

        by_text = self.client.get("/api/v1/admin-logs/", {"q": "order"})
        self.assertEqual([row["admin_name"] for row in by_text.data["results"]], ["admin2"])

    def test_agents_cannot_read_logs(self):
        self.auth_as("agent", "agent123")
        response = self.client.get("/api/v1/admin-logs/")
        self.assertEqual(response.status_code, 403)
