from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management import call_command
from rest_framework.test import APITestCase

from apps.audit.models import AdminLog
from apps.catalog.models import Package
from apps.orders.models import Order

User = get_user_model()


class PackageApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN", name="Boss")
        self.agent = User.objects.create_user(
            username="agent", password="agent123", role="AGENT", discount_percentage=Decimal("25")
        )

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_package_create_update_delete_are_logged(self):
        self.auth_as("admin", "admin123")
        created = self.client.post("/api/v1/packages/", {"name": "  2 months ", "price": "600000"}, format="json")
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["name"], "2 months")
        self.assertEqual(created.data["price"], "600000.00")
        package_id = created.data["id"]

        updated = self.client.patch(f"/api/v1/packages/{package_id}/", {"price": "650000"}, format="json")
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.data["price"], "650000.00")

        deleted = self.client.delete(f"/api/v1/packages/{package_id}/")
        self.assertEqual(deleted.status_code, 204)
        self.assertFalse(Package.objects.filter(id=package_id).exists())

        descriptions = list(AdminLog.objects.order_by("id").values_list("description", flat=True))
        self.assertEqual(len(descriptions), 3)
        self.assertIn("Created package '2 months'", descriptions[0])
        self.assertIn("650000", descriptions[1])
        self.assertIn("Deleted package '2 months'", descriptions[2])
        self.assertTrue(all(log.admin_name == "Boss" for log in AdminLog.objects.all()))

    def test_package_rejects_negative_price_and_duplicate_name(self):
        self.auth_as("admin", "admin123")
        Package.objects.create(name="1 month", price=Decimal("400000"))

        negative = self.client.post("/api/v1/packages/", {"name": "Trial", "price": "-1"}, format="json")
        self.assertEqual(negative.status_code, 400)
        self.assertIn("price", negative.data["fields"])

        duplicate = self.client.post("/api/v1/packages/", {"name": "1 month", "price": "1"}, format="json")
        self.assertEqual(duplicate.status_code, 400)
        self.assertIn("name", duplicate.data["fields"])

    def test_package_referenced_by_orders_cannot_be_deleted(self):
        self.auth_as("admin", "admin123")
        package = Package.objects.create(name="1 year", price=Decimal("1200000"))
        Order.objects.create(account_email="a@x.com", package=package, price=package.price, agent=self.agent)

        response = self.client.delete(f"/api/v1/packages/{package.id}/")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "package_in_use")
        self.assertTrue(Package.objects.filter(id=package.id).exists())

        listing = self.client.get("/api/v1/packages/")
        self.assertEqual(listing.data[0]["order_count"], 1)

    def test_agent_can_list_but_not_manage_packages(self):
        Package.objects.create(name="1 month", price=Decimal("400000"))
        self.auth_as("agent", "agent123")

        listing = self.client.get("/api/v1/packages/")
        self.assertEqual(listing.status_code, 200)
        self.assertEqual([row["name"] for row in listing.data], ["1 month"])

        forbidden = self.client.post("/api/v1/packages/", {"name": "Free", "price": "0"}, format="json")
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.data["code"], "permission_denied")

    def test_seed_packages_is_idempotent(self):
        call_command("seed_packages")
        call_command("seed_packages")
        self.assertEqual(Package.objects.count(), 4)
        self.assertEqual(Package.objects.get(name="1 year").price, Decimal("1200000.00"))
