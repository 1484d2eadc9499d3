from rest_framework.test import APITestCase


class HealthTests(APITestCase):
    def test_health_is_public_and_checks_database(self):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"status": "healthy", "database": "connected"})
