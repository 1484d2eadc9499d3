import importlib.util
import os
from pathlib import Path
from unittest import mock

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError
from django.test import SimpleTestCase
from rest_framework.test import APITestCase

User = get_user_model()

SETTINGS_FILE = Path(settings.BASE_DIR) / "config" / "settings.py"


def load_settings(environment):
    module_spec = importlib.util.spec_from_file_location("fresh_settings", SETTINGS_FILE)
    module = importlib.util.module_from_spec(module_spec)
    with mock.patch.dict(os.environ, environment, clear=True):
        module_spec.loader.exec_module(module)
    return module


class SettingsDefaultsTests(SimpleTestCase):
    def test_debug_is_off_without_environment(self):
        with self.assertRaises(ImproperlyConfigured):
            load_settings({})

    def test_production_defaults_with_real_secret(self):
        module = load_settings({"DJANGO_SECRET_KEY": "a-real-secret-value"})
        self.assertFalse(module.DEBUG)
        self.assertTrue(module.SECURE_SSL_REDIRECT)
        self.assertTrue(module.SESSION_COOKIE_SECURE)

    def test_debug_can_be_enabled_explicitly(self):
        module = load_settings({"DJANGO_DEBUG": "True"})
        self.assertTrue(module.DEBUG)
        self.assertFalse(module.SECURE_SSL_REDIRECT)


class StoreErrorTests(APITestCase):
    def setUp(self):
        User.objects.create_user(username="admin", password="admin123", role="ADMIN")

    def test_database_failure_is_reported_as_store_error(self):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": "admin", "password": "admin123"},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

        with mock.patch("apps.audit.views.AdminLogListView.get_queryset", side_effect=DatabaseError("disk full")):
            response = self.client.get("/api/v1/admin-logs/")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["code"], "store_error")
        self.assertEqual(response.data["fields"], {})
