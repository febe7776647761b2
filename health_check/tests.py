from unittest.mock import patch

from django.db.utils import OperationalError
from django.test import TestCase, override_settings
from django.urls import reverse


class HealthCheckTests(TestCase):

    def test_healthy(self):
        """Database reachable -> 200 with vendor flags."""
        response = self.client.get(reverse('health_check:health_check'))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'healthy')
        self.assertEqual(data['database'], 'connected')
        self.assertFalse(data['kapso_configured'])
        self.assertFalse(data['llm_configured'])

    @override_settings(KAPSO_API_KEY='test-key', OPENAI_API_KEY='sk-test')
    def test_reports_configured_vendors(self):
        data = self.client.get(reverse('health_check:health_check')).json()

        self.assertTrue(data['kapso_configured'])
        self.assertTrue(data['llm_configured'])

    @patch('health_check.views.connection.ensure_connection', side_effect=OperationalError('db down'))
    def test_unhealthy_when_database_unreachable(self, mock_connect):
        """Database errors -> 500."""
        response = self.client.get(reverse('health_check:health_check'))

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()['status'], 'unhealthy')
        self.assertIn('db down', response.json()['error'])

    def test_ready_alias(self):
        response = self.client.get(reverse('health_check:ready'))
        self.assertEqual(response.status_code, 200)
