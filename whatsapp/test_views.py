"""
Tests for the WhatsApp HTTP endpoints: cron trigger, webhook and config.
"""
import hashlib
import hmac
import json
from datetime import date, datetime, timezone as dt_timezone
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse

from objectives.models import Objective
from .kapso import SendResult
from .messages import MORNING_FOCUS_OPTIONS, options_map
from .models import Reminder, SlotType, WhatsAppConfig

User = get_user_model()

# Wednesday 2025-01-15, 08:00 in Lima
MORNING = datetime(2025, 1, 15, 13, 0, tzinfo=dt_timezone.utc)
PHONE = '51987654321'


@override_settings(KAPSO_API_KEY='test-key')
@patch('whatsapp.views.timezone.now', return_value=MORNING)
class RunRemindersViewTests(TestCase):

    def setUp(self):
        self.url = reverse('whatsapp:run_reminders')
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')
        WhatsAppConfig.objects.create(user=self.user, phone_number=f'+{PHONE}')
        Objective.objects.create(user=self.user, title='Lanzar podcast')

    def test_get_reports_current_slot(self, mock_now):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['current_slot'], SlotType.MORNING_FOCUS)
        self.assertEqual(data['local_time'], '2025-01-15 08:00')
        self.assertEqual(len(data['schedule']), 4)
        self.assertTrue(data['kapso_configured'])
        self.assertNotIn('ranking', data)

    def test_get_with_user_adds_ranking(self, mock_now):
        data = self.client.get(self.url, {'user_id': self.user.pk}).json()
        self.assertEqual(data['ranking'][0]['title'], 'Lanzar podcast')

        missing = self.client.get(self.url, {'user_id': 9999})
        self.assertEqual(missing.status_code, 404)

    @patch('whatsapp.reminders.kapso.send_whatsapp_message', return_value=SendResult(True, 'wamid.1'))
    def test_post_runs_slot(self, mock_send, mock_now):
        response = self.client.post(self.url)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertEqual(data['sent'], 1)
        self.assertEqual(Reminder.objects.count(), 1)

    @patch('whatsapp.reminders.kapso.send_whatsapp_message')
    def test_post_dry_run(self, mock_send, mock_now):
        response = self.client.post(f'{self.url}?dry_run=true&slot=NIGHT_REVIEW')

        data = response.json()
        self.assertTrue(data['dry_run'])
        self.assertTrue(data['forced'])
        self.assertEqual(data['slot'], SlotType.NIGHT_REVIEW)
        mock_send.assert_not_called()

    @patch('whatsapp.reminders.kapso.send_whatsapp_message', return_value=SendResult(False, error='down'))
    def test_post_failure_returns_502(self, mock_send, mock_now):
        response = self.client.post(self.url)

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()['failed'], 1)

    def test_unknown_slot(self, mock_now):
        response = self.client.post(f'{self.url}?slot=LUNCH')
        self.assertEqual(response.status_code, 400)

    @override_settings(CRON_SECRET='cron-123')
    def test_cron_secret(self, mock_now):
        self.assertEqual(self.client.get(self.url).status_code, 401)
        self.assertEqual(
            self.client.get(self.url, HTTP_AUTHORIZATION='Bearer wrong').status_code,
            401,
        )
        self.assertEqual(
            self.client.get(self.url, HTTP_AUTHORIZATION='Bearer cron-123').status_code,
            200,
        )


class WebhookTests(TestCase):

    def setUp(self):
        self.url = reverse('whatsapp:webhook')
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')
        WhatsAppConfig.objects.create(user=self.user, phone_number=f'+{PHONE}')

    def _post(self, payload, **extra):
        body = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)
        return self.client.post(self.url, data=body, content_type='application/json', **extra)

    def test_verification_handshake(self):
        response = self.client.get(self.url, {
            'hub.mode': 'subscribe',
            'hub.verify_token': 'vicu-kapso-webhook',
            'hub.challenge': '12345',
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b'12345')

        wrong = self.client.get(self.url, {'hub.mode': 'subscribe', 'hub.verify_token': 'nope'})
        self.assertEqual(wrong.status_code, 403)

    def test_invalid_json_is_acknowledged(self):
        response = self._post(b'{not json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['note'], 'invalid json')

    def test_payload_without_message(self):
        response = self._post({'hello': 'world'})
        self.assertEqual(response.json()['note'], 'no message found')

    @override_settings(KAPSO_API_KEY='test-key')
    @patch('whatsapp.interpreter.kapso.send_whatsapp_message', return_value=SendResult(True, 'wamid.out'))
    def test_inbound_reply_is_handled(self, mock_send):
        objective = Objective.objects.create(user=self.user, title='Lanzar podcast')
        reminder = Reminder.objects.create(
            user=self.user,
            objective=objective,
            slot_type=SlotType.MORNING_FOCUS,
            slot_date=date(2025, 1, 15),
            status=Reminder.Status.SENT,
            response_options=options_map(MORNING_FOCUS_OPTIONS),
            sent_at=MORNING,
        )

        response = self._post({'from': PHONE, 'text': {'body': '1'}})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['outcome'], 'action')
        self.assertEqual(data['action'], 'commit_today')
        reminder.refresh_from_db()
        self.assertEqual(reminder.status, Reminder.Status.RESPONDED)
        mock_send.assert_called_once()

    @patch('whatsapp.views.handle_inbound_message', side_effect=RuntimeError('boom'))
    def test_processing_error_still_returns_200(self, mock_handle):
        response = self._post({'from': PHONE, 'text': {'body': '1'}})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['note'], 'processing error')

    def test_delivery_status_marks_reminder_delivered(self):
        reminder = Reminder.objects.create(
            user=self.user,
            slot_type=SlotType.MORNING_FOCUS,
            slot_date=date(2025, 1, 15),
            status=Reminder.Status.SENT,
            kapso_message_id='wamid.1',
            sent_at=MORNING,
        )
        payload = {
            'entry': [{'changes': [{'value': {
                'statuses': [{'id': 'wamid.1', 'status': 'delivered', 'timestamp': '1736946000'}],
            }}]}],
        }

        response = self._post(payload)

        self.assertEqual(response.json()['delivered'], 1)
        reminder.refresh_from_db()
        self.assertEqual(reminder.status, Reminder.Status.DELIVERED)
        self.assertIsNotNone(reminder.delivered_at)

    @override_settings(KAPSO_WEBHOOK_SECRET='s3cret')
    def test_signature_required_when_secret_configured(self):
        body = json.dumps({'hello': 'world'}).encode()
        good = hmac.new(b's3cret', body, hashlib.sha256).hexdigest()

        rejected = self._post(body, HTTP_X_WEBHOOK_SIGNATURE='deadbeef')
        accepted = self._post(body, HTTP_X_WEBHOOK_SIGNATURE=f'sha256={good}')
        unsigned = self._post(body)

        self.assertEqual(rejected.status_code, 403)
        self.assertEqual(accepted.status_code, 200)
        self.assertEqual(unsigned.status_code, 403)

    def test_unsigned_accepted_without_secret(self):
        response = self._post({'hello': 'world'})
        self.assertEqual(response.status_code, 200)

    def test_malformed_status_event_is_acknowledged(self):
        for payload in (
            {'event': 'whatsapp.message.delivered', 'data': 'oops'},
            {'event': 'whatsapp.message.read', 'data': {'message': ['wamid.1']}},
            {'entry': [{'changes': [{'value': {'statuses': ['wamid.1']}}]}]},
        ):
            response = self._post(payload)
            self.assertEqual(response.status_code, 200)
            self.assertTrue(response.json()['success'])

    @patch('whatsapp.views.extract_status_updates', side_effect=ValueError('bad status'))
    def test_status_processing_error_still_returns_200(self, mock_statuses):
        response = self._post({'event': 'whatsapp.message.delivered', 'data': {}})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['note'], 'processing error')


class WhatsAppConfigViewTests(TestCase):

    def setUp(self):
        self.url = reverse('whatsapp:config')
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')

    def test_requires_login(self):
        self.assertEqual(self.client.get(self.url).status_code, 302)

    def test_save_and_read_number(self):
        self.client.force_login(self.user)

        empty = self.client.get(self.url).json()
        self.assertIsNone(empty['config'])

        response = self.client.post(self.url, data=json.dumps({'phone_number': '987 654 321'}),
                                    content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['phone_number'], '+51987654321')

        config = WhatsAppConfig.objects.get(user=self.user)
        self.assertEqual(config.phone_digits, '51987654321')
        self.assertTrue(config.is_active)

        data = self.client.get(self.url).json()
        self.assertEqual(data['config']['phone_number'], '+51987654321')

    def test_missing_number(self):
        self.client.force_login(self.user)
        response = self.client.post(self.url, data='{}', content_type='application/json')
        self.assertEqual(response.status_code, 400)
