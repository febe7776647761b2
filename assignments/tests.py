"""
Tests for step assignments: creation, the helper's public link and the
day 2/5/7 follow-ups.
"""
import json
from datetime import date, datetime, timedelta, timezone as dt_timezone
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from gamification.models import UserStats
from objectives.models import Checkin, Objective
from whatsapp.kapso import SendResult
from whatsapp.models import WhatsAppConfig
from .models import Assignment
from .reminders import send_assignment_reminders

User = get_user_model()

NOW = datetime(2025, 1, 15, 17, 0, tzinfo=dt_timezone.utc)
SEND = 'assignments.services.kapso.send_whatsapp_message'
OK = SendResult(success=True, message_id='wamid.1')


class AssignmentTestMixin:

    def setUp(self):
        self.owner = User.objects.create_user(
            username='ana', email='ana.perez@example.com', password='x', first_name='Ana', last_name='Pérez',
        )
        self.objective = Objective.objects.create(user=self.owner, title='Lanzar podcast')
        self.checkin = Checkin.objects.create(
            objective=self.objective, step_title='Diseñar portada', day_date=date(2025, 1, 15),
        )

    def _assignment(self, now=NOW, notified=True, **kwargs):
        assignment = Assignment.objects.create_for_checkin(
            owner=self.owner,
            checkin=self.checkin,
            helper_name='Beto',
            helper_contact='+51911111111',
            contact_type=Assignment.ContactType.WHATSAPP,
            now=now,
        )
        if notified:
            assignment.notification_sent_at = now
        for field, value in kwargs.items():
            setattr(assignment, field, value)
        assignment.save()
        return assignment


class AssignmentModelTests(AssignmentTestMixin, TestCase):

    def test_token_and_expiry(self):
        assignment = self._assignment()

        self.assertGreaterEqual(len(assignment.access_token), 32)
        self.assertEqual(assignment.token_expires_at, NOW + timedelta(days=7))
        self.assertEqual(assignment.public_url, f'https://vicu.test/s/{assignment.access_token}')
        self.assertFalse(assignment.is_expired(NOW))
        self.assertTrue(assignment.is_expired(NOW + timedelta(days=7)))

    def test_owner_name(self):
        assignment = self._assignment()
        self.assertEqual(assignment.owner_name(), 'Ana Pérez')

        self.owner.first_name = self.owner.last_name = ''
        self.assertEqual(assignment.owner_name(), 'Ana')

        self.owner.email = ''
        self.assertEqual(assignment.owner_name(), 'Tu amigo')


@override_settings(KAPSO_API_KEY='test-key')
class CreateAssignmentViewTests(AssignmentTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.url = reverse('assignments:create')
        self.client.force_login(self.owner)

    def _post(self, **data):
        payload = {
            'checkin_id': self.checkin.pk,
            'helper_name': 'Beto',
            'helper_contact': '911 111 111',
            'contact_type': 'whatsapp',
        }
        payload.update(data)
        return self.client.post(self.url, data=json.dumps(payload), content_type='application/json')

    @patch(SEND, return_value=OK)
    def test_create_and_notify_by_whatsapp(self, mock_send):
        response = self._post(custom_message='¡Gracias!')

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['notification_sent'])
        assignment = Assignment.objects.get()
        self.assertEqual(assignment.helper_contact, '+51911111111')
        self.assertIsNotNone(assignment.notification_sent_at)
        self.assertEqual(data['public_url'], assignment.public_url)

        phone, text = mock_send.call_args.args
        self.assertEqual(phone, '+51911111111')
        self.assertIn('Ana Pérez te pide ayuda', text)
        self.assertIn('Diseñar portada', text)
        self.assertIn('¡Gracias!', text)
        self.assertIn(assignment.public_url, text)

    def test_create_and_notify_by_email(self):
        response = self._post(contact_type='email', helper_contact='beto@example.com')

        self.assertTrue(response.json()['notification_sent'])
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['beto@example.com'])
        self.assertIn('/s/', mail.outbox[0].body)

    @patch(SEND, return_value=SendResult(success=False, error='Kapso API error 400'))
    def test_failed_notification_is_reported(self, mock_send):
        data = self._post().json()

        self.assertTrue(data['success'])
        self.assertFalse(data['notification_sent'])
        self.assertEqual(data['notification_error'], 'Kapso API error 400')
        self.assertIsNone(Assignment.objects.get().notification_sent_at)

    def test_validation(self):
        self.assertEqual(self._post(helper_name='').status_code, 400)
        self.assertEqual(self._post(contact_type='sms').status_code, 400)
        self.assertEqual(self._post(checkin_id=9999).status_code, 404)

    def test_cannot_assign_someone_elses_step(self):
        other = User.objects.create_user(username='carla', email='carla@example.com', password='x')
        self.client.force_login(other)

        self.assertEqual(self._post().status_code, 403)
        self.assertFalse(Assignment.objects.exists())

    def test_requires_login(self):
        self.client.logout()
        self.assertEqual(self._post().status_code, 302)


class AssignmentDetailViewTests(AssignmentTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.assignment = self._assignment(now=timezone.now())
        self.url = reverse('assignments:detail', args=[self.assignment.access_token])

    def _respond(self, **data):
        return self.client.post(self.url, data=json.dumps(data), content_type='application/json')

    def test_get(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        data = response.json()['assignment']
        self.assertEqual(data['helper_name'], 'Beto')
        self.assertEqual(data['owner_name'], 'Ana Pérez')
        self.assertEqual(data['step_title'], 'Diseñar portada')
        self.assertEqual(data['objective_title'], 'Lanzar podcast')
        self.assertEqual(data['status'], 'pending')

    def test_unknown_token(self):
        response = self.client.get(reverse('assignments:detail', args=['nope']))
        self.assertEqual(response.status_code, 404)

    def test_expired_link(self):
        self.assignment.token_expires_at = timezone.now() - timedelta(minutes=1)
        self.assignment.save()

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 410)
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, Assignment.Status.EXPIRED)
        self.assertEqual(self._respond(response='completed').status_code, 410)

    def test_completed_completes_owner_step(self):
        response = self._respond(response='completed', message='Quedó lista')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['message'], '¡Gracias por tu ayuda!')
        self.assignment.refresh_from_db()
        self.assertEqual(self.assignment.status, Assignment.Status.COMPLETED)
        self.assertEqual(self.assignment.response_message, 'Quedó lista')
        self.checkin.refresh_from_db()
        self.assertEqual(self.checkin.status, Checkin.Status.DONE)
        self.assertEqual(self.checkin.source, Checkin.Source.HELPER)
        self.objective.refresh_from_db()
        self.assertEqual(self.objective.streak_days, 1)
        self.assertEqual(UserStats.objects.get(user=self.owner).total_checkins, 1)

    def test_owner_notified_by_email_without_whatsapp(self):
        self._respond(response='declined')

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['ana.perez@example.com'])
        self.assertIn('Beto no puede ayudarte', mail.outbox[0].body)

    @override_settings(KAPSO_API_KEY='test-key')
    @patch(SEND, return_value=OK)
    def test_owner_notified_on_whatsapp(self, mock_send):
        WhatsAppConfig.objects.create(user=self.owner, phone_number='+51987654321')

        self._respond(response='completed')

        phone, text = mock_send.call_args.args
        self.assertEqual(phone, '+51987654321')
        self.assertIn('Beto completó *Diseñar portada*', text)

    @override_settings(KAPSO_API_KEY='test-key')
    @patch(SEND, return_value=SendResult(success=False, error='Kapso API error 500'))
    def test_owner_emailed_when_whatsapp_fails(self, mock_send):
        WhatsAppConfig.objects.create(user=self.owner, phone_number='+51987654321')

        self._respond(response='completed')

        mock_send.assert_called_once()
        self.assertEqual(mail.outbox[0].to, ['ana.perez@example.com'])

    def test_declined_leaves_step_pending(self):
        response = self._respond(response='declined')

        self.assertEqual(response.json()['message'], 'Entendido, gracias por avisar.')
        self.checkin.refresh_from_db()
        self.assertEqual(self.checkin.status, Checkin.Status.PENDING)

    def test_invalid_response(self):
        self.assertEqual(self._respond(response='maybe').status_code, 400)

    def test_answered_only_once(self):
        self._respond(response='declined')
        self.assertEqual(self._respond(response='completed').status_code, 409)


@override_settings(KAPSO_API_KEY='test-key')
@patch(SEND, return_value=OK)
class AssignmentReminderTests(AssignmentTestMixin, TestCase):

    def test_day_two_first_reminder(self, mock_send):
        assignment = self._assignment()

        early = send_assignment_reminders(NOW + timedelta(days=1))
        self.assertEqual(early.first_reminders, 0)

        run = send_assignment_reminders(NOW + timedelta(days=2))

        self.assertEqual(run.first_reminders, 1)
        assignment.refresh_from_db()
        self.assertEqual(assignment.reminder_count, 1)
        self.assertEqual(assignment.last_reminder_at, NOW + timedelta(days=2))
        self.assertIn('Te recuerdo el paso', mock_send.call_args.args[1])

    def test_day_five_final_reminder_tells_owner(self, mock_send):
        WhatsAppConfig.objects.create(user=self.owner, phone_number='+51987654321')
        assignment = self._assignment(reminder_count=1)

        run = send_assignment_reminders(NOW + timedelta(days=5))

        self.assertEqual(run.final_reminders, 1)
        assignment.refresh_from_db()
        self.assertEqual(assignment.reminder_count, 2)
        recipients = [call.args[0] for call in mock_send.call_args_list]
        self.assertEqual(recipients, ['+51911111111', '+51987654321'])
        self.assertIn('último recordatorio', mock_send.call_args_list[0].args[1])

    def test_day_seven_expires(self, mock_send):
        assignment = self._assignment(reminder_count=2)

        run = send_assignment_reminders(NOW + timedelta(days=7))

        self.assertEqual(run.expired, 1)
        assignment.refresh_from_db()
        self.assertEqual(assignment.status, Assignment.Status.EXPIRED)
        self.assertIn('expiró', mail.outbox[0].body)

    def test_skips_unnotified_and_answered(self, mock_send):
        self._assignment(notified=False)
        self._assignment(status=Assignment.Status.DECLINED)

        run = send_assignment_reminders(NOW + timedelta(days=3))

        self.assertEqual(run.first_reminders, 0)
        mock_send.assert_not_called()

    def test_failed_reminder_is_retried(self, mock_send):
        assignment = self._assignment()
        mock_send.return_value = SendResult(success=False, error='down')

        run = send_assignment_reminders(NOW + timedelta(days=2))

        self.assertFalse(run.success)
        assignment.refresh_from_db()
        self.assertEqual(assignment.reminder_count, 0)

    def test_cron_view(self, mock_send):
        self._assignment(now=timezone.now() - timedelta(days=2))

        response = self.client.post(reverse('assignments:run_reminders'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['day2_reminders'], 1)

    @override_settings(KAPSO_API_KEY='')
    def test_cron_view_skipped_without_kapso(self, mock_send):
        response = self.client.get(reverse('assignments:run_reminders'))

        self.assertTrue(response.json()['skipped'])
        mock_send.assert_not_called()

    def test_management_command(self, mock_send):
        self._assignment(now=timezone.now() - timedelta(days=2))
        out = StringIO()

        call_command('send_assignment_reminders', stdout=out)

        self.assertIn('Day-2 reminders: 1', out.getvalue())
        self.assertIn('Assignment reminders done', out.getvalue())
