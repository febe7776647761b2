"""
Tests for the reminder management commands.
"""
from datetime import datetime, timezone as dt_timezone
from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from django_q.models import Schedule

from objectives.models import Objective
from objectives.utils import local_now
from .kapso import SendResult
from .management.commands.setup_reminder_schedules import next_local_run
from .models import Reminder, WhatsAppConfig

User = get_user_model()

# Wednesday 2025-01-15, 08:00 in Lima
MORNING = datetime(2025, 1, 15, 13, 0, tzinfo=dt_timezone.utc)


@override_settings(KAPSO_API_KEY='test-key')
@patch('whatsapp.management.commands.send_whatsapp_reminders.timezone.now', return_value=MORNING)
class SendWhatsAppRemindersCommandTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')
        WhatsAppConfig.objects.create(user=self.user, phone_number='+51987654321')
        Objective.objects.create(user=self.user, title='Lanzar podcast')

    @patch('whatsapp.reminders.kapso.send_whatsapp_message', return_value=SendResult(True, 'wamid.1'))
    def test_sends_current_slot(self, mock_send, mock_now):
        out = StringIO()
        call_command('send_whatsapp_reminders', stdout=out)

        output = out.getvalue()
        self.assertIn('Slot MORNING_FOCUS at 2025-01-15 08:00', output)
        self.assertIn(f'Sent to user {self.user.pk}', output)
        self.assertIn('Successfully sent 1 reminder(s)', output)
        self.assertEqual(Reminder.objects.count(), 1)

    @patch('whatsapp.reminders.kapso.send_whatsapp_message')
    def test_dry_run(self, mock_send, mock_now):
        out = StringIO()
        call_command('send_whatsapp_reminders', '--dry-run', '--slot', 'NIGHT_REVIEW', stdout=out)

        output = out.getvalue()
        self.assertIn('DRY RUN MODE', output)
        self.assertIn('Would send to user', output)
        mock_send.assert_not_called()
        self.assertFalse(Reminder.objects.exists())

    def test_unknown_slot(self, mock_now):
        with self.assertRaises(CommandError):
            call_command('send_whatsapp_reminders', '--slot', 'LUNCH', stdout=StringIO())

    @override_settings(KAPSO_API_KEY='')
    def test_skipped_without_kapso(self, mock_now):
        out = StringIO()
        call_command('send_whatsapp_reminders', stdout=out)
        self.assertIn('Skipped: KAPSO_API_KEY not configured', out.getvalue())


class SetupReminderSchedulesCommandTests(TestCase):

    def test_creates_schedules_once(self):
        call_command('setup_reminder_schedules', stdout=StringIO())
        out = StringIO()
        call_command('setup_reminder_schedules', stdout=out)

        self.assertEqual(Schedule.objects.count(), 2)
        self.assertIn('Updated schedule: whatsapp-reminders', out.getvalue())

        reminders = Schedule.objects.get(name='whatsapp-reminders')
        self.assertEqual(reminders.func, 'whatsapp.reminders.run_scheduled_reminders')
        self.assertEqual(reminders.schedule_type, Schedule.MINUTES)
        self.assertEqual(reminders.minutes, 30)

        assignments = Schedule.objects.get(name='assignment-reminders')
        self.assertEqual(assignments.func, 'assignments.reminders.run_scheduled_assignment_reminders')
        self.assertEqual(assignments.schedule_type, Schedule.DAILY)
        self.assertEqual(local_now(assignments.next_run).hour, 10)

    def test_next_local_run(self):
        before = next_local_run(MORNING, 10)
        self.assertEqual(before, datetime(2025, 1, 15, 15, 0, tzinfo=dt_timezone.utc))

        after = next_local_run(datetime(2025, 1, 15, 16, 0, tzinfo=dt_timezone.utc), 10)
        self.assertEqual(after, datetime(2025, 1, 16, 15, 0, tzinfo=dt_timezone.utc))
