"""
Tests for WhatsApp reminder runs.

Tests cover:
- Idempotency (one reminder per user, slot and local day)
- Forced slots and dry-run mode
- Send failures releasing the claim
- Objective rotation across slots
"""
from datetime import date, datetime, timedelta, timezone as dt_timezone
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from objectives.models import Checkin, Objective
from .kapso import SendResult
from .models import Reminder, ResponseAction, SlotType, WhatsAppConfig
from .reminders import DRY_RUN, FAILED, SENT, SKIPPED, run_reminders, run_scheduled_reminders

User = get_user_model()

# Wednesday 2025-01-15 in Lima
MORNING = datetime(2025, 1, 15, 13, 0, tzinfo=dt_timezone.utc)  # 08:00
LATE_MORNING = datetime(2025, 1, 15, 16, 30, tzinfo=dt_timezone.utc)  # 11:30
SUNDAY = datetime(2025, 1, 19, 15, 0, tzinfo=dt_timezone.utc)
TODAY = date(2025, 1, 15)

SEND = 'whatsapp.reminders.kapso.send_whatsapp_message'


def sent(message_id='wamid.1'):
    return SendResult(success=True, message_id=message_id)


@override_settings(KAPSO_API_KEY='test-key')
class RunRemindersTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')
        self.config = WhatsAppConfig.objects.create(user=self.user, phone_number='+51987654321')
        self.objective = Objective.objects.create(user=self.user, title='Lanzar podcast')
        self.step = Checkin.objects.create(objective=self.objective, step_title='Grabar intro', day_date=TODAY)

    @patch(SEND, return_value=sent())
    def test_sends_morning_focus_and_records_it(self, mock_send):
        run = run_reminders(MORNING)

        self.assertTrue(run.success)
        self.assertEqual(run.slot, SlotType.MORNING_FOCUS)
        self.assertEqual(run.sent, 1)
        mock_send.assert_called_once()
        phone, text = mock_send.call_args.args
        self.assertEqual(phone, '+51987654321')
        self.assertIn('Grabar intro', text)

        reminder = Reminder.objects.get(user=self.user)
        self.assertEqual(reminder.status, Reminder.Status.SENT)
        self.assertEqual(reminder.slot_date, TODAY)
        self.assertEqual(reminder.objective, self.objective)
        self.assertEqual(reminder.checkin, self.step)
        self.assertEqual(reminder.kapso_message_id, 'wamid.1')
        self.assertEqual(reminder.response_options['1'], ResponseAction.COMMIT_TODAY)
        self.assertEqual(reminder.message_content, text)

    @patch(SEND, return_value=sent())
    def test_slot_sent_once_per_day(self, mock_send):
        run_reminders(MORNING)
        second = run_reminders(MORNING + timedelta(minutes=30))

        self.assertEqual(mock_send.call_count, 1)
        self.assertEqual(second.results[0].status, SKIPPED)
        self.assertEqual(second.results[0].reason, 'already_sent')
        self.assertEqual(Reminder.objects.count(), 1)

    @patch(SEND, return_value=sent())
    def test_forced_slot_ignores_once_per_day(self, mock_send):
        run_reminders(MORNING)
        forced = run_reminders(MORNING, forced_slot='MORNING_FOCUS')

        self.assertTrue(forced.forced)
        self.assertEqual(forced.sent, 1)
        self.assertEqual(Reminder.objects.filter(forced=True).count(), 1)

    @patch(SEND)
    def test_dry_run_sends_and_stores_nothing(self, mock_send):
        run = run_reminders(MORNING, dry_run=True)

        self.assertEqual(run.results[0].status, DRY_RUN)
        self.assertIn('Grabar intro', run.results[0].message)
        mock_send.assert_not_called()
        self.assertFalse(Reminder.objects.exists())

    @override_settings(KAPSO_API_KEY='')
    @patch(SEND)
    def test_skipped_without_kapso(self, mock_send):
        run = run_reminders(MORNING)

        self.assertEqual(run.to_dict()['reason'], 'KAPSO_API_KEY not configured')
        self.assertTrue(run.to_dict()['skipped'])
        mock_send.assert_not_called()

    @patch(SEND, return_value=SendResult(success=False, error='Kapso API error 500'))
    def test_failed_send_releases_claim(self, mock_send):
        run = run_reminders(MORNING)

        self.assertFalse(run.success)
        self.assertEqual(run.results[0].status, FAILED)
        self.assertFalse(Reminder.objects.exists())

        mock_send.return_value = sent()
        retry = run_reminders(MORNING + timedelta(minutes=30))
        self.assertEqual(retry.results[0].status, SENT)

    @patch(SEND, return_value=SendResult(success=False, error='Kapso API error 500'))
    def test_scheduled_run_raises_on_failure(self, mock_send):
        with self.assertRaises(RuntimeError):
            with patch('whatsapp.reminders.timezone.now', return_value=MORNING):
                run_scheduled_reminders()

    @patch(SEND, return_value=sent())
    def test_slot_claimed_by_concurrent_run_is_skipped(self, mock_send):
        Reminder.objects.create(
            user=self.user,
            slot_type=SlotType.MORNING_FOCUS,
            slot_date=TODAY,
            status=Reminder.Status.QUEUED,
        )

        with patch.object(type(Reminder.objects), 'was_sent', return_value=False):
            run = run_reminders(MORNING)

        self.assertEqual(run.results[0].status, SKIPPED)
        self.assertEqual(run.results[0].reason, 'already_sent')
        mock_send.assert_not_called()
        self.assertEqual(Reminder.objects.count(), 1)
        self.assertEqual(Reminder.objects.get().status, Reminder.Status.QUEUED)

    @patch(SEND, return_value=sent())
    def test_no_slot_on_sunday(self, mock_send):
        run = run_reminders(SUNDAY)

        self.assertIsNone(run.slot)
        self.assertEqual(run.skipped_reason, 'No slot scheduled at this time')
        mock_send.assert_not_called()

    @patch(SEND, return_value=sent())
    def test_midday_slot_skipped_after_progress(self, mock_send):
        self.step.mark_done(MORNING + timedelta(hours=1))

        run = run_reminders(LATE_MORNING)

        self.assertEqual(run.results[0].status, SKIPPED)
        self.assertEqual(run.results[0].reason, 'progress_today')
        mock_send.assert_not_called()

    @patch(SEND, return_value=sent())
    def test_user_without_active_objectives(self, mock_send):
        self.objective.soft_delete(MORNING)

        run = run_reminders(MORNING)

        self.assertEqual(run.results[0].reason, 'no_active_objectives')

    @patch(SEND, return_value=sent())
    def test_inactive_config_not_processed(self, mock_send):
        self.config.is_active = False
        self.config.save()

        run = run_reminders(MORNING)

        self.assertEqual(run.results, [])

    @patch(SEND, side_effect=[sent('wamid.1'), sent('wamid.2')])
    def test_new_reminder_expires_unanswered_one(self, mock_send):
        run_reminders(MORNING)
        run_reminders(LATE_MORNING)

        morning = Reminder.objects.get(slot_type=SlotType.MORNING_FOCUS)
        late = Reminder.objects.get(slot_type=SlotType.LATE_MORNING_PUSH)
        self.assertEqual(morning.status, Reminder.Status.EXPIRED)
        self.assertEqual(late.status, Reminder.Status.SENT)
        self.assertEqual(Reminder.objects.latest_open(self.user), late)

    @patch(SEND, return_value=sent())
    def test_due_paused_objectives_resume(self, mock_send):
        self.objective.pause(TODAY)

        run = run_reminders(MORNING)

        self.objective.refresh_from_db()
        self.assertEqual(run.resumed_objectives, 1)
        self.assertTrue(self.objective.is_active)
        self.assertEqual(run.sent, 1)

    @patch(SEND, side_effect=[sent('wamid.1'), sent('wamid.2')])
    def test_later_slot_pushes_another_objective(self, mock_send):
        self.objective.deadline = TODAY
        self.objective.save()
        other = Objective.objects.create(user=self.user, title='Correr 10k')

        run_reminders(MORNING)
        run_reminders(LATE_MORNING)

        morning = Reminder.objects.get(slot_type=SlotType.MORNING_FOCUS)
        late = Reminder.objects.get(slot_type=SlotType.LATE_MORNING_PUSH)
        self.assertEqual(morning.objective, self.objective)
        self.assertEqual(late.objective, other)

    @patch(SEND, return_value=sent())
    def test_run_for_single_user(self, mock_send):
        other = User.objects.create_user(username='beto', email='beto@example.com', password='x')
        WhatsAppConfig.objects.create(user=other, phone_number='+51911111111')

        run = run_reminders(MORNING, user_id=self.user.pk)

        self.assertEqual([r.user_id for r in run.results], [self.user.pk])
