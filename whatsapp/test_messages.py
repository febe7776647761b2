"""
Tests for slot message templates and reply copy.
"""
from datetime import date, datetime, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.test import TestCase

from objectives.context import DayContext, ObjectiveContext
from objectives.models import Checkin, Objective
from .messages import (
    MICRO_STEPS,
    build_follow_up,
    build_slot_message,
    done_message,
    hint_message,
    pick_micro_step,
)
from .interpreter import resolve_action
from .models import ResponseAction, SlotType

User = get_user_model()

NOW = datetime(2025, 1, 15, 13, 0, tzinfo=dt_timezone.utc)


class SlotMessageTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')
        self.objective = Objective.objects.create(user=self.user, title='Lanzar podcast')
        self.step = Checkin.objects.create(
            objective=self.objective, step_title='Grabar intro', day_date=date(2025, 1, 15),
        )

    def _ctx(self, done_today=0, days_without_progress=0, with_step=True):
        return ObjectiveContext(
            objective=self.objective,
            pending_steps=[self.step] if with_step else [],
            done_today=done_today,
            days_without_progress=days_without_progress,
        )

    def _day(self, ctx):
        return DayContext(user=self.user, now=NOW, objectives=[ctx])

    def test_morning_focus(self):
        ctx = self._ctx()
        message = build_slot_message(SlotType.MORNING_FOCUS, ctx, self._day(ctx))

        self.assertIn('*Lanzar podcast*', message.text)
        self.assertIn('📌 Grabar intro', message.text)
        self.assertIn('1️⃣ Lo haré hoy', message.text)
        self.assertEqual(message.response_options, {
            '1': ResponseAction.COMMIT_TODAY,
            '2': ResponseAction.CHANGE_STEP,
            '3': ResponseAction.PAUSE_OBJECTIVE,
        })
        self.assertEqual(message.checkin, self.step)
        self.assertEqual(message.objective, self.objective)

    def test_morning_focus_without_step(self):
        ctx = self._ctx(with_step=False)
        message = build_slot_message(SlotType.MORNING_FOCUS, ctx, self._day(ctx))
        self.assertEqual(message.step_title, 'Avanza un paso')
        self.assertIsNone(message.checkin)

    def test_midday_slots_skipped_after_progress(self):
        ctx = self._ctx(done_today=1)
        day = self._day(ctx)
        self.assertIsNone(build_slot_message(SlotType.LATE_MORNING_PUSH, ctx, day))
        self.assertIsNone(build_slot_message(SlotType.AFTERNOON_MICRO, ctx, day))

    def test_late_morning_push(self):
        ctx = self._ctx()
        message = build_slot_message(SlotType.LATE_MORNING_PUSH, ctx, self._day(ctx))
        self.assertIn('Aún no avanzas en *Lanzar podcast* hoy.', message.text)
        self.assertEqual(message.response_options['1'], ResponseAction.SMALLER_STEP)

    def test_afternoon_micro_step_is_deterministic(self):
        ctx = self._ctx()
        message = build_slot_message(SlotType.AFTERNOON_MICRO, ctx, self._day(ctx))

        expected = pick_micro_step(ctx, date(2025, 1, 15))
        self.assertIn(expected, MICRO_STEPS)
        self.assertEqual(message.step_title, expected)
        self.assertIn('(≤ 5 min)', message.text)
        self.assertEqual(message.response_options, {'1': ResponseAction.DO_NOW, '2': ResponseAction.SKIP_TODAY})

    def test_night_review_variants(self):
        progress = self._ctx(done_today=2)
        message = build_slot_message(SlotType.NIGHT_REVIEW, progress, self._day(progress))
        self.assertIn('¿Cómo te sientes?', message.text)
        self.assertEqual(message.response_options['1'], ResponseAction.FEELING_GOOD)

        stalled = self._ctx(days_without_progress=4)
        message = build_slot_message(SlotType.NIGHT_REVIEW, stalled, self._day(stalled))
        self.assertIn('Llevas 4 días sin avanzar', message.text)
        self.assertEqual(message.response_options['3'], ResponseAction.PAUSE_WEEK)

        idle = self._ctx(days_without_progress=1)
        message = build_slot_message(SlotType.NIGHT_REVIEW, idle, self._day(idle))
        self.assertIn('Hoy no moviste *Lanzar podcast*.', message.text)
        self.assertEqual(message.response_options['1'], ResponseAction.STILL_PRIORITY)

    def test_every_option_map_resolves_back_to_its_action(self):
        day_ctx = self._ctx()
        day = self._day(day_ctx)
        messages = [
            build_slot_message(SlotType.MORNING_FOCUS, day_ctx, day),
            build_slot_message(SlotType.LATE_MORNING_PUSH, day_ctx, day),
            build_slot_message(SlotType.AFTERNOON_MICRO, day_ctx, day),
            build_follow_up('Abrir el editor'),
        ]
        for ctx in (self._ctx(done_today=1), self._ctx(days_without_progress=4), self._ctx(days_without_progress=1)):
            messages.append(build_slot_message(SlotType.NIGHT_REVIEW, ctx, self._day(ctx)))

        for message in messages:
            options = message.response_options
            self.assertTrue(options, message.slot_type)
            self.assertLessEqual(set(options), {'1', '2', '3'})
            for code, action in options.items():
                self.assertIn(action, ResponseAction.values)
                self.assertEqual(resolve_action(code, options), action)

    def test_unknown_slot(self):
        ctx = self._ctx()
        with self.assertRaises(ValueError):
            build_slot_message(SlotType.FOLLOW_UP, ctx, self._day(ctx))


class ReplyCopyTests(TestCase):

    def test_follow_up(self):
        message = build_follow_up('Abrir el editor')
        self.assertEqual(message.slot_type, SlotType.FOLLOW_UP)
        self.assertTrue(message.text.startswith('Ok, ¿qué tal esto?\n→ Abrir el editor'))
        self.assertEqual(message.response_options, {'1': ResponseAction.DONE, '2': ResponseAction.LATER})

    def test_done_message(self):
        self.assertIn('Racha: 1 día\n', done_message(1))
        self.assertIn('Racha: 3 días', done_message(3))
        self.assertIn('nivel 4', done_message(3, leveled_up_to=4))

    def test_hint_message(self):
        self.assertEqual(hint_message(['2', '1']), 'No entendí. Responde 1 o 2.')
        self.assertEqual(hint_message(['1', '2', '3']), 'No entendí. Responde 1, 2 o 3.')
        self.assertEqual(hint_message([]), 'No entendí. Responde 1, 2 o 3.')
