"""
Tests for objectives: local time helpers, urgency scoring, streaks and the
per-day context the reminder engine reads.
"""
from datetime import date, datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from .context import build_objective_context, load_day_context, load_objective_contexts
from .models import Checkin, Objective
from .urgency import (
    ROTATION_BONUS,
    calculate_urgency_score,
    rank_objectives,
    rotation_index,
    select_objective,
)
from .utils import days_between, local_midnight, local_now, local_today

User = get_user_model()

# Wednesday 2025-01-15, 08:00 in Lima (UTC-5)
NOW = datetime(2025, 1, 15, 13, 0, tzinfo=dt_timezone.utc)
TODAY = date(2025, 1, 15)


class LocalTimeTests(TestCase):

    def test_local_today_uses_fixed_offset(self):
        """03:00 UTC is still the previous day in Lima."""
        instant = datetime(2025, 1, 16, 3, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(local_today(instant), date(2025, 1, 15))
        self.assertEqual(local_now(instant).hour, 22)

    @override_settings(VICU_UTC_OFFSET_HOURS=1)
    def test_offset_is_configurable(self):
        instant = datetime(2025, 1, 15, 23, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(local_today(instant), date(2025, 1, 16))

    def test_local_midnight(self):
        midnight = local_midnight(NOW)
        self.assertEqual(midnight, datetime(2025, 1, 15, 5, 0, tzinfo=dt_timezone.utc))

    def test_days_between_counts_calendar_days(self):
        """23:00 to 01:00 the next local day is one day, not zero."""
        earlier = datetime(2025, 1, 15, 4, 0, tzinfo=dt_timezone.utc)  # 23:00 on the 14th
        later = datetime(2025, 1, 15, 6, 0, tzinfo=dt_timezone.utc)  # 01:00 on the 15th
        self.assertEqual(days_between(earlier, later), 1)
        self.assertEqual(days_between(later, earlier), 0)


class UrgencyScoreTests(TestCase):

    def test_combined_tiers(self):
        """Deadline in 2 days, 5 idle days and a 7-day streak."""
        score = calculate_urgency_score(
            today=TODAY,
            deadline=TODAY + timedelta(days=2),
            days_without_progress=5,
            streak_days=7,
            done_today=0,
        )
        self.assertEqual(score, 95)

    def test_done_today_penalty(self):
        score = calculate_urgency_score(
            today=TODAY,
            deadline=TODAY + timedelta(days=2),
            days_without_progress=5,
            streak_days=7,
            done_today=1,
        )
        self.assertEqual(score, 65)

    def test_deadline_tiers(self):
        def score(days):
            return calculate_urgency_score(TODAY, TODAY + timedelta(days=days), 0, 0, 0)

        self.assertEqual(score(-4), 50)  # overdue
        self.assertEqual(score(3), 50)
        self.assertEqual(score(7), 30)
        self.assertEqual(score(14), 15)
        self.assertEqual(score(15), 0)

    def test_neglect_and_streak_tiers(self):
        self.assertEqual(calculate_urgency_score(TODAY, None, 1, 0, 0), 10)
        self.assertEqual(calculate_urgency_score(TODAY, None, 3, 0, 0), 25)
        self.assertEqual(calculate_urgency_score(TODAY, None, 8, 0, 0), 40)
        self.assertEqual(calculate_urgency_score(TODAY, None, 0, 3, 0), 10)
        self.assertEqual(calculate_urgency_score(TODAY, None, 0, 2, 0), 0)

    def test_rotation_index(self):
        self.assertEqual(rotation_index(0, NOW), 0)
        # Jan 15 is day 15 of the year
        self.assertEqual(rotation_index(4, NOW, slot_index=0), 15 % 4)
        self.assertEqual(rotation_index(4, NOW, slot_index=1), 16 % 4)


class ObjectiveModelTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')
        self.objective = Objective.objects.create(user=self.user, title='Lanzar podcast')

    def test_active_excludes_paused_achieved_and_deleted(self):
        paused = Objective.objects.create(user=self.user, title='P', status=Objective.Status.PAUSED)
        achieved = Objective.objects.create(user=self.user, title='A', status=Objective.Status.ACHIEVED)
        deleted = Objective.objects.create(user=self.user, title='D')
        deleted.soft_delete(NOW)

        active = list(Objective.objects.active())
        self.assertIn(self.objective, active)
        self.assertNotIn(paused, active)
        self.assertNotIn(achieved, active)
        self.assertNotIn(deleted, active)

    def test_first_progress_starts_streak(self):
        self.assertEqual(self.objective.register_progress(NOW), 1)
        self.assertEqual(self.objective.last_checkin_at, NOW)

    def test_same_day_keeps_streak(self):
        self.objective.streak_days = 4
        self.objective.last_checkin_at = NOW - timedelta(hours=1)
        self.assertEqual(self.objective.register_progress(NOW), 4)

    def test_next_day_extends_streak(self):
        self.objective.streak_days = 4
        self.objective.last_checkin_at = NOW - timedelta(days=1)
        self.assertEqual(self.objective.register_progress(NOW), 5)

    def test_gap_resets_streak(self):
        self.objective.streak_days = 4
        self.objective.last_checkin_at = NOW - timedelta(days=2)
        self.assertEqual(self.objective.register_progress(NOW), 1)

    def test_pause_and_resume_restore_status(self):
        self.objective.status = Objective.Status.TESTING
        self.objective.save()

        self.objective.pause(TODAY + timedelta(days=7))
        self.assertEqual(self.objective.status, Objective.Status.PAUSED)

        self.objective.resume()
        self.assertEqual(self.objective.status, Objective.Status.TESTING)
        self.assertIsNone(self.objective.paused_until)

    def test_resume_due(self):
        """Only objectives whose pause date arrived are reactivated."""
        self.objective.pause(TODAY)
        later = Objective.objects.create(user=self.user, title='Later')
        later.pause(TODAY + timedelta(days=1))

        self.assertEqual(Objective.objects.resume_due(TODAY), 1)

        self.objective.refresh_from_db()
        later.refresh_from_db()
        self.assertEqual(self.objective.status, Objective.Status.QUEUED)
        self.assertEqual(later.status, Objective.Status.PAUSED)

    def test_add_pending_keeps_planned_steps(self):
        """A new step joins the plan; earlier pending steps stay pending."""
        first = Checkin.objects.add_pending(self.objective, 'Paso 1', NOW)
        second = Checkin.objects.add_pending(self.objective, 'Paso 2', NOW, effort=Checkin.Effort.VERY_SMALL)

        first.refresh_from_db()
        self.assertEqual(first.status, Checkin.Status.PENDING)
        self.assertEqual(second.status, Checkin.Status.PENDING)
        self.assertEqual(second.effort, Checkin.Effort.VERY_SMALL)
        self.assertEqual(second.day_date, TODAY)
        self.assertEqual(second.source, Checkin.Source.WHATSAPP)
        self.assertEqual(Checkin.objects.pending().filter(objective=self.objective).count(), 2)


class ObjectiveContextTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')

    def _objective(self, title, **kwargs):
        return Objective.objects.create(user=self.user, title=title, **kwargs)

    def test_done_today_counts_from_local_midnight(self):
        objective = self._objective('Correr 10k')
        Checkin.objects.create(
            objective=objective, step_title='Ayer', status=Checkin.Status.DONE,
            day_date=TODAY - timedelta(days=1), completed_at=local_midnight(NOW) - timedelta(minutes=1),
        )
        Checkin.objects.create(
            objective=objective, step_title='Hoy', status=Checkin.Status.DONE,
            day_date=TODAY, completed_at=local_midnight(NOW) + timedelta(minutes=1),
        )

        ctx = load_objective_contexts(self.user, NOW)[0]
        self.assertEqual(ctx.done_today, 1)
        self.assertTrue(ctx.has_progress_today)

    def test_next_step_is_oldest_pending(self):
        objective = self._objective('Correr 10k')
        older = Checkin.objects.create(
            objective=objective, step_title='Comprar zapatillas', day_date=TODAY,
            created_at=NOW - timedelta(days=2),
        )
        Checkin.objects.create(
            objective=objective, step_title='Trotar 2k', day_date=TODAY, created_at=NOW - timedelta(days=1),
        )

        ctx = load_objective_contexts(self.user, NOW)[0]
        self.assertEqual(ctx.next_step, older)
        self.assertEqual(len(ctx.pending_steps), 2)

    def test_days_without_progress(self):
        objective = self._objective('Leer', last_checkin_at=NOW - timedelta(days=5))
        self.assertEqual(build_objective_context(objective, NOW).days_without_progress, 5)

        fresh = self._objective('Nuevo')
        self.assertEqual(build_objective_context(fresh, NOW).days_without_progress, 0)

    def test_only_active_objectives_loaded(self):
        self._objective('Activo')
        self._objective('Pausado', status=Objective.Status.PAUSED)
        deleted = self._objective('Borrado')
        deleted.soft_delete(NOW)

        day = load_day_context(self.user, NOW)
        self.assertEqual([ctx.title for ctx in day.objectives], ['Activo'])

    def test_ranking_prefers_urgent_objective(self):
        calm = self._objective('Tranquilo')
        urgent = self._objective('Urgente', deadline=TODAY + timedelta(days=1), last_checkin_at=NOW - timedelta(days=8))

        contexts = load_objective_contexts(self.user, NOW)
        ranked = rank_objectives(contexts, NOW)
        self.assertEqual(ranked[0].context.id, urgent.id)
        self.assertEqual(ranked[0].score, 90)
        self.assertEqual(sum(1 for r in ranked if r.rotation == ROTATION_BONUS), 1)
        self.assertIn(calm.id, [r.context.id for r in ranked])

    def test_select_skips_objective_pushed_earlier_today(self):
        first = self._objective('Uno', deadline=TODAY)
        second = self._objective('Dos')

        contexts = load_objective_contexts(self.user, NOW)
        self.assertEqual(select_objective(contexts, NOW).context.id, first.id)
        selected = select_objective(contexts, NOW, already_pushed=[first.id])
        self.assertEqual(selected.context.id, second.id)

    def test_select_falls_back_when_everything_was_pushed(self):
        only = self._objective('Único')
        contexts = load_objective_contexts(self.user, NOW)
        self.assertEqual(select_objective(contexts, NOW, already_pushed=[only.id]).context.id, only.id)
        self.assertIsNone(select_objective([], NOW))
