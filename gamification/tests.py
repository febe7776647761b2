"""
Tests for XP, levels, streaks and badges.
"""
from datetime import datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from objectives.models import Objective
from .models import UserStats
from .services import (
    calculate_checkin_xp,
    calculate_level,
    check_new_badges,
    get_level_name,
    record_checkin,
    record_project_completed,
    xp_for_next_level,
)

User = get_user_model()

# Wednesday 2025-01-15, 12:00 in Lima: no time-of-day badge applies
NOON = datetime(2025, 1, 15, 17, 0, tzinfo=dt_timezone.utc)


class LevelTests(TestCase):

    def test_calculate_level(self):
        self.assertEqual(calculate_level(0), 1)
        self.assertEqual(calculate_level(49), 1)
        self.assertEqual(calculate_level(50), 2)
        self.assertEqual(calculate_level(9500), 20)
        self.assertEqual(calculate_level(100000), 20)

    def test_level_names(self):
        self.assertEqual(get_level_name(1), 'Novato')
        self.assertEqual(get_level_name(5), 'Explorador')
        self.assertEqual(get_level_name(20), 'Élite')

    def test_xp_for_next_level(self):
        self.assertEqual(xp_for_next_level(1), 50)
        self.assertIsNone(xp_for_next_level(20))

    def test_checkin_xp_streak_bonus_is_capped(self):
        self.assertEqual(calculate_checkin_xp(1), 10)
        self.assertEqual(calculate_checkin_xp(3), 20)
        self.assertEqual(calculate_checkin_xp(100), 60)


class RecordCheckinTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')

    def test_stats_created_with_user(self):
        """The post_save signal creates UserStats."""
        self.assertTrue(UserStats.objects.filter(user=self.user).exists())

    def test_first_checkin(self):
        reward = record_checkin(self.user, NOON)

        self.assertEqual(reward.xp_gained, 10)
        self.assertEqual(reward.streak_days, 1)
        self.assertEqual(reward.level, 1)
        self.assertFalse(reward.leveled_up)
        self.assertEqual(reward.new_badges, [])

        stats = UserStats.objects.get(user=self.user)
        self.assertEqual(stats.total_checkins, 1)
        self.assertEqual(stats.daily_checkins, 1)

    def test_consecutive_days_extend_streak_and_unlock_badge(self):
        record_checkin(self.user, NOON - timedelta(days=2))
        record_checkin(self.user, NOON - timedelta(days=1))
        reward = record_checkin(self.user, NOON)

        self.assertEqual(reward.streak_days, 3)
        self.assertIn('streak_3', reward.new_badges)
        stats = UserStats.objects.get(user=self.user)
        # 10 + 15 + 20 check-ins, 50 for the badge
        self.assertEqual(stats.xp, 95)
        self.assertEqual(stats.longest_streak, 3)

    def test_gap_resets_streak(self):
        record_checkin(self.user, NOON - timedelta(days=3))
        reward = record_checkin(self.user, NOON)
        self.assertEqual(reward.streak_days, 1)

    def test_daily_goal_bonus_once(self):
        record_checkin(self.user, NOON)
        record_checkin(self.user, NOON + timedelta(minutes=5))
        third = record_checkin(self.user, NOON + timedelta(minutes=10))
        fourth = record_checkin(self.user, NOON + timedelta(minutes=15))

        self.assertTrue(third.daily_goal_met)
        self.assertEqual(third.xp_gained, 35)
        self.assertFalse(fourth.daily_goal_met)

    def test_daily_counter_resets_next_day(self):
        record_checkin(self.user, NOON)
        record_checkin(self.user, NOON + timedelta(days=1))
        stats = UserStats.objects.get(user=self.user)
        self.assertEqual(stats.daily_checkins, 1)
        self.assertEqual(stats.total_checkins, 2)

    def test_early_bird_badge(self):
        """07:00 local time unlocks the early bird badge."""
        reward = record_checkin(self.user, datetime(2025, 1, 15, 12, 0, tzinfo=dt_timezone.utc))
        self.assertIn('early_bird', reward.new_badges)
        self.assertEqual(reward.total_xp, 60)
        self.assertTrue(reward.leveled_up)

    def test_badges_not_unlocked_twice(self):
        stats = UserStats.objects.get(user=self.user)
        stats.streak_days = 3
        stats.badges = [{'id': 'streak_3', 'unlocked_at': NOON.isoformat()}]
        self.assertNotIn('streak_3', check_new_badges(stats))


class ProjectCompletedTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')

    def test_record_project_completed(self):
        badges = record_project_completed(self.user, NOON)

        self.assertEqual(badges, ['first_project'])
        stats = UserStats.objects.get(user=self.user)
        self.assertEqual(stats.xp, 150)
        self.assertEqual(stats.level, 3)

    def test_achieving_objective_rewards_once(self):
        objective = Objective.objects.create(user=self.user, title='Publicar libro')

        objective.status = Objective.Status.ACHIEVED
        objective.save()
        objective.save()

        stats = UserStats.objects.get(user=self.user)
        self.assertEqual(stats.total_projects_completed, 1)


class UserStatsViewTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')

    def test_requires_login(self):
        response = self.client.get(reverse('gamification:user_stats'))
        self.assertEqual(response.status_code, 302)

    def test_returns_stats(self):
        self.client.force_login(self.user)
        record_checkin(self.user, NOON)

        response = self.client.get(reverse('gamification:user_stats'))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['xp'], 10)
        self.assertEqual(data['level_name'], 'Novato')
        self.assertEqual(data['next_level_xp'], 50)
