from datetime import date
from typing import Optional

from django.db import models
from django.contrib.auth import get_user_model

User = get_user_model()


class UserStats(models.Model):
    """XP, level, streak and badges of one user."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='stats')
    xp = models.PositiveIntegerField(default=0)
    level = models.PositiveIntegerField(default=1)
    streak_days = models.PositiveIntegerField(default=0)
    longest_streak = models.PositiveIntegerField(default=0)
    last_checkin_date = models.DateField(null=True, blank=True)
    daily_checkins = models.PositiveIntegerField(default=0)
    daily_goal = models.PositiveIntegerField(default=3)
    daily_date = models.DateField(
        null=True,
        blank=True,
        help_text="Local day daily_checkins refers to",
    )
    total_checkins = models.PositiveIntegerField(default=0)
    total_projects_completed = models.PositiveIntegerField(default=0)
    badges = models.JSONField(
        default=list,
        blank=True,
        help_text='List of {"id": ..., "unlocked_at": ...} entries',
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'User Stats'
        verbose_name_plural = 'User Stats'

    def __str__(self) -> str:
        return f"{self.user} - level {self.level} ({self.xp} XP)"

    @property
    def badge_ids(self) -> set:
        return {badge['id'] for badge in self.badges}

    def daily_count(self, today: date) -> int:
        """Check-ins on `today`, ignoring a stale counter from a previous day."""
        return self.daily_checkins if self.daily_date == today else 0

    def to_dict(self, today: Optional[date] = None) -> dict:
        from .services import get_level_name, xp_for_next_level

        return {
            'xp': self.xp,
            'level': self.level,
            'level_name': get_level_name(self.level),
            'next_level_xp': xp_for_next_level(self.level),
            'streak_days': self.streak_days,
            'longest_streak': self.longest_streak,
            'daily_checkins': self.daily_count(today) if today else self.daily_checkins,
            'daily_goal': self.daily_goal,
            'total_checkins': self.total_checkins,
            'total_projects_completed': self.total_projects_completed,
            'badges': self.badges,
        }
