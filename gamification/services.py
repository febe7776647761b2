"""
Gamification rules: XP, levels, streaks and badges.

Every completed step goes through record_checkin(), whether it was reported
over WhatsApp, from the app or by a helper completing an assignment.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from django.contrib.auth.models import AbstractUser
from django.db import transaction

from objectives.utils import local_now, local_today
from .models import UserStats

import logging
logger = logging.getLogger(__name__)


XP_REWARDS = {
    'CHECKIN': 10,
    'STREAK_BONUS': 5,  # per streak day beyond the first
    'DAILY_GOAL_MET': 25,
    'PROJECT_COMPLETED': 100,
    'BADGE_UNLOCKED': 50,
}
MAX_STREAK_BONUS = 50

LEVEL_THRESHOLDS = [
    0, 50, 150, 300, 500, 750, 1050, 1400, 1800, 2250,
    2750, 3300, 3900, 4550, 5250, 6000, 6800, 7650, 8550, 9500,
]

# (highest level, name)
LEVEL_NAMES = [
    (2, 'Novato'),
    (4, 'Aprendiz'),
    (6, 'Explorador'),
    (8, 'Practicante'),
    (10, 'Experto'),
    (12, 'Veterano'),
    (14, 'Maestro'),
    (16, 'Leyenda'),
    (18, 'Campeón'),
]
TOP_LEVEL_NAME = 'Élite'


@dataclass
class BadgeContext:
    stats: UserStats
    local_hour: Optional[int] = None


@dataclass
class Badge:
    id: str
    name: str
    description: str
    check: Callable[[BadgeContext], bool]


BADGES: List[Badge] = [
    Badge('streak_3', 'En racha', '3 días seguidos', lambda c: c.stats.streak_days >= 3),
    Badge('streak_7', 'Semana perfecta', '7 días seguidos', lambda c: c.stats.streak_days >= 7),
    Badge('streak_14', 'Imparable', '14 días seguidos', lambda c: c.stats.streak_days >= 14),
    Badge('streak_30', 'Hábito formado', '30 días seguidos', lambda c: c.stats.streak_days >= 30),
    Badge('checkins_10', 'Constante', '10 pasos completados', lambda c: c.stats.total_checkins >= 10),
    Badge('checkins_50', 'Dedicado', '50 pasos completados', lambda c: c.stats.total_checkins >= 50),
    Badge('checkins_100', 'Centenario', '100 pasos completados', lambda c: c.stats.total_checkins >= 100),
    Badge('first_project', 'Primer logro', 'Primer objetivo logrado', lambda c: c.stats.total_projects_completed >= 1),
    Badge('projects_5', 'Multiplicador', '5 objetivos logrados', lambda c: c.stats.total_projects_completed >= 5),
    Badge('level_5', 'Nivel 5', 'Llegaste al nivel 5', lambda c: c.stats.level >= 5),
    Badge('level_10', 'Nivel 10', 'Llegaste al nivel 10', lambda c: c.stats.level >= 10),
    Badge('early_bird', 'Madrugador', 'Paso completado antes de las 9am',
          lambda c: c.local_hour is not None and c.local_hour < 9),
    Badge('night_owl', 'Búho nocturno', 'Paso completado después de las 10pm',
          lambda c: c.local_hour is not None and c.local_hour >= 22),
]
BADGES_BY_ID: Dict[str, Badge] = {badge.id: badge for badge in BADGES}


@dataclass
class CheckinReward:
    """What a single check-in earned, for confirmation messages."""
    xp_gained: int
    total_xp: int
    level: int
    leveled_up: bool
    streak_days: int
    daily_goal_met: bool = False
    new_badges: List[str] = field(default_factory=list)


def calculate_level(xp: int) -> int:
    level = 1
    for index, threshold in enumerate(LEVEL_THRESHOLDS):
        if xp >= threshold:
            level = index + 1
    return level


def get_level_name(level: int) -> str:
    for max_level, name in LEVEL_NAMES:
        if level <= max_level:
            return name
    return TOP_LEVEL_NAME


def xp_for_next_level(level: int) -> Optional[int]:
    """XP needed to reach the next level, or None at the top level."""
    if level >= len(LEVEL_THRESHOLDS):
        return None
    return LEVEL_THRESHOLDS[level]


def calculate_checkin_xp(streak_days: int) -> int:
    bonus = max(streak_days - 1, 0) * XP_REWARDS['STREAK_BONUS']
    return XP_REWARDS['CHECKIN'] + min(bonus, MAX_STREAK_BONUS)


def check_new_badges(stats: UserStats, local_hour: Optional[int] = None) -> List[str]:
    """Ids of badges the user qualifies for but has not unlocked yet."""
    context = BadgeContext(stats=stats, local_hour=local_hour)
    owned = stats.badge_ids
    return [badge.id for badge in BADGES if badge.id not in owned and badge.check(context)]


def _unlock_badges(stats: UserStats, now: datetime, local_hour: Optional[int] = None) -> List[str]:
    """
    Unlock every badge that applies, including ones earned through the badge XP itself.
    """
    unlocked: List[str] = []
    while True:
        new_badges = check_new_badges(stats, local_hour)
        if not new_badges:
            return unlocked
        for badge_id in new_badges:
            stats.badges.append({'id': badge_id, 'unlocked_at': now.isoformat()})
            stats.xp += XP_REWARDS['BADGE_UNLOCKED']
            unlocked.append(badge_id)
        stats.level = calculate_level(stats.xp)


def get_or_create_stats(user: AbstractUser) -> UserStats:
    stats, _ = UserStats.objects.get_or_create(user=user)
    return stats


@transaction.atomic
def record_checkin(user: AbstractUser, now: datetime) -> CheckinReward:
    """
    Reward one completed step.

    Args:
        user: owner of the completed step
        now: instant the step was completed

    Returns:
        CheckinReward describing XP, level, streak and badges gained
    """
    get_or_create_stats(user)
    stats = UserStats.objects.select_for_update().get(user=user)
    today = local_today(now)
    previous_level = stats.level

    if stats.daily_date != today:
        stats.daily_date = today
        stats.daily_checkins = 0

    if stats.last_checkin_date == today:
        stats.streak_days = max(stats.streak_days, 1)
    elif stats.last_checkin_date == today - timedelta(days=1):
        stats.streak_days += 1
    else:
        stats.streak_days = 1
    stats.last_checkin_date = today
    stats.longest_streak = max(stats.longest_streak, stats.streak_days)

    stats.total_checkins += 1
    stats.daily_checkins += 1

    xp_gained = calculate_checkin_xp(stats.streak_days)
    daily_goal_met = stats.daily_checkins == stats.daily_goal
    if daily_goal_met:
        xp_gained += XP_REWARDS['DAILY_GOAL_MET']

    stats.xp += xp_gained
    stats.level = calculate_level(stats.xp)

    xp_before_badges = stats.xp
    new_badges = _unlock_badges(stats, now, local_hour=local_now(now).hour)
    xp_gained += stats.xp - xp_before_badges

    stats.save()

    if new_badges:
        logger.info(f"User {user.pk} unlocked badges: {', '.join(new_badges)}")

    return CheckinReward(
        xp_gained=xp_gained,
        total_xp=stats.xp,
        level=stats.level,
        leveled_up=stats.level > previous_level,
        streak_days=stats.streak_days,
        daily_goal_met=daily_goal_met,
        new_badges=new_badges,
    )


@transaction.atomic
def record_project_completed(user: AbstractUser, now: datetime) -> List[str]:
    """
    Reward an objective reaching its goal.

    Returns:
        Ids of badges unlocked by this completion
    """
    get_or_create_stats(user)
    stats = UserStats.objects.select_for_update().get(user=user)
    stats.total_projects_completed += 1
    stats.xp += XP_REWARDS['PROJECT_COMPLETED']
    stats.level = calculate_level(stats.xp)
    new_badges = _unlock_badges(stats, now)
    stats.save()
    logger.info(f"User {user.pk} completed objective #{stats.total_projects_completed}")
    return new_badges
