"""
Urgency scoring for reminder selection.

The score is a plain sum of tiered bonuses (deadline proximity, neglect,
streak) minus a penalty once the objective already moved today. A rotation
bonus is added on top when ranking so that users with several objectives
see different ones across slots and days.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

from .context import ObjectiveContext
from .utils import local_today

# (max days until deadline, bonus), checked in order
DEADLINE_TIERS = ((3, 50), (7, 30), (14, 15))
# (min days without progress, bonus), checked in order
NEGLECT_TIERS = ((7, 40), (3, 25), (1, 10))
# (min streak days, bonus), checked in order
STREAK_TIERS = ((7, 20), (3, 10))

DONE_TODAY_PENALTY = 30
ROTATION_BONUS = 20


def calculate_urgency_score(
    today: date,
    deadline: Optional[date],
    days_without_progress: int,
    streak_days: int,
    done_today: int,
) -> int:
    """
    Score how much an objective needs a nudge right now.

    Overdue deadlines fall in the closest tier.

    Example:
        deadline in 2 days (+50), 5 days idle (+25), 7-day streak (+20) = 95,
        or 65 once a step was done today.
    """
    score = 0

    if deadline is not None:
        days_until = (deadline - today).days
        for max_days, bonus in DEADLINE_TIERS:
            if days_until <= max_days:
                score += bonus
                break

    for min_days, bonus in NEGLECT_TIERS:
        if days_without_progress >= min_days:
            score += bonus
            break

    for min_streak, bonus in STREAK_TIERS:
        if streak_days >= min_streak:
            score += bonus
            break

    if done_today > 0:
        score -= DONE_TODAY_PENALTY

    return score


def rotation_index(count: int, now: datetime, slot_index: int = 0) -> int:
    """Position that gets the rotation bonus for this day and slot."""
    if count <= 0:
        return 0
    day_of_year = local_today(now).timetuple().tm_yday
    return (day_of_year + slot_index) % count


@dataclass
class RankedObjective:
    context: ObjectiveContext
    score: int
    rotation: int = 0

    @property
    def total(self) -> int:
        return self.score + self.rotation

    def to_dict(self) -> dict:
        return {
            'objective_id': self.context.id,
            'title': self.context.title,
            'score': self.score,
            'rotation': self.rotation,
            'total': self.total,
            'days_without_progress': self.context.days_without_progress,
            'streak_days': self.context.streak_days,
            'done_today': self.context.done_today,
        }


def score_context(ctx: ObjectiveContext, today: date) -> int:
    return calculate_urgency_score(
        today=today,
        deadline=ctx.deadline,
        days_without_progress=ctx.days_without_progress,
        streak_days=ctx.streak_days,
        done_today=ctx.done_today,
    )


def rank_objectives(
    contexts: Sequence[ObjectiveContext],
    now: datetime,
    slot_index: int = 0,
) -> List[RankedObjective]:
    """
    Rank objectives by urgency plus rotation, highest first.

    The sort is stable, so ties keep the loader's creation order.
    """
    today = local_today(now)
    rotated = rotation_index(len(contexts), now, slot_index)
    ranked = [
        RankedObjective(
            context=ctx,
            score=score_context(ctx, today),
            rotation=ROTATION_BONUS if position == rotated else 0,
        )
        for position, ctx in enumerate(contexts)
    ]
    return sorted(ranked, key=lambda r: r.total, reverse=True)


def select_objective(
    contexts: Sequence[ObjectiveContext],
    now: datetime,
    slot_index: int = 0,
    already_pushed: Iterable[int] = (),
) -> Optional[RankedObjective]:
    """
    Pick the objective a reminder should be about.

    Objectives already pushed by an earlier slot today are passed over while
    another one is available.
    """
    ranked = rank_objectives(contexts, now, slot_index)
    if not ranked:
        return None
    pushed = set(already_pushed)
    for candidate in ranked:
        if candidate.context.id not in pushed:
            return candidate
    return ranked[0]
