"""
Per-day view of a user's objectives.

Loads active objectives with their pending steps and the steps completed
since local midnight, and derives the fields reminder selection and message
building work from (days without progress, done today, streak).
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from django.contrib.auth.models import AbstractUser
from django.db.models import Prefetch, Q

from .models import Checkin, Objective
from .utils import days_between, local_midnight

import logging
logger = logging.getLogger(__name__)

MAX_OBJECTIVES = 10


# Data-only classes
@dataclass
class ObjectiveContext:
    """Derived reminder state for one objective on one local day."""
    objective: Objective
    pending_steps: List[Checkin] = field(default_factory=list)
    done_today: int = 0
    days_without_progress: int = 0

    @property
    def id(self) -> int:
        return self.objective.id

    @property
    def title(self) -> str:
        return self.objective.title

    @property
    def deadline(self) -> Optional[date]:
        return self.objective.deadline

    @property
    def streak_days(self) -> int:
        return self.objective.streak_days

    @property
    def next_step(self) -> Optional[Checkin]:
        return self.pending_steps[0] if self.pending_steps else None

    @property
    def has_progress_today(self) -> bool:
        return self.done_today > 0


@dataclass
class DayContext:
    """Everything the reminder engine knows about a user for one run."""
    user: AbstractUser
    now: datetime
    objectives: List[ObjectiveContext] = field(default_factory=list)

    @property
    def total_done_today(self) -> int:
        return sum(ctx.done_today for ctx in self.objectives)

    @property
    def has_progress_today(self) -> bool:
        return self.total_done_today > 0

    def get(self, objective_id: int) -> Optional[ObjectiveContext]:
        for ctx in self.objectives:
            if ctx.id == objective_id:
                return ctx
        return None


def build_objective_context(objective: Objective, now: datetime) -> ObjectiveContext:
    """
    Derive the per-day fields for one objective.

    Uses prefetched checkins when available. An objective with no checkin
    history has zero days without progress.
    """
    midnight = local_midnight(now)
    checkins = list(objective.checkins.all())

    pending = [c for c in checkins if c.status == Checkin.Status.PENDING]
    pending.sort(key=lambda c: c.created_at)
    done_today = sum(
        1 for c in checkins
        if c.status == Checkin.Status.DONE and c.completed_at and c.completed_at >= midnight
    )

    if objective.last_checkin_at is None:
        days_without = 0
    else:
        days_without = days_between(objective.last_checkin_at, now)

    return ObjectiveContext(
        objective=objective,
        pending_steps=pending,
        done_today=done_today,
        days_without_progress=days_without,
    )


def load_objective_contexts(user: AbstractUser, now: datetime) -> List[ObjectiveContext]:
    """
    Load the most recent active objectives of a user, oldest first.

    Args:
        user: owner of the objectives
        now: instant the run is evaluated at

    Returns:
        One ObjectiveContext per active, non-deleted objective
    """
    recent_ids = list(
        Objective.objects.active()
        .filter(user=user)
        .order_by('-created_at')
        .values_list('id', flat=True)[:MAX_OBJECTIVES]
    )
    objectives = (
        Objective.objects.filter(id__in=recent_ids)
        .order_by('created_at', 'id')
        .prefetch_related(
            Prefetch(
                'checkins',
                queryset=Checkin.objects.filter(
                    Q(status=Checkin.Status.PENDING)
                    | Q(status=Checkin.Status.DONE, completed_at__gte=local_midnight(now))
                ),
            )
        )
    )
    contexts = [build_objective_context(objective, now) for objective in objectives]
    logger.debug(f"Loaded {len(contexts)} active objectives for user {user.pk}")
    return contexts


def load_day_context(user: AbstractUser, now: datetime) -> DayContext:
    return DayContext(user=user, now=now, objectives=load_objective_contexts(user, now))
