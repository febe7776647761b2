from __future__ import annotations
from datetime import date, datetime
from typing import Optional

from django.db import models
from django.contrib.auth import get_user_model
from django.utils import timezone

from .utils import local_today

User = get_user_model()


class ObjectiveManager(models.Manager):
    """Manager with helpers for the objectives reminders care about."""

    def active(self):
        """Objectives that are neither finished, paused nor soft-deleted."""
        return self.filter(
            status__in=Objective.ACTIVE_STATUSES,
            deleted_at__isnull=True,
        )

    def resume_due(self, today: date) -> int:
        """
        Reactivate paused objectives whose resume date has arrived.

        Returns:
            Number of objectives resumed
        """
        due = self.filter(
            status=Objective.Status.PAUSED,
            paused_until__isnull=False,
            paused_until__lte=today,
            deleted_at__isnull=True,
        )
        resumed = 0
        for objective in due:
            objective.resume()
            resumed += 1
        return resumed


class Objective(models.Model):
    """A user goal (an "experiment") that reminders push forward."""

    class Status(models.TextChoices):
        QUEUED = 'queued', 'Queued'
        BUILDING = 'building', 'Building'
        TESTING = 'testing', 'Testing'
        ADJUSTING = 'adjusting', 'Adjusting'
        ACHIEVED = 'achieved', 'Achieved'
        PAUSED = 'paused', 'Paused'
        DISCARDED = 'discarded', 'Discarded'

    ACTIVE_STATUSES = (
        Status.QUEUED,
        Status.BUILDING,
        Status.TESTING,
        Status.ADJUSTING,
    )

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='objectives')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.QUEUED,
    )
    deadline = models.DateField(null=True, blank=True)
    streak_days = models.PositiveIntegerField(default=0)
    last_checkin_at = models.DateTimeField(null=True, blank=True)
    paused_until = models.DateField(
        null=True,
        blank=True,
        help_text="Local date on which a paused objective becomes active again",
    )
    paused_from_status = models.CharField(max_length=20, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ObjectiveManager()

    class Meta:
        ordering = ['created_at']

    def __str__(self) -> str:
        return f"{self.title} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None and self.status in self.ACTIVE_STATUSES

    def pause(self, until: date) -> None:
        if self.status != self.Status.PAUSED:
            self.paused_from_status = self.status
        self.status = self.Status.PAUSED
        self.paused_until = until
        self.save(update_fields=['status', 'paused_until', 'paused_from_status', 'updated_at'])

    def resume(self) -> None:
        self.status = self.paused_from_status or self.Status.BUILDING
        self.paused_from_status = ''
        self.paused_until = None
        self.save(update_fields=['status', 'paused_until', 'paused_from_status', 'updated_at'])

    def soft_delete(self, now: Optional[datetime] = None) -> None:
        """Objectives are never hard-deleted by their owner."""
        self.deleted_at = now or timezone.now()
        self.save(update_fields=['deleted_at', 'updated_at'])

    def register_progress(self, now: datetime) -> int:
        """
        Update the streak after a completed step.

        A step on the same local day keeps the streak, a step on the next
        day extends it and anything later starts a new streak.

        Returns:
            The new streak length
        """
        if self.last_checkin_at is None:
            self.streak_days = 1
        else:
            gap = (local_today(now) - local_today(self.last_checkin_at)).days
            if gap <= 0:
                self.streak_days = max(self.streak_days, 1)
            elif gap == 1:
                self.streak_days += 1
            else:
                self.streak_days = 1
        self.last_checkin_at = now
        self.save(update_fields=['streak_days', 'last_checkin_at', 'updated_at'])
        return self.streak_days


class CheckinManager(models.Manager):

    def pending(self):
        return self.filter(status=Checkin.Status.PENDING)

    def add_pending(
        self,
        objective: Objective,
        step_title: str,
        now: datetime,
        step_description: str = '',
        effort: str = '',
        source: str = 'whatsapp',
    ) -> Checkin:
        """
        Save a new pending step for an objective.

        Steps already planned for the objective stay pending.
        """
        return self.create(
            objective=objective,
            step_title=step_title,
            step_description=step_description,
            effort=effort or Checkin.Effort.SMALL,
            source=source,
            day_date=local_today(now),
            created_at=now,
        )


class Checkin(models.Model):
    """One step of progress against an objective, pending or done."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        DONE = 'done', 'Done'

    class Effort(models.TextChoices):
        VERY_SMALL = 'very_small', 'Very small'
        SMALL = 'small', 'Small'
        MEDIUM = 'medium', 'Medium'

    class Source(models.TextChoices):
        WHATSAPP = 'whatsapp', 'WhatsApp'
        APP = 'app', 'App'
        HELPER = 'helper', 'Helper'

    objective = models.ForeignKey(Objective, on_delete=models.CASCADE, related_name='checkins')
    step_title = models.CharField(max_length=300)
    step_description = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    effort = models.CharField(
        max_length=20,
        choices=Effort.choices,
        default=Effort.SMALL,
    )
    source = models.CharField(
        max_length=20,
        choices=Source.choices,
        default=Source.APP,
    )
    day_date = models.DateField(help_text="Local day the step belongs to")
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    objects = CheckinManager()

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['objective', 'status'], name='checkin_objective_status_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.step_title} ({self.status})"

    def mark_done(self, now: datetime) -> None:
        self.status = self.Status.DONE
        self.completed_at = now
        self.save(update_fields=['status', 'completed_at'])
