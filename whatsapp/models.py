from __future__ import annotations
from datetime import date, datetime
from typing import List, Optional

from django.db import IntegrityError, models, transaction
from django.contrib.auth import get_user_model
from django.db.models import Q

from objectives.models import Checkin, Objective
from .phones import digits_only

User = get_user_model()


class WhatsAppConfigManager(models.Manager):

    def find_by_phone(self, phone: str) -> Optional[WhatsAppConfig]:
        """
        Resolve an inbound sender number to an active config.

        Tries the exact digits first, then suffix matches on the last 10 and
        last 9 digits to absorb country-code and trunk-prefix differences.
        """
        digits = digits_only(phone)
        if not digits:
            return None

        configs = self.filter(is_active=True).select_related('user')
        match = configs.filter(phone_digits=digits).first()
        if match:
            return match

        for size in (10, 9):
            if len(digits) < size:
                continue
            match = configs.filter(phone_digits__endswith=digits[-size:]).first()
            if match:
                return match
        return None


class WhatsAppConfig(models.Model):
    """The WhatsApp number a user receives reminders on."""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='whatsapp_config')
    phone_number = models.CharField(max_length=20, help_text="E.164, e.g. +51987654321")
    phone_digits = models.CharField(max_length=20, db_index=True, editable=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = WhatsAppConfigManager()

    class Meta:
        verbose_name = 'WhatsApp Config'
        verbose_name_plural = 'WhatsApp Configs'

    def __str__(self) -> str:
        return f"{self.user} - {self.phone_number}"

    def save(self, *args, **kwargs):
        self.phone_digits = digits_only(self.phone_number)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'phone_number' in update_fields:
            kwargs['update_fields'] = set(update_fields) | {'phone_digits'}
        super().save(*args, **kwargs)

    def to_dict(self) -> dict:
        return {
            'phone_number': self.phone_number,
            'is_active': self.is_active,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class SlotType(models.TextChoices):
    MORNING_FOCUS = 'MORNING_FOCUS', 'Morning focus'
    LATE_MORNING_PUSH = 'LATE_MORNING_PUSH', 'Late morning push'
    AFTERNOON_MICRO = 'AFTERNOON_MICRO', 'Afternoon micro-step'
    NIGHT_REVIEW = 'NIGHT_REVIEW', 'Night review'
    # Prompt sent in reply to a reply (e.g. an easier step); never scheduled.
    FOLLOW_UP = 'FOLLOW_UP', 'Follow-up'


SCHEDULED_SLOT_TYPES = [
    SlotType.MORNING_FOCUS,
    SlotType.LATE_MORNING_PUSH,
    SlotType.AFTERNOON_MICRO,
    SlotType.NIGHT_REVIEW,
]


class ResponseAction(models.TextChoices):
    """Closed vocabulary of what a reply to a reminder can mean."""
    COMMIT_TODAY = 'commit_today', 'Commit today'
    CHANGE_STEP = 'change_step', 'Change step'
    PAUSE_OBJECTIVE = 'pause_objective', 'Pause objective'
    SMALLER_STEP = 'smaller_step', 'Smaller step'
    LATER = 'later', 'Later'
    STUCK = 'stuck', 'Stuck'
    DO_NOW = 'do_now', 'Do now'
    SKIP_TODAY = 'skip_today', 'Skip today'
    FEELING_GOOD = 'feeling_good', 'Feeling good'
    FEELING_TIRED = 'feeling_tired', 'Feeling tired'
    FEELING_MEH = 'feeling_meh', 'Feeling meh'
    RETHINK_OBJECTIVE = 'rethink_objective', 'Rethink objective'
    KEEP_SAME = 'keep_same', 'Keep same'
    PAUSE_WEEK = 'pause_week', 'Pause a week'
    STILL_PRIORITY = 'still_priority', 'Still a priority'
    MAYBE_PAUSE = 'maybe_pause', 'Maybe pause'
    UNSURE = 'unsure', 'Unsure'
    DONE = 'done', 'Done'
    ALTERNATIVE = 'alternative', 'Alternative'


class ReminderManager(models.Manager):
    """Ledger helpers for reminder deduplication and reply matching."""

    def was_sent(self, user: User, slot_type: str, slot_date: date) -> bool:
        """Check if this slot was already claimed for the user on that local day."""
        return self.filter(
            user=user,
            slot_type=slot_type,
            slot_date=slot_date,
            forced=False,
        ).exists()

    def claim(
        self,
        user: User,
        slot_type: str,
        slot_date: date,
        forced: bool = False,
    ) -> Optional[Reminder]:
        """
        Atomically reserve a slot before sending.

        Returns:
            The queued Reminder, or None when another run already holds the slot
        """
        try:
            with transaction.atomic():
                return self.create(
                    user=user,
                    slot_type=slot_type,
                    slot_date=slot_date,
                    forced=forced,
                    status=Reminder.Status.QUEUED,
                )
        except IntegrityError:
            return None

    def latest_open(self, user: User) -> Optional[Reminder]:
        """Most recent reminder still waiting for a reply."""
        return (
            self.filter(user=user, status__in=Reminder.OPEN_STATUSES)
            .select_related('objective', 'checkin')
            .order_by('-sent_at', '-id')
            .first()
        )

    def expire_open(self, user: User, keep: Optional[Reminder] = None) -> int:
        """Expire older unanswered reminders so only the newest can be answered."""
        open_reminders = self.filter(user=user, status__in=Reminder.OPEN_STATUSES)
        if keep is not None:
            open_reminders = open_reminders.exclude(pk=keep.pk)
        return open_reminders.update(status=Reminder.Status.EXPIRED)

    def pushed_objective_ids(self, user: User, slot_date: date) -> List[int]:
        return list(
            self.filter(user=user, slot_date=slot_date, objective__isnull=False)
            .exclude(status=Reminder.Status.QUEUED)
            .values_list('objective_id', flat=True)
        )

    def recent_messages(self, user: User, limit: int = 8) -> List[str]:
        return list(
            self.filter(user=user)
            .exclude(message_content='')
            .order_by('-created_at', '-id')
            .values_list('message_content', flat=True)[:limit]
        )

    def recent_styles(self, user: User, limit: int = 2) -> List[str]:
        return list(
            self.filter(user=user)
            .exclude(message_style='')
            .order_by('-created_at', '-id')
            .values_list('message_style', flat=True)[:limit]
        )

    def mark_delivered(self, kapso_message_id: str, delivered_at: datetime) -> int:
        if not kapso_message_id:
            return 0
        return self.filter(
            kapso_message_id=kapso_message_id,
            status=Reminder.Status.SENT,
        ).update(status=Reminder.Status.DELIVERED, delivered_at=delivered_at)


class Reminder(models.Model):
    """One outbound WhatsApp reminder and, later, the reply it got."""

    class Status(models.TextChoices):
        QUEUED = 'queued', 'Queued'
        SENT = 'sent', 'Sent'
        DELIVERED = 'delivered', 'Delivered'
        RESPONDED = 'responded', 'Responded'
        EXPIRED = 'expired', 'Expired'

    OPEN_STATUSES = (Status.SENT, Status.DELIVERED)

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reminders')
    objective = models.ForeignKey(
        Objective,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reminders',
    )
    checkin = models.ForeignKey(
        Checkin,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reminders',
        help_text="Pending step the reminder was about, if any",
    )
    slot_type = models.CharField(max_length=30, choices=SlotType.choices)
    slot_date = models.DateField(help_text="Local calendar day of the slot")
    forced = models.BooleanField(
        default=False,
        help_text="Sent on demand, outside the once-per-day rule",
    )
    message_content = models.TextField(blank=True)
    message_style = models.CharField(max_length=20, blank=True)
    step_title = models.CharField(max_length=300, blank=True)
    step_description = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.QUEUED,
    )
    response_options = models.JSONField(
        default=dict,
        blank=True,
        help_text='Reply code to action, e.g. {"1": "commit_today"}',
    )
    user_response = models.TextField(blank=True)
    response_action = models.CharField(max_length=30, choices=ResponseAction.choices, blank=True)
    kapso_message_id = models.CharField(max_length=128, blank=True, db_index=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ReminderManager()

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'slot_type', 'slot_date'],
                condition=Q(forced=False, slot_type__in=SCHEDULED_SLOT_TYPES),
                name='unique_reminder_per_user_slot_day',
            ),
        ]
        indexes = [
            models.Index(fields=['user', 'status'], name='reminder_user_status_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.slot_type} to {self.user} on {self.slot_date} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    def mark_responded(self, text: str, action: str, now: datetime) -> None:
        self.status = self.Status.RESPONDED
        self.user_response = text
        self.response_action = action
        self.responded_at = now
        self.save(update_fields=['status', 'user_response', 'response_action', 'responded_at'])
