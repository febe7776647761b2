"""
WhatsApp reminder runs.

One run resolves the current slot and, for every user with an active
WhatsApp config, picks the most urgent objective, builds the slot message
and sends it.

Supports:
- dry_run mode: logs what would be sent without sending or persisting
- Idempotency: a Reminder row is claimed under a unique (user, slot, day)
  constraint before sending, so concurrent runs cannot double-send
- forced slots: bypass the once-per-day rule for manual testing
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from django.contrib.auth.models import AbstractUser
from django.db import DatabaseError
from django.utils import timezone

from objectives.context import load_day_context
from objectives.models import Objective
from objectives.urgency import rank_objectives, select_objective
from objectives.utils import local_now, local_today
from . import kapso
from .llm import HISTORY_SIZE, personalize
from .messages import SlotMessage, build_slot_message
from .models import Reminder, WhatsAppConfig
from .slots import Slot, get_slot, resolve_slot

import logging
logger = logging.getLogger(__name__)

SENT = 'sent'
SKIPPED = 'skipped'
FAILED = 'failed'
DRY_RUN = 'dry_run'


@dataclass
class UserRunResult:
    user_id: int
    status: str
    reason: str = ''
    objective_id: Optional[int] = None
    reminder_id: Optional[int] = None
    message_id: Optional[str] = None
    message: str = ''

    def to_dict(self) -> dict:
        return {
            'user_id': self.user_id,
            'status': self.status,
            'reason': self.reason,
            'objective_id': self.objective_id,
            'reminder_id': self.reminder_id,
            'message_id': self.message_id,
        }


@dataclass
class RunResult:
    slot: Optional[str]
    local_time: str
    forced: bool = False
    dry_run: bool = False
    skipped_reason: str = ''
    resumed_objectives: int = 0
    results: List[UserRunResult] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def sent(self) -> int:
        return self._count(SENT)

    @property
    def failed(self) -> int:
        return self._count(FAILED)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict:
        data = {
            'success': self.success,
            'slot': self.slot,
            'local_time': self.local_time,
            'forced': self.forced,
            'dry_run': self.dry_run,
            'sent': self.sent,
            'failed': self.failed,
            'skipped': self._count(SKIPPED),
            'resumed_objectives': self.resumed_objectives,
            'results': [r.to_dict() for r in self.results],
        }
        if self.skipped_reason:
            data['skipped'] = True
            data['reason'] = self.skipped_reason
        return data


def record_sent(
    reminder: Reminder,
    message: SlotMessage,
    message_id: Optional[str],
    now: datetime,
    objective: Optional[Objective] = None,
) -> Reminder:
    """
    Store what was sent on the ledger row and expire the user's older open reminders.
    """
    reminder.objective = objective or message.objective
    reminder.checkin = message.checkin
    reminder.message_content = message.text
    reminder.message_style = message.style
    reminder.step_title = message.step_title
    reminder.step_description = message.step_description
    reminder.response_options = message.response_options
    reminder.kapso_message_id = message_id or ''
    reminder.status = Reminder.Status.SENT
    reminder.sent_at = now
    reminder.save()
    Reminder.objects.expire_open(reminder.user, keep=reminder)
    return reminder


def build_reminder_for_user(user: AbstractUser, slot: Slot, now: datetime) -> tuple[Optional[SlotMessage], str]:
    """
    Build the message a user should get for a slot.

    Returns:
        (message, '') or (None, reason the user is skipped)
    """
    today = local_today(now)
    day = load_day_context(user, now)
    if not day.objectives:
        return None, 'no_active_objectives'

    selected = select_objective(
        day.objectives,
        now,
        slot_index=slot.index,
        already_pushed=Reminder.objects.pushed_objective_ids(user, today),
    )
    message = build_slot_message(slot.slot_type, selected.context, day)
    if message is None:
        return None, 'progress_today'

    message = personalize(
        message,
        recent_messages=Reminder.objects.recent_messages(user, HISTORY_SIZE),
        recent_styles=Reminder.objects.recent_styles(user),
    )
    return message, ''


def send_slot_reminder(
    config: WhatsAppConfig,
    slot: Slot,
    now: datetime,
    forced: bool = False,
    dry_run: bool = False,
) -> UserRunResult:
    """
    Send one slot reminder to one user if it is due.

    Args:
        config: the user's WhatsApp config
        slot: slot being processed
        now: instant of the run
        forced: ignore the once-per-day rule
        dry_run: if True, log what would be sent without sending or persisting

    Returns:
        UserRunResult describing what happened
    """
    user = config.user
    today = local_today(now)

    if not forced and Reminder.objects.was_sent(user, slot.slot_type, today):
        logger.debug(f"{slot.slot_type} already sent to user {user.pk} on {today}")
        return UserRunResult(user_id=user.pk, status=SKIPPED, reason='already_sent')

    message, reason = build_reminder_for_user(user, slot, now)
    if message is None:
        logger.debug(f"Skipping {slot.slot_type} for user {user.pk}: {reason}")
        return UserRunResult(user_id=user.pk, status=SKIPPED, reason=reason)

    objective_id = message.objective.pk if message.objective else None

    # Dry run: log and exit without sending or persisting
    if dry_run:
        logger.info(f"[DRY RUN] Would send {slot.slot_type} to {config.phone_number}: {message.text!r}")
        return UserRunResult(
            user_id=user.pk,
            status=DRY_RUN,
            objective_id=objective_id,
            message=message.text,
        )

    reminder = Reminder.objects.claim(user, slot.slot_type, today, forced=forced)
    if reminder is None:
        logger.info(f"{slot.slot_type} for user {user.pk} already claimed by another run")
        return UserRunResult(user_id=user.pk, status=SKIPPED, reason='already_sent')

    result = kapso.send_whatsapp_message(config.phone_number, message.text)
    if not result.success:
        reminder.delete()
        logger.error(f"Failed to send {slot.slot_type} to user {user.pk}: {result.error}")
        return UserRunResult(
            user_id=user.pk,
            status=FAILED,
            reason=result.error or 'send_failed',
            objective_id=objective_id,
        )

    try:
        record_sent(reminder, message, result.message_id, now)
    except DatabaseError as e:
        # The message is already out; losing the ledger details is not worth failing the run.
        logger.error(f"Sent {slot.slot_type} to user {user.pk} but could not record it: {e}", exc_info=True)

    logger.info(f"Sent {slot.slot_type} to user {user.pk} about objective {objective_id}")
    return UserRunResult(
        user_id=user.pk,
        status=SENT,
        objective_id=objective_id,
        reminder_id=reminder.pk,
        message_id=result.message_id,
        message=message.text,
    )


def run_reminders(
    now: datetime,
    forced_slot: Optional[str] = None,
    user_id: Optional[int] = None,
    dry_run: bool = False,
) -> RunResult:
    """
    Run the reminder slot for every active WhatsApp user.

    Args:
        now: instant of the run (the only clock the engine reads)
        forced_slot: slot name to send regardless of the time and of what was already sent
        user_id: restrict the run to one user
        dry_run: log what would be sent without sending or persisting

    Raises:
        ValueError: forced_slot is not a known slot
    """
    forced = bool(forced_slot)
    slot = get_slot(forced_slot) if forced else resolve_slot(now)
    run = RunResult(
        slot=slot.slot_type if slot else None,
        local_time=local_now(now).strftime('%Y-%m-%d %H:%M'),
        forced=forced,
        dry_run=dry_run,
    )

    if not dry_run and not kapso.is_configured():
        logger.warning("KAPSO_API_KEY not configured, skipping reminder run")
        run.skipped_reason = 'KAPSO_API_KEY not configured'
        return run

    if not dry_run:
        run.resumed_objectives = Objective.objects.resume_due(local_today(now))

    if slot is None:
        logger.info(f"No reminder slot at {run.local_time}")
        run.skipped_reason = 'No slot scheduled at this time'
        return run

    configs = WhatsAppConfig.objects.filter(is_active=True).select_related('user')
    if user_id is not None:
        configs = configs.filter(user_id=user_id)

    logger.info(f"Processing {slot.slot_type} for {configs.count()} WhatsApp user(s)")

    for config in configs:
        run.results.append(send_slot_reminder(config, slot, now, forced=forced, dry_run=dry_run))

    logger.info(
        f"{slot.slot_type} run finished: {run.sent} sent, {run.failed} failed, "
        f"{len(run.results) - run.sent - run.failed} skipped"
    )
    return run


def run_scheduled_reminders() -> dict:
    """
    Django Q entry point for the reminder schedule.

    Raises when any send failed so the task shows up as failed.
    """
    run = run_reminders(timezone.now())
    if not run.success:
        raise RuntimeError(f"{run.failed} WhatsApp reminder(s) failed for slot {run.slot}")
    return run.to_dict()


def preview_ranking(user: AbstractUser, now: datetime, slot: Optional[Slot] = None) -> List[dict]:
    """Urgency ranking the next run would use for a user, without side effects."""
    day = load_day_context(user, now)
    slot_index = slot.index if slot else 0
    return [ranked.to_dict() for ranked in rank_objectives(day.objectives, now, slot_index)]
