"""
Follow-ups for helpers who have not answered.

Counted from the day the assignment was created:
- Day 2: first reminder to the helper
- Day 5: final reminder to the helper + heads-up to the owner
- Day 7: assignment expires + owner is told

Only pending assignments whose helper was notified are considered. A
reminder that fails to send leaves reminder_count untouched, so the next
run retries it.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from django.utils import timezone

from .models import Assignment
from .services import (
    helper_reminder_message,
    owner_expired_message,
    owner_no_answer_message,
    send_to_helper,
    send_to_owner,
)

import logging
logger = logging.getLogger(__name__)

FIRST_REMINDER_DAY = 2
FINAL_REMINDER_DAY = 5
EXPIRY_DAY = 7


@dataclass
class AssignmentReminderRun:
    first_reminders: int = 0
    final_reminders: int = 0
    expired: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'day2_reminders': self.first_reminders,
            'day5_reminders': self.final_reminders,
            'expired': self.expired,
            'errors': self.errors,
        }


def _send_reminder(assignment: Assignment, now: datetime, final: bool) -> bool:
    result = send_to_helper(assignment, helper_reminder_message(assignment, final=final))
    if not result.success:
        logger.warning(f"Reminder for assignment {assignment.pk} failed: {result.error}")
        return False
    assignment.reminder_count += 1
    assignment.last_reminder_at = now
    assignment.save(update_fields=['reminder_count', 'last_reminder_at'])
    return True


def process_assignment(assignment: Assignment, now: datetime, run: AssignmentReminderRun) -> None:
    days = assignment.days_since_created(now)

    if days >= FIRST_REMINDER_DAY and assignment.reminder_count == 0:
        if _send_reminder(assignment, now, final=False):
            run.first_reminders += 1
        else:
            run.errors.append(f"Assignment {assignment.pk}: first reminder failed")

    elif days >= FINAL_REMINDER_DAY and assignment.reminder_count == 1:
        if _send_reminder(assignment, now, final=True):
            run.final_reminders += 1
        else:
            run.errors.append(f"Assignment {assignment.pk}: final reminder failed")
        send_to_owner(assignment, owner_no_answer_message(assignment))

    elif days >= EXPIRY_DAY and assignment.reminder_count >= 2:
        assignment.mark_expired()
        run.expired += 1
        logger.info(f"Assignment {assignment.pk} expired without answer")
        send_to_owner(assignment, owner_expired_message(assignment))


def send_assignment_reminders(now: datetime) -> AssignmentReminderRun:
    """
    Run the day 2/5/7 follow-ups for every waiting assignment.

    Args:
        now: instant of the run
    """
    run = AssignmentReminderRun()
    assignments = Assignment.objects.awaiting_helper().select_related('owner', 'checkin__objective')

    for assignment in assignments:
        try:
            process_assignment(assignment, now, run)
        except Exception as e:
            logger.error(f"Error processing assignment {assignment.pk}: {e}", exc_info=True)
            run.errors.append(f"Assignment {assignment.pk}: {e}")

    logger.info(
        f"Assignment reminders: {run.first_reminders} day-2, {run.final_reminders} day-5, "
        f"{run.expired} expired, {len(run.errors)} error(s)"
    )
    return run


def run_scheduled_assignment_reminders() -> dict:
    """Django Q entry point; raises so failed runs are visible in the admin."""
    run = send_assignment_reminders(timezone.now())
    if not run.success:
        raise RuntimeError(f"Assignment reminders finished with errors: {'; '.join(run.errors)}")
    return run.to_dict()
