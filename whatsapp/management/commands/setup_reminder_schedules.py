"""
Register the django-q2 schedules that drive reminders.

Usage:
    python manage.py setup_reminder_schedules
"""
from datetime import datetime, time, timedelta
from typing import Any

from django.core.management.base import BaseCommand
from django.utils import timezone
from django_q.models import Schedule

from objectives.utils import get_local_tz, local_now

ASSIGNMENT_REMINDER_HOUR = 10


def next_local_run(now: datetime, hour: int) -> datetime:
    """Next occurrence of `hour`:00 local time."""
    local = local_now(now)
    candidate = datetime.combine(local.date(), time(hour=hour), tzinfo=get_local_tz())
    if candidate <= local:
        candidate += timedelta(days=1)
    return candidate


class Command(BaseCommand):
    help = 'Create or update the django-q2 schedules for WhatsApp and assignment reminders'

    def handle(self, *args: Any, **options: Any) -> None:
        now = timezone.now()

        _, created = Schedule.objects.update_or_create(
            name='whatsapp-reminders',
            defaults={
                'func': 'whatsapp.reminders.run_scheduled_reminders',
                'schedule_type': Schedule.MINUTES,
                'minutes': 30,
                'repeats': -1,
            },
        )
        self.stdout.write(self.style.SUCCESS(
            f"✓ {'Created' if created else 'Updated'} schedule: whatsapp-reminders (every 30 minutes)"
        ))

        _, created = Schedule.objects.update_or_create(
            name='assignment-reminders',
            defaults={
                'func': 'assignments.reminders.run_scheduled_assignment_reminders',
                'schedule_type': Schedule.DAILY,
                'repeats': -1,
                'next_run': next_local_run(now, ASSIGNMENT_REMINDER_HOUR),
            },
        )
        self.stdout.write(self.style.SUCCESS(
            f"✓ {'Created' if created else 'Updated'} schedule: assignment-reminders "
            f"(daily at {ASSIGNMENT_REMINDER_HOUR:02d}:00 local)"
        ))
