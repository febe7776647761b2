"""
Management command to follow up with helpers who have not answered.

Meant to run once a day (django-q2 schedule from setup_reminder_schedules).

Usage:
    python manage.py send_assignment_reminders
"""
from typing import Any
from django.core.management.base import BaseCommand
from django.utils import timezone

from assignments.reminders import send_assignment_reminders


class Command(BaseCommand):
    help = 'Send day 2/5 reminders to helpers and expire day 7 assignments'

    def handle(self, *args: Any, **options: Any) -> None:
        run = send_assignment_reminders(timezone.now())

        self.stdout.write(
            f"Day-2 reminders: {run.first_reminders}, day-5 reminders: {run.final_reminders}, "
            f"expired: {run.expired}"
        )
        for error in run.errors:
            self.stderr.write(self.style.ERROR(f"  ✗ {error}"))

        if run.success:
            self.stdout.write(self.style.SUCCESS('✓ Assignment reminders done'))
        else:
            self.stdout.write(self.style.WARNING(f'Finished with {len(run.errors)} error(s)'))
