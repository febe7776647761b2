"""
Management command to send WhatsApp reminders for the current slot.

Meant to run every 30 minutes (django-q2 schedule from setup_reminder_schedules,
or plain cron). Slots already sent today are skipped, so running it more
often is harmless.

Usage:
    python manage.py send_whatsapp_reminders

    # Force a slot for one user, without sending
    python manage.py send_whatsapp_reminders --slot NIGHT_REVIEW --user 42 --dry-run
"""
from typing import Any
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from whatsapp.reminders import DRY_RUN, FAILED, SENT, run_reminders


class Command(BaseCommand):
    help = 'Send WhatsApp reminders for the current slot (run every 30 minutes)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--slot',
            type=str,
            help='Force a slot (MORNING_FOCUS, LATE_MORNING_PUSH, AFTERNOON_MICRO, NIGHT_REVIEW)',
        )
        parser.add_argument(
            '--user',
            type=int,
            help='Only process this user id',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be sent without sending messages',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Send the current slot's reminders."""
        verbosity = options.get('verbosity', 1)
        dry_run = options.get('dry_run', False)

        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN MODE - No messages will be sent'))

        try:
            run = run_reminders(
                timezone.now(),
                forced_slot=options.get('slot'),
                user_id=options.get('user'),
                dry_run=dry_run,
            )
        except ValueError as e:
            raise CommandError(str(e))

        if run.skipped_reason:
            self.stdout.write(self.style.WARNING(f"Skipped: {run.skipped_reason} ({run.local_time})"))
            return

        if verbosity >= 1:
            self.stdout.write(f"Slot {run.slot} at {run.local_time}: {len(run.results)} user(s)")

        for result in run.results:
            if result.status == SENT:
                self.stdout.write(self.style.SUCCESS(f"  ✓ Sent to user {result.user_id}"))
            elif result.status == DRY_RUN:
                self.stdout.write(f"  - Would send to user {result.user_id}:\n{result.message}")
            elif result.status == FAILED:
                self.stderr.write(self.style.ERROR(f"  ✗ Failed for user {result.user_id}: {result.reason}"))
            elif verbosity >= 2:
                self.stdout.write(f"  - Skipped user {result.user_id}: {result.reason}")

        if dry_run:
            self.stdout.write(self.style.WARNING('\nDRY RUN COMPLETE - No messages were sent'))
        elif run.sent > 0:
            self.stdout.write(self.style.SUCCESS(f'\n✓ Successfully sent {run.sent} reminder(s)'))
        elif verbosity >= 1:
            self.stdout.write(self.style.WARNING('No reminders sent'))
