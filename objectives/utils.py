from datetime import date, datetime, tzinfo

import pytz
from django.conf import settings


def get_local_tz() -> tzinfo:
    """
    Get the fixed-offset timezone every reminder rule is evaluated in.

    Returns:
        pytz FixedOffset built from VICU_UTC_OFFSET_HOURS (Lima, UTC-5, by default)
    """
    return pytz.FixedOffset(settings.VICU_UTC_OFFSET_HOURS * 60)


def local_now(now: datetime) -> datetime:
    """Convert an aware instant to local time."""
    return now.astimezone(get_local_tz())


def local_today(now: datetime) -> date:
    """
    Get the local calendar day for an instant.

    Args:
        now: timezone-aware datetime (usually timezone.now() from the caller)

    Returns:
        datetime.date: the calendar day in the local offset
    """
    return local_now(now).date()


def local_midnight(now: datetime) -> datetime:
    """Start of the local day containing `now`, as an aware datetime."""
    return local_now(now).replace(hour=0, minute=0, second=0, microsecond=0)


def days_between(earlier: datetime, now: datetime) -> int:
    """Whole local calendar days from `earlier` to `now`, never negative."""
    return max(0, (local_today(now) - local_today(earlier)).days)
