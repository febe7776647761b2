"""
Reminder slot schedule.

Four fixed slots per day in the local offset. Sundays are silent and
Saturdays only get the morning slot. resolve_slot() is a pure function of
the instant it is given.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Tuple

from objectives.utils import local_now
from .models import SlotType

SATURDAY = 5
SUNDAY = 6


@dataclass(frozen=True)
class Slot:
    slot_type: str
    hour: int
    minute: int
    index: int
    on_saturday: bool = False

    @property
    def time_label(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    def minutes(self) -> int:
        return self.hour * 60 + self.minute


SCHEDULE: Tuple[Slot, ...] = (
    Slot(SlotType.MORNING_FOCUS, 8, 0, 0, on_saturday=True),
    Slot(SlotType.LATE_MORNING_PUSH, 11, 30, 1),
    Slot(SlotType.AFTERNOON_MICRO, 16, 30, 2),
    Slot(SlotType.NIGHT_REVIEW, 21, 30, 3),
)
SLOTS_BY_TYPE = {slot.slot_type: slot for slot in SCHEDULE}


def get_slots_for_day(day: date) -> Tuple[Slot, ...]:
    weekday = day.weekday()
    if weekday == SUNDAY:
        return ()
    if weekday == SATURDAY:
        return tuple(slot for slot in SCHEDULE if slot.on_saturday)
    return SCHEDULE


def resolve_slot(now: datetime) -> Optional[Slot]:
    """
    Latest slot of the local day whose time has been reached.

    Returns None before the first slot, and on days without slots.
    """
    local = local_now(now)
    current_minutes = local.hour * 60 + local.minute
    current = None
    for slot in get_slots_for_day(local.date()):
        if slot.minutes() <= current_minutes:
            current = slot
    return current


def get_slot(slot_type: str) -> Slot:
    """
    Look up a slot by name (case-insensitive).

    Raises:
        ValueError: for names outside the schedule
    """
    slot = SLOTS_BY_TYPE.get((slot_type or '').strip().upper())
    if slot is None:
        valid = ', '.join(SLOTS_BY_TYPE)
        raise ValueError(f"Unknown slot '{slot_type}'. Valid slots: {valid}")
    return slot


def get_schedule() -> List[dict]:
    return [
        {
            'slot': slot.slot_type,
            'time': slot.time_label,
            'saturday': slot.on_saturday,
            'sunday': False,
        }
        for slot in SCHEDULE
    ]
