"""Match an extracted appointment intent against a doctor's bookings."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from health_agent.config import settings
from health_agent.errors import InvalidInput, PastDateRequested
from health_agent.models import (
    AppointmentIntent,
    AvailabilitySlot,
    Booking,
    BookingStatus,
    Doctor,
    Reconciliation,
)
from health_agent.pipeline.normalize import parse_time

logger = logging.getLogger(__name__)

BLOCKING_STATUSES = {BookingStatus.CONFIRMED, BookingStatus.PENDING}
_TITLE_RE = re.compile(r"^(?:dr|doctor)\.?\s+", re.IGNORECASE)

MISSING_DATE_ADVISORY = "Please tell me which date you would like the appointment on."
NO_SLOTS_ADVISORY = "No free slots remain on that date; please choose another day."

Interval = Tuple[datetime, datetime]


def _config_time(value: Optional[str], fallback: str) -> time:
    parsed = parse_time(value or fallback)
    if parsed is None:
        raise InvalidInput(f"Invalid working hour '{value}'.")
    return parsed


def working_window(day: date, start: Optional[str] = None, end: Optional[str] = None) -> Interval:
    opens = datetime.combine(day, _config_time(start, settings.workday_start))
    closes = datetime.combine(day, _config_time(end, settings.workday_end))
    if closes <= opens:
        raise InvalidInput("Working window must end after it starts.")
    return opens, closes


def busy_intervals(day: date, bookings: Iterable[Booking], slot: timedelta) -> List[Interval]:
    """Intervals blocked by confirmed or pending bookings, sorted by start.

    A booking without an end time blocks one slot.
    """
    busy: List[Interval] = []
    for booking in bookings:
        if booking.status not in BLOCKING_STATUSES:
            continue
        start = datetime.combine(day, booking.start)
        end = datetime.combine(day, booking.end) if booking.end else start + slot
        if end > start:
            busy.append((start, end))
    return sorted(busy)


def free_windows(window: Interval, busy: Sequence[Interval]) -> List[Interval]:
    opens, closes = window
    cursor = opens
    windows: List[Interval] = []
    for start, end in sorted(busy):
        if end <= cursor:
            continue
        if start > cursor:
            windows.append((cursor, min(start, closes)))
        cursor = max(cursor, end)
        if cursor >= closes:
            break
    if cursor < closes:
        windows.append((cursor, closes))
    return [(s, e) for s, e in windows if e > s]


def cut_slots(windows: Iterable[Interval], slot: timedelta) -> List[Interval]:
    slots: List[Interval] = []
    for start, end in windows:
        cursor = start
        while cursor + slot <= end:
            slots.append((cursor, cursor + slot))
            cursor += slot
    return slots


def _overlaps(interval: Interval, busy: Sequence[Interval]) -> bool:
    start, end = interval
    return any(start < b_end and b_start < end for b_start, b_end in busy)


def reconcile(
    intent: AppointmentIntent,
    bookings: Iterable[Booking] = (),
    reference_time: Optional[datetime] = None,
    *,
    workday_start: Optional[str] = None,
    workday_end: Optional[str] = None,
    slot_minutes: Optional[int] = None,
) -> Reconciliation:
    """Offer the free slots on the intent's date.

    Slots are cut from each contiguous free window at a fixed size aligned to
    the window start. Past dates raise ``PastDateRequested``; a missing date
    yields no slots and an advisory.
    """

    # Bookings carry wall-clock times, so compare against naive local time
    now = (reference_time or datetime.now()).replace(tzinfo=None)
    if intent.date is None:
        return Reconciliation(advisory=MISSING_DATE_ADVISORY)
    day = intent.date
    if day < now.date():
        raise PastDateRequested(day)

    minutes = slot_minutes if slot_minutes is not None else settings.slot_minutes
    if minutes <= 0:
        raise InvalidInput("Slot length must be positive.")
    slot = timedelta(minutes=minutes)

    window = working_window(day, workday_start, workday_end)
    busy = busy_intervals(day, bookings, slot)
    candidates = cut_slots(free_windows(window, busy), slot)
    if day == now.date():
        candidates = [(s, e) for s, e in candidates if s >= now]

    if intent.time_range is not None:
        lower = datetime.combine(day, intent.time_range.start)
        upper = datetime.combine(day, intent.time_range.end)
        candidates = [(s, e) for s, e in candidates if s >= lower and e <= upper]

    requested_available: Optional[bool] = None
    if intent.time is not None:
        requested = datetime.combine(day, intent.time)
        wanted = (requested, requested + slot)
        requested_available = (
            window[0] <= wanted[0]
            and wanted[1] <= window[1]
            and not (day == now.date() and requested < now)
            and not _overlaps(wanted, busy)
        )

    slots = [AvailabilitySlot(date=day, start=s.time(), end=e.time()) for s, e in candidates]
    logger.debug("Reconciled %s: %d free slots", day.isoformat(), len(slots))
    return Reconciliation(
        date=day,
        slots=slots,
        advisory=None if slots else NO_SLOTS_ADVISORY,
        requested_time_available=requested_available,
    )


def find_doctor(name: Optional[str], doctors: Iterable[Doctor]) -> Optional[Doctor]:
    """First active doctor whose name contains ``name``, ignoring case."""
    if not name or not name.strip():
        return None
    needle = _TITLE_RE.sub("", name.strip()).lower()
    for doctor in doctors:
        if doctor.is_active and needle in doctor.name.lower():
            return doctor
    return None
