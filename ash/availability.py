from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from typing import Any, Dict, Iterable, List

from dateutil import parser as dtparse

from ash.errors import InvalidRangeError


@dataclass(frozen=True)
class Interval:
    """Half-open range [start, end). Works for datetimes or plain numbers."""

    start: Any
    end: Any

    def __post_init__(self):
        if not self.start < self.end:
            raise InvalidRangeError(f"interval start {self.start!r} must be before end {self.end!r}")

    @property
    def length(self):
        return self.end - self.start


# Free slots share the interval shape; the engine guarantees their minimum length.
FreeSlot = Interval


def _positive(duration) -> bool:
    # d - d is the zero of whatever type d is (int, float, timedelta)
    return duration > duration - duration


def compute_free_slots(window_start, window_end, busy: Iterable[Interval], min_duration) -> List[FreeSlot]:
    """
    Return the gaps of [window_start, window_end) not covered by any busy
    interval, keeping only gaps at least min_duration long, in chronological order.

    Busy intervals need not be sorted, may overlap each other and may extend
    past either edge of the window.
    """
    if not window_start < window_end:
        raise InvalidRangeError("window_start must be before window_end")
    if not _positive(min_duration):
        raise InvalidRangeError("min_duration must be positive")

    slots: List[FreeSlot] = []
    cur = window_start
    for block in sorted(busy, key=lambda b: b.start):
        if cur < block.start:
            gap_end = min(block.start, window_end)
            if cur < gap_end and gap_end - cur >= min_duration:
                slots.append(FreeSlot(cur, gap_end))
        cur = max(cur, block.end)

    if cur < window_end and window_end - cur >= min_duration:
        slots.append(FreeSlot(cur, window_end))
    return slots


def is_window_free(start, end, busy: Iterable[Interval]) -> bool:
    """True when no busy interval touches any part of [start, end)."""
    return bool(compute_free_slots(start, end, busy, end - start))


def parse_busy(blocks: Iterable[Dict[str, str]], tz: tzinfo) -> List[Interval]:
    """
    Convert calendar free/busy blocks ({"start": iso, "end": iso}) into intervals.
    Naive timestamps are read in tz; zero-length blocks are dropped.
    """
    busy: List[Interval] = []
    for b in blocks:
        bs = dtparse.isoparse(b["start"])
        be = dtparse.isoparse(b["end"])
        if bs.tzinfo is None: bs = bs.replace(tzinfo=tz)
        if be.tzinfo is None: be = be.replace(tzinfo=tz)
        if bs < be:
            busy.append(Interval(bs, be))
    return busy


def _hhmm(value: str) -> time:
    h, m = map(int, value.split(":"))
    return time(h, m)


def suggest_slots(
    slots: Iterable[FreeSlot],
    tz: tzinfo,
    hours_start: str = "09:00",
    hours_end: str = "17:00",
    limit: int = 5,
    min_duration: timedelta = timedelta(0),
) -> List[FreeSlot]:
    """
    Clip free slots to working hours on each local day they cover and keep the
    first `limit` pieces that are still at least `min_duration` long.
    A slot spanning several days can yield one piece per day.
    """
    hstart, hend = _hhmm(hours_start), _hhmm(hours_end)
    picked: List[FreeSlot] = []
    for slot in slots:
        start, end = slot.start.astimezone(tz), slot.end.astimezone(tz)
        day = start.date()
        while day <= end.date() and len(picked) < limit:
            lo = max(start, datetime.combine(day, hstart, tzinfo=tz))
            hi = min(end, datetime.combine(day, hend, tzinfo=tz))
            if lo < hi and hi - lo >= min_duration:
                picked.append(Interval(lo, hi))
            day += timedelta(days=1)
        if len(picked) >= limit:
            break
    return picked


def slot_to_dict(slot: FreeSlot) -> Dict[str, Any]:
    return {
        "start": slot.start.isoformat(),
        "end": slot.end.isoformat(),
        "duration_minutes": int(slot.length.total_seconds() // 60),
    }
