"""
Waitlist queue rules.

Entries are ordered by priority (highest first), then by arrival, then by
id, so two entries never compare equal. State transitions:

    waiting -> offered -> accepted | declined
    waiting -> expired            (once expires_at has passed)

All functions here are pure: they take a snapshot of entries and return
new ``WaitlistEntryView`` values; persisting them is the store's job.
"""

from dataclasses import replace
from datetime import date, datetime, time
from typing import Iterable, List, Optional

from .domain import CustomerView, WaitlistEntryView, WaitlistStatus
from .errors import InvalidState
from .timeutil import end_of_day, parse_time

LARGE_PARTY_STEP = 4
VIP_BONUS = 5


def compute_priority(party_size: int, customer: Optional[CustomerView] = None, override: Optional[int] = None) -> int:
    if override is not None:
        return override
    priority = party_size // LARGE_PARTY_STEP
    if customer is not None and customer.is_vip:
        priority += VIP_BONUS
    return priority


def default_expiry(day: date) -> datetime:
    """Entries lapse at the end of the day they are waiting for"""
    return end_of_day(day)


def ordered(entries: Iterable[WaitlistEntryView]) -> List[WaitlistEntryView]:
    return sorted(entries, key=lambda e: e.sort_key)


def _hour(value) -> int:
    if isinstance(value, time):
        return value.hour
    return parse_time(value).hour


def is_eligible(
    entry: WaitlistEntryView,
    table_capacity: int,
    day: date,
    available_time,
    now: datetime,
    area_id: Optional[int] = None,
    hour_tolerance: int = 2,
) -> bool:
    if entry.status != WaitlistStatus.WAITING.value:
        return False
    if entry.expires_at <= now:
        return False
    if entry.party_size > table_capacity:
        return False
    if entry.date != day:
        return False
    if entry.area_id is not None and area_id is not None and entry.area_id != area_id:
        return False
    if entry.preferred_time is not None:
        if abs(_hour(entry.preferred_time) - _hour(available_time)) > hour_tolerance:
            return False
    return True


def next_eligible(
    entries: Iterable[WaitlistEntryView],
    table_capacity: int,
    day: date,
    available_time,
    now: datetime,
    area_id: Optional[int] = None,
    hour_tolerance: int = 2,
) -> Optional[WaitlistEntryView]:
    """Head of the queue among entries that could take this table, or None"""
    # Snapshot first so an entry expiring mid-scan is judged against one ``now``
    snapshot = list(entries)
    candidates = [
        e for e in snapshot
        if is_eligible(e, table_capacity, day, available_time, now, area_id, hour_tolerance)
    ]
    if not candidates:
        return None
    return ordered(candidates)[0]


def overdue(entries: Iterable[WaitlistEntryView], now: datetime) -> List[WaitlistEntryView]:
    return [e for e in entries if e.status == WaitlistStatus.WAITING.value and e.expires_at <= now]


def expire(entry: WaitlistEntryView) -> WaitlistEntryView:
    if entry.status != WaitlistStatus.WAITING.value:
        return entry
    return replace(entry, status=WaitlistStatus.EXPIRED.value)


def offer(entry: WaitlistEntryView, table_id: int, now: datetime) -> WaitlistEntryView:
    if entry.status != WaitlistStatus.WAITING.value:
        raise InvalidState(f"Waitlist entry {entry.id} is {entry.status}, not waiting")
    if entry.expires_at <= now:
        raise InvalidState(f"Waitlist entry {entry.id} expired at {entry.expires_at.isoformat()}")
    return replace(entry, status=WaitlistStatus.OFFERED.value, offered_at=now, offered_table_id=table_id)


def accept(entry: WaitlistEntryView) -> WaitlistEntryView:
    if entry.status != WaitlistStatus.OFFERED.value:
        raise InvalidState(f"Waitlist entry {entry.id} is {entry.status}, not offered")
    return replace(entry, status=WaitlistStatus.ACCEPTED.value)


def decline(entry: WaitlistEntryView) -> WaitlistEntryView:
    if entry.status != WaitlistStatus.OFFERED.value:
        raise InvalidState(f"Waitlist entry {entry.id} is {entry.status}, not offered")
    return replace(entry, status=WaitlistStatus.DECLINED.value)


def status_counts(entries: Iterable[WaitlistEntryView]) -> dict:
    counts = {status.value: 0 for status in WaitlistStatus}
    total = 0
    for entry in entries:
        counts[entry.status] = counts.get(entry.status, 0) + 1
        total += 1
    counts["total"] = total
    return counts
