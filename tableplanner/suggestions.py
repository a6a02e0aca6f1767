"""Alternate-time search around a requested slot, and best openings in a range."""

import logging
from typing import Callable, List, Optional

from .domain import AvailabilityResult, TimeSuggestion
from .errors import DeadlineExceeded, SchedulingError
from .schemas import AssignmentRequest
from .timeutil import Deadline, format_time, from_minutes, parse_time, to_minutes

logger = logging.getLogger(__name__)

AvailabilityFn = Callable[[AssignmentRequest], AvailabilityResult]

MINUTES_PER_DAY = 24 * 60


def candidate_times(requested: str, window_minutes: int = 120, step_minutes: int = 30) -> List[str]:
    """Times from requested-window to requested+window, same day, the requested time excluded"""
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")
    origin = to_minutes(parse_time(requested))
    first = -window_minutes
    if origin + first < 0:
        # First step on the grid at or after midnight
        first += (-(origin + first) + step_minutes - 1) // step_minutes * step_minutes
    last = min(window_minutes, MINUTES_PER_DAY - 1 - origin)
    return [
        format_time(from_minutes(origin + offset))
        for offset in range(first, last + 1, step_minutes)
        if offset != 0
    ]


def range_times(start: str, end: str, step_minutes: int = 30) -> List[str]:
    first, last = to_minutes(parse_time(start)), to_minutes(parse_time(end))
    return [format_time(from_minutes(m)) for m in range(first, last + 1, step_minutes)]


def _probe(request: AssignmentRequest, at: str, availability: AvailabilityFn) -> TimeSuggestion:
    try:
        result = availability(request.at(at))
    except DeadlineExceeded:
        raise
    except SchedulingError as e:
        logger.debug("Availability probe at %s failed: %s", at, e.message)
        return TimeSuggestion(time=at, available=False, tables_count=0, error=e.message)
    count = result.stats.fitting_available
    return TimeSuggestion(time=at, available=count > 0, tables_count=count)


def suggest_times(
    request: AssignmentRequest,
    availability: AvailabilityFn,
    window_minutes: int = 120,
    step_minutes: int = 30,
    deadline: Optional[Deadline] = None,
) -> List[TimeSuggestion]:
    """Probe every candidate time; available first, then closest to the request"""
    deadline = deadline or Deadline()
    origin = to_minutes(request.start_time)
    results = []
    for at in candidate_times(request.time, window_minutes, step_minutes):
        deadline.check("alternative time search")
        results.append(_probe(request, at, availability))
    return sorted(
        results,
        key=lambda s: (not s.available, abs(to_minutes(parse_time(s.time)) - origin), s.time),
    )


def best_times(
    request: AssignmentRequest,
    availability: AvailabilityFn,
    start: str = "18:00",
    end: str = "23:00",
    step_minutes: int = 30,
    deadline: Optional[Deadline] = None,
) -> List[TimeSuggestion]:
    """Open slots in a fixed daily range, most free tables first.

    Slots with nothing free are dropped; slots whose probe failed are kept
    with their error so the caller can tell them apart.
    """
    deadline = deadline or Deadline()
    results = []
    for at in range_times(start, end, step_minutes):
        deadline.check("best time search")
        suggestion = _probe(request, at, availability)
        if suggestion.available or suggestion.error:
            results.append(suggestion)
    return sorted(results, key=lambda s: (-s.tables_count, s.time))
