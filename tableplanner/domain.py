"""
Read-only snapshots the scheduling core works on.

The store adapters build these from ORM rows; the pure components
(conflicts, availability, scoring, combiner, suggestions, waitlist) never
see a database session.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple


class TableShape(str, Enum):
    ROUND = "round"
    SQUARE = "square"
    RECTANGLE = "rectangle"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Only these block the table for their window
ACTIVE_STATUSES = frozenset(
    {ReservationStatus.PENDING.value, ReservationStatus.CONFIRMED.value, ReservationStatus.SEATED.value}
)


class WaitlistStatus(str, Enum):
    WAITING = "waiting"
    OFFERED = "offered"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class MaintenanceStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


BLOCKING_MAINTENANCE = frozenset({MaintenanceStatus.SCHEDULED.value, MaintenanceStatus.IN_PROGRESS.value})


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end) on a calendar date"""

    start: datetime
    end: datetime

    @classmethod
    def from_request(cls, day: date, at: time, duration_minutes: int) -> "TimeWindow":
        start = datetime.combine(day, at)
        return cls(start=start, end=start + timedelta(minutes=duration_minutes))

    @property
    def date(self) -> date:
        return self.start.date()

    def overlaps(self, other: "TimeWindow") -> bool:
        # Touching endpoints do not overlap
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class AreaView:
    id: int
    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class TableView:
    id: int
    area_id: int
    capacity: int
    min_capacity: int = 1
    shape: str = TableShape.SQUARE.value
    accessible: bool = False
    active: bool = True
    number: str = ""
    area_name: str = ""

    def fits(self, party_size: int) -> bool:
        return self.min_capacity <= party_size <= self.capacity


@dataclass(frozen=True)
class ReservationView:
    id: int
    table_ids: Tuple[int, ...]
    window: TimeWindow
    party_size: int
    status: str = ReservationStatus.CONFIRMED.value

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def occupies(self, table_id: int) -> bool:
        return table_id in self.table_ids


@dataclass(frozen=True)
class MaintenanceWindow:
    id: int
    table_id: int
    start: datetime
    end: Optional[datetime] = None
    status: str = MaintenanceStatus.SCHEDULED.value

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_MAINTENANCE

    def blocks(self, window: TimeWindow) -> bool:
        if not self.is_blocking:
            return False
        if self.end is None:
            # Open-ended work blocks everything from its start onward
            return window.end > self.start
        return window.overlaps(TimeWindow(self.start, self.end))


@dataclass(frozen=True)
class CustomerView:
    id: int
    name: str = ""
    email: Optional[str] = None
    is_vip: bool = False
    reservation_count: int = 0
    no_show_count: int = 0

    @property
    def no_show_rate(self) -> float:
        """Percentage of this customer's reservations that ended as no-shows"""
        if self.reservation_count == 0:
            return 0.0
        return self.no_show_count / self.reservation_count * 100

    def is_no_show_risk(self, threshold: float = 20) -> bool:
        return self.no_show_rate >= threshold


@dataclass(frozen=True)
class WaitlistEntryView:
    id: int
    customer_id: int
    date: date
    party_size: int
    created_at: datetime
    expires_at: datetime
    priority: int = 0
    status: str = WaitlistStatus.WAITING.value
    preferred_time: Optional[time] = None
    area_id: Optional[int] = None
    offered_at: Optional[datetime] = None
    offered_table_id: Optional[int] = None

    @property
    def sort_key(self) -> tuple:
        # priority DESC, createdAt ASC, id ASC
        return (-self.priority, self.created_at, self.id)


@dataclass
class ScoredTable:
    table: TableView
    score: float
    breakdown: Dict[str, float] = field(default_factory=dict)

    @property
    def sort_key(self) -> tuple:
        return (-self.score, self.table.capacity, self.table.id)


@dataclass
class AreaAvailability:
    area: AreaView
    tables: List[TableView]

    @property
    def available_count(self) -> int:
        return len(self.tables)

    @property
    def total_capacity(self) -> int:
        return sum(t.capacity for t in self.tables)


@dataclass
class AvailabilityStats:
    total_available: int
    total_tables: int
    total_capacity: int
    areas_available: int
    fitting_available: int


@dataclass
class AvailabilityResult:
    window: TimeWindow
    party_size: int
    area_availability: List[AreaAvailability]
    available_tables: List[TableView]
    stats: AvailabilityStats


@dataclass
class Combination:
    tables: List[TableView]
    party_size: int

    @property
    def total_capacity(self) -> int:
        return sum(t.capacity for t in self.tables)

    @property
    def wasted_capacity(self) -> int:
        return self.total_capacity - self.party_size

    @property
    def table_ids(self) -> Tuple[int, ...]:
        return tuple(t.id for t in self.tables)


@dataclass
class TimeSuggestion:
    time: str
    available: bool
    tables_count: int
    error: Optional[str] = None


@dataclass
class AssignmentResult:
    assigned: bool
    table: Optional[TableView] = None
    score: Optional[float] = None
    breakdown: Dict[str, float] = field(default_factory=dict)
    alternatives: List[ScoredTable] = field(default_factory=list)
    reason: Optional[str] = None
    suggested_times: List[TimeSuggestion] = field(default_factory=list)
    combinations: List[Combination] = field(default_factory=list)
