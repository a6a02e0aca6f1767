from datetime import date as Date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .config import settings
from .domain import ReservationStatus, TableShape
from .errors import InvalidRequest
from .timeutil import format_time, parse_time


class AssignmentRequest(BaseModel):
    """A request to seat a party; drives availability, scoring and suggestions"""

    date: Date
    time: str
    party_size: int = Field(ge=settings.min_party_size, le=settings.max_party_size)
    duration: int = Field(default=settings.default_duration_minutes, gt=0, le=24 * 60)
    # Hard scope: only tables of this area are considered
    area_id: Optional[int] = None
    # Soft preferences
    preferred_area_id: Optional[int] = None
    shape: Optional[TableShape] = None
    location: Optional[str] = None
    accessible: bool = False
    multi_table: bool = False

    class Config:
        frozen = True

    @field_validator("time", mode="before")
    @classmethod
    def _normalize_time(cls, value):
        try:
            return format_time(parse_time(value))
        except InvalidRequest as e:
            raise ValueError(e.message)

    @field_validator("location")
    @classmethod
    def _blank_location(cls, value):
        if value is not None and not value.strip():
            return None
        return value

    @property
    def start_time(self):
        return parse_time(self.time)

    def at(self, time: str) -> "AssignmentRequest":
        return self.model_copy(update={"time": format_time(parse_time(time))})


def validation_messages(error: ValidationError) -> list:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()]


def validate_model(model, **fields):
    """Build a pydantic model, turning validation failures into InvalidRequest"""
    try:
        return model(**fields)
    except ValidationError as e:
        raise InvalidRequest(f"Invalid {model.__name__}", errors=validation_messages(e))


def build_request(**fields) -> AssignmentRequest:
    return validate_model(AssignmentRequest, **fields)


class AreaOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class TableOut(BaseModel):
    id: int
    number: str
    area_id: int
    area_name: str
    capacity: int
    min_capacity: int
    shape: str
    accessible: bool

    class Config:
        from_attributes = True


class AreaAvailabilityOut(BaseModel):
    area: AreaOut
    tables: List[TableOut]
    available_count: int
    total_capacity: int

    class Config:
        from_attributes = True


class AvailabilityStatsOut(BaseModel):
    total_available: int
    total_tables: int
    total_capacity: int
    areas_available: int
    fitting_available: int

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    date: Date
    time: str
    party_size: int
    duration: int
    start_time: datetime
    end_time: datetime
    area_availability: List[AreaAvailabilityOut]
    available_tables: List[TableOut]
    stats: AvailabilityStatsOut


class ScoredTableOut(BaseModel):
    table: TableOut
    score: float
    breakdown: dict

    class Config:
        from_attributes = True


class TimeSuggestionOut(BaseModel):
    time: str
    available: bool
    tables_count: int
    error: Optional[str] = None

    class Config:
        from_attributes = True


class CombinationOut(BaseModel):
    tables: List[TableOut]
    total_capacity: int
    wasted_capacity: int

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    assigned: bool
    table: Optional[TableOut] = None
    score: Optional[float] = None
    breakdown: dict = {}
    alternatives: List[ScoredTableOut] = []
    reason: Optional[str] = None
    suggested_times: List[TimeSuggestionOut] = []
    combinations: List[CombinationOut] = []

    class Config:
        from_attributes = True


class BookingCreate(BaseModel):
    date: Date
    time: str
    party_size: int = Field(ge=settings.min_party_size, le=settings.max_party_size)
    table_ids: List[int] = Field(min_length=1)
    duration: int = Field(default=settings.default_duration_minutes, gt=0, le=24 * 60)
    customer_id: Optional[int] = None
    status: ReservationStatus = ReservationStatus.CONFIRMED
    special_requests: Optional[str] = None

    @field_validator("time", mode="before")
    @classmethod
    def _normalize_time(cls, value):
        try:
            return format_time(parse_time(value))
        except InvalidRequest as e:
            raise ValueError(e.message)


class ReservationOut(BaseModel):
    id: int
    customer_id: Optional[int] = None
    party_size: int
    reservation_date: Date
    start_time: datetime
    end_time: datetime
    status: str
    table_ids: List[int]
    special_requests: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReleaseRequest(BaseModel):
    status: ReservationStatus = ReservationStatus.CANCELLED


class WaitlistCreate(BaseModel):
    customer_id: int
    date: Date
    party_size: int = Field(ge=settings.min_party_size, le=settings.max_party_size)
    preferred_time: Optional[str] = None
    area_id: Optional[int] = None
    priority: Optional[int] = None

    @field_validator("preferred_time", mode="before")
    @classmethod
    def _normalize_time(cls, value):
        if value is None or value == "":
            return None
        try:
            return format_time(parse_time(value))
        except InvalidRequest as e:
            raise ValueError(e.message)


class WaitlistEntryOut(BaseModel):
    id: int
    customer_id: int
    date: Date
    party_size: int
    preferred_time: Optional[str] = None
    area_id: Optional[int] = None
    status: str
    priority: int
    created_at: datetime
    expires_at: datetime
    offered_at: Optional[datetime] = None
    offered_table_id: Optional[int] = None

    class Config:
        from_attributes = True

    @field_validator("preferred_time", mode="before")
    @classmethod
    def _format_time(cls, value):
        if value is None or isinstance(value, str):
            return value
        return format_time(value)


class OfferRequest(BaseModel):
    table_id: int
    date: Date
    available_time: str

    @field_validator("available_time", mode="before")
    @classmethod
    def _normalize_time(cls, value):
        try:
            return format_time(parse_time(value))
        except InvalidRequest as e:
            raise ValueError(e.message)


class ReleaseResponse(BaseModel):
    reservation: ReservationOut
    offered_entry: Optional[WaitlistEntryOut] = None


class WaitlistStatsOut(BaseModel):
    waiting: int = 0
    offered: int = 0
    accepted: int = 0
    declined: int = 0
    expired: int = 0
    total: int = 0


class AutoBookRequest(AssignmentRequest):
    customer_id: Optional[int] = None
    join_waitlist: bool = False

    def assignment(self) -> AssignmentRequest:
        return AssignmentRequest(**self.model_dump(exclude={"customer_id", "join_waitlist"}))


class WindowUpdate(BaseModel):
    time: Optional[str] = None
    duration: Optional[int] = Field(default=None, gt=0, le=24 * 60)
