import logging
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .cache import AvailabilityCache
from .config import settings
from .database import SessionLocal, get_db, init_db
from .errors import (
    ConflictDetected,
    DeadlineExceeded,
    InvalidRequest,
    InvalidState,
    NoAvailability,
    NotFound,
    SchedulingError,
)
from .locks import TableLocks
from .notify import fire_and_forget, send_waitlist_offer
from .reservation_service import ReservationService
from .scheduler import WaitlistExpiryScheduler
from .schemas import (
    AreaAvailabilityOut,
    AssignmentRequest,
    AssignmentResponse,
    AutoBookRequest,
    AvailabilityResponse,
    AvailabilityStatsOut,
    BookingCreate,
    CombinationOut,
    OfferRequest,
    ReleaseRequest,
    ReleaseResponse,
    ReservationOut,
    ScoredTableOut,
    TableOut,
    TimeSuggestionOut,
    WaitlistCreate,
    WaitlistEntryOut,
    WaitlistStatsOut,
    WindowUpdate,
    build_request,
    validation_messages,
)
from .timeutil import Deadline, parse_date

logger = logging.getLogger(__name__)

# Seconds a single alternative-time / combination scan may run
SCAN_DEADLINE_SECONDS = 10

ERROR_STATUS = {
    InvalidRequest: 400,
    NotFound: 404,
    ConflictDetected: 409,
    InvalidState: 409,
    NoAvailability: 409,
    DeadlineExceeded: 504,
}

app = FastAPI(
    title="Table Planner",
    description="Conflict-free table assignment, availability search and waitlist management",
    version="1.0.0"
)


def _send_offer_in_background(customer, entry, table):
    fire_and_forget(send_waitlist_offer, customer, entry, table)


# Process-wide collaborators, owned by the app rather than module globals
app.state.locks = TableLocks()
app.state.cache = AvailabilityCache(ttl_seconds=settings.availability_cache_ttl_seconds)
app.state.notifier = _send_offer_in_background if settings.notify_waitlist_offers else None


def _expire_waitlist_job() -> int:
    db = SessionLocal()
    try:
        return ReservationService(db, locks=app.state.locks).expire_waitlist()
    finally:
        db.close()


app.state.expiry_scheduler = WaitlistExpiryScheduler(
    _expire_waitlist_job, interval_seconds=settings.waitlist_expiry_interval_seconds
)


@app.on_event("startup")
async def startup_event():
    """Initialize database and start the waitlist expiry sweep"""
    init_db()
    app.state.expiry_scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    app.state.expiry_scheduler.stop()


def get_service(request: Request, db: Session = Depends(get_db)) -> ReservationService:
    state = request.app.state
    return ReservationService(db, locks=state.locks, cache=state.cache, notifier=state.notifier)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    body = exc.to_dict()
    if isinstance(exc, NoAvailability):
        body["alternatives"] = [ScoredTableOut.model_validate(s).model_dump() for s in exc.alternatives]
        body["suggested_times"] = [TimeSuggestionOut.model_validate(s).model_dump() for s in exc.suggested_times]
        body["combinations"] = [CombinationOut.model_validate(c).model_dump() for c in exc.combinations]
        if exc.waitlist_entry is not None:
            body["waitlist_entry"] = WaitlistEntryOut.model_validate(exc.waitlist_entry).model_dump(mode="json")
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    error = InvalidRequest("Invalid request", errors=validation_messages(exc))
    return JSONResponse(status_code=400, content=error.to_dict())


# Availability and assignment

@app.get("/api/availability", response_model=AvailabilityResponse)
async def check_availability(
    date: str,
    time: str,
    party_size: int,
    duration: int = settings.default_duration_minutes,
    area_id: Optional[int] = None,
    service: ReservationService = Depends(get_service)
):
    """Free tables for a slot, grouped by area (display only; may be cached)"""
    request = build_request(date=date, time=time, party_size=party_size, duration=duration, area_id=area_id)
    result = service.check_availability(request, use_cache=True)
    return AvailabilityResponse(
        date=request.date,
        time=request.time,
        party_size=request.party_size,
        duration=request.duration,
        start_time=result.window.start,
        end_time=result.window.end,
        area_availability=[AreaAvailabilityOut.model_validate(a) for a in result.area_availability],
        available_tables=[TableOut.model_validate(t) for t in result.available_tables],
        stats=AvailabilityStatsOut.model_validate(result.stats),
    )


@app.post("/api/assign", response_model=AssignmentResponse)
async def assign_table(request: AssignmentRequest, service: ReservationService = Depends(get_service)):
    """Rank free tables for a request; never writes"""
    result = service.assign_table(request, deadline=Deadline(SCAN_DEADLINE_SECONDS))
    return AssignmentResponse.model_validate(result)


@app.get("/api/alternative-times", response_model=List[TimeSuggestionOut])
async def get_alternative_times(
    date: str,
    time: str,
    party_size: int,
    duration: int = settings.default_duration_minutes,
    window_minutes: Optional[int] = None,
    service: ReservationService = Depends(get_service)
):
    request = build_request(date=date, time=time, party_size=party_size, duration=duration)
    if window_minutes is not None and window_minutes < 0:
        raise InvalidRequest("window_minutes must not be negative")
    suggestions = service.get_alternative_times(request, window_minutes, deadline=Deadline(SCAN_DEADLINE_SECONDS))
    return [TimeSuggestionOut.model_validate(s) for s in suggestions]


@app.get("/api/best-times", response_model=List[TimeSuggestionOut])
async def get_best_times(
    date: str,
    party_size: int,
    duration: int = settings.default_duration_minutes,
    start: Optional[str] = None,
    end: Optional[str] = None,
    service: ReservationService = Depends(get_service)
):
    request = build_request(
        date=date, time=start or settings.best_times_start, party_size=party_size, duration=duration
    )
    suggestions = service.get_best_times(request, start, end, deadline=Deadline(SCAN_DEADLINE_SECONDS))
    return [TimeSuggestionOut.model_validate(s) for s in suggestions]


@app.post("/api/combinations", response_model=List[CombinationOut])
async def propose_combination(request: AssignmentRequest, service: ReservationService = Depends(get_service)):
    combinations = service.propose_combination(request, deadline=Deadline(SCAN_DEADLINE_SECONDS))
    return [CombinationOut.model_validate(c) for c in combinations]


# Reservations

@app.post("/api/reservations", response_model=ReservationOut)
async def book_table(data: BookingCreate, service: ReservationService = Depends(get_service)):
    """Commit a booking on explicit tables; 409 if the slot was taken meanwhile"""
    request = build_request(date=data.date, time=data.time, party_size=data.party_size, duration=data.duration)
    reservation = service.book(
        request,
        data.table_ids,
        customer_id=data.customer_id,
        status=data.status.value,
        special_requests=data.special_requests,
    )
    return ReservationOut.model_validate(reservation)


@app.post("/api/reservations/auto", response_model=ReservationOut)
async def auto_book(data: AutoBookRequest, service: ReservationService = Depends(get_service)):
    """Assign the best table (or combination) and book it in one call"""
    reservation, _ = service.auto_book(
        data.assignment(),
        customer_id=data.customer_id,
        join_waitlist=data.join_waitlist,
        deadline=Deadline(SCAN_DEADLINE_SECONDS),
    )
    return ReservationOut.model_validate(reservation)


@app.patch("/api/reservations/{reservation_id}", response_model=ReservationOut)
async def update_reservation_window(
    reservation_id: int, data: WindowUpdate, service: ReservationService = Depends(get_service)
):
    reservation = service.update_window(reservation_id, time=data.time, duration=data.duration)
    return ReservationOut.model_validate(reservation)


@app.post("/api/reservations/{reservation_id}/release", response_model=ReleaseResponse)
async def release_reservation(
    reservation_id: int, data: ReleaseRequest, service: ReservationService = Depends(get_service)
):
    """Cancel, complete or no-show a reservation and offer the table to the waitlist"""
    reservation, offered = service.release(reservation_id, data.status.value)
    return ReleaseResponse(
        reservation=ReservationOut.model_validate(reservation),
        offered_entry=WaitlistEntryOut.model_validate(offered) if offered else None,
    )


# Waitlist

@app.post("/api/waitlist", response_model=WaitlistEntryOut)
async def enqueue_waitlist(data: WaitlistCreate, service: ReservationService = Depends(get_service)):
    entry = service.enqueue_waitlist(
        data.customer_id,
        data.date,
        data.party_size,
        preferred_time=data.preferred_time,
        area_id=data.area_id,
        priority=data.priority,
    )
    return WaitlistEntryOut.model_validate(entry)


@app.post("/api/waitlist/offer-next", response_model=Optional[WaitlistEntryOut])
async def offer_next_for_table(data: OfferRequest, service: ReservationService = Depends(get_service)):
    entry = service.offer_next_for_table(data.table_id, data.date, data.available_time)
    return WaitlistEntryOut.model_validate(entry) if entry else None


@app.post("/api/waitlist/{entry_id}/offer", response_model=WaitlistEntryOut)
async def offer_table(entry_id: int, table_id: int, service: ReservationService = Depends(get_service)):
    return WaitlistEntryOut.model_validate(service.offer(entry_id, table_id))


@app.post("/api/waitlist/{entry_id}/accept", response_model=WaitlistEntryOut)
async def accept_offer(entry_id: int, service: ReservationService = Depends(get_service)):
    return WaitlistEntryOut.model_validate(service.accept_offer(entry_id))


@app.post("/api/waitlist/{entry_id}/decline", response_model=WaitlistEntryOut)
async def decline_offer(entry_id: int, service: ReservationService = Depends(get_service)):
    return WaitlistEntryOut.model_validate(service.decline_offer(entry_id))


@app.post("/api/waitlist/expire")
async def expire_waitlist(service: ReservationService = Depends(get_service)):
    """Sweep overdue entries; normally run by the expiry scheduler"""
    return {"expired": service.expire_waitlist()}


@app.get("/api/waitlist/stats", response_model=WaitlistStatsOut)
async def waitlist_stats(date: str, service: ReservationService = Depends(get_service)):
    return WaitlistStatsOut(**service.waitlist_stats(parse_date(date)))


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}
