import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from . import waitlist
from .availability import check_availability, request_window
from .cache import AvailabilityCache
from .combiner import propose_combinations
from .config import Settings, settings
from .conflicts import find_conflict, under_maintenance
from .domain import (
    ACTIVE_STATUSES,
    AssignmentResult,
    AvailabilityResult,
    Combination,
    ReservationStatus,
    TimeSuggestion,
    TimeWindow,
    WaitlistEntryView,
    WaitlistStatus,
)
from .errors import ConflictDetected, InvalidRequest, InvalidState, NoAvailability
from .locks import TableLocks
from .models import Reservation
from .schemas import AssignmentRequest, WaitlistCreate, build_request, validate_model
from .scoring import select_table
from .store import ReservationStore, waitlist_view
from .suggestions import best_times, suggest_times
from .timeutil import Deadline, format_time, parse_time

logger = logging.getLogger(__name__)

RELEASE_STATUSES = frozenset(
    {ReservationStatus.CANCELLED.value, ReservationStatus.COMPLETED.value, ReservationStatus.NO_SHOW.value}
)

COMBINATION_AVAILABLE = "combination_available"


class ReservationService:
    """Request/response operations over store snapshots.

    Holds no session state of its own beyond the collaborators it is given:
    ``locks`` and ``cache`` are shared process-wide by whoever builds the
    service, one instance is created per request.
    """

    def __init__(
        self,
        db: Session,
        locks: Optional[TableLocks] = None,
        cache: Optional[AvailabilityCache] = None,
        notifier: Optional[Callable] = None,
        config: Settings = settings,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.store = ReservationStore(db)
        self.locks = locks or TableLocks()
        self.cache = cache
        self.notifier = notifier
        self.config = config
        self.clock = clock

    # Availability and assignment

    def _availability_fn(self, day: date):
        """Snapshot one day's state and return a pure availability function over it"""
        areas = self.store.areas()
        tables = self.store.tables()
        reservations = self.store.reservations_for(day)
        maintenance = self.store.maintenance_for(day)

        def availability(request: AssignmentRequest) -> AvailabilityResult:
            return check_availability(request, tables, areas, reservations, maintenance)

        return availability

    def check_availability(self, request: AssignmentRequest, use_cache: bool = False) -> AvailabilityResult:
        """Free tables for the request's window, grouped by area"""
        if use_cache and self.cache is not None:
            return self.cache.get_or_compute(
                request.model_dump_json(),
                lambda: self._availability_fn(request.date)(request),
            )
        return self._availability_fn(request.date)(request)

    def assign_table(self, request: AssignmentRequest, deadline: Optional[Deadline] = None) -> AssignmentResult:
        """Pick the best free table, falling back to combinations and alternate times"""
        availability = self._availability_fn(request.date)
        snapshot = availability(request)
        result = select_table(
            request,
            snapshot.available_tables,
            max_alternatives=self.config.max_alternatives,
            weights=self.config.score_weights,
        )

        combinable = self._combinable(request, snapshot)
        wants_combination = request.multi_table or (
            not result.assigned
            and request.party_size >= self.config.large_party_threshold
            and all(t.capacity < request.party_size for t in combinable)
        )
        if wants_combination:
            result.combinations = propose_combinations(
                request.party_size, combinable, max_combinations=self.config.max_combinations, deadline=deadline
            )
        if result.assigned:
            return result

        if result.combinations:
            result.reason = COMBINATION_AVAILABLE
            return result

        result.suggested_times = suggest_times(
            request,
            availability,
            window_minutes=self.config.suggestion_window_minutes,
            step_minutes=self.config.suggestion_step_minutes,
            deadline=deadline,
        )
        logger.info(
            "No table for party of %d on %s at %s (%s)",
            request.party_size, request.date, request.time, result.reason,
        )
        return result

    @staticmethod
    def _combinable(request: AssignmentRequest, snapshot: AvailabilityResult):
        tables = snapshot.available_tables
        if request.accessible:
            tables = [t for t in tables if t.accessible]
        return tables

    def propose_combination(self, request: AssignmentRequest, deadline: Optional[Deadline] = None) -> List[Combination]:
        snapshot = self.check_availability(request)
        return propose_combinations(
            request.party_size,
            self._combinable(request, snapshot),
            max_combinations=self.config.max_combinations,
            deadline=deadline,
        )

    def get_alternative_times(
        self,
        request: AssignmentRequest,
        window_minutes: Optional[int] = None,
        deadline: Optional[Deadline] = None,
    ) -> List[TimeSuggestion]:
        return suggest_times(
            request,
            self._availability_fn(request.date),
            window_minutes=window_minutes if window_minutes is not None else self.config.suggestion_window_minutes,
            step_minutes=self.config.suggestion_step_minutes,
            deadline=deadline,
        )

    def get_best_times(
        self,
        request: AssignmentRequest,
        start: Optional[str] = None,
        end: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> List[TimeSuggestion]:
        return best_times(
            request,
            self._availability_fn(request.date),
            start=start or self.config.best_times_start,
            end=end or self.config.best_times_end,
            step_minutes=self.config.suggestion_step_minutes,
            deadline=deadline,
        )

    # Commit path

    def book(
        self,
        request: AssignmentRequest,
        table_ids: List[int],
        customer_id: Optional[int] = None,
        status: str = ReservationStatus.CONFIRMED.value,
        special_requests: Optional[str] = None,
    ) -> Reservation:
        """Commit a reservation on ``table_ids`` after an authoritative conflict re-check.

        Raises ConflictDetected when another booking or maintenance now holds
        one of the tables; the caller should start again from availability.
        """
        if not table_ids:
            raise InvalidRequest("At least one table is required")
        if status not in ACTIVE_STATUSES:
            raise InvalidRequest(f"Cannot book with status '{status}'")
        tables = [self.store.get_table(table_id) for table_id in sorted(set(table_ids))]
        inactive = [t.id for t in tables if not t.active]
        if inactive:
            raise InvalidState(f"Tables {inactive} are not active")
        if len(tables) == 1 and not tables[0].fits(request.party_size):
            raise InvalidRequest(
                f"Table {tables[0].id} seats {tables[0].min_capacity}-{tables[0].capacity}, "
                f"not {request.party_size}"
            )
        if sum(t.capacity for t in tables) < request.party_size:
            raise InvalidRequest(f"Tables {[t.id for t in tables]} cannot seat {request.party_size}")
        if customer_id is not None:
            self.store.customer(customer_id)

        window = request_window(request)
        ids = [t.id for t in tables]
        with self.locks.hold(ids, window.date):
            self._recheck(window, ids)
            reservation = self.store.add_reservation(
                window,
                request.party_size,
                ids,
                customer_id=customer_id,
                status=status,
                special_requests=special_requests,
                created_at=self.clock(),
            )
            self.store.commit()
            self.db.refresh(reservation)
        self._invalidate()
        logger.info(
            "Booked reservation %s: tables %s on %s %s-%s for %d",
            reservation.id, ids, window.date, format_time(window.start.time()),
            format_time(window.end.time()), request.party_size,
        )
        return reservation

    def _recheck(self, window: TimeWindow, table_ids: List[int], exclude_reservation_id: Optional[int] = None):
        """Must run while holding the locks for ``table_ids``"""
        reservations = self.store.reservations_for(window.date, table_ids, fresh=True)
        maintenance = self.store.maintenance_for(window.date)
        for table_id in table_ids:
            conflict = find_conflict(window, table_id, reservations, exclude_reservation_id)
            if conflict is not None:
                logger.warning("Conflict on table %s with reservation %s", table_id, conflict.id)
                raise ConflictDetected(
                    f"Table {table_id} is already booked by reservation {conflict.id} for an overlapping time",
                    table_id=table_id,
                )
            if under_maintenance(window, table_id, maintenance):
                logger.warning("Table %s is under maintenance for %s", table_id, window)
                raise ConflictDetected(f"Table {table_id} is under maintenance at that time", table_id=table_id)

    def auto_book(
        self,
        request: AssignmentRequest,
        customer_id: Optional[int] = None,
        join_waitlist: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> Tuple[Reservation, AssignmentResult]:
        """Assign and commit in one go; raises NoAvailability when nothing fits.

        With ``join_waitlist`` the customer is queued before the error is raised.
        """
        result = self.assign_table(request, deadline)
        if result.assigned and not request.multi_table:
            return self.book(request, [result.table.id], customer_id=customer_id), result
        if result.combinations:
            return self.book(request, list(result.combinations[0].table_ids), customer_id=customer_id), result
        if result.assigned:
            return self.book(request, [result.table.id], customer_id=customer_id), result

        entry = None
        if join_waitlist and customer_id is not None:
            entry = self.enqueue_waitlist(
                customer_id,
                request.date,
                request.party_size,
                preferred_time=request.time,
                area_id=request.area_id,
            )
        raise NoAvailability(
            f"No table available for {request.party_size} on {request.date} at {request.time}",
            alternatives=result.alternatives,
            suggested_times=result.suggested_times,
            combinations=result.combinations,
            waitlist_entry=entry,
        )

    def update_window(self, reservation_id: int, time: Optional[str] = None, duration: Optional[int] = None) -> Reservation:
        """Move or resize an active reservation on the same tables and date"""
        reservation = self.store.get_reservation(reservation_id)
        if reservation.status not in ACTIVE_STATUSES:
            raise InvalidState(f"Reservation {reservation_id} is {reservation.status}")
        current = int((reservation.end_time - reservation.start_time).total_seconds() // 60)
        request = build_request(
            date=reservation.reservation_date,
            time=time or format_time(reservation.start_time.time()),
            party_size=reservation.party_size,
            duration=duration if duration is not None else current,
        )
        window = request_window(request)
        table_ids = reservation.table_ids
        with self.locks.hold(table_ids, window.date):
            self._recheck(window, table_ids, exclude_reservation_id=reservation.id)
            reservation.start_time = window.start
            reservation.end_time = window.end
            self.store.commit()
        self._invalidate()
        logger.info("Reservation %s moved to %s-%s", reservation.id, window.start, window.end)
        return reservation

    def release(
        self, reservation_id: int, status: str = ReservationStatus.CANCELLED.value
    ) -> Tuple[Reservation, Optional[WaitlistEntryView]]:
        """Close an active reservation and offer its table to the waitlist"""
        if status not in RELEASE_STATUSES:
            raise InvalidRequest(f"Cannot release a reservation as '{status}'")
        reservation = self.store.get_reservation(reservation_id)
        if reservation.status not in ACTIVE_STATUSES:
            raise InvalidState(f"Reservation {reservation_id} is already {reservation.status}")
        reservation.status = status
        self.store.commit()
        self._invalidate()
        logger.info("Reservation %s released as %s", reservation.id, status)

        freed_at = reservation.start_time
        now = self.clock()
        if now.date() == reservation.reservation_date and now > freed_at:
            freed_at = now
        offered = None
        for table_id in reservation.table_ids:
            offered = self.offer_next_for_table(table_id, reservation.reservation_date, format_time(freed_at.time()))
            if offered is not None:
                break
        return reservation, offered

    def _invalidate(self):
        if self.cache is not None:
            self.cache.clear()

    # Waitlist

    def enqueue_waitlist(
        self,
        customer_id: int,
        day: date,
        party_size: int,
        preferred_time: Optional[str] = None,
        area_id: Optional[int] = None,
        priority: Optional[int] = None,
    ) -> WaitlistEntryView:
        data = validate_model(
            WaitlistCreate,
            customer_id=customer_id,
            date=day,
            party_size=party_size,
            preferred_time=preferred_time,
            area_id=area_id,
            priority=priority,
        )
        customer = self.store.customer(data.customer_id)
        if data.area_id is not None:
            self.store.get_area(data.area_id)

        now = self.clock()
        expires_at = waitlist.default_expiry(data.date)
        if expires_at <= now:
            raise InvalidRequest(f"Cannot join the waitlist for {data.date}: the day is over")

        entry = self.store.add_waitlist_entry(
            customer_id=customer.id,
            day=data.date,
            party_size=data.party_size,
            priority=waitlist.compute_priority(data.party_size, customer, data.priority),
            created_at=now,
            expires_at=expires_at,
            preferred_time=parse_time(data.preferred_time) if data.preferred_time else None,
            area_id=data.area_id,
        )
        self.store.commit()
        self.db.refresh(entry)
        logger.info(
            "Waitlist entry %s: customer %s, party of %d on %s, priority %d",
            entry.id, customer.id, entry.party_size, entry.date, entry.priority,
        )
        return waitlist_view(entry)

    def offer_next_for_table(self, table_id: int, day: date, available_time: str) -> Optional[WaitlistEntryView]:
        """Offer ``table_id`` to the best waiting entry that fits, if any"""
        table = self.store.get_table(table_id)
        available_time = format_time(parse_time(available_time))
        with self.locks.waitlist_lock(day):
            entries = self.store.waitlist_entries(day=day, status=WaitlistStatus.WAITING.value, fresh=True)
            head = waitlist.next_eligible(
                entries,
                table.capacity,
                day,
                available_time,
                now=self.clock(),
                area_id=table.area_id,
                hour_tolerance=self.config.waitlist_hour_tolerance,
            )
            if head is None:
                return None
            offered = waitlist.offer(head, table.id, self.clock())
            self.store.save_waitlist_entry(offered)
            self.store.commit()
        logger.info("Offered table %s to waitlist entry %s", table.id, offered.id)
        self._notify_offer(offered, table)
        return offered

    def offer(self, entry_id: int, table_id: int) -> WaitlistEntryView:
        table = self.store.get_table(table_id)
        entry = self.store.get_waitlist_entry(entry_id)
        with self.locks.waitlist_lock(entry.date):
            current = self.store.get_waitlist_entry(entry_id, fresh=True)
            offered = waitlist.offer(current, table.id, self.clock())
            self.store.save_waitlist_entry(offered)
            self.store.commit()
        logger.info("Offered table %s to waitlist entry %s", table.id, offered.id)
        self._notify_offer(offered, table)
        return offered

    def accept_offer(self, entry_id: int) -> WaitlistEntryView:
        return self._transition(entry_id, waitlist.accept)

    def decline_offer(self, entry_id: int) -> WaitlistEntryView:
        return self._transition(entry_id, waitlist.decline)

    def _transition(self, entry_id: int, change) -> WaitlistEntryView:
        entry = self.store.get_waitlist_entry(entry_id)
        with self.locks.waitlist_lock(entry.date):
            updated = change(self.store.get_waitlist_entry(entry_id, fresh=True))
            self.store.save_waitlist_entry(updated)
            self.store.commit()
        logger.info("Waitlist entry %s is now %s", updated.id, updated.status)
        return updated

    def expire_waitlist(self) -> int:
        """Mark every waiting entry past its expiry as expired; safe to repeat"""
        now = self.clock()
        waiting = WaitlistStatus.WAITING.value
        days = sorted({e.date for e in waitlist.overdue(self.store.waitlist_entries(status=waiting), now)})
        expired = 0
        for day in days:
            # Re-read under the day's lock so a concurrent offer is not overwritten
            with self.locks.waitlist_lock(day):
                stale = waitlist.overdue(self.store.waitlist_entries(day=day, status=waiting, fresh=True), now)
                for entry in stale:
                    self.store.save_waitlist_entry(waitlist.expire(entry))
                if stale:
                    self.store.commit()
            expired += len(stale)
        if expired:
            logger.info("Expired %d waitlist entries", expired)
        return expired

    def waitlist_stats(self, day: date) -> dict:
        return waitlist.status_counts(self.store.waitlist_entries(day=day))

    def _notify_offer(self, entry: WaitlistEntryView, table):
        if self.notifier is None:
            return
        try:
            customer = self.store.customer(entry.customer_id)
            self.notifier(customer, entry, table)
        except Exception:
            # Delivery is fire-and-forget; the offer is already committed
            logger.exception("Could not send waitlist offer for entry %s", entry.id)
