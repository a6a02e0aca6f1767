"""SQLAlchemy-backed reads and writes feeding the scheduling core."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from .domain import (
    ACTIVE_STATUSES,
    BLOCKING_MAINTENANCE,
    AreaView,
    CustomerView,
    MaintenanceWindow,
    ReservationStatus,
    ReservationView,
    TableView,
    TimeWindow,
    WaitlistEntryView,
)
from .errors import NotFound
from .models import Area, Customer, MaintenanceRecord, Reservation, Table, WaitlistEntry
from .timeutil import format_time, parse_time

logger = logging.getLogger(__name__)


def table_view(table: Table) -> TableView:
    return TableView(
        id=table.id,
        area_id=table.area_id,
        capacity=table.capacity,
        min_capacity=table.min_capacity or 1,
        shape=table.shape,
        accessible=bool(table.is_accessible),
        active=bool(table.is_active),
        number=table.table_number,
        area_name=table.area.name if table.area else "",
    )


def reservation_view(reservation: Reservation) -> ReservationView:
    return ReservationView(
        id=reservation.id,
        table_ids=tuple(reservation.table_ids),
        window=TimeWindow(reservation.start_time, reservation.end_time),
        party_size=reservation.party_size,
        status=reservation.status,
    )


def waitlist_view(entry: WaitlistEntry) -> WaitlistEntryView:
    return WaitlistEntryView(
        id=entry.id,
        customer_id=entry.customer_id,
        date=entry.date,
        party_size=entry.party_size,
        created_at=entry.created_at,
        expires_at=entry.expires_at,
        priority=entry.priority or 0,
        status=entry.status,
        preferred_time=parse_time(entry.preferred_time) if entry.preferred_time else None,
        area_id=entry.area_id,
        offered_at=entry.offered_at,
        offered_table_id=entry.offered_table_id,
    )


class ReservationStore:
    def __init__(self, db: Session):
        self.db = db

    # Catalog

    def areas(self) -> List[AreaView]:
        areas = self.db.query(Area).filter(
            Area.is_active == True
        ).order_by(Area.priority, Area.id).all()
        return [AreaView(id=a.id, name=a.name, description=a.description) for a in areas]

    def get_area(self, area_id: int) -> AreaView:
        area = self.db.query(Area).filter(Area.id == area_id).first()
        if not area:
            raise NotFound(f"Area {area_id} not found")
        return AreaView(id=area.id, name=area.name, description=area.description)

    def tables(self, area_id: Optional[int] = None) -> List[TableView]:
        query = self.db.query(Table).options(joinedload(Table.area)).join(Area).filter(
            Table.is_active == True,
            Area.is_active == True,
        )
        if area_id is not None:
            query = query.filter(Table.area_id == area_id)
        return [table_view(t) for t in query.order_by(Table.capacity, Table.id).all()]

    def get_table(self, table_id: int) -> TableView:
        table = self.db.query(Table).options(joinedload(Table.area)).filter(Table.id == table_id).first()
        if not table:
            raise NotFound(f"Table {table_id} not found")
        return table_view(table)

    # Reservations

    def reservations_for(
        self, day: date, table_ids: Optional[Iterable[int]] = None, fresh: bool = False
    ) -> List[ReservationView]:
        """Active reservations on ``day``, optionally only those holding ``table_ids``"""
        query = self.db.query(Reservation).options(selectinload(Reservation.tables)).filter(
            and_(
                Reservation.reservation_date == day,
                Reservation.status.in_(sorted(ACTIVE_STATUSES)),
            )
        )
        if table_ids is not None:
            query = query.filter(Reservation.tables.any(Table.id.in_(list(table_ids))))
        if fresh:
            # Bypass the identity map: another session may have just committed
            query = query.execution_options(populate_existing=True)
        return [reservation_view(r) for r in query.order_by(Reservation.start_time, Reservation.id).all()]

    def get_reservation(self, reservation_id: int) -> Reservation:
        reservation = self.db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if not reservation:
            raise NotFound(f"Reservation {reservation_id} not found")
        return reservation

    def add_reservation(
        self,
        window: TimeWindow,
        party_size: int,
        table_ids: List[int],
        customer_id: Optional[int] = None,
        status: str = ReservationStatus.CONFIRMED.value,
        special_requests: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Reservation:
        tables = self.db.query(Table).filter(Table.id.in_(table_ids)).order_by(Table.id).all()
        reservation = Reservation(
            customer_id=customer_id,
            party_size=party_size,
            reservation_date=window.date,
            start_time=window.start,
            end_time=window.end,
            status=status,
            special_requests=special_requests,
            created_at=created_at or datetime.now(),
        )
        reservation.tables = tables
        self.db.add(reservation)
        return reservation

    def maintenance_for(self, day: date) -> List[MaintenanceWindow]:
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        records = self.db.query(MaintenanceRecord).filter(
            MaintenanceRecord.status.in_(sorted(BLOCKING_MAINTENANCE)),
            MaintenanceRecord.scheduled_start < day_end,
            or_(MaintenanceRecord.scheduled_end.is_(None), MaintenanceRecord.scheduled_end > day_start),
        ).all()
        return [
            MaintenanceWindow(
                id=m.id,
                table_id=m.table_id,
                start=m.scheduled_start,
                end=m.scheduled_end,
                status=m.status,
            )
            for m in records
        ]

    # Customers

    def customer(self, customer_id: int) -> CustomerView:
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFound(f"Customer {customer_id} not found")
        total, no_shows = self.db.query(
            func.count(Reservation.id),
            func.sum(case((Reservation.status == ReservationStatus.NO_SHOW.value, 1), else_=0)),
        ).filter(Reservation.customer_id == customer_id).one()
        return CustomerView(
            id=customer.id,
            name=customer.name,
            email=customer.email,
            is_vip=bool(customer.is_vip),
            reservation_count=total or 0,
            no_show_count=int(no_shows or 0),
        )

    # Waitlist

    def waitlist_entries(
        self, day: Optional[date] = None, status: Optional[str] = None, fresh: bool = False
    ) -> List[WaitlistEntryView]:
        query = self.db.query(WaitlistEntry)
        if day is not None:
            query = query.filter(WaitlistEntry.date == day)
        if status is not None:
            query = query.filter(WaitlistEntry.status == status)
        if fresh:
            query = query.execution_options(populate_existing=True)
        entries = query.order_by(
            WaitlistEntry.priority.desc(), WaitlistEntry.created_at, WaitlistEntry.id
        ).all()
        return [waitlist_view(e) for e in entries]

    def get_waitlist_entry(self, entry_id: int, fresh: bool = False) -> WaitlistEntryView:
        return waitlist_view(self._waitlist_row(entry_id, fresh))

    def add_waitlist_entry(
        self,
        customer_id: int,
        day: date,
        party_size: int,
        priority: int,
        created_at: datetime,
        expires_at: datetime,
        preferred_time: Optional[time] = None,
        area_id: Optional[int] = None,
    ) -> WaitlistEntry:
        entry = WaitlistEntry(
            customer_id=customer_id,
            date=day,
            party_size=party_size,
            preferred_time=format_time(preferred_time) if preferred_time else None,
            area_id=area_id,
            status="waiting",
            priority=priority,
            created_at=created_at,
            expires_at=expires_at,
        )
        self.db.add(entry)
        return entry

    def save_waitlist_entry(self, view: WaitlistEntryView) -> WaitlistEntry:
        """Copy the mutable fields of ``view`` onto its row"""
        entry = self._waitlist_row(view.id)
        entry.status = view.status
        entry.offered_at = view.offered_at
        entry.offered_table_id = view.offered_table_id
        return entry

    def _waitlist_row(self, entry_id: int, fresh: bool = False) -> WaitlistEntry:
        query = self.db.query(WaitlistEntry).filter(WaitlistEntry.id == entry_id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        entry = query.first()
        if not entry:
            raise NotFound(f"Waitlist entry {entry_id} not found")
        return entry

    # Transactions

    def commit(self):
        try:
            self.db.commit()
        except Exception:
            logger.exception("Store commit failed; rolling back")
            self.db.rollback()
            raise
