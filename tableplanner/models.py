from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Boolean, Text, CheckConstraint
from sqlalchemy import Table as AssociationTable
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()

# A combined-table reservation blocks every table it lists
reservation_tables = AssociationTable(
    "reservation_tables",
    Base.metadata,
    Column("reservation_id", Integer, ForeignKey("reservations.id", ondelete="CASCADE"), primary_key=True),
    Column("table_id", Integer, ForeignKey("tables.id"), primary_key=True, index=True),
)


class Area(Base):
    """Dining areas: terrace, main hall, private room..."""
    __tablename__ = "areas"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(Text)
    priority = Column(Integer, default=0)  # Lower number means higher priority
    is_active = Column(Boolean, default=True)

    tables = relationship("Table", back_populates="area")


class Table(Base):
    """Physical tables; read-only to the scheduling core"""
    __tablename__ = "tables"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_tables_capacity"),
        CheckConstraint("min_capacity >= 1 AND min_capacity <= capacity", name="ck_tables_min_capacity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    table_number = Column(String(10), unique=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    min_capacity = Column(Integer, nullable=False, default=1)
    shape = Column(String(20), nullable=False, default="square")  # round, square, rectangle
    is_accessible = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    area_id = Column(Integer, ForeignKey("areas.id"), nullable=False)

    area = relationship("Area", back_populates="tables")
    maintenance_records = relationship("MaintenanceRecord", back_populates="table")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100))
    phone = Column(String(20))
    is_vip = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)

    reservations = relationship("Reservation", back_populates="customer")
    waitlist_entries = relationship("WaitlistEntry", back_populates="customer")


class Reservation(Base):
    """Customer reservations"""
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_reservations_window"),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    party_size = Column(Integer, nullable=False)
    reservation_date = Column(Date, nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    # pending, confirmed, seated, completed, cancelled, no_show
    status = Column(String(20), default="confirmed", index=True)
    special_requests = Column(Text)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    customer = relationship("Customer", back_populates="reservations")
    tables = relationship("Table", secondary=reservation_tables, order_by="Table.id")

    @property
    def table_ids(self):
        return [t.id for t in self.tables]

    # Note: overlap prevention runs in ReservationService.book() under the
    # per-table lock; SQLite has no exclusion constraints to back it up


class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"

    id = Column(Integer, primary_key=True, index=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=False, index=True)
    scheduled_start = Column(DateTime, nullable=False)
    scheduled_end = Column(DateTime, nullable=True)
    status = Column(String(20), default="scheduled")  # scheduled, in_progress, completed, cancelled
    description = Column(Text)

    table = relationship("Table", back_populates="maintenance_records")


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    party_size = Column(Integer, nullable=False)
    preferred_time = Column(String(5), nullable=True)  # HH:MM format
    area_id = Column(Integer, ForeignKey("areas.id"), nullable=True)
    # waiting, offered, accepted, declined, expired
    status = Column(String(20), default="waiting", index=True)
    priority = Column(Integer, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    expires_at = Column(DateTime, nullable=False)
    offered_at = Column(DateTime, nullable=True)
    offered_table_id = Column(Integer, ForeignKey("tables.id"), nullable=True)

    customer = relationship("Customer", back_populates="waitlist_entries")
