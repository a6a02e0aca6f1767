from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tableplanner.locks import TableLocks
from tableplanner.models import Area, Base, Customer, Table
from tableplanner.reservation_service import ReservationService
from tableplanner.schemas import build_request

DAY = date(2030, 6, 14)


class FixedClock:
    """Callable stand-in for datetime.now"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def floor(db):
    """Two areas, four tables and two customers.

    Ids follow insertion order: tables 1..4 are T2, T4, M4, M6.
    """
    terrace = Area(name="Terrace", description="Outside", priority=1)
    main_hall = Area(name="Main Hall", description="Inside", priority=2)
    db.add_all([terrace, main_hall])
    db.commit()

    t2 = Table(table_number="T2", capacity=2, shape="round", area_id=terrace.id)
    t4 = Table(table_number="T4", capacity=4, min_capacity=2, shape="square", area_id=terrace.id)
    m4 = Table(table_number="M4", capacity=4, shape="square", is_accessible=True, area_id=main_hall.id)
    m6 = Table(table_number="M6", capacity=6, min_capacity=3, shape="round", area_id=main_hall.id)
    db.add_all([t2, t4, m4, m6])

    vip = Customer(name="Asha Raman", email="asha@example.com", is_vip=True)
    regular = Customer(name="Tom Becker", email="tom@example.com")
    db.add_all([vip, regular])
    db.commit()

    return SimpleNamespace(
        terrace=terrace, main_hall=main_hall, t2=t2, t4=t4, m4=m4, m6=m6, vip=vip, regular=regular
    )


@pytest.fixture
def clock():
    return FixedClock(datetime(2030, 6, 14, 12, 0))


@pytest.fixture
def service(db, floor, clock):
    return ReservationService(db, locks=TableLocks(), clock=clock)


@pytest.fixture
def make_request():
    def _make(**overrides):
        fields = {"date": DAY, "time": "19:00", "party_size": 2, "duration": 120}
        fields.update(overrides)
        return build_request(**fields)
    return _make
