import logging

from .database import SessionLocal, init_db
from .models import Area, Customer, Table

logger = logging.getLogger(__name__)


def init_database(db=None):
    """Create the schema and seed a sample floor plan on an empty database"""
    init_db(bind=db.get_bind() if db is not None else None)

    owns_session = db is None
    db = db or SessionLocal()

    try:
        # Check if data already exists
        if db.query(Area).first():
            logger.info("Database already initialized. Skipping...")
            return

        # Lower number = higher priority when listing availability
        areas = [
            Area(name="Terrace", description="Open-air seating overlooking the lake.", priority=1),
            Area(name="Main Hall", description="Indoor dining with the classic room layout.", priority=2),
            Area(name="Garden", description="Quiet tables among the garden beds.", priority=3),
            Area(name="Private Room", description="Closed room for large groups and events.", priority=4),
        ]
        for area in areas:
            db.add(area)
        db.commit()

        terrace, main_hall, garden, private_room = areas

        tables = [
            # Terrace: two-tops and four-tops
            Table(table_number="T1", capacity=2, shape="round", area_id=terrace.id),
            Table(table_number="T2", capacity=2, shape="round", area_id=terrace.id),
            Table(table_number="T3", capacity=4, min_capacity=2, shape="square", area_id=terrace.id),
            Table(table_number="T4", capacity=4, min_capacity=2, shape="square", area_id=terrace.id),
            # Main Hall: step-free access, one long table
            Table(table_number="M1", capacity=2, shape="square", is_accessible=True, area_id=main_hall.id),
            Table(table_number="M2", capacity=4, shape="square", is_accessible=True, area_id=main_hall.id),
            Table(table_number="M3", capacity=4, shape="round", area_id=main_hall.id),
            Table(table_number="M4", capacity=6, min_capacity=3, shape="round", area_id=main_hall.id),
            Table(table_number="M5", capacity=12, min_capacity=6, shape="rectangle", is_accessible=True, area_id=main_hall.id),
            # Garden
            Table(table_number="G1", capacity=2, shape="round", area_id=garden.id),
            Table(table_number="G2", capacity=4, shape="square", area_id=garden.id),
            Table(table_number="G3", capacity=8, min_capacity=4, shape="rectangle", area_id=garden.id),
            # Private Room: one U-shaped table
            Table(table_number="P1", capacity=30, min_capacity=10, shape="rectangle", area_id=private_room.id),
        ]
        for table in tables:
            db.add(table)

        customers = [
            Customer(name="Asha Raman", email="asha@example.com", phone="555-0101", is_vip=True),
            Customer(name="Tom Becker", email="tom@example.com", phone="555-0102"),
            Customer(name="Lina Costa", email="lina@example.com", phone="555-0103"),
        ]
        for customer in customers:
            db.add(customer)

        db.commit()

        logger.info("Database initialized: %d areas, %d tables, %d customers", len(areas), len(tables), len(customers))

    except Exception:
        logger.exception("Error initializing database")
        db.rollback()
        raise
    finally:
        if owns_session:
            db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_database()
