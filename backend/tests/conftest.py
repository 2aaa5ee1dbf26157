"""
Test fixtures for the hotel pricing engine tests.
"""
import pytest
from datetime import date, datetime, timedelta
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from hotel_pricing.database import Base, get_db
from hotel_pricing.main import app
from hotel_pricing.api.pricing import get_pricing_calculator
from hotel_pricing.models import Room, Booking, BookingRoom, HotelSettings
from hotel_pricing.services.notification import get_global_notifier
from hotel_pricing.services.pricing_calculator import PricingCalculator
from hotel_pricing.services.system_metrics import StaticSystemMetricsProvider, get_system_metrics_provider


# Create test database engine (SQLite in-memory, one shared connection)
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign key constraints for SQLite
@event.listens_for(test_engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

# Fixed calendar: 2025-03-11 is a Tuesday in a non-peak month
TUESDAY = date(2025, 3, 11)
SATURDAY = date(2025, 3, 15)
PEAK_TUESDAY = date(2025, 7, 1)

OPERATOR_PHONE = "6281234567890"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = None):
        self.now = now or datetime(2025, 3, 11, 8, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    """Stands in for the WhatsApp notifier and remembers what it was asked to send."""

    def __init__(self):
        self.sent = []

    async def send_approval_request(self, approval, phone, **kwargs):
        self.sent.append({"kind": "approval_request", "approval_id": approval.id, "phone": phone})
        return True

    async def send_approval_confirmation(self, approval, phone, **kwargs):
        self.sent.append({
            "kind": "approval_confirmation",
            "approval_id": approval.id,
            "status": approval.status,
            "phone": phone,
        })
        return True

    async def send_pricing_alert(self, alert, phone, **kwargs):
        self.sent.append({"kind": "alert", "metric_name": alert.metric_name, "phone": phone})
        return True

    async def send_startup_notification(self, phone):
        self.sent.append({"kind": "startup", "phone": phone})
        return True

    def of_kind(self, kind: str):
        return [n for n in self.sent if n["kind"] == kind]


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def system_metrics():
    return StaticSystemMetricsProvider(memory_mb=256.0, cpu_percent=12.0)


@pytest.fixture
def calculator(db_session):
    """Calculator with demand jitter pinned to zero."""
    return PricingCalculator(db_session, jitter=lambda: 0.0)


@pytest.fixture
def hotel(db_session):
    settings = HotelSettings(id=1, hotel_name="Pondok Test", whatsapp_number=OPERATOR_PHONE)
    db_session.add(settings)
    db_session.commit()
    return settings


@pytest.fixture
def make_room(db_session):
    def _make_room(**kwargs):
        values = {
            "name": "Grand Deluxe",
            "base_price": 500000.0,
            "allotment": 10,
        }
        values.update(kwargs)
        room = Room(**values)
        db_session.add(room)
        db_session.commit()
        return room

    return _make_room


@pytest.fixture
def book_units(db_session):
    """Book `units` physical units of a room for the nights [check_in, check_out)."""
    def _book_units(room, check_in, units=1, nights=1, status="confirmed"):
        booking = Booking(
            room_id=room.id,
            check_in=check_in,
            check_out=check_in + timedelta(days=nights),
            status=status,
        )
        db_session.add(booking)
        db_session.flush()
        for n in range(units):
            db_session.add(BookingRoom(booking_id=booking.id, room_id=room.id, room_number=str(101 + n)))
        db_session.commit()
        return booking

    return _book_units


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """
    Override the get_db dependency to use the test database session.
    """
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    return _override_get_db


@pytest.fixture(scope="function")
async def client(override_get_db, db_session, notifier, system_metrics):
    """
    Create an async test client with the database, notifier, system metrics
    and demand jitter all pinned.
    """
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_global_notifier] = lambda: notifier
    app.dependency_overrides[get_system_metrics_provider] = lambda: system_metrics
    app.dependency_overrides[get_pricing_calculator] = lambda: PricingCalculator(db_session, jitter=lambda: 0.0)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clear overrides after test
    app.dependency_overrides.clear()
