"""
Shared pytest fixtures: in-memory database, API client, staff tokens, rooms.
"""
import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_webhook_secret")

import uuid
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_clock, get_paystack_client
from app.core.config import settings
from app.core.security import create_access_token, hash_password
from app.db.base import Base
from app.db.session import get_db, get_session_factory
from app.models.customer import Customer
from app.models.room import Room, RoomType
from app.models.staff import Staff, StaffRole
from app.services.booking_service import BookingService
from app.services.paystack_client import PaystackError, sign_payload
from app.main import app


class FakeClock:
    """Hotel 'today', settable per test."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


class FakePaystack:
    """Stands in for PaystackClient; records calls instead of hitting the network."""

    def __init__(self):
        self.initialized = []
        self.refunds = []
        self.verify_status = "success"
        self.fail_initialize = False

    def initialize_transaction(self, *, email, amount, reference, currency, metadata=None, callback_url=None):
        if self.fail_initialize:
            raise PaystackError("Paystack 401: Invalid key")
        self.initialized.append({"email": email, "amount": amount, "reference": reference, "currency": currency,
                                 "metadata": metadata, "callback_url": callback_url})
        return {"status": True, "data": {
            "authorization_url": f"https://checkout.paystack.test/{reference}",
            "access_code": f"ac_{reference}",
            "reference": reference,
        }}

    def verify_transaction(self, reference):
        amount = next((i["amount"] for i in self.initialized if i["reference"] == reference), 0)
        return {"status": True, "data": {
            "reference": reference, "status": self.verify_status, "amount": amount,
            "gateway_response": "Approved" if self.verify_status == "success" else "Declined",
        }}

    def refund(self, *, reference, amount=None):
        self.refunds.append({"reference": reference, "amount": amount})
        return {"status": True, "data": {"status": "pending", "transaction": {"reference": reference}}}


def _signed(payload: dict) -> tuple[bytes, dict]:
    body = json.dumps(payload).encode("utf-8")
    return body, {"x-paystack-signature": sign_payload(settings.PAYSTACK_SECRET_KEY, body),
                  "Content-Type": "application/json"}


@pytest.fixture(scope="function")
def db_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(date(2025, 5, 30))


@pytest.fixture
def paystack():
    return FakePaystack()


@pytest.fixture
def signed():
    """Serialise a webhook payload and sign it with the configured secret."""
    return _signed


@pytest.fixture
def emitted():
    return []


@pytest.fixture
def service(db_session, clock, emitted):
    return BookingService(db_session, clock=clock, emit=emitted.append)


@pytest.fixture(scope="function")
def client(db_session, session_factory, clock, paystack):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_paystack_client] = lambda: paystack
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== Staff ==============

def _staff(db_session, email: str, role: StaffRole) -> Staff:
    staff = Staff(
        id=str(uuid.uuid4()),
        email=email,
        first_name=role.value.title(),
        last_name="Test",
        role=role,
        password_hash=hash_password("password123"),
        is_active=True,
    )
    db_session.add(staff)
    db_session.commit()
    db_session.refresh(staff)
    return staff


@pytest.fixture
def manager(db_session):
    return _staff(db_session, "manager@hotel.test", StaffRole.MANAGER)


@pytest.fixture
def receptionist(db_session):
    return _staff(db_session, "reception@hotel.test", StaffRole.RECEPTIONIST)


@pytest.fixture
def cleaner(db_session):
    return _staff(db_session, "cleaner@hotel.test", StaffRole.CLEANER)


@pytest.fixture
def manager_headers(manager):
    return {"Authorization": f"Bearer {create_access_token(manager.id, role=manager.role.value)}"}


@pytest.fixture
def receptionist_headers(receptionist):
    return {"Authorization": f"Bearer {create_access_token(receptionist.id, role=receptionist.role.value)}"}


@pytest.fixture
def cleaner_headers(cleaner):
    return {"Authorization": f"Bearer {create_access_token(cleaner.id, role=cleaner.role.value)}"}


# ============== Rooms & customers ==============

def _room(db_session, number: str, price: str, capacity: int = 2, room_type: RoomType = RoomType.DOUBLE) -> Room:
    room = Room(id=str(uuid.uuid4()), room_number=number, name=f"Room {number}", type=room_type,
                price=Decimal(price), capacity=capacity)
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def room_101(db_session):
    return _room(db_session, "101", "100.00")


@pytest.fixture
def room_102(db_session):
    return _room(db_session, "102", "150.00", capacity=3)


@pytest.fixture
def customer(db_session):
    c = Customer(id=str(uuid.uuid4()), first_name="Ada", last_name="Guest", email="ada@example.com",
                 phone="+2348000000000")
    db_session.add(c)
    db_session.commit()
    db_session.refresh(c)
    return c


@pytest.fixture
def book(service, customer):
    """Create a CONFIRMED booking through the service."""
    def _book(room, check_in, check_out, guests=1, customer_id=None):
        return service.create_booking(room_id=room.id, customer_id=customer_id or customer.id,
                                      check_in=check_in, check_out=check_out, guests=guests, actor_id="test")
    return _book
