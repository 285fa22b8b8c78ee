import logging
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from app.db.session import SessionLocal
from app.core.security import hash_password
from app.models.room import Room, RoomType
from app.models.staff import Staff, StaffRole
from app.repositories.rooms import RoomRepository

logger = logging.getLogger(__name__)

STAFF = [
    ("manager@hotel.local", "manager12345", StaffRole.MANAGER, "Hotel", "Manager"),
    ("reception@hotel.local", "reception12345", StaffRole.RECEPTIONIST, "Front", "Desk"),
    ("cleaner@hotel.local", "cleaner12345", StaffRole.CLEANER, "House", "Keeping"),
]

# room number, name, type, nightly price, capacity
ROOMS = [
    ("101", "Garden Single", RoomType.SINGLE, Decimal("100.00"), 1),
    ("102", "Garden Double", RoomType.DOUBLE, Decimal("150.00"), 2),
    ("201", "Harbour Suite", RoomType.SUITE, Decimal("300.00"), 3),
    ("202", "Deluxe King", RoomType.DELUXE, Decimal("220.00"), 2),
    ("301", "Presidential", RoomType.PRESIDENTIAL, Decimal("900.00"), 4),
]


def ensure_staff(db: Session, email: str, password: str, role: StaffRole, first_name: str, last_name: str):
    s = db.query(Staff).filter(Staff.email == email).first()
    if s:
        return
    db.add(
        Staff(
            id=str(uuid.uuid4()),
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            password_hash=hash_password(password),
            is_active=True,
        )
    )
    db.commit()


def ensure_room(db: Session, number: str, name: str, room_type: RoomType, price: Decimal, capacity: int):
    if RoomRepository(db).get_by_number(number):
        return
    db.add(Room(id=str(uuid.uuid4()), room_number=number, name=name, type=room_type, price=price,
                capacity=capacity))
    db.commit()


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM staff LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("staff table not found yet; skipping seed (run alembic upgrade head)")
            return

        for email, password, role, first_name, last_name in STAFF:
            ensure_staff(db, email, password, role, first_name, last_name)
        for number, name, room_type, price, capacity in ROOMS:
            ensure_room(db, number, name, room_type, price, capacity)
        logger.info("seed complete: %d staff, %d rooms", db.query(Staff).count(), db.query(Room).count())
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
