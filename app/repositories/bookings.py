import uuid
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import delete, func, or_, update
from sqlalchemy.orm import Session, joinedload

from app.models.booking import Booking, BookingStatus, PaymentStatus, ACTIVE_STATUSES
from app.models.customer import Customer
from app.models.payment import Payment
from app.models.room import Room
from app.models.room_night import RoomNight


@dataclass
class BookingFilters:
    query: str | None = None
    booking_status: BookingStatus | None = None
    payment_status: PaymentStatus | None = None
    customer_id: str | None = None
    room_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class BookingRepository:
    def __init__(self, db: Session):
        self.db = db

    def _with_relations(self):
        return self.db.query(Booking).options(
            joinedload(Booking.room), joinedload(Booking.customer), joinedload(Booking.payments))

    def get(self, booking_id: str) -> Booking | None:
        return self._with_relations().filter(Booking.id == booking_id).first()

    def get_by_number(self, booking_number: str) -> Booking | None:
        return self._with_relations().filter(Booking.booking_number == booking_number.strip().upper()).first()

    def get_by_number_and_email(self, booking_number: str, email: str) -> Booking | None:
        return (
            self._with_relations()
            .join(Customer, Customer.id == Booking.customer_id)
            .filter(Booking.booking_number == booking_number.strip().upper(),
                    Customer.email == email.strip().lower())
            .first()
        )

    def get_by_payment_reference(self, reference: str) -> Booking | None:
        return (
            self._with_relations()
            .join(Payment, Payment.booking_id == Booking.id)
            .filter(Payment.reference == reference)
            .first()
        )

    def count_overlapping(self, room_id: str, check_in: date, check_out: date,
                          exclude_booking_id: str | None = None) -> int:
        # [a, b) overlaps [check_in, check_out) iff check_in < b and check_out > a
        q = self.db.query(func.count(Booking.id)).filter(
            Booking.room_id == room_id,
            Booking.booking_status.in_(ACTIVE_STATUSES),
            Booking.check_in_date < check_out,
            Booking.check_out_date > check_in,
        )
        if exclude_booking_id:
            q = q.filter(Booking.id != exclude_booking_id)
        return int(q.scalar() or 0)

    def count_numbered(self, prefix: str) -> int:
        return int(self.db.query(func.count(Booking.id)).filter(Booking.booking_number.like(f"{prefix}%")).scalar() or 0)

    def number_exists(self, booking_number: str) -> bool:
        return self.db.query(Booking.id).filter(Booking.booking_number == booking_number).first() is not None

    def add(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.flush()
        return booking

    def claim_nights(self, booking: Booking) -> None:
        """Insert one RoomNight per occupied night. Raises IntegrityError on any clash."""
        night = booking.check_in_date
        while night < booking.check_out_date:
            self.db.add(RoomNight(id=str(uuid.uuid4()), room_id=booking.room_id, night=night, booking_id=booking.id))
            night += timedelta(days=1)
        self.db.flush()

    def release_nights(self, booking_id: str) -> None:
        self.db.execute(delete(RoomNight).where(RoomNight.booking_id == booking_id))

    def update_status_if(self, booking_id: str, expected: BookingStatus, new: BookingStatus) -> bool:
        res = self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.booking_status == expected)
            .values(booking_status=new)
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount == 1

    def update_payment_status_if(self, booking_id: str, expected: PaymentStatus, new: PaymentStatus) -> bool:
        res = self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.payment_status == expected)
            .values(payment_status=new)
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount == 1

    def search(self, filters: BookingFilters | None = None) -> list[Booking]:
        filters = filters or BookingFilters()
        q = (
            self._with_relations()
            .join(Customer, Customer.id == Booking.customer_id)
            .join(Room, Room.id == Booking.room_id)
        )
        if filters.query:
            ql = f"%{filters.query.strip().lower()}%"
            q = q.filter(or_(
                func.lower(Booking.booking_number).like(ql),
                func.lower(Customer.first_name).like(ql),
                func.lower(Customer.last_name).like(ql),
                func.lower(Customer.email).like(ql),
                func.lower(Room.room_number).like(ql),
            ))
        if filters.booking_status is not None:
            q = q.filter(Booking.booking_status == filters.booking_status)
        if filters.payment_status is not None:
            q = q.filter(Booking.payment_status == filters.payment_status)
        if filters.customer_id:
            q = q.filter(Booking.customer_id == filters.customer_id)
        if filters.room_id:
            q = q.filter(Booking.room_id == filters.room_id)
        if filters.start_date:
            q = q.filter(Booking.check_in_date >= filters.start_date)
        if filters.end_date:
            q = q.filter(Booking.check_out_date <= filters.end_date)
        return q.order_by(Booking.created_at.desc()).all()

    def calendar(self, start: date | None = None, end: date | None = None) -> list[Booking]:
        q = self._with_relations().filter(Booking.booking_status.in_(ACTIVE_STATUSES))
        if start:
            q = q.filter(Booking.check_out_date > start)
        if end:
            q = q.filter(Booking.check_in_date <= end)
        return q.order_by(Booking.check_in_date.asc()).all()

    def check_ins_on(self, day: date) -> list[Booking]:
        return self._with_relations().filter(
            Booking.check_in_date == day, Booking.booking_status == BookingStatus.CONFIRMED).all()

    def check_outs_on(self, day: date) -> list[Booking]:
        return self._with_relations().filter(
            Booking.check_out_date == day, Booking.booking_status == BookingStatus.CHECKED_IN).all()
