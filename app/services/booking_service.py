import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, HotelError, NotFound, RoomUnavailable, ValidationError
from app.models.booking import Booking, BookingSource, BookingStatus, PaymentStatus, ACTIVE_STATUSES
from app.models.customer import Customer
from app.models.payment import PaymentRecordStatus
from app.models.room import Room, RoomStatus
from app.repositories.bookings import BookingFilters, BookingRepository
from app.repositories.customers import CustomerRepository
from app.repositories.payments import PaymentRepository
from app.repositories.rooms import RoomRepository
from app.services.activity_log_service import ActivityEntry, ActivitySink, discard, emit_safely, logged
from app.services.availability_service import as_date, nights_between, validate_range
from app.services.booking_state import BookingEvent, BookingPolicy, apply_transition
from app.services.payment_service import InitializedPayment, initialize_payment, refund_payment, to_major_units
from app.services.paystack_client import PaystackClient

logger = logging.getLogger(__name__)

NUMBER_ATTEMPTS = 10


def hotel_today() -> date:
    return datetime.now(ZoneInfo(settings.HOTEL_TIMEZONE)).date()


@dataclass
class PublicBooking:
    booking: Booking
    payment: InitializedPayment


def _describe(booking: Booking) -> dict:
    return {
        "bookingNumber": booking.booking_number,
        "roomNumber": booking.room.room_number if booking.room else None,
        "customerName": booking.customer.full_name if booking.customer else None,
        "checkInDate": booking.check_in_date.isoformat(),
        "checkOutDate": booking.check_out_date.isoformat(),
        "totalAmount": str(booking.total_amount),
    }


class BookingService:
    """Booking workflows. Every write commits before its activity entry is emitted."""

    def __init__(self, db: Session, *, policy: BookingPolicy | None = None, emit: ActivitySink = discard,
                 clock: Callable[[], date] = hotel_today):
        self.db = db
        self.rooms = RoomRepository(db)
        self.customers = CustomerRepository(db)
        self.bookings = BookingRepository(db)
        self.payments = PaymentRepository(db)
        self.policy = policy or BookingPolicy.from_settings(settings)
        self.emit = emit
        self.clock = clock

    # ---- reads ----

    def get_booking_by_id(self, booking_id: str) -> Booking:
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    def get_booking_by_number(self, booking_number: str) -> Booking:
        booking = self.bookings.get_by_number(booking_number)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    def get_booking_by_number_and_email(self, booking_number: str, email: str) -> Booking:
        # same answer for a wrong number and a wrong email
        booking = self.bookings.get_by_number_and_email(booking_number, email)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    def get_booking_by_reference(self, reference: str) -> Booking:
        booking = self.bookings.get_by_payment_reference(reference)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    def get_bookings(self, filters: BookingFilters | None = None) -> list[Booking]:
        return self.bookings.search(filters)

    def get_calendar_events(self, start: date | None = None, end: date | None = None) -> list[Booking]:
        if start and end and as_date(start) > as_date(end):
            raise ValidationError("Calendar start must not be after its end")
        return self.bookings.calendar(as_date(start) if start else None, as_date(end) if end else None)

    def get_today_check_ins(self) -> list[Booking]:
        return self.bookings.check_ins_on(self.clock())

    def get_today_check_outs(self) -> list[Booking]:
        return self.bookings.check_outs_on(self.clock())

    # ---- writes ----

    def _next_booking_number(self, day: date, skip: int = 0) -> str:
        prefix = f"BK{day:%Y%m%d}"
        seq = self.bookings.count_numbered(prefix) + 1 + skip
        for _ in range(NUMBER_ATTEMPTS):
            number = f"{prefix}{seq:04d}"
            if not self.bookings.number_exists(number):
                return number
            seq += 1
        raise Conflict("Could not allocate a booking number; retry")

    def _check_guests(self, room: Room, guests: int) -> None:
        if guests < 1:
            raise ValidationError("At least one guest is required")
        if guests > room.capacity:
            raise ValidationError(f"Room {room.room_number} sleeps at most {room.capacity} guests")

    def _claim(self, booking: Booking) -> None:
        try:
            self.bookings.claim_nights(booking)
        except IntegrityError as e:
            self.db.rollback()
            logger.info("room %s lost a race for %s..%s", booking.room_id,
                        booking.check_in_date, booking.check_out_date)
            raise RoomUnavailable() from e

    def create_booking(self, *, room_id: str, customer_id: str, check_in: date, check_out: date, guests: int,
                       special_requests: str | None = None, source: BookingSource = BookingSource.ONLINE,
                       created_by_id: str | None = None, actor_id: str = "system") -> Booking:
        check_in, check_out = validate_range(check_in, check_out)
        today = self.clock()
        if check_in < today:
            raise ValidationError("Check-in date cannot be in the past")
        if self.customers.get(customer_id) is None:
            raise NotFound("Customer not found")

        return logged(
            lambda: self._insert_booking(room_id, customer_id, check_in, check_out, guests, today,
                                         special_requests=special_requests, source=source,
                                         created_by_id=created_by_id),
            lambda b: ActivityEntry("BOOKING", b.id, "CREATE", actor_id, {**_describe(b), "source": b.source.value}),
            self.emit,
        )

    def _insert_booking(self, room_id: str, customer_id: str, check_in: date, check_out: date, guests: int,
                        today: date, *, special_requests: str | None, source: BookingSource,
                        created_by_id: str | None) -> Booking:
        # a concurrent create on another room may take the same number; start over with the next one
        for attempt in range(NUMBER_ATTEMPTS):
            # serialises creators for this room until commit
            room = self.rooms.get_for_update(room_id)
            if room is None:
                raise NotFound("Room not found")
            if room.status == RoomStatus.MAINTENANCE:
                raise RoomUnavailable("Room is under maintenance")
            self._check_guests(room, guests)
            if self.bookings.count_overlapping(room.id, check_in, check_out) > 0:
                self.db.rollback()
                raise RoomUnavailable()

            booking = Booking(
                id=str(uuid.uuid4()),
                booking_number=self._next_booking_number(today, skip=attempt),
                room_id=room.id,
                customer_id=customer_id,
                created_by_id=created_by_id,
                check_in_date=check_in,
                check_out_date=check_out,
                number_of_guests=guests,
                total_amount=Decimal(room.price) * nights_between(check_in, check_out),
                booking_status=BookingStatus.CONFIRMED,
                payment_status=PaymentStatus.PENDING,
                source=source,
                special_requests=special_requests,
            )
            try:
                self.bookings.add(booking)
            except IntegrityError:
                self.db.rollback()
                logger.info("booking number %s already taken; retrying", booking.booking_number)
                continue
            self._claim(booking)
            self.db.commit()
            booking = self.get_booking_by_id(booking.id)
            logger.info("booking %s created for room %s (%s..%s)", booking.booking_number, room.room_number,
                        check_in, check_out)
            return booking
        raise Conflict("Could not allocate a booking number; retry")

    def check_in(self, booking_id: str, *, actor_id: str) -> Booking:
        return self._transition(booking_id, BookingEvent.CHECK_IN, actor_id)

    def check_out(self, booking_id: str, *, actor_id: str) -> Booking:
        return self._transition(booking_id, BookingEvent.CHECK_OUT, actor_id)

    def cancel(self, booking_id: str, *, actor_id: str, override: bool = False) -> Booking:
        return self._transition(booking_id, BookingEvent.CANCEL, actor_id, override=override)

    def _transition(self, booking_id: str, event: BookingEvent, actor_id: str, override: bool = False) -> Booking:
        booking = self.get_booking_by_id(booking_id)
        apply_transition(self.db, booking, event, actor_id=actor_id, today=self.clock(), policy=self.policy,
                         override=override, emit=self.emit)
        return self.get_booking_by_id(booking_id)

    def update_booking(self, booking_id: str, *, actor_id: str, room_id: str | None = None,
                       check_in: date | None = None, check_out: date | None = None, guests: int | None = None,
                       special_requests: str | None = None) -> Booking:
        booking = self.get_booking_by_id(booking_id)
        status = BookingStatus(booking.booking_status)
        if status not in ACTIVE_STATUSES:
            raise Conflict(f"Booking is {status.value}; it can no longer be changed")

        new_room_id = room_id or booking.room_id
        new_in = as_date(check_in) if check_in else booking.check_in_date
        new_out = as_date(check_out) if check_out else booking.check_out_date
        new_in, new_out = validate_range(new_in, new_out)
        if status == BookingStatus.CHECKED_IN and (new_room_id != booking.room_id or new_in != booking.check_in_date):
            raise Conflict("Room and check-in date are fixed once the guest is checked in")
        if new_in != booking.check_in_date and new_in < self.clock():
            raise ValidationError("Check-in date cannot be in the past")

        moved = (new_room_id, new_in, new_out) != (booking.room_id, booking.check_in_date, booking.check_out_date)
        room = self.rooms.get_for_update(new_room_id) if moved else booking.room
        if room is None:
            raise NotFound("Room not found")
        new_guests = guests if guests is not None else booking.number_of_guests
        self._check_guests(room, new_guests)

        changes: dict = {}
        if moved:
            if room.id != booking.room_id and room.status == RoomStatus.MAINTENANCE:
                raise RoomUnavailable("Room is under maintenance")
            if self.bookings.count_overlapping(room.id, new_in, new_out, exclude_booking_id=booking.id) > 0:
                self.db.rollback()
                raise RoomUnavailable()
            old_total = booking.total_amount
            self.bookings.release_nights(booking.id)
            booking.room = room
            booking.check_in_date = new_in
            booking.check_out_date = new_out
            booking.total_amount = Decimal(room.price) * nights_between(new_in, new_out)
            self.db.flush()
            self._claim(booking)
            changes.update(roomNumber=room.room_number, checkInDate=new_in.isoformat(),
                           checkOutDate=new_out.isoformat(), totalAmount=str(booking.total_amount))
            if booking.payment_status == PaymentStatus.PAID and booking.total_amount != old_total:
                logger.warning("booking %s total changed from %s to %s after payment",
                               booking.booking_number, old_total, booking.total_amount)
        if new_guests != booking.number_of_guests:
            booking.number_of_guests = new_guests
            changes["numberOfGuests"] = new_guests
        if special_requests is not None and special_requests != booking.special_requests:
            booking.special_requests = special_requests
            changes["specialRequests"] = special_requests

        self.db.commit()
        booking = self.get_booking_by_id(booking_id)
        if changes:
            emit_safely(self.emit, ActivityEntry("BOOKING", booking.id, "UPDATE", actor_id,
                                                 {"bookingNumber": booking.booking_number, "changes": changes}))
        return booking

    def refund(self, booking_id: str, client: PaystackClient, *, actor_id: str) -> Booking:
        booking = self.get_booking_by_id(booking_id)
        if booking.payment_status != PaymentStatus.PAID:
            raise Conflict(f"Only paid bookings can be refunded (payment is {booking.payment_status.value})")
        payment = self.payments.latest_for_booking(booking.id, status=PaymentRecordStatus.SUCCESS)
        if payment is None:
            raise Conflict("Booking has no successful payment to refund")

        # claim the PAID -> REFUNDED move before talking to the gateway
        if not self.bookings.update_payment_status_if(booking.id, PaymentStatus.PAID, PaymentStatus.REFUNDED):
            self.db.rollback()
            raise Conflict("Booking payment was changed by another request; reload and retry")
        try:
            data = refund_payment(client, payment)
        except HotelError:
            self.db.rollback()
            raise
        self.db.commit()

        booking = self.get_booking_by_id(booking_id)
        logger.info("booking %s refunded (%s)", booking.booking_number, payment.reference)
        emit_safely(self.emit, ActivityEntry("BOOKING", booking.id, "REFUND", actor_id, {
            "bookingNumber": booking.booking_number,
            "reference": payment.reference,
            "amount": str(to_major_units(payment.amount)),
            "refundStatus": data.get("status"),
        }))
        return booking

    # ---- public flow ----

    def find_or_create_customer(self, *, email: str, first_name: str, last_name: str, phone: str = "",
                                actor_id: str = "public") -> Customer:
        customer = self.customers.get_by_email(email)
        if customer is not None:
            return customer
        try:
            customer = self.customers.add(Customer(
                id=str(uuid.uuid4()), email=email, first_name=first_name.strip(),
                last_name=last_name.strip(), phone=(phone or "").strip(),
            ))
            self.db.commit()
        except IntegrityError:
            # created concurrently by another request with the same email
            self.db.rollback()
            customer = self.customers.get_by_email(email)
            if customer is None:
                raise
            return customer
        emit_safely(self.emit, ActivityEntry("CUSTOMER", customer.id, "CREATE", actor_id,
                                             {"email": customer.email, "name": customer.full_name}))
        return customer

    def create_public_booking(self, client: PaystackClient, *, room_id: str, email: str, first_name: str,
                              last_name: str, phone: str, check_in: date, check_out: date, guests: int,
                              special_requests: str | None = None,
                              quoted: Decimal | None = None) -> PublicBooking:
        """Customer self-service booking: create it, then open a payment. A booking that cannot be paid is cancelled."""
        customer = self.find_or_create_customer(email=email, first_name=first_name, last_name=last_name, phone=phone)
        booking = self.create_booking(
            room_id=room_id,
            customer_id=customer.id,
            check_in=check_in,
            check_out=check_out,
            guests=guests,
            special_requests=special_requests,
            source=BookingSource.ONLINE,
            actor_id="public",
        )
        if quoted is not None and Decimal(str(quoted)) != booking.total_amount:
            logger.warning("booking %s: client quoted %s, charging %s", booking.booking_number, quoted,
                           booking.total_amount)

        try:
            payment = initialize_payment(self.db, client, booking, customer.email, booking.total_amount)
        except HotelError:
            self.db.rollback()
            logger.warning("cancelling %s: payment could not be started", booking.booking_number)
            self.cancel(booking.id, actor_id="public")
            raise
        return PublicBooking(booking=self.get_booking_by_id(booking.id), payment=payment)

    def cancel_public_booking(self, booking_number: str, email: str) -> Booking:
        booking = self.get_booking_by_number_and_email(booking_number, email)
        return self.cancel(booking.id, actor_id="public")
