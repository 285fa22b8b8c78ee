"""Booking lifecycle.

    CONFIRMED --check_in--> CHECKED_IN --check_out--> CHECKED_OUT
        |                       |
        +--cancel--> CANCELLED <+-- cancel (administrative override only)

CHECKED_OUT and CANCELLED are terminal. Every refused event raises
InvalidTransition; nothing is silently ignored.
"""
import enum
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import Conflict, InvalidTransition
from app.models.booking import Booking, BookingStatus, PaymentStatus, ACTIVE_STATUSES
from app.models.room import RoomStatus
from app.repositories.bookings import BookingRepository
from app.repositories.rooms import RoomRepository
from app.services.activity_log_service import ActivityEntry, ActivitySink, discard, emit_safely


class BookingEvent(str, enum.Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    CANCEL = "cancel"


TRANSITIONS: dict[tuple[BookingStatus, BookingEvent], BookingStatus] = {
    (BookingStatus.CONFIRMED, BookingEvent.CHECK_IN): BookingStatus.CHECKED_IN,
    (BookingStatus.CHECKED_IN, BookingEvent.CHECK_OUT): BookingStatus.CHECKED_OUT,
    (BookingStatus.CONFIRMED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.CHECKED_IN, BookingEvent.CANCEL): BookingStatus.CANCELLED,
}

ACTIVITY_ACTIONS = {
    BookingEvent.CHECK_IN: "CHECK_IN",
    BookingEvent.CHECK_OUT: "CHECK_OUT",
    BookingEvent.CANCEL: "CANCEL",
}


@dataclass(frozen=True)
class BookingPolicy:
    check_in_requires_payment: bool = False
    allow_checked_in_cancel: bool = True

    @classmethod
    def from_settings(cls, s: Settings) -> "BookingPolicy":
        return cls(
            check_in_requires_payment=s.CHECK_IN_REQUIRES_PAYMENT,
            allow_checked_in_cancel=s.ALLOW_CHECKED_IN_CANCEL,
        )


def next_status(booking: Booking, event: BookingEvent, *, today: date, policy: BookingPolicy,
                override: bool = False) -> BookingStatus:
    current = BookingStatus(booking.booking_status)
    target = TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransition(current.value, event.value)

    if event == BookingEvent.CHECK_IN:
        if not (booking.check_in_date <= today < booking.check_out_date):
            raise InvalidTransition(
                current.value, event.value,
                f"{today.isoformat()} is outside the stay {booking.check_in_date.isoformat()}"
                f" to {booking.check_out_date.isoformat()}",
            )
        if booking.payment_status == PaymentStatus.FAILED:
            raise InvalidTransition(current.value, event.value, "payment failed")
        if policy.check_in_requires_payment and booking.payment_status != PaymentStatus.PAID:
            raise InvalidTransition(current.value, event.value, "payment is not settled")

    if event == BookingEvent.CANCEL and current == BookingStatus.CHECKED_IN:
        if not policy.allow_checked_in_cancel:
            raise InvalidTransition(current.value, event.value, "guest is checked in")
        if not override:
            raise InvalidTransition(current.value, event.value, "guest is checked in; administrative override required")

    return target


def apply_transition(db: Session, booking: Booking, event: BookingEvent, *, actor_id: str, today: date,
                     policy: BookingPolicy, override: bool = False, emit: ActivitySink = discard) -> Booking:
    """Validate, persist with a conditional write, commit, then emit the activity entry."""
    bookings, rooms = BookingRepository(db), RoomRepository(db)
    current = BookingStatus(booking.booking_status)
    target = next_status(booking, event, today=today, policy=policy, override=override)

    if not bookings.update_status_if(booking.id, current, target):
        db.rollback()
        raise Conflict("Booking was changed by another request; reload and retry")

    if target not in ACTIVE_STATUSES:
        bookings.release_nights(booking.id)

    room = rooms.get(booking.room_id)
    if room is not None:
        if target == BookingStatus.CHECKED_IN:
            rooms.set_status(room, RoomStatus.OCCUPIED)
        elif current == BookingStatus.CHECKED_IN:
            rooms.set_status(room, RoomStatus.AVAILABLE)

    db.commit()
    db.refresh(booking)

    details = {
        "bookingNumber": booking.booking_number,
        "roomNumber": room.room_number if room else None,
        "customerName": booking.customer.full_name if booking.customer else None,
        "checkInDate": booking.check_in_date.isoformat(),
        "checkOutDate": booking.check_out_date.isoformat(),
        "from": current.value,
        "to": target.value,
    }
    if override:
        details["override"] = True
    emit_safely(emit, ActivityEntry("BOOKING", booking.id, ACTIVITY_ACTIONS[event], actor_id, details))
    return booking
