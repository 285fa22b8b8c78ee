from datetime import date, datetime

from app.core.errors import NotFound, ValidationError
from app.models.room import Room, RoomStatus, RoomType
from app.repositories.bookings import BookingRepository
from app.repositories.rooms import RoomRepository


def as_date(value: date | datetime) -> date:
    """Calendar date; time-of-day is ignored."""
    if isinstance(value, datetime):
        return value.date()
    return value


def nights_between(check_in: date, check_out: date) -> int:
    return (as_date(check_out) - as_date(check_in)).days


def validate_range(check_in: date, check_out: date) -> tuple[date, date]:
    check_in, check_out = as_date(check_in), as_date(check_out)
    if check_in >= check_out:
        raise ValidationError("Check-out date must be after check-in date")
    return check_in, check_out


def is_available(rooms: RoomRepository, bookings: BookingRepository, room_id: str,
                 check_in: date, check_out: date, exclude_booking_id: str | None = None) -> bool:
    check_in, check_out = validate_range(check_in, check_out)
    if rooms.get(room_id) is None:
        raise NotFound("Room not found")
    return bookings.count_overlapping(room_id, check_in, check_out, exclude_booking_id) == 0


def available_rooms(rooms: RoomRepository, bookings: BookingRepository, check_in: date, check_out: date,
                    room_type: RoomType | None = None, guests: int | None = None) -> list[Room]:
    check_in, check_out = validate_range(check_in, check_out)
    candidates = rooms.list(room_type=room_type, min_capacity=guests)
    # OCCUPIED only describes tonight; rooms under maintenance are never offered
    return [
        r for r in candidates
        if r.status != RoomStatus.MAINTENANCE and bookings.count_overlapping(r.id, check_in, check_out) == 0
    ]
