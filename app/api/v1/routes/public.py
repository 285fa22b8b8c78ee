from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_booking_service, get_paystack_client
from app.models.room import Room, RoomType
from app.repositories.bookings import BookingRepository
from app.repositories.rooms import RoomRepository
from app.schemas.booking import LookupRequest, PublicBookingCreate, booking_out
from app.services.availability_service import available_rooms, is_available, nights_between
from app.services.booking_service import BookingService
from app.services.paystack_client import PaystackClient

router = APIRouter(tags=["public"])


def _room_out(r: Room, nights: int | None = None) -> dict:
    out = {
        "id": r.id,
        "roomNumber": r.room_number,
        "name": r.name,
        "type": r.type.value,
        "price": str(r.price),
        "capacity": r.capacity,
    }
    if nights is not None:
        out["nights"] = nights
        out["totalAmount"] = str(r.price * nights)
    return out


@router.post("/public/bookings", status_code=201)
def create_public_booking(
    body: PublicBookingCreate,
    svc: BookingService = Depends(get_booking_service),
    client: PaystackClient = Depends(get_paystack_client),
):
    """Book a room and open the Paystack checkout for it."""
    result = svc.create_public_booking(
        client,
        room_id=body.roomId,
        email=body.customerEmail,
        first_name=body.customerFirstName,
        last_name=body.customerLastName,
        phone=body.customerPhone,
        check_in=body.checkInDate,
        check_out=body.checkOutDate,
        guests=body.numberOfGuests,
        special_requests=body.specialRequests,
        quoted=body.totalAmount,
    )
    return {
        "success": True,
        "booking": {
            "id": result.booking.id,
            "bookingNumber": result.booking.booking_number,
            "totalAmount": str(result.booking.total_amount),
        },
        "payment": {
            "authorizationUrl": result.payment.authorization_url,
            "reference": result.payment.reference,
        },
    }


@router.post("/public/bookings/lookup")
def lookup_booking(body: LookupRequest, svc: BookingService = Depends(get_booking_service)):
    b = svc.get_booking_by_number_and_email(body.bookingNumber, body.email)
    return {"success": True, "booking": booking_out(b)}


@router.get("/public/bookings/reference/{reference}")
def booking_by_reference(reference: str, svc: BookingService = Depends(get_booking_service)):
    b = svc.get_booking_by_reference(reference)
    return {"success": True, "booking": booking_out(b)}


@router.post("/public/bookings/cancel")
def cancel_public_booking(body: LookupRequest, svc: BookingService = Depends(get_booking_service)):
    b = svc.cancel_public_booking(body.bookingNumber, body.email)
    return {"success": True, "booking": booking_out(b)}


@router.get("/public/rooms/available")
def list_available_rooms(checkIn: date, checkOut: date, type: Optional[RoomType] = None,
                         guests: Optional[int] = None, db: Session = Depends(get_db)):
    rooms = available_rooms(RoomRepository(db), BookingRepository(db), checkIn, checkOut,
                            room_type=type, guests=guests)
    nights = nights_between(checkIn, checkOut)
    return {"success": True, "rooms": [_room_out(r, nights) for r in rooms]}


@router.get("/public/rooms/{room_id}/availability")
def room_availability(room_id: str, checkIn: date, checkOut: date, db: Session = Depends(get_db)):
    ok = is_available(RoomRepository(db), BookingRepository(db), room_id, checkIn, checkOut)
    return {"success": True, "roomId": room_id, "available": ok}
