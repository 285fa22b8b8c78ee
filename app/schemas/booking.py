from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.models.booking import Booking, BookingSource


class StayDates(BaseModel):
    @field_validator("checkInDate", "checkOutDate", mode="before", check_fields=False)
    @classmethod
    def calendar_date(cls, value):
        # "2025-06-01T14:00:00Z" -> "2025-06-01": stays are whole nights
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value


class PublicBookingCreate(StayDates):
    roomId: str
    customerEmail: str  # plain str to allow .local and other dev domains
    customerFirstName: str = Field(min_length=1)
    customerLastName: str = Field(min_length=1)
    customerPhone: str = ""
    checkInDate: date
    checkOutDate: date
    numberOfGuests: int = Field(default=1, ge=1)
    totalAmount: Optional[Decimal] = None  # informational; the server prices the stay
    specialRequests: Optional[str] = None


class AdminBookingCreate(StayDates):
    roomId: str
    customerId: Optional[str] = None
    customerEmail: Optional[str] = None
    customerFirstName: str = ""
    customerLastName: str = ""
    customerPhone: str = ""
    checkInDate: date
    checkOutDate: date
    numberOfGuests: int = Field(default=1, ge=1)
    source: BookingSource = BookingSource.MANUAL
    specialRequests: Optional[str] = None


class BookingUpdate(StayDates):
    roomId: Optional[str] = None
    checkInDate: Optional[date] = None
    checkOutDate: Optional[date] = None
    numberOfGuests: Optional[int] = Field(default=None, ge=1)
    specialRequests: Optional[str] = None


class LookupRequest(BaseModel):
    bookingNumber: str
    email: str


class CancelRequest(BaseModel):
    override: bool = False


def booking_out(b: Booking, include_payments: bool = False) -> dict:
    out = {
        "id": b.id,
        "bookingNumber": b.booking_number,
        "roomId": b.room_id,
        "customerId": b.customer_id,
        "checkInDate": b.check_in_date.isoformat(),
        "checkOutDate": b.check_out_date.isoformat(),
        "nights": b.nights,
        "numberOfGuests": b.number_of_guests,
        "totalAmount": str(b.total_amount),
        "bookingStatus": b.booking_status.value,
        "paymentStatus": b.payment_status.value,
        "source": b.source.value,
        "specialRequests": b.special_requests,
        "createdAt": b.created_at.isoformat() if b.created_at else None,
    }
    if b.room is not None:
        out["room"] = {"id": b.room.id, "roomNumber": b.room.room_number, "name": b.room.name,
                       "type": b.room.type.value, "price": str(b.room.price)}
    if b.customer is not None:
        out["customer"] = {"id": b.customer.id, "firstName": b.customer.first_name,
                           "lastName": b.customer.last_name, "email": b.customer.email,
                           "phone": b.customer.phone}
    if include_payments:
        out["payments"] = [
            {"reference": p.reference, "amount": p.amount, "currency": p.currency, "status": p.status.value,
             "paidAt": p.paid_at.isoformat() if p.paid_at else None}
            for p in b.payments
        ]
    return out
