from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from app.api.deps import get_booking_service, get_paystack_client, require_permission
from app.core.errors import Forbidden, ValidationError
from app.core.permissions import has_all_permissions, has_permission
from app.models.booking import BookingStatus, PaymentStatus
from app.models.staff import Staff
from app.repositories.bookings import BookingFilters
from app.schemas.booking import AdminBookingCreate, BookingUpdate, CancelRequest, booking_out
from app.services.booking_service import BookingService
from app.services.paystack_client import PaystackClient

router = APIRouter(tags=["bookings"])


@router.get("/admin/bookings")
def list_bookings(
    q: Optional[str] = None,
    bookingStatus: Optional[BookingStatus] = None,
    paymentStatus: Optional[PaymentStatus] = None,
    customerId: Optional[str] = None,
    roomId: Optional[str] = None,
    startDate: Optional[date] = None,
    endDate: Optional[date] = None,
    svc: BookingService = Depends(get_booking_service),
    _: Staff = Depends(require_permission("bookings:read")),
):
    items = svc.get_bookings(BookingFilters(
        query=q, booking_status=bookingStatus, payment_status=paymentStatus,
        customer_id=customerId, room_id=roomId, start_date=startDate, end_date=endDate,
    ))
    return {"success": True, "bookings": [booking_out(b) for b in items]}


@router.get("/admin/bookings/calendar")
def calendar(start: Optional[date] = None, end: Optional[date] = None,
             svc: BookingService = Depends(get_booking_service),
             _: Staff = Depends(require_permission("bookings:read"))):
    events = []
    for b in svc.get_calendar_events(start, end):
        events.append({
            "id": b.id,
            "title": f"{b.room.room_number} - {b.customer.full_name}",
            "start": b.check_in_date.isoformat(),
            "end": b.check_out_date.isoformat(),
            "bookingNumber": b.booking_number,
            "bookingStatus": b.booking_status.value,
            "paymentStatus": b.payment_status.value,
        })
    return {"success": True, "events": events}


@router.get("/admin/bookings/today")
def today(svc: BookingService = Depends(get_booking_service),
          _: Staff = Depends(require_permission("bookings:read"))):
    return {
        "success": True,
        "date": svc.clock().isoformat(),
        "checkIns": [booking_out(b) for b in svc.get_today_check_ins()],
        "checkOuts": [booking_out(b) for b in svc.get_today_check_outs()],
    }


@router.get("/admin/bookings/{booking_id}")
def get_booking(booking_id: str, svc: BookingService = Depends(get_booking_service),
                _: Staff = Depends(require_permission("bookings:read"))):
    return {"success": True, "booking": booking_out(svc.get_booking_by_id(booking_id), include_payments=True)}


@router.post("/admin/bookings", status_code=201)
def create_booking(body: AdminBookingCreate, svc: BookingService = Depends(get_booking_service),
                   staff: Staff = Depends(require_permission("bookings:create"))):
    if body.customerId:
        customer_id = body.customerId
    elif body.customerEmail:
        if not has_permission(staff.role, "customers:create"):
            raise Forbidden("Missing permission customers:create")
        customer_id = svc.find_or_create_customer(
            email=body.customerEmail, first_name=body.customerFirstName, last_name=body.customerLastName,
            phone=body.customerPhone, actor_id=staff.id,
        ).id
    else:
        raise ValidationError("customerId or customerEmail is required")
    b = svc.create_booking(
        room_id=body.roomId,
        customer_id=customer_id,
        check_in=body.checkInDate,
        check_out=body.checkOutDate,
        guests=body.numberOfGuests,
        special_requests=body.specialRequests,
        source=body.source,
        created_by_id=staff.id,
        actor_id=staff.id,
    )
    return {"success": True, "booking": booking_out(b)}


@router.patch("/admin/bookings/{booking_id}")
def update_booking(booking_id: str, body: BookingUpdate, svc: BookingService = Depends(get_booking_service),
                   staff: Staff = Depends(require_permission("bookings:update"))):
    b = svc.update_booking(
        booking_id,
        actor_id=staff.id,
        room_id=body.roomId,
        check_in=body.checkInDate,
        check_out=body.checkOutDate,
        guests=body.numberOfGuests,
        special_requests=body.specialRequests,
    )
    return {"success": True, "booking": booking_out(b)}


@router.post("/admin/bookings/{booking_id}/check-in")
def check_in(booking_id: str, svc: BookingService = Depends(get_booking_service),
             staff: Staff = Depends(require_permission("bookings:checkin"))):
    return {"success": True, "booking": booking_out(svc.check_in(booking_id, actor_id=staff.id))}


@router.post("/admin/bookings/{booking_id}/check-out")
def check_out(booking_id: str, svc: BookingService = Depends(get_booking_service),
              staff: Staff = Depends(require_permission("bookings:checkout"))):
    return {"success": True, "booking": booking_out(svc.check_out(booking_id, actor_id=staff.id))}


@router.post("/admin/bookings/{booking_id}/cancel")
def cancel(booking_id: str, body: CancelRequest | None = None, svc: BookingService = Depends(get_booking_service),
           staff: Staff = Depends(require_permission("bookings:update"))):
    override = bool(body and body.override)
    # cancelling an occupied stay is a manager decision
    if override and not has_all_permissions(staff.role, ["bookings:update", "bookings:delete"]):
        raise Forbidden("Missing permission bookings:delete")
    return {"success": True, "booking": booking_out(svc.cancel(booking_id, actor_id=staff.id, override=override))}


@router.post("/admin/bookings/{booking_id}/refund")
def refund(booking_id: str, svc: BookingService = Depends(get_booking_service),
           client: PaystackClient = Depends(get_paystack_client),
           staff: Staff = Depends(require_permission("bookings:delete"))):
    return {"success": True, "booking": booking_out(svc.refund(booking_id, client, actor_id=staff.id))}
