from datetime import date
from typing import Callable

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session, sessionmaker

from app.db.session import get_db, get_session_factory
from app.core.errors import Forbidden, Unauthorized
from app.core.permissions import has_permission
from app.core.security import decode_token
from app.models.staff import Staff
from app.services.activity_log_service import ActivityEntry, ActivitySink, record_activity
from app.services.booking_service import BookingService, hotel_today
from app.services.payment_service import paystack_client
from app.services.paystack_client import PaystackClient

bearer = HTTPBearer(auto_error=False)


def get_current_staff(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> Staff:
    if not creds:
        raise Unauthorized("Not authenticated")
    payload = decode_token(creds.credentials)
    staff = db.get(Staff, payload.get("sub"))
    if not staff or not staff.is_active:
        raise Unauthorized("Staff member not found or inactive")
    return staff


def require_permission(permission: str):
    def _guard(staff: Staff = Depends(get_current_staff)) -> Staff:
        if not has_permission(staff.role, permission):
            raise Forbidden(f"Missing permission {permission}")
        return staff
    return _guard


def get_paystack_client() -> PaystackClient:
    return paystack_client()


def get_clock() -> Callable[[], date]:
    return hotel_today


def get_activity_sink(
    request: Request,
    background: BackgroundTasks,
    session_factory: sessionmaker = Depends(get_session_factory),
) -> ActivitySink:
    """Activity entries are written after the response is sent, in their own session."""
    ip = request.client.host if request.client else None

    def _emit(entry: ActivityEntry) -> None:
        if entry.ip_address is None:
            entry.ip_address = ip
        background.add_task(record_activity, session_factory, entry)
    return _emit


def get_booking_service(
    db: Session = Depends(get_db),
    emit: ActivitySink = Depends(get_activity_sink),
    clock: Callable[[], date] = Depends(get_clock),
) -> BookingService:
    return BookingService(db, emit=emit, clock=clock)
