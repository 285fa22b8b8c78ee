import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.auth import LoginRequest, RefreshRequest, TokenPair
from app.models.staff import Staff
from app.core.errors import Unauthorized
from app.core.permissions import ROLE_PERMISSIONS, has_any_permission
from app.core.security import verify_password, create_access_token, create_refresh_token, decode_token
from app.api.deps import get_current_staff

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _tokens(staff: Staff) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(staff.id, role=staff.role.value),
        refresh_token=create_refresh_token(staff.id),
    )


@router.post("/auth/login", response_model=TokenPair)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    staff = db.query(Staff).filter(Staff.email == body.email.strip().lower()).first()
    if not staff or not staff.is_active or not verify_password(body.password, staff.password_hash):
        logger.info("failed login for %s", body.email)
        raise Unauthorized("Invalid credentials")
    return _tokens(staff)


@router.post("/auth/refresh", response_model=TokenPair)
def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(body.refresh_token, expected_type="refresh")
    staff = db.get(Staff, payload.get("sub"))
    if not staff or not staff.is_active:
        raise Unauthorized("Staff member not found or inactive")
    return _tokens(staff)


@router.get("/auth/me")
def me(me: Staff = Depends(get_current_staff)):
    """Current staff member, role and effective permissions."""
    return {
        "id": me.id,
        "email": me.email,
        "firstName": me.first_name,
        "lastName": me.last_name,
        "role": me.role.value,
        "permissions": sorted(ROLE_PERMISSIONS.get(me.role, ())),
        "canManageBookings": has_any_permission(
            me.role, ["bookings:create", "bookings:update", "bookings:checkin", "bookings:checkout"]
        ),
    }
