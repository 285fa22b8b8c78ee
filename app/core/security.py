from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.errors import Unauthorized

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ALGO = "HS256"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _encode(staff_id: str, token_type: str, role: str | None, lifetime: timedelta) -> str:
    payload = {"sub": staff_id, "type": token_type, "exp": datetime.now(timezone.utc) + lifetime}
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGO)


def create_access_token(staff_id: str, role: str | None = None, expires_minutes: int | None = None) -> str:
    if expires_minutes is None:
        expires_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES
    return _encode(staff_id, "access", role, timedelta(minutes=expires_minutes))


def create_refresh_token(staff_id: str, expires_days: int | None = None) -> str:
    if expires_days is None:
        expires_days = settings.REFRESH_TOKEN_EXPIRE_DAYS
    return _encode(staff_id, "refresh", None, timedelta(days=expires_days))


def decode_token(token: str, expected_type: str = "access") -> dict:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGO])
    except JWTError:
        raise Unauthorized("Invalid token")
    if payload.get("type") != expected_type:
        raise Unauthorized("Invalid token type")
    return payload
