"""Payment gateway adapter.

Callers work in major currency units (Decimal). Paystack works in the
smallest unit (kobo, cents); conversion happens here and nowhere else.
"""
import enum
import json
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, GatewayError
from app.models.booking import Booking, PaymentStatus, ACTIVE_STATUSES
from app.models.payment import Payment, PaymentRecordStatus
from app.repositories.payments import PaymentRepository
from app.services.paystack_client import PaystackClient, PaystackConfig, PaystackError

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SUCCESS_STATUSES = {"success"}
FAILED_STATUSES = {"failed", "abandoned", "reversed"}


class PaymentOutcome(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass
class InitializedPayment:
    payment_id: str
    reference: str
    authorization_url: str
    access_code: str = ""


@dataclass
class VerificationResult:
    reference: str
    outcome: PaymentOutcome | None  # None while the provider still reports the charge in flight
    reason: str = ""
    amount: int | None = None
    raw: dict = field(default_factory=dict)


def to_minor_units(amount: Decimal | int | float | str) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(amount: int) -> Decimal:
    return (Decimal(int(amount)) / 100).quantize(Decimal("0.01"))


def make_reference(booking_id: str) -> str:
    return f"HMS-{booking_id}-{int(time.time() * 1000)}"


def paystack_client() -> PaystackClient:
    if not (settings.PAYSTACK_SECRET_KEY or settings.PAYSTACK_SANDBOX):
        raise GatewayError("Paystack is not configured (missing PAYSTACK_SECRET_KEY)")
    return PaystackClient(PaystackConfig(
        secret_key=settings.PAYSTACK_SECRET_KEY,
        base_url=settings.PAYSTACK_BASE_URL,
        timeout=settings.PAYSTACK_TIMEOUT,
        sandbox=settings.PAYSTACK_SANDBOX,
    ))


def initialize_payment(db: Session, client: PaystackClient, booking: Booking, email: str,
                       amount: Decimal, metadata: dict | None = None) -> InitializedPayment:
    """Open a Paystack transaction for the booking and persist it as a PENDING payment."""
    amount_minor = to_minor_units(amount)
    if amount_minor <= 0:
        raise GatewayError("Payment amount must be greater than zero")
    email = (email or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise GatewayError("A valid customer email is required for payment")
    if booking.booking_status not in ACTIVE_STATUSES:
        raise Conflict(f"Booking is {booking.booking_status.value}; payment cannot be started")
    if booking.payment_status != PaymentStatus.PENDING:
        raise Conflict(f"Booking payment is already {booking.payment_status.value}")

    reference = make_reference(booking.id)
    try:
        resp = client.initialize_transaction(
            email=email,
            amount=amount_minor,
            reference=reference,
            currency=settings.PAYSTACK_CURRENCY,
            metadata={"bookingId": booking.id, "bookingNumber": booking.booking_number, **(metadata or {})},
            callback_url=f"{settings.APP_URL.rstrip('/')}/booking/confirmation",
        )
    except PaystackError as e:
        logger.warning("payment initialization failed for booking %s: %s", booking.booking_number, e)
        raise GatewayError(str(e)) from e

    data = resp.get("data") or {}
    authorization_url = data.get("authorization_url")
    if not authorization_url:
        raise GatewayError("Paystack returned no authorization URL")

    payment = PaymentRepository(db).add(Payment(
        id=str(uuid.uuid4()),
        booking_id=booking.id,
        provider="paystack",
        reference=data.get("reference") or reference,
        amount=amount_minor,
        currency=settings.PAYSTACK_CURRENCY,
        status=PaymentRecordStatus.PENDING,
        raw_json=json.dumps(data, default=str),
    ))
    db.commit()
    logger.info("payment %s initialized for booking %s (%d minor units)",
                payment.reference, booking.booking_number, amount_minor)
    return InitializedPayment(
        payment_id=payment.id,
        reference=payment.reference,
        authorization_url=authorization_url,
        access_code=data.get("access_code") or "",
    )


def verify_payment(client: PaystackClient, reference: str) -> VerificationResult:
    """Ask Paystack for the transaction's state. Read-only: local records are not touched."""
    try:
        resp = client.verify_transaction(reference)
    except PaystackError as e:
        raise GatewayError(str(e)) from e

    data = resp.get("data") or {}
    status = str(data.get("status") or "").lower()
    if status in SUCCESS_STATUSES:
        outcome = PaymentOutcome.SUCCESS
    elif status in FAILED_STATUSES:
        outcome = PaymentOutcome.FAILED
    else:
        outcome = None
    amount = data.get("amount")
    return VerificationResult(
        reference=reference,
        outcome=outcome,
        reason=str(data.get("gateway_response") or status),
        amount=int(amount) if amount is not None else None,
        raw=data,
    )


def refund_payment(client: PaystackClient, payment: Payment) -> dict:
    try:
        resp = client.refund(reference=payment.reference, amount=payment.amount)
    except PaystackError as e:
        raise GatewayError(str(e)) from e
    return resp.get("data") or {}
