"""Apply a provider's terminal payment outcome to local state exactly once.

Both the redirect (verify) path and the webhook end up in reconcile(). The
first terminal write wins: a repeat of the same outcome is a no-op, a
different outcome raises OutcomeConflict and leaves the record untouched.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.core.errors import Conflict, NotFound
from app.models.booking import Booking, PaymentStatus
from app.models.payment import Payment, PaymentRecordStatus
from app.repositories.bookings import BookingRepository
from app.repositories.payments import PaymentRepository
from app.services.activity_log_service import ActivityEntry, ActivitySink, discard, emit_safely
from app.services.payment_service import PaymentOutcome, VerificationResult, to_major_units

logger = logging.getLogger(__name__)

_RECORD_STATUS = {
    PaymentOutcome.SUCCESS: PaymentRecordStatus.SUCCESS,
    PaymentOutcome.FAILED: PaymentRecordStatus.FAILED,
}
_BOOKING_STATUS = {
    PaymentOutcome.SUCCESS: PaymentStatus.PAID,
    PaymentOutcome.FAILED: PaymentStatus.FAILED,
}


@dataclass
class ReconciliationResult:
    reference: str
    payment_id: str
    booking_id: str
    payment_status: PaymentRecordStatus
    booking_payment_status: PaymentStatus
    applied: bool


class OutcomeConflict(Conflict):
    def __init__(self, result: ReconciliationResult, attempted: PaymentOutcome):
        super().__init__(
            f"Payment {result.reference} is already {result.payment_status.value}; "
            f"refusing to record {attempted.value}"
        )
        self.result = result
        self.attempted = attempted


def _result(db: Session, payment: Payment, applied: bool) -> ReconciliationResult:
    booking = db.get(Booking, payment.booking_id)
    return ReconciliationResult(
        reference=payment.reference,
        payment_id=payment.id,
        booking_id=payment.booking_id,
        payment_status=PaymentRecordStatus(payment.status),
        booking_payment_status=PaymentStatus(booking.payment_status),
        applied=applied,
    )


def _already_terminal(db: Session, payment: Payment, outcome: PaymentOutcome) -> ReconciliationResult:
    result = _result(db, payment, applied=False)
    if payment.status != _RECORD_STATUS[outcome]:
        logger.warning("payment %s: %s received but %s already recorded",
                       payment.reference, outcome.value, payment.status.value)
        raise OutcomeConflict(result, outcome)
    logger.info("payment %s already %s; nothing to do", payment.reference, payment.status.value)
    return result


def reconcile(db: Session, reference: str, outcome: PaymentOutcome, reason: str | None = None, *,
              amount: int | None = None, raw: dict | None = None, actor_id: str = "paystack",
              emit: ActivitySink = discard) -> ReconciliationResult:
    payments, bookings = PaymentRepository(db), BookingRepository(db)
    payment = payments.get_by_reference(reference)
    if payment is None:
        raise NotFound(f"No payment with reference {reference}")
    outcome = PaymentOutcome(outcome)

    # an underpaid success is recorded, and replayed, as a failure
    if outcome == PaymentOutcome.SUCCESS and amount is not None and int(amount) < payment.amount:
        reason = f"Paid amount {amount} is less than expected {payment.amount}"
        outcome = PaymentOutcome.FAILED

    if payment.status != PaymentRecordStatus.PENDING:
        return _already_terminal(db, payment, outcome)

    won = payments.mark_terminal_if_pending(
        payment.id,
        _RECORD_STATUS[outcome],
        reason=reason,
        raw_json=json.dumps(raw, default=str) if raw is not None else None,
        paid_at=datetime.now(timezone.utc) if outcome == PaymentOutcome.SUCCESS else None,
    )
    if not won:
        # a concurrent delivery got there first
        db.rollback()
        db.refresh(payment)
        return _already_terminal(db, payment, outcome)

    target = _BOOKING_STATUS[outcome]
    if not bookings.update_payment_status_if(payment.booking_id, PaymentStatus.PENDING, target):
        logger.warning("booking %s payment status is not PENDING; left as is after %s",
                       payment.booking_id, outcome.value)
    db.commit()
    db.refresh(payment)

    result = _result(db, payment, applied=True)
    booking = db.get(Booking, payment.booking_id)
    emit_safely(emit, ActivityEntry(
        "BOOKING", payment.booking_id, f"PAYMENT_{outcome.value}", actor_id,
        {
            "bookingNumber": booking.booking_number,
            "reference": payment.reference,
            "amount": str(to_major_units(payment.amount)),
            "currency": payment.currency,
            "reason": reason or "",
        },
    ))
    logger.info("payment %s reconciled as %s (booking %s -> %s)",
                reference, outcome.value, booking.booking_number, result.booking_payment_status.value)
    return result


def reconcile_verification(db: Session, verification: VerificationResult, *, actor_id: str = "public",
                           emit: ActivitySink = discard) -> ReconciliationResult | None:
    """Synchronous path: the customer is back from the gateway and we verified the charge."""
    if verification.outcome is None:
        logger.info("payment %s still in flight (%s)", verification.reference, verification.reason)
        return None
    return reconcile(
        db, verification.reference, verification.outcome, verification.reason,
        amount=verification.amount, raw=verification.raw, actor_id=actor_id, emit=emit,
    )
