import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PayloadError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_activity_sink, get_booking_service, get_paystack_client
from app.core.config import settings
from app.core.errors import HotelError, NotFound
from app.schemas.payments import PaystackEvent, payment_result_out
from app.services.activity_log_service import ActivitySink
from app.services.booking_service import BookingService
from app.services.payment_service import PaymentOutcome, verify_payment
from app.services.paystack_client import PaystackClient, verify_webhook_signature
from app.services.reconciliation_service import reconcile, reconcile_verification

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])

WEBHOOK_OUTCOMES = {
    "charge.success": PaymentOutcome.SUCCESS,
    "charge.failed": PaymentOutcome.FAILED,
}


@router.get("/public/payments/verify")
def verify(reference: str, svc: BookingService = Depends(get_booking_service),
           client: PaystackClient = Depends(get_paystack_client)):
    """Customer is back from checkout: ask Paystack, then apply the outcome locally."""
    if svc.payments.get_by_reference(reference) is None:
        raise NotFound("Payment not found")
    result = verify_payment(client, reference)
    reconciled = reconcile_verification(svc.db, result, actor_id="public", emit=svc.emit)
    booking = svc.get_booking_by_reference(reference)
    return payment_result_out(reconciled, booking)


@router.get("/webhooks/paystack")
def webhook_alive():
    return {"ok": True, "provider": "paystack"}


@router.post("/webhooks/paystack")
async def paystack_webhook(request: Request, db: Session = Depends(get_db),
                           emit: ActivitySink = Depends(get_activity_sink)):
    """Paystack webhook. Signature is HMAC-SHA512 of the raw body; once accepted, always acknowledge."""
    body = await request.body()
    signature = request.headers.get("x-paystack-signature")
    if not verify_webhook_signature(settings.PAYSTACK_SECRET_KEY, body, signature):
        logger.warning("paystack webhook rejected: bad or missing signature")
        return JSONResponse(status_code=401, content={"success": False, "error": "Invalid signature"})

    try:
        event = PaystackEvent.model_validate(json.loads(body or b"{}"))
    except (ValueError, PayloadError):
        logger.warning("paystack webhook: unreadable payload")
        return {"received": True}

    outcome = WEBHOOK_OUTCOMES.get(event.event)
    if outcome is None:
        logger.info("paystack webhook: ignoring %s", event.event)
        return {"received": True}
    if not event.data.reference:
        logger.warning("paystack webhook: %s without reference", event.event)
        return {"received": True}

    logger.info("paystack webhook: %s for %s", event.event, event.data.reference)
    try:
        reconcile(
            db, event.data.reference, outcome, event.data.gateway_response or event.data.status,
            amount=event.data.amount, raw=event.data.model_dump(), actor_id="paystack", emit=emit,
        )
    except HotelError as e:
        db.rollback()
        logger.warning("paystack webhook: %s for %s not applied: %s", event.event, event.data.reference, e.message)
    except Exception:
        db.rollback()
        logger.exception("paystack webhook: processing %s for %s failed", event.event, event.data.reference)
    return {"received": True}
