from typing import Any, Optional

from pydantic import BaseModel, Field


class PaystackEventData(BaseModel):
    reference: str = ""
    status: str = ""
    amount: Optional[int] = None
    currency: Optional[str] = None
    gateway_response: Optional[str] = None
    metadata: Optional[Any] = None


class PaystackEvent(BaseModel):
    event: str
    data: PaystackEventData = Field(default_factory=PaystackEventData)


def payment_result_out(reconciled, booking) -> dict:
    out = {
        "success": True,
        "booking": {"id": booking.id, "bookingNumber": booking.booking_number,
                    "bookingStatus": booking.booking_status.value, "paymentStatus": booking.payment_status.value},
    }
    if reconciled is not None:
        out["payment"] = {"reference": reconciled.reference, "status": reconciled.payment_status.value,
                          "applied": reconciled.applied}
    return out
