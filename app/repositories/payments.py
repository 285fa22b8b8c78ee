from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.payment import Payment, PaymentRecordStatus


class PaymentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_reference(self, reference: str) -> Payment | None:
        return self.db.query(Payment).filter(Payment.reference == reference).first()

    def latest_for_booking(self, booking_id: str, status: PaymentRecordStatus | None = None) -> Payment | None:
        q = self.db.query(Payment).filter(Payment.booking_id == booking_id)
        if status is not None:
            q = q.filter(Payment.status == status)
        return q.order_by(Payment.created_at.desc()).first()

    def add(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.flush()
        return payment

    def mark_terminal_if_pending(self, payment_id: str, status: PaymentRecordStatus, *,
                                 reason: str | None = None, raw_json: str | None = None,
                                 paid_at: datetime | None = None) -> bool:
        """Conditional write: only a PENDING payment moves. False means someone else got there first."""
        values = {"status": status}
        if reason is not None:
            values["gateway_response"] = reason[:500]
        if raw_json is not None:
            values["raw_json"] = raw_json
        if paid_at is not None:
            values["paid_at"] = paid_at
        res = self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == PaymentRecordStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return res.rowcount == 1
