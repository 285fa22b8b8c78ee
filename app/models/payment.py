import enum
from sqlalchemy import String, Integer, DateTime, Text, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from app.db.session import Base


class PaymentRecordStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id"), index=True)
    provider: Mapped[str] = mapped_column(String(40), default="paystack")
    reference: Mapped[str] = mapped_column(String(120), unique=True, index=True)  # provider transaction reference
    amount: Mapped[int] = mapped_column(Integer)  # smallest currency unit
    currency: Mapped[str] = mapped_column(String(3), default="NGN")
    status: Mapped[PaymentRecordStatus] = mapped_column(
        Enum(PaymentRecordStatus, native_enum=False, length=20), default=PaymentRecordStatus.PENDING, index=True)
    gateway_response: Mapped[str | None] = mapped_column(String(500), nullable=True)
    raw_json: Mapped[str] = mapped_column(Text, default="{}")
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    booking = relationship("Booking", back_populates="payments")
