import enum
from decimal import Decimal
from sqlalchemy import String, Integer, Date, DateTime, Numeric, Text, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import date, datetime, timezone
from app.db.session import Base


class BookingStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"


class BookingSource(str, enum.Enum):
    ONLINE = "ONLINE"
    MANUAL = "MANUAL"
    PHONE = "PHONE"
    WALKIN = "WALKIN"


# statuses that hold the room for their date range
ACTIVE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("check_in_date < check_out_date", name="ck_booking_dates"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    room_id: Mapped[str] = mapped_column(ForeignKey("rooms.id"), index=True)
    customer_id: Mapped[str] = mapped_column(ForeignKey("customers.id"), index=True)
    created_by_id: Mapped[str | None] = mapped_column(ForeignKey("staff.id"), nullable=True)

    check_in_date: Mapped[date] = mapped_column(Date, index=True)
    check_out_date: Mapped[date] = mapped_column(Date, index=True)  # exclusive
    number_of_guests: Mapped[int] = mapped_column(Integer, default=1)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # nights x room price, recomputed when the stay changes

    booking_status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, native_enum=False, length=20), default=BookingStatus.CONFIRMED, index=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, length=20), default=PaymentStatus.PENDING, index=True)
    source: Mapped[BookingSource] = mapped_column(
        Enum(BookingSource, native_enum=False, length=20), default=BookingSource.ONLINE)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    room = relationship("Room")
    customer = relationship("Customer")
    payments = relationship("Payment", back_populates="booking", order_by="Payment.created_at")

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days
