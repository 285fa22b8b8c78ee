import enum
from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Numeric, Enum
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base


class RoomType(str, enum.Enum):
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    SUITE = "SUITE"
    DELUXE = "DELUXE"
    PRESIDENTIAL = "PRESIDENTIAL"


class RoomStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    room_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(120), default="")
    type: Mapped[RoomType] = mapped_column(Enum(RoomType, native_enum=False, length=20), default=RoomType.SINGLE)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))  # nightly, major currency units
    capacity: Mapped[int] = mapped_column(Integer, default=1)
    # informational only; date-range availability comes from bookings
    status: Mapped[RoomStatus] = mapped_column(Enum(RoomStatus, native_enum=False, length=20), default=RoomStatus.AVAILABLE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
