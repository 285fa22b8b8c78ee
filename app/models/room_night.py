from sqlalchemy import String, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date
from app.db.session import Base

class RoomNight(Base):
    """One occupied night of an active booking.

    The (room_id, night) unique constraint is what stops two concurrent
    requests from both booking overlapping ranges for the same room.
    """
    __tablename__ = "room_nights"
    __table_args__ = (
        UniqueConstraint("room_id", "night", name="uq_room_night"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    room_id: Mapped[str] = mapped_column(ForeignKey("rooms.id"), index=True)
    night: Mapped[date] = mapped_column(Date)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id"), index=True)
