from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.room import Room, RoomStatus, RoomType


class RoomRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, room_id: str) -> Room | None:
        return self.db.get(Room, room_id)

    def get_by_number(self, room_number: str) -> Room | None:
        return self.db.query(Room).filter(Room.room_number == room_number).first()

    def get_for_update(self, room_id: str) -> Room | None:
        # Row lock: concurrent bookings for the same room queue up behind this transaction
        return self.db.execute(
            select(Room).where(Room.id == room_id).with_for_update()
        ).scalar_one_or_none()

    def list(self, status: RoomStatus | None = None, room_type: RoomType | None = None,
             min_capacity: int | None = None) -> list[Room]:
        q = self.db.query(Room)
        if status is not None:
            q = q.filter(Room.status == status)
        if room_type is not None:
            q = q.filter(Room.type == room_type)
        if min_capacity:
            q = q.filter(Room.capacity >= min_capacity)
        return q.order_by(Room.room_number.asc()).all()

    def set_status(self, room: Room, status: RoomStatus) -> None:
        room.status = status
