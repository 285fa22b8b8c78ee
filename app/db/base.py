# Import all models so Base.metadata is complete (Alembic, create_all, mapper string lookups)
from app.db.session import Base  # noqa: F401
from app.models.room import Room  # noqa: F401
from app.models.customer import Customer  # noqa: F401
from app.models.staff import Staff  # noqa: F401
from app.models.booking import Booking  # noqa: F401
from app.models.room_night import RoomNight  # noqa: F401
from app.models.payment import Payment  # noqa: F401
from app.models.activity_log import ActivityLog  # noqa: F401
