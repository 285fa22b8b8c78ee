import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import ValidationError
from app.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ActivityEntry:
    entity_type: str  # ROOM, BOOKING, CUSTOMER, STAFF
    entity_id: str
    action: str
    user_id: str
    details: dict[str, Any] = field(default_factory=dict)
    ip_address: str | None = None


# Something that accepts an entry without blocking the caller (BackgroundTasks in the API layer)
ActivitySink = Callable[[ActivityEntry], None]


def discard(entry: ActivityEntry) -> None:
    pass


def create_log(db: Session, entry: ActivityEntry) -> ActivityLog:
    log = ActivityLog(
        id=str(uuid.uuid4()),
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        action=entry.action,
        user_id=entry.user_id,
        details_json=json.dumps(entry.details or {}, ensure_ascii=False, default=str),
        ip_address=entry.ip_address,
    )
    db.add(log)
    return log


def record_activity(session_factory: sessionmaker, entry: ActivityEntry) -> None:
    """Write one entry in its own session. Failures are logged, never raised."""
    db = session_factory()
    try:
        create_log(db, entry)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("activity log write failed: %s %s %s", entry.entity_type, entry.action, entry.entity_id)
    finally:
        db.close()


def emit_safely(emit: ActivitySink, entry: ActivityEntry) -> None:
    try:
        emit(entry)
    except Exception:
        logger.exception("activity log emit failed: %s %s %s", entry.entity_type, entry.action, entry.entity_id)


def logged(operation: Callable[[], T], describe: Callable[[T], ActivityEntry], emit: ActivitySink) -> T:
    """Run operation, then hand describe(result) to the sink. Logging never fails the operation."""
    result = operation()
    try:
        entry = describe(result)
    except Exception:
        logger.exception("could not describe activity for %r", operation)
        return result
    emit_safely(emit, entry)
    return result


def _filtered(db: Session, entity_type: str | None = None, entity_id: str | None = None,
              action: str | None = None, user_id: str | None = None,
              start: datetime | None = None, end: datetime | None = None):
    q = db.query(ActivityLog)
    if entity_type:
        q = q.filter(ActivityLog.entity_type == entity_type)
    if entity_id:
        q = q.filter(ActivityLog.entity_id == entity_id)
    if action:
        q = q.filter(ActivityLog.action == action)
    if user_id:
        q = q.filter(ActivityLog.user_id == user_id)
    if start:
        q = q.filter(ActivityLog.created_at >= start)
    if end:
        q = q.filter(ActivityLog.created_at <= end)
    return q


def get_logs(db: Session, *, page: int | None = None, limit: int | None = None, **filters) -> list[ActivityLog]:
    q = _filtered(db, **filters).order_by(ActivityLog.created_at.desc())
    if page and limit:
        q = q.offset((page - 1) * limit).limit(limit)
    return q.all()


def count_logs(db: Session, **filters) -> int:
    return _filtered(db, **filters).count()


def delete_old_logs(db: Session, older_than_days: int) -> int:
    if older_than_days < 1:
        raise ValidationError("olderThanDays must be >= 1")
    cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
    deleted = db.query(ActivityLog).filter(ActivityLog.created_at < cutoff).delete(synchronize_session=False)
    db.commit()
    logger.info("deleted %d activity log entries older than %d days", deleted, older_than_days)
    return deleted
