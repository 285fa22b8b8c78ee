import json
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import require_permission
from app.models.staff import Staff
from app.services.activity_log_service import count_logs, delete_old_logs, get_logs

router = APIRouter(tags=["admin"])


@router.get("/admin/logs")
def list_logs(entityType: Optional[str] = None, entityId: Optional[str] = None, action: Optional[str] = None,
              userId: Optional[str] = None, start: Optional[datetime] = None, end: Optional[datetime] = None,
              page: int = 1, limit: int = 50,
              db: Session = Depends(get_db),
              _: Staff = Depends(require_permission("logs:read"))):
    filters = dict(entity_type=entityType, entity_id=entityId, action=action, user_id=userId, start=start, end=end)
    page, limit = max(page, 1), min(max(limit, 1), 200)
    total = count_logs(db, **filters)
    logs = get_logs(db, page=page, limit=limit, **filters)
    return {
        "success": True,
        "total": total,
        "page": page,
        "limit": limit,
        "items": [
            {
                "id": l.id,
                "entityType": l.entity_type,
                "entityId": l.entity_id,
                "action": l.action,
                "userId": l.user_id,
                "details": json.loads(l.details_json or "{}"),
                "ipAddress": l.ip_address,
                "createdAt": l.created_at.isoformat(),
            }
            for l in logs
        ],
    }


@router.delete("/admin/logs")
def purge_logs(olderThanDays: int, db: Session = Depends(get_db),
               _: Staff = Depends(require_permission("logs:delete"))):
    return {"success": True, "deleted": delete_old_logs(db, olderThanDays)}
