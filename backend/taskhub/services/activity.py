from __future__ import annotations
from typing import Any, Dict, Optional
from taskhub import get_db
from taskhub.models.activity import ActivityLog


def add_activity(actor_id: int, action: str, entity_type: Optional[str] = None, entity_id: Any = None,
                 details: Optional[str] = None, meta: Optional[Dict[str, Any]] = None, session=None):
    """Add an activity log entry to the current DB session.

    Parameters:
      actor_id: user id performing the mutation
      action: short action code e.g. TASK.COMPLETE, TASK.REJECT, STAGE.DELETE
      entity_type: resource kind label (Task, Stage, Project...)
      entity_id: primary key of the affected record
      details: free-form human readable line for the activity feed
      meta: JSON-safe dict (old/new values where applicable); shallow copied
    """
    session = session or get_db()
    log = ActivityLog(
        user_id=actor_id or 0,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details,
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log


def activity_json(r: ActivityLog) -> Dict[str, Any]:
    return {
        'id': r.id,
        'user_id': r.user_id,
        'action': r.action,
        'entity_type': r.entity_type,
        'entity_id': r.entity_id,
        'details': r.details,
        'metadata': r.meta,
        'created_at': r.created_at.isoformat() if r.created_at else None,
    }
