from __future__ import annotations
"""In-app notification dispatcher.

Writes Notification rows inside the caller's transaction; delivery beyond the
in-app inbox (email, push) belongs to an external transport reading them.
"""
import logging
from typing import Iterable, List, Optional
from taskhub import get_db
from taskhub.models.notification import Notification

log = logging.getLogger(__name__)


def _recipients(user_ids: Iterable[Optional[int]], exclude: Optional[int] = None) -> List[int]:
    seen = []
    for uid in user_ids:
        if uid is None or uid == exclude or uid in seen:
            continue
        seen.append(uid)
    return seen


def dispatch(user_ids: Iterable[Optional[int]], type_: str, title: str, message: str,
             exclude: Optional[int] = None, session=None) -> List[Notification]:
    session = session or get_db()
    out = []
    for uid in _recipients(user_ids, exclude):
        n = Notification(user_id=uid, type=type_, title=title, message=message)
        session.add(n)
        out.append(n)
    log.debug('queued %s notification(s) type=%s', len(out), type_)
    return out


def notify_task_rejected(task, event, session=None) -> List[Notification]:
    """Tell the project's manager (and the task creator) that the assignee declined the task."""
    project = task.project
    return dispatch(
        [project.manager_id if project else None, task.created_by],
        Notification.TYPE_TASK_REJECTED,
        f"Task rejected: {task.title}",
        f"Task #{task.id} was rejected by its assignee. Reason: {event.reason}",
        exclude=event.actor_id,
        session=session,
    )


def notify_stage_completed(stage, tasks, actor_id: int, session=None) -> List[Notification]:
    """Assignees of the successor tasks learn about their new work."""
    return dispatch(
        [t.assignee_id for t in tasks],
        Notification.TYPE_STAGE_COMPLETED,
        f"Stage completed: {stage.name}",
        f"Stage '{stage.name}' was completed and new tasks were assigned to you.",
        exclude=actor_id,
        session=session,
    )


def notification_json(n: Notification):
    return {
        'id': n.id,
        'user_id': n.user_id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'read': n.read,
        'created_at': n.created_at.isoformat() if n.created_at else None,
    }
