from __future__ import annotations
"""The caller's in-app inbox. Any authenticated user; always scoped to self."""
from flask import Blueprint, request, abort
from sqlalchemy import select, update
from taskhub.services.access import current_actor
from taskhub.services.notifications import notification_json
from taskhub.config.pagination import paginate
from taskhub import get_db
from taskhub.models.notification import Notification

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.get('')
def list_notifications():
    actor = current_actor()
    session = get_db()
    q = session.query(Notification).filter(Notification.user_id==actor.identity)
    if request.args.get('unread') in ('1', 'true'):
        q = q.filter(Notification.read.is_(False))
    try:
        rows, meta = paginate(q.order_by(Notification.id.desc()), request.args)
    except ValueError as e:
        abort(400, description=str(e))
    return {
        'data': [notification_json(n) for n in rows],
        'pagination': meta,
    }


@notifications_bp.route('/<int:notification_id>/read', methods=['PUT', 'POST'])
def mark_read(notification_id: int):
    actor = current_actor()
    session = get_db()
    n = session.execute(
        select(Notification).where(Notification.id==notification_id, Notification.user_id==actor.identity)
    ).scalar_one_or_none()
    # someone else's notification is indistinguishable from a missing one
    if not n:
        abort(404)
    n.read = True
    session.commit()
    return notification_json(n)


@notifications_bp.route('/read-all', methods=['PUT', 'POST'])
def mark_all_read():
    actor = current_actor()
    session = get_db()
    result = session.execute(
        update(Notification)
        .where(Notification.user_id==actor.identity, Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return {'updated': result.rowcount}
