from __future__ import annotations
from flask import Blueprint, request, abort
from taskhub.decorators.auth import require_capability
from taskhub.constants.permissions import Resource, Action
from taskhub.config.pagination import paginate
from taskhub import get_db
from taskhub.models.activity import ActivityLog
from taskhub.services.activity import activity_json

activity_bp = Blueprint('activity', __name__)


@activity_bp.get('')
@require_capability(Resource.ACTIVITY_LOG, Action.READ)
def list_activity():
    """Newest first; filters: user_id, action, entity_type, entity_id."""
    session = get_db()
    q = session.query(ActivityLog)
    user_id = request.args.get('user_id')
    if user_id:
        try:
            q = q.filter(ActivityLog.user_id==int(user_id))
        except ValueError:
            abort(400, description='user_id must be int')
    for arg, column in (('action', ActivityLog.action), ('entity_type', ActivityLog.entity_type),
                        ('entity_id', ActivityLog.entity_id)):
        value = request.args.get(arg)
        if value:
            q = q.filter(column==value)
    try:
        rows, meta = paginate(q.order_by(ActivityLog.id.desc()), request.args)
    except ValueError as e:
        abort(400, description=str(e))
    return {
        'data': [activity_json(r) for r in rows],
        'pagination': meta,
    }
