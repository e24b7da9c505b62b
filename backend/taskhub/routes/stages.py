from __future__ import annotations
from flask import Blueprint, request, abort, g
from sqlalchemy import select
from taskhub.decorators.auth import require_capability
from taskhub.constants.permissions import Resource, Action
from taskhub import get_db
from taskhub.models.stage import Stage
from taskhub.routes.tasks import task_json
from taskhub.services import stages as stage_service

stages_bp = Blueprint('stages', __name__)


@stages_bp.get('')
@require_capability(Resource.STAGE, Action.READ)
def list_stages():
    session = get_db()
    q = session.query(Stage)
    project_id = request.args.get('project_id')
    if project_id:
        try:
            q = q.filter(Stage.project_id==int(project_id))
        except ValueError:
            abort(400, description='project_id must be int')
    status = request.args.get('status')
    if status:
        q = q.filter(Stage.status==status)
    rows = q.order_by(Stage.project_id.asc(), Stage.order.asc()).all()
    return {'data': [_stage_json(s) for s in rows]}


@stages_bp.post('')
@require_capability(Resource.STAGE, Action.CREATE)
def create_stage():
    stage = stage_service.create_stage(g.actor, request.json or {})
    return _stage_json(stage), 201


@stages_bp.get('/<int:stage_id>')
@require_capability(Resource.STAGE, Action.READ)
def get_stage(stage_id: int):
    session = get_db()
    s = session.execute(select(Stage).where(Stage.id==stage_id)).scalar_one_or_none()
    if not s:
        abort(404)
    return _stage_json(s)


@stages_bp.patch('/<int:stage_id>')
@require_capability(Resource.STAGE, Action.UPDATE)
def update_stage(stage_id: int):
    return _stage_json(stage_service.update_stage(g.actor, stage_id, request.json or {}))


@stages_bp.post('/<int:stage_id>/complete')
@require_capability(Resource.STAGE, Action.UPDATE)
def complete_stage(stage_id: int):
    data = request.json or {}
    drafts = data.get('tasks') or []
    if not isinstance(drafts, list):
        abort(400, description='tasks must be a list')
    stage, created = stage_service.complete_stage(g.actor, stage_id, drafts)
    return {'stage': _stage_json(stage), 'tasks': [task_json(t) for t in created]}


@stages_bp.post('/<int:stage_id>/start')
@require_capability(Resource.STAGE, Action.UPDATE)
def start_stage(stage_id: int):
    return _stage_json(stage_service.start_stage(g.actor, stage_id))


@stages_bp.post('/<int:stage_id>/block')
@require_capability(Resource.STAGE, Action.UPDATE)
def block_stage(stage_id: int):
    return _stage_json(stage_service.block_stage(g.actor, stage_id))


@stages_bp.post('/<int:stage_id>/unblock')
@require_capability(Resource.STAGE, Action.UPDATE)
def unblock_stage(stage_id: int):
    return _stage_json(stage_service.unblock_stage(g.actor, stage_id))


@stages_bp.delete('/<int:stage_id>')
@require_capability(Resource.STAGE, Action.DELETE)
def delete_stage(stage_id: int):
    detached = stage_service.delete_stage(g.actor, stage_id)
    return {'status': 'deleted', 'detached_task_ids': detached}


def _stage_json(s: Stage):
    return {
        'id': s.id,
        'project_id': s.project_id,
        'order': s.order,
        'name': s.name,
        'description': s.description,
        'status': s.status,
        'duration_days': s.duration_days,
        'completed_at': s.completed_at.isoformat() if s.completed_at else None,
    }
