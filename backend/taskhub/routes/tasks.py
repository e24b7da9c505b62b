from __future__ import annotations
from flask import Blueprint, request, abort, g
from sqlalchemy import select
from taskhub.decorators.auth import require_capability
from taskhub.constants.permissions import Resource, Action
from taskhub.config.pagination import paginate
from taskhub import get_db
from taskhub.models.task import Task, RejectionEvent
from taskhub.services import tasks as task_service

tasks_bp = Blueprint('tasks', __name__)


@tasks_bp.get('')
@require_capability(Resource.TASK, Action.READ)
def list_tasks():
    session = get_db()
    q = session.query(Task)
    for arg, column in (('project_id', Task.project_id), ('stage_id', Task.stage_id), ('assignee_id', Task.assignee_id)):
        raw = request.args.get(arg)
        if raw:
            try:
                q = q.filter(column==int(raw))
            except ValueError:
                abort(400, description=f'{arg} must be int')
    status = request.args.get('status')
    if status:
        q = q.filter(Task.status==status)
    try:
        rows, meta = paginate(q.order_by(Task.id.asc()), request.args)
    except ValueError as e:
        abort(400, description=str(e))
    return {
        'data': [task_json(t) for t in rows],
        'pagination': meta,
    }


@tasks_bp.post('')
@require_capability(Resource.TASK, Action.CREATE)
def create_task():
    task = task_service.create_task(g.actor, request.json or {})
    return task_json(task), 201


@tasks_bp.get('/<int:task_id>')
@require_capability(Resource.TASK, Action.READ)
def get_task(task_id: int):
    session = get_db()
    t = session.execute(select(Task).where(Task.id==task_id)).scalar_one_or_none()
    if not t:
        abort(404)
    return task_json(t)


@tasks_bp.put('/<int:task_id>')
@require_capability(Resource.TASK, Action.UPDATE)
def update_task(task_id: int):
    return task_json(task_service.update_task(g.actor, task_id, request.json or {}))


@tasks_bp.post('/<int:task_id>/complete')
@require_capability(Resource.TASK, Action.UPDATE)
def complete_task(task_id: int):
    return task_json(task_service.mark_completed(g.actor, task_id))


@tasks_bp.post('/<int:task_id>/status')
@require_capability(Resource.TASK, Action.UPDATE)
def change_status(task_id: int):
    data = request.json or {}
    status = data.get('status')
    if not status:
        abort(400, description='status required')
    return task_json(task_service.transition(g.actor, task_id, status))


@tasks_bp.post('/<int:task_id>/reject')
@require_capability(Resource.TASK, Action.READ)
def reject_task(task_id: int):
    data = request.json or {}
    # legacy clients post rejectionReason
    reason = data.get('reason', data.get('rejectionReason'))
    event = task_service.reject(g.actor, task_id, reason)
    return rejection_json(event), 201


@tasks_bp.delete('/<int:task_id>')
@require_capability(Resource.TASK, Action.DELETE)
def delete_task(task_id: int):
    task_service.delete_task(g.actor, task_id)
    return {'status': 'deleted'}


def task_json(t: Task):
    return {
        'id': t.id,
        'project_id': t.project_id,
        'stage_id': t.stage_id,
        'assignee_id': t.assignee_id,
        'title': t.title,
        'description': t.description,
        'status': t.status,
        'priority': t.priority,
        'due_date': t.due_date.isoformat() if t.due_date else None,
        'completed_at': t.completed_at.isoformat() if t.completed_at else None,
    }


def rejection_json(e: RejectionEvent):
    return {
        'id': e.id,
        'task_id': e.task_id,
        'actor_id': e.actor_id,
        'reason': e.reason,
        'created_at': e.created_at.isoformat() if e.created_at else None,
    }
