from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import func
from taskhub.decorators.auth import require_capability
from taskhub.constants.permissions import Resource, Action
from taskhub import get_db
from taskhub.models.project import Project
from taskhub.models.stage import Stage
from taskhub.models.task import Task, RejectionEvent

rpt_bp = Blueprint('reports', __name__)


def _status_counts(session, model, project_id=None):
    q = session.query(model.status, func.count(model.id))
    if project_id is not None:
        q = q.filter(model.project_id==project_id)
    counts = {status: 0 for status in model.ALL_STATUSES}
    counts.update({status: int(count) for status, count in q.group_by(model.status).all()})
    return counts


@rpt_bp.get('/summary')
@require_capability(Resource.REPORT, Action.READ)
def summary():
    """Status counts for projects, stages and tasks, optionally for one project."""
    session = get_db()
    project_id = request.args.get('project_id')
    if project_id:
        try:
            project_id = int(project_id)
        except ValueError:
            abort(400, description='project_id must be int')
        if session.get(Project, project_id) is None:
            abort(404)
    else:
        project_id = None
    tasks = _status_counts(session, Task, project_id)
    total_tasks = sum(tasks.values())
    rejections = session.query(func.count(RejectionEvent.id))
    if project_id is not None:
        rejections = rejections.join(Task, Task.id==RejectionEvent.task_id).filter(Task.project_id==project_id)
    out = {
        'project_id': project_id,
        'tasks': tasks,
        'stages': _status_counts(session, Stage, project_id),
        'rejections': int(rejections.scalar() or 0),
        'completion_rate': round(tasks[Task.STATUS_COMPLETED] / total_tasks, 4) if total_tasks else 0.0,
    }
    if project_id is None:
        q = session.query(Project.status, func.count(Project.id)).group_by(Project.status)
        counts = {status: 0 for status in Project.ALL_STATUSES}
        counts.update({status: int(count) for status, count in q.all()})
        out['projects'] = counts
    return out
