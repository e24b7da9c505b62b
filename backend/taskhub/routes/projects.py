from __future__ import annotations
from flask import Blueprint, request, abort, g
from sqlalchemy import select
from taskhub.decorators.auth import require_capability
from taskhub.decorators.activity import activity_log
from taskhub.constants.permissions import Resource, Action
from taskhub.config.pagination import paginate
from taskhub.services.access import authorize
from taskhub import get_db
from taskhub.models.project import Project
from taskhub.models.authz import User
from taskhub.utils.validation import validate_status, require_text, optional_int, optional_date

projects_bp = Blueprint('projects', __name__)

PROJECT_FIELDS = ('title', 'description', 'status', 'manager_id', 'start_date', 'due_date')


@projects_bp.get('')
@require_capability(Resource.PROJECT, Action.READ)
def list_projects():
    session = get_db()
    q = session.query(Project)
    status = request.args.get('status')
    if status:
        q = q.filter(Project.status==status)
    try:
        rows, meta = paginate(q.order_by(Project.id.asc()), request.args)
    except ValueError as e:
        abort(400, description=str(e))
    return {
        'data': [_project_json(p) for p in rows],
        'pagination': meta,
    }


@projects_bp.post('')
@require_capability(Resource.PROJECT, Action.CREATE)
@activity_log('PROJECT.CREATE', entity_type='Project', entity_id_key='id', details="Project '{title}' created",
              meta_keys=['title', 'status', 'manager_id'])
def create_project():
    session = get_db()
    data = request.json or {}
    project = Project(
        title=require_text(data.get('title'), 'title'),
        description=data.get('description') or None,
        status=validate_status(data.get('status') or Project.STATUS_PLANNING, Project.ALL_STATUSES),
        # a manager creating a project manages it unless told otherwise
        manager_id=_manager_id(session, data.get('manager_id', g.actor.identity)),
        created_by=g.actor.identity,
        start_date=optional_date(data.get('start_date'), 'start_date'),
        due_date=optional_date(data.get('due_date'), 'due_date'),
    )
    session.add(project)
    session.commit()
    return _project_json(project), 201


@projects_bp.get('/<int:project_id>')
@require_capability(Resource.PROJECT, Action.READ)
def get_project(project_id: int):
    return _project_json(_get_or_404(project_id))


@projects_bp.put('/<int:project_id>')
@require_capability(Resource.PROJECT, Action.UPDATE)
@activity_log('PROJECT.UPDATE', entity_type='Project', entity_id_key='id', details="Project '{title}' updated",
              diff_keys=['title', 'description', 'status', 'manager_id', 'start_date', 'due_date'],
              pre_fetch=lambda a, kw: _prefetch_project(kw.get('project_id')))
def update_project(project_id: int):
    session = get_db()
    project = _get_or_404(project_id)
    authorize(g.actor, Resource.PROJECT, Action.UPDATE, project)
    data = request.json or {}
    if 'title' in data:
        project.title = require_text(data['title'], 'title')
    if 'description' in data:
        project.description = data['description'] or None
    if 'status' in data:
        project.status = validate_status(data['status'], Project.ALL_STATUSES)
    if 'manager_id' in data:
        project.manager_id = _manager_id(session, data['manager_id'])
    if 'start_date' in data:
        project.start_date = optional_date(data['start_date'], 'start_date')
    if 'due_date' in data:
        project.due_date = optional_date(data['due_date'], 'due_date')
    session.commit()
    return _project_json(project)


@projects_bp.delete('/<int:project_id>')
@require_capability(Resource.PROJECT, Action.DELETE)
@activity_log('PROJECT.DELETE', entity_type='Project', entity_id_arg='project_id', details="Project '{title}' deleted",
              meta_keys=['title'])
def delete_project(project_id: int):
    session = get_db()
    project = _get_or_404(project_id)
    # managers may only delete projects they manage
    authorize(g.actor, Resource.PROJECT, Action.DELETE, project)
    title = project.title
    session.delete(project)
    session.commit()
    return {'status': 'deleted', 'title': title}


def _get_or_404(project_id: int) -> Project:
    session = get_db()
    p = session.execute(select(Project).where(Project.id==project_id)).scalar_one_or_none()
    if not p:
        abort(404)
    return p


def _manager_id(session, raw):
    manager_id = optional_int(raw, 'manager_id')
    if manager_id is not None and session.get(User, manager_id) is None:
        abort(400, description='manager_id unknown')
    return manager_id


def _project_json(p: Project):
    return {
        'id': p.id,
        'title': p.title,
        'description': p.description,
        'status': p.status,
        'manager_id': p.manager_id,
        'created_by': p.created_by,
        'start_date': p.start_date.isoformat() if p.start_date else None,
        'due_date': p.due_date.isoformat() if p.due_date else None,
    }


def _prefetch_project(project_id: int):
    session = get_db()
    p = session.execute(select(Project).where(Project.id==project_id)).scalar_one_or_none()
    if not p:
        return {}
    return {k: v for k, v in _project_json(p).items() if k in PROJECT_FIELDS}
