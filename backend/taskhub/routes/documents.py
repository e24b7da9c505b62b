from __future__ import annotations
from flask import Blueprint, request, abort, g
from sqlalchemy import select
from taskhub.decorators.auth import require_capability
from taskhub.decorators.activity import activity_log
from taskhub.constants.permissions import Resource, Action
from taskhub import get_db
from taskhub.models.document import Document
from taskhub.utils.validation import require_text, optional_int

documents_bp = Blueprint('documents', __name__)


@documents_bp.get('')
@require_capability(Resource.DOCUMENT, Action.READ)
def list_documents():
    session = get_db()
    q = session.query(Document)
    for arg, column in (('project_id', Document.project_id), ('task_id', Document.task_id)):
        raw = request.args.get(arg)
        if raw:
            try:
                q = q.filter(column==int(raw))
            except ValueError:
                abort(400, description=f'{arg} must be int')
    return {'data': [_document_json(d) for d in q.order_by(Document.id.asc()).all()]}


@documents_bp.post('')
@require_capability(Resource.DOCUMENT, Action.CREATE)
@activity_log('DOCUMENT.CREATE', entity_type='Document', entity_id_key='id', details="Document '{name}' added",
              meta_keys=['name', 'project_id', 'task_id'])
def create_document():
    session = get_db()
    data = request.json or {}
    project_id = optional_int(data.get('project_id'), 'project_id')
    task_id = optional_int(data.get('task_id'), 'task_id')
    if project_id is None and task_id is None:
        abort(400, description='project_id or task_id required')
    doc = Document(
        name=require_text(data.get('name'), 'name', max_len=255),
        file_url=require_text(data.get('file_url'), 'file_url', max_len=1024),
        file_type=data.get('file_type'),
        file_size=optional_int(data.get('file_size'), 'file_size'),
        description=data.get('description') or None,
        uploaded_by=g.actor.identity,
        project_id=project_id,
        task_id=task_id,
    )
    session.add(doc)
    session.commit()
    return _document_json(doc), 201


@documents_bp.delete('/<int:document_id>')
@require_capability(Resource.DOCUMENT, Action.DELETE)
@activity_log('DOCUMENT.DELETE', entity_type='Document', entity_id_arg='document_id', details="Document '{name}' deleted",
              meta_keys=['name'])
def delete_document(document_id: int):
    session = get_db()
    doc = session.execute(select(Document).where(Document.id==document_id)).scalar_one_or_none()
    if not doc:
        abort(404)
    name = doc.name
    session.delete(doc)
    session.commit()
    return {'status': 'deleted', 'name': name}


def _document_json(d: Document):
    return {
        'id': d.id,
        'name': d.name,
        'file_url': d.file_url,
        'file_type': d.file_type,
        'file_size': d.file_size,
        'description': d.description,
        'uploaded_by': d.uploaded_by,
        'project_id': d.project_id,
        'task_id': d.task_id,
    }
