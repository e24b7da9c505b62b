from __future__ import annotations
from flask import Blueprint, request, abort, g
from sqlalchemy import select
from taskhub.decorators.auth import require_capability
from taskhub.decorators.activity import activity_log
from taskhub.constants.permissions import Resource, Action, ROLE_ALIASES
from taskhub.config.pagination import paginate
from taskhub import get_db
from taskhub.errors import PermissionDenied
from taskhub.models.authz import User
from taskhub.services.access import current_actor
from taskhub.services.activity import add_activity
from taskhub.services.roles import normalize_role
from taskhub.utils.validation import require_text

users_bp = Blueprint('users', __name__)

MIN_PASSWORD_LENGTH = 8


@users_bp.get('')
@require_capability(Resource.USER, Action.READ)
def list_users():
    session = get_db()
    q = session.query(User)
    try:
        rows, meta = paginate(q.order_by(User.id.asc()), request.args)
    except ValueError as e:
        abort(400, description=str(e))
    return {
        'data': [_user_json(u) for u in rows],
        'pagination': meta,
    }


@users_bp.post('')
@require_capability(Resource.USER, Action.CREATE)
@activity_log('USER.CREATE', entity_type='User', entity_id_key='id', details="User '{email}' created",
              meta_keys=['email', 'role'])
def create_user():
    session = get_db()
    data = request.json or {}
    email = _free_email(session, data.get('email'))
    password = data.get('password')
    if not password:
        abort(400, description='password required')
    raw_role = _raw_role(data.get('role') or 'EMPLOYEE')
    user = User(name=require_text(data.get('name'), 'name', max_len=128), email=email, role=raw_role, password_hash='')
    user.set_password(password)
    session.add(user)
    session.commit()
    return _user_json(user), 201


@users_bp.get('/<int:user_id>')
@require_capability(Resource.USER, Action.READ)
def get_user(user_id: int):
    return _user_json(_get_or_404(user_id))


@users_bp.put('/<int:user_id>')
@require_capability(Resource.USER, Action.UPDATE)
@activity_log('USER.UPDATE', entity_type='User', entity_id_key='id', details="User '{email}' updated",
              diff_keys=['name', 'email', 'role', 'is_active'],
              pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')))
def update_user(user_id: int):
    session = get_db()
    user = _get_or_404(user_id)
    data = request.json or {}
    if 'name' in data:
        user.name = require_text(data['name'], 'name', max_len=128)
    if 'email' in data:
        user.email = _free_email(session, data['email'], user.id)
    if 'role' in data:
        user.role = _raw_role(data['role'])
    if 'is_active' in data:
        if not isinstance(data['is_active'], bool):
            abort(400, description='is_active must be boolean')
        if user.id == g.actor.identity and not data['is_active']:
            abort(400, description='cannot deactivate own account')
        user.is_active = data['is_active']
    if data.get('password'):
        user.set_password(data['password'])
    session.commit()
    return _user_json(user)


@users_bp.put('/<int:user_id>/password')
def change_password(user_id: int):
    """Self-service password change; the current password must be supplied."""
    actor = current_actor()
    if user_id != actor.identity:
        raise PermissionDenied('Only the account owner may change its password', resource=Resource.USER.value,
                               action=Action.UPDATE.value, record_id=user_id)
    session = get_db()
    user = _get_or_404(user_id)
    data = request.json or {}
    current = data.get('current_password')
    new = data.get('new_password')
    if not isinstance(new, str) or len(new) < MIN_PASSWORD_LENGTH:
        abort(400, description=f'new_password must be at least {MIN_PASSWORD_LENGTH} characters')
    if not isinstance(current, str) or not user.verify_password(current):
        abort(400, description='current_password incorrect')
    user.set_password(new)
    add_activity(actor.identity, 'USER.PASSWORD', 'User', user.id, 'Password changed', session=session)
    session.commit()
    return {'status': 'updated'}


@users_bp.delete('/<int:user_id>')
@require_capability(Resource.USER, Action.DELETE)
@activity_log('USER.DELETE', entity_type='User', entity_id_arg='user_id', details="User '{email}' deleted",
              meta_keys=['email'])
def delete_user(user_id: int):
    if user_id == g.actor.identity:
        abort(400, description='cannot delete own account')
    session = get_db()
    user = _get_or_404(user_id)
    email = user.email
    session.delete(user)
    session.commit()
    return {'status': 'deleted', 'email': email}


def _get_or_404(user_id: int) -> User:
    session = get_db()
    u = session.execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not u:
        abort(404)
    return u


def _user_json(u: User):
    return {
        'id': u.id,
        'name': u.name,
        'email': u.email,
        'role': normalize_role(u.role).value,
        'is_active': u.is_active,
    }


def _raw_role(value) -> str:
    raw = value.strip().upper() if isinstance(value, str) else ''
    if raw not in ROLE_ALIASES:
        abort(400, description=f'unknown role {value}')
    return raw


def _free_email(session, value, user_id=None) -> str:
    email = require_text(value, 'email', max_len=128).lower()
    clash = session.execute(select(User).where(User.email==email)).scalar_one_or_none()
    if clash is not None and clash.id != user_id:
        abort(400, description='email in use')
    return email


def _prefetch_user(user_id: int):
    session = get_db()
    u = session.execute(select(User).where(User.id==user_id)).scalar_one_or_none()
    if not u:
        return {}
    return _user_json(u)
