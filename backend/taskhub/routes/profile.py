from __future__ import annotations
"""The caller's own account. Any authenticated user; name and email only."""
from flask import Blueprint, request, abort
from sqlalchemy import select
from taskhub.services.access import current_actor
from taskhub.services.activity import add_activity
from taskhub.services.roles import normalize_role
from taskhub import get_db
from taskhub.models.authz import User
from taskhub.utils.validation import require_text

profile_bp = Blueprint('profile', __name__)

PROFILE_FIELDS = ('name', 'email')


def _own_user(actor) -> User:
    session = get_db()
    user = session.execute(select(User).where(User.id==actor.identity)).scalar_one_or_none()
    if not user:
        abort(404)
    return user


@profile_bp.get('')
def get_profile():
    return _profile_json(_own_user(current_actor()))


@profile_bp.put('')
def update_profile():
    actor = current_actor()
    session = get_db()
    user = _own_user(actor)
    data = request.json or {}
    unknown = sorted(set(data) - set(PROFILE_FIELDS))
    if unknown:
        # role and is_active are admin-managed through /users
        abort(400, description=f'unknown fields: {unknown}')
    before = {k: getattr(user, k) for k in PROFILE_FIELDS}
    if 'name' in data:
        user.name = require_text(data['name'], 'name', max_len=128)
    if 'email' in data:
        email = require_text(data['email'], 'email', max_len=128).lower()
        clash = session.execute(select(User).where(User.email==email)).scalar_one_or_none()
        if clash is not None and clash.id != user.id:
            abort(400, description='email in use')
        user.email = email
    changes = {k: {'before': before[k], 'after': getattr(user, k)} for k in PROFILE_FIELDS
               if before[k] != getattr(user, k)}
    if changes:
        add_activity(actor.identity, 'PROFILE.UPDATE', 'User', user.id, 'Profile updated', {'changes': changes},
                     session=session)
    session.commit()
    return _profile_json(user)


def _profile_json(u: User):
    return {
        'id': u.id,
        'name': u.name,
        'email': u.email,
        'role': normalize_role(u.role).value,
    }
