from __future__ import annotations
from flask import Blueprint, request, abort, g
from sqlalchemy import select
from taskhub.decorators.auth import require_capability
from taskhub.decorators.activity import activity_log
from taskhub.constants.permissions import Resource, Action
from taskhub.services.access import authorize
from taskhub import get_db
from taskhub.models.authz import UserSetting

settings_bp = Blueprint('settings', __name__)

_BOOL_FIELDS = ('notifications_enabled', 'email_notifications')


@settings_bp.get('')
@require_capability(Resource.SETTING, Action.READ)
def get_settings():
    setting = _own_setting()
    authorize(g.actor, Resource.SETTING, Action.READ, setting)
    return _setting_json(setting)


@settings_bp.put('')
@require_capability(Resource.SETTING, Action.UPDATE)
@activity_log('SETTING.UPDATE', entity_type='Setting', entity_id_key='id', details='Settings updated',
              diff_keys=list(UserSetting.EDITABLE_FIELDS), pre_fetch=lambda a, kw: _setting_json(_own_setting()))
def update_settings():
    session = get_db()
    setting = _own_setting()
    authorize(g.actor, Resource.SETTING, Action.UPDATE, setting)
    data = request.json or {}
    unknown = set(data) - set(UserSetting.EDITABLE_FIELDS)
    if unknown:
        abort(400, description=f'Unknown settings: {sorted(unknown)}')
    for key, value in data.items():
        if key in _BOOL_FIELDS and not isinstance(value, bool):
            abort(400, description=f'{key} must be boolean')
        if key == 'items_per_page' and (not isinstance(value, int) or not 1 <= value <= 200):
            abort(400, description='items_per_page must be int in 1..200')
        setattr(setting, key, value)
    session.commit()
    return _setting_json(setting)


def _own_setting() -> UserSetting:
    """The caller's settings row, created with defaults on first access."""
    session = get_db()
    setting = session.execute(select(UserSetting).where(UserSetting.owner_id==g.actor.identity)).scalar_one_or_none()
    if setting is None:
        setting = UserSetting(owner_id=g.actor.identity)
        session.add(setting)
        session.commit()
    return setting


def _setting_json(s: UserSetting):
    out = {'id': s.id, 'owner_id': s.owner_id}
    out.update({k: getattr(s, k) for k in UserSetting.EDITABLE_FIELDS})
    return out
