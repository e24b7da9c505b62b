from __future__ import annotations
"""Activity logging decorator for plain CRUD views that carry no lifecycle.

Lifecycle services (task completion/rejection, stage completion/deletion)
write their own entries inside their transaction; this decorator covers the
remaining create/update/delete routes.

Usage examples:

@activity_log('PROJECT.CREATE', entity_type='Project', entity_id_key='id', meta_keys=['title'])
def create_project():
    ... return {'id': p.id, 'title': p.title}, 201

@activity_log('PROJECT.UPDATE', entity_type='Project', entity_id_key='id',
              diff_keys=['title', 'status'], pre_fetch=lambda a, kw: _prefetch(kw.get('project_id')))
def update_project(project_id): ...

Parameters:
  action: required action code (e.g. PROJECT.CREATE)
  entity_type: resource label (Project, Document, User)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: view argument to use for entity_id (fallback if entity_id_key absent).
  details: format string rendered with the returned JSON (e.g. "Project '{title}' created").
  meta_keys: keys to project from the returned JSON into meta.
  diff_keys + pre_fetch: record before/after values of those keys under meta['changes'].

Only successful (status < 400) responses are logged. The actor is flask.g.actor,
set by require_capability.
"""

import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from flask import g

from taskhub.services.activity import add_activity
from taskhub import get_db

log = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, 200


def activity_log(
    action: str,
    *,
    entity_type: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    details: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = None
            if diff_keys and pre_fetch:
                before_snapshot = pre_fetch(args, kwargs)
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            meta = {k: data.get(k) for k in (meta_keys or []) if k in data}
            if diff_keys and isinstance(before_snapshot, dict):
                changes = {}
                for k in diff_keys:
                    if k in before_snapshot and k in data and before_snapshot.get(k) != data.get(k):
                        changes[k] = {'before': before_snapshot.get(k), 'after': data.get(k)}
                if changes:
                    meta['changes'] = changes
            text = None
            if details:
                try:
                    text = details.format(**data)
                except (KeyError, IndexError):
                    text = details
            session = get_db()
            try:
                add_activity(g.actor.identity, action, entity_type, entity_id, text, meta, session=session)
                session.commit()
            except Exception:
                # the mutation is already committed; a lost log line must not turn it into a 500
                session.rollback()
                log.exception('activity log write failed for %s', action)
            return rv
        return wrapper
    return outer
