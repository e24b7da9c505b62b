from __future__ import annotations
"""Record-level overrides the capability matrix cannot express.

Rules are evaluated in order, first match wins:

  1. EMPLOYEE + TASK + UPDATE     -> assignee of a non-terminal task only
  2. MANAGER  + PROJECT + DELETE  -> manager of that project only
  3. MANAGER  + TASK + DELETE     -> manager of the task's project only
  4. any role + SETTING + READ/UPDATE -> owner of the settings record only
  5. otherwise DEFER to the matrix verdict

Without a record there is nothing to compare against, so the resolver defers;
every mutating service passes the freshly read record.
"""
from enum import Enum
from typing import Any, Callable, Optional, Tuple
from taskhub.constants.permissions import Role, Resource, Action, SELF_SCOPED_ACTIONS

TERMINAL_TASK_STATUSES = ('COMPLETED', 'CANCELLED')


class Verdict(str, Enum):
    ALLOW = 'ALLOW'
    DENY = 'DENY'
    DEFER = 'DEFER'


def _verdict(ok: bool) -> Verdict:
    return Verdict.ALLOW if ok else Verdict.DENY


def _assignee_of_open_task(actor, record) -> Verdict:
    return _verdict(
        getattr(record, 'assignee_id', None) == actor.identity
        and getattr(record, 'status', None) not in TERMINAL_TASK_STATUSES
    )


def _manager_of_project(actor, record) -> Verdict:
    return _verdict(getattr(record, 'manager_id', None) == actor.identity)


def _manager_of_task_project(actor, record) -> Verdict:
    project = getattr(record, 'project', None)
    return _verdict(project is not None and project.manager_id == actor.identity)


def _settings_owner(actor, record) -> Verdict:
    return _verdict(getattr(record, 'owner_id', None) == actor.identity)


# (roles or None for any, resource, actions, rule)
RULES: Tuple[Tuple[Optional[frozenset], Resource, frozenset, Callable[[Any, Any], Verdict]], ...] = (
    (frozenset({Role.EMPLOYEE}), Resource.TASK, frozenset({Action.UPDATE}), _assignee_of_open_task),
    (frozenset({Role.MANAGER}), Resource.PROJECT, frozenset({Action.DELETE}), _manager_of_project),
    (frozenset({Role.MANAGER}), Resource.TASK, frozenset({Action.DELETE}), _manager_of_task_project),
    (None, Resource.SETTING, SELF_SCOPED_ACTIONS, _settings_owner),
)


def resolve(actor, resource: Resource, action: Action, record: Any = None) -> Verdict:
    if record is None:
        return Verdict.DEFER
    for roles, rule_resource, actions, rule in RULES:
        if roles is not None and actor.role not in roles:
            continue
        if resource is rule_resource and action in actions:
            return rule(actor, record)
    return Verdict.DEFER

__all__ = ['Verdict', 'resolve', 'RULES']
