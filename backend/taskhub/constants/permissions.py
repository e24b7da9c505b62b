"""Central enum-like definitions for roles, resources, actions and the capability table.
Extend cautiously; the matrix is shared read-only by every request handler and is never built per request.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Tuple


class Role(str, Enum):
    ADMIN = 'ADMIN'
    MANAGER = 'MANAGER'
    EMPLOYEE = 'EMPLOYEE'


class Resource(str, Enum):
    PROJECT = 'PROJECT'
    TASK = 'TASK'
    STAGE = 'STAGE'
    USER = 'USER'
    DOCUMENT = 'DOCUMENT'
    ACTIVITY_LOG = 'ACTIVITY_LOG'
    REPORT = 'REPORT'
    SETTING = 'SETTING'


class Action(str, Enum):
    CREATE = 'CREATE'
    READ = 'READ'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'


# Stored role spellings seen across upstream systems (matched case-insensitively).
# Anything absent here normalizes to EMPLOYEE.
ROLE_ALIASES: Mapping[str, Role] = MappingProxyType({
    'ADMIN': Role.ADMIN,
    'ADMINISTRATOR': Role.ADMIN,
    'PROJECT_MANAGER': Role.MANAGER,
    'MANAGER': Role.MANAGER,
    'EMPLOYEE': Role.EMPLOYEE,
    'USER': Role.EMPLOYEE,
    'VIEWER': Role.EMPLOYEE,
})

ROLE_LABELS_I18N: Mapping[Role, Dict[str, str]] = MappingProxyType({
    Role.ADMIN: {'en': 'Administrator', 'fr': 'Administrateur'},
    Role.MANAGER: {'en': 'Project Manager', 'fr': 'Chef de Projet'},
    Role.EMPLOYEE: {'en': 'Employee', 'fr': 'Employé'},
})

# 'MANAGE' in presets/requests is sugar for all four actions
MANAGE = 'MANAGE'
ALL_ACTIONS: FrozenSet[Action] = frozenset(Action)

_CRUD = ALL_ACTIONS
_R = frozenset({Action.READ})
_NONE: FrozenSet[Action] = frozenset()
# Setting is not a matrix cell: every role may read/update its own settings
# record (narrowed by the ownership resolver) and nothing else.
SELF_SCOPED_ACTIONS: FrozenSet[Action] = frozenset({Action.READ, Action.UPDATE})

CAPABILITY_MATRIX: Mapping[Role, Mapping[Resource, FrozenSet[Action]]] = MappingProxyType({
    Role.ADMIN: MappingProxyType({
        Resource.PROJECT: _CRUD,
        Resource.TASK: _CRUD,
        Resource.STAGE: _CRUD,
        Resource.DOCUMENT: _CRUD,
        Resource.ACTIVITY_LOG: _R,
        Resource.USER: _CRUD,
        Resource.REPORT: _R,
    }),
    Role.MANAGER: MappingProxyType({
        Resource.PROJECT: _CRUD,
        Resource.TASK: _CRUD,
        Resource.STAGE: _CRUD,
        Resource.DOCUMENT: _CRUD,
        Resource.ACTIVITY_LOG: _R,
        Resource.USER: _R,
        Resource.REPORT: _R,
    }),
    Role.EMPLOYEE: MappingProxyType({
        Resource.PROJECT: _R,
        # UPDATE limited to own tasks by the ownership resolver
        Resource.TASK: frozenset({Action.READ, Action.UPDATE}),
        Resource.STAGE: _R,
        Resource.DOCUMENT: frozenset({Action.READ, Action.CREATE}),
        Resource.ACTIVITY_LOG: _R,
        Resource.USER: _NONE,
        Resource.REPORT: _NONE,
    }),
})


@dataclass(frozen=True)
class RouteAccess:
    path: str
    allowed_roles: FrozenSet[Role]
    exact: bool = False


_EVERYONE = frozenset(Role)
_STAFF = frozenset({Role.ADMIN, Role.MANAGER})

ROUTE_ACCESS: Tuple[RouteAccess, ...] = (
    RouteAccess('/dashboard', _EVERYONE, exact=True),
    RouteAccess('/dashboard/projects', _EVERYONE),
    RouteAccess('/dashboard/tasks', _EVERYONE),
    # employees see stages read-only
    RouteAccess('/dashboard/stages', _EVERYONE),
    RouteAccess('/dashboard/users', _STAFF),
    RouteAccess('/dashboard/activity-logs', _EVERYONE),
    RouteAccess('/dashboard/reports', _STAFF),
    RouteAccess('/dashboard/settings', _EVERYONE),
)
