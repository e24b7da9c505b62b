from __future__ import annotations
"""Single decision point for authorization.

`check` combines the role-tier capability matrix with record-level ownership
rules: a matrix deny is final; otherwise an ownership ALLOW/DENY wins and a
DEFER falls back to the matrix verdict. It never raises; `authorize` is the
raising variant used by lifecycle services and route handlers.

Route visibility (`can_access_route`) is a separate, coarser check over the
configured dashboard route table.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Union
from flask import current_app, has_app_context
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from taskhub.constants.permissions import Role, Resource, Action, ROUTE_ACCESS, RouteAccess
from taskhub.errors import PermissionDenied
from taskhub.services.capabilities import is_allowed
from taskhub.services.ownership import Verdict, resolve
from taskhub.services.roles import normalize_role

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    identity: int
    role: Role

    @classmethod
    def from_raw(cls, identity: Any, raw_role: Optional[str]) -> 'Actor':
        return cls(identity=int(identity), role=normalize_role(raw_role))


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


def _record_id(record: Any):
    return getattr(record, 'id', None) if record is not None else None


def check(actor: Actor, resource: Resource, action: Action, record: Any = None) -> Decision:
    if not is_allowed(actor.role, resource, action):
        return Decision(False, f"{actor.role.value} may not {action.value} {resource.value}")
    verdict = resolve(actor, resource, action, record)
    if verdict is Verdict.DENY:
        return Decision(False, f"{action.value} on {resource.value} #{_record_id(record)} requires ownership")
    return Decision(True)


def authorize(actor: Actor, resource: Resource, action: Action, record: Any = None) -> Decision:
    decision = check(actor, resource, action, record)
    if not decision.allowed:
        rid = _record_id(record)
        log.info('access denied actor=%s role=%s resource=%s action=%s record=%s',
                 actor.identity, actor.role.value, resource.value, action.value, rid)
        raise PermissionDenied(decision.reason, resource=resource.value, action=action.value, record_id=rid)
    return decision


def _route_matches(rule: RouteAccess, path: str) -> bool:
    if rule.exact:
        return path == rule.path
    prefix = rule.path.rstrip('/')
    return path == prefix or path.startswith(prefix + '/')


def find_route_rule(path: str, routes: Iterable[RouteAccess] = ROUTE_ACCESS) -> Optional[RouteAccess]:
    """Most specific rule for path: an exact rule first, else the longest matching prefix."""
    candidates = [r for r in routes if _route_matches(r, path)]
    if not candidates:
        return None
    return max(candidates, key=lambda r: (r.exact, len(r.path)))


def _default_allow() -> bool:
    if has_app_context():
        return bool(current_app.config.get('ROUTE_ACCESS_DEFAULT_ALLOW', True))
    return True


def can_access_route(role: Union[str, Role, None], path: str, routes: Iterable[RouteAccess] = ROUTE_ACCESS,
                     default_allow: Optional[bool] = None) -> bool:
    role = normalize_role(role)
    if role is Role.ADMIN:
        return True
    rule = find_route_rule(path, routes)
    if rule is None:
        # Unconfigured paths are open unless ROUTE_ACCESS_DEFAULT_ALLOW is off
        return _default_allow() if default_allow is None else default_allow
    return role in rule.allowed_roles


def accessible_routes(role: Union[str, Role, None], routes: Iterable[RouteAccess] = ROUTE_ACCESS) -> List[RouteAccess]:
    role = normalize_role(role)
    if role is Role.ADMIN:
        return list(routes)
    return [r for r in routes if role in r.allowed_roles]


def current_actor() -> Actor:
    """Actor for the current request, built from the verified JWT."""
    verify_jwt_in_request()
    claims = get_jwt()
    return Actor.from_raw(get_jwt_identity(), claims.get('role'))

__all__ = [
    'Actor', 'Decision', 'check', 'authorize', 'find_route_rule', 'can_access_route',
    'accessible_routes', 'current_actor',
]
