from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, List, Union
from taskhub.constants.permissions import (
    Role, Resource, Action, CAPABILITY_MATRIX, SELF_SCOPED_ACTIONS, ALL_ACTIONS, MANAGE,
)


def allowed_actions(role: Role, resource: Resource) -> FrozenSet[Action]:
    if resource is Resource.SETTING:
        return SELF_SCOPED_ACTIONS
    return CAPABILITY_MATRIX.get(role, {}).get(resource, frozenset())


def is_allowed(role: Role, resource: Resource, action: Action) -> bool:
    """Role-tier verdict for (role, resource, action); unlisted pairs deny."""
    return action in allowed_actions(role, resource)


def expand_actions(actions: Iterable[Union[str, Action]]) -> FrozenSet[Action]:
    """Expand 'MANAGE' into the four CRUD actions; other names map to Action."""
    out = set()
    for a in actions:
        if isinstance(a, str) and a.upper() == MANAGE:
            out |= ALL_ACTIONS
        else:
            out.add(Action(a.upper() if isinstance(a, str) else a))
    return frozenset(out)


def capability_table(role: Role) -> Dict[str, List[str]]:
    """Resource -> sorted action names for one role (client-side UX hint only)."""
    return {
        r.value: sorted(a.value for a in allowed_actions(role, r))
        for r in Resource
    }

__all__ = ['allowed_actions', 'is_allowed', 'expand_actions', 'capability_table']
