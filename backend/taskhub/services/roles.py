from __future__ import annotations
"""Role normalization.

Upstream stores spell roles in several ways (ADMIN, PROJECT_MANAGER, manager,
VIEWER...). They are folded into the closed `Role` enum once, when the actor
is built, and raw strings never travel further than that.
"""
from typing import Optional, Union
from taskhub.constants.permissions import Role, ROLE_ALIASES, ROLE_LABELS_I18N

DEFAULT_LOCALE = 'en'


def normalize_role(raw: Optional[Union[str, Role]]) -> Role:
    """Map a stored role value to a canonical Role.

    Total function: unknown, empty or None input yields EMPLOYEE, the least
    privileged role, never ADMIN or MANAGER.
    """
    if isinstance(raw, Role):
        return raw
    if not isinstance(raw, str):
        return Role.EMPLOYEE
    return ROLE_ALIASES.get(raw.strip().upper(), Role.EMPLOYEE)


def role_label(role: Union[str, Role], locale: str = DEFAULT_LOCALE) -> str:
    labels = ROLE_LABELS_I18N[normalize_role(role)]
    return labels.get(locale) or labels[DEFAULT_LOCALE]

__all__ = ['normalize_role', 'role_label']
