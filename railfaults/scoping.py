"""Role-based visibility rules for faults.

Every fault read or mutation runs through :func:`scope_filter` first. The
result is a plain :class:`ScopeFilter` value that the lifecycle service turns
into query criteria, so the rules themselves stay free of database access.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .errors import AccessDeniedError
from .models import Fault, RoleEnum, User


class FaultView(str, Enum):
    """Which dashboard list is being requested."""

    ACTIVE = "active"
    HISTORY = "history"


@dataclass(frozen=True)
class ScopeFilter:
    chiefdom_id: Optional[int] = None
    reported_by_id: Optional[int] = None

    @property
    def is_unrestricted(self) -> bool:
        return self.chiefdom_id is None and self.reported_by_id is None

    def allows(self, fault: Fault) -> bool:
        if self.chiefdom_id is not None and fault.chiefdom_id != self.chiefdom_id:
            return False
        if self.reported_by_id is not None and fault.reported_by_id != self.reported_by_id:
            return False
        return True


UNRESTRICTED = ScopeFilter()

ScopeRule = Callable[[User, FaultView], ScopeFilter]


def _unrestricted(_: User, __: FaultView) -> ScopeFilter:
    return UNRESTRICTED


def _own_chiefdom(user: User, _: FaultView) -> ScopeFilter:
    if user.chiefdom_id is None:
        raise AccessDeniedError("Worker is not assigned to a chiefdom")
    return ScopeFilter(chiefdom_id=user.chiefdom_id)


def _watchman(user: User, view: FaultView) -> ScopeFilter:
    # Dispatch needs the whole queue; history is limited to own reports.
    if view is FaultView.HISTORY:
        return ScopeFilter(reported_by_id=user.id)
    return UNRESTRICTED


def _unsupported(user: User, _: FaultView) -> ScopeFilter:
    raise AccessDeniedError(f"Role '{user.role.value}' has no fault access")


SCOPE_RULES: Dict[RoleEnum, ScopeRule] = {
    RoleEnum.ADMIN: _unrestricted,
    RoleEnum.ENGINEER: _unrestricted,
    RoleEnum.CTC_WATCHMAN: _watchman,
    RoleEnum.WORKER: _own_chiefdom,
    RoleEnum.CTC: _unsupported,
}


def scope_filter(user: User, view: FaultView = FaultView.ACTIVE) -> ScopeFilter:
    """Return the fault filter for ``user`` looking at ``view``.

    Raises ``AccessDeniedError`` for roles without fault access.
    """
    rule = SCOPE_RULES.get(user.role, _unsupported)
    return rule(user, view)
