"""Role gate: a declarative check that the acting user holds a permitted role."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from leavedesk.exceptions import Forbidden, Unauthenticated
from leavedesk.models.enums import Role

if TYPE_CHECKING:
    from leavedesk.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleGate:
    """Allow a user whose role is in ``allowed``; the decision uses nothing else."""

    allowed: frozenset[Role]

    def permits(self, role: Role | str) -> bool:
        try:
            return Role(role) in self.allowed
        except ValueError:
            return False

    def check(self, user: User | None) -> User:
        if user is None:
            raise Unauthenticated("Authentication required")
        if not self.permits(user.role):
            allowed = sorted(role.value for role in self.allowed)
            logger.warning("Role %s denied; requires one of %s (user=%s)", user.role, allowed, user.id)
            raise Forbidden(f"Requires one of roles: {', '.join(allowed)}", allowed_roles=allowed)
        return user


ADMIN_ONLY = RoleGate(frozenset({Role.ADMIN}))
APPROVERS = RoleGate(frozenset({Role.MANAGER, Role.ADMIN}))
