# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from leavedesk.db import SessionDep
from leavedesk.exceptions import AUTHENTICATION_ERRORS
from leavedesk.models.user import User
from leavedesk.services.access import ADMIN_ONLY, APPROVERS
from leavedesk.services.auth import verify_credential

bearer_scheme = HTTPBearer(auto_error=False)

BearerDep = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


async def get_current_user(session: SessionDep, credentials: BearerDep) -> User:
    """Resolve the bearer token to the acting user."""
    return await verify_credential(session, credentials.credentials if credentials else None)


CurrentUserDep = Annotated[User, Depends(get_current_user)]


async def get_optional_user(session: SessionDep, credentials: BearerDep) -> User | None:
    """Like ``get_current_user`` but anonymous (or badly authenticated) callers get None."""
    if credentials is None:
        return None
    try:
        return await verify_credential(session, credentials.credentials)
    except AUTHENTICATION_ERRORS:
        return None


OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]


async def require_admin(user: CurrentUserDep) -> User:
    """Require the admin role for the request."""
    return ADMIN_ONLY.check(user)


AdminDep = Annotated[User, Depends(require_admin)]


async def require_approver(user: CurrentUserDep) -> User:
    """Require the manager or admin role for the request."""
    return APPROVERS.check(user)


ApproverDep = Annotated[User, Depends(require_approver)]
