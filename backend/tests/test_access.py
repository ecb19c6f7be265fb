from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from conftest import auth_headers

from leavedesk.exceptions import Forbidden, Unauthenticated
from leavedesk.models.enums import Role
from leavedesk.services.access import ADMIN_ONLY, APPROVERS, RoleGate

if TYPE_CHECKING:
    from httpx import AsyncClient

    from leavedesk.models.user import User


@pytest.mark.parametrize(
    ("gate", "role", "expected"),
    [
        (ADMIN_ONLY, Role.ADMIN, True),
        (ADMIN_ONLY, Role.MANAGER, False),
        (ADMIN_ONLY, Role.EMPLOYEE, False),
        (APPROVERS, Role.ADMIN, True),
        (APPROVERS, Role.MANAGER, True),
        (APPROVERS, Role.EMPLOYEE, False),
    ],
)
def test_gate_depends_only_on_role(gate: RoleGate, role: Role, expected: bool) -> None:
    assert gate.permits(role) is expected
    assert gate.permits(role.value) is expected


def test_gate_rejects_unknown_role() -> None:
    assert RoleGate(frozenset(Role)).permits("superuser") is False


def test_gate_check_without_user() -> None:
    with pytest.raises(Unauthenticated):
        ADMIN_ONLY.check(None)


async def test_gate_check_reports_allowed_roles(employee: User) -> None:
    with pytest.raises(Forbidden) as exc_info:
        APPROVERS.check(employee)
    assert exc_info.value.allowed_roles == ("admin", "manager")


async def test_admin_route_forbidden_for_employee(async_client: AsyncClient, employee: User) -> None:
    resp = await async_client.get("/admin/users", headers=auth_headers(employee))
    assert resp.status_code == 403
    assert resp.json()["error"] == "Forbidden"


async def test_admin_route_forbidden_for_manager(async_client: AsyncClient, manager: User) -> None:
    resp = await async_client.get("/admin/settings", headers=auth_headers(manager))
    assert resp.status_code == 403


async def test_approver_route(async_client: AsyncClient, manager: User, employee: User) -> None:
    assert (await async_client.get("/leaves/pending", headers=auth_headers(manager))).status_code == 200
    assert (await async_client.get("/leaves/pending", headers=auth_headers(employee))).status_code == 403


async def test_gate_runs_after_authentication(async_client: AsyncClient) -> None:
    resp = await async_client.get("/admin/users")
    assert resp.status_code == 401
