# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from leavedesk.models.enums import EmploymentType, Role

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CreateUserRequest(BaseModel):
    """Request body for an admin creating an account."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=128)
    role: Role = Role.EMPLOYEE
    employment_type: EmploymentType = EmploymentType.REGULAR
    department: str | None = Field(default=None, max_length=255)
    manager_id: uuid.UUID | None = None
    joining_date: date | None = None


class UpdateUserRequest(BaseModel):
    """Partial update; only the fields sent are changed."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    role: Role | None = None
    employment_type: EmploymentType | None = None
    department: str | None = Field(default=None, max_length=255)
    manager_id: uuid.UUID | None = None
    joining_date: date | None = None


class UserResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: Role
    employment_type: EmploymentType
    department: str | None
    manager_id: uuid.UUID | None
    joining_date: date
    is_active: bool
    lop_days: float
    carry_forward_days: float
    created_at: datetime


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int


class TeamMember(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: Role
    employment_type: EmploymentType
    joining_date: date


class TeamResponse(BaseModel):
    """Team members grouped by department."""

    departments: list[str]
    members: dict[str, list[TeamMember]]
    total: int
