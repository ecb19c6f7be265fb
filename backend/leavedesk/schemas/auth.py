# ruff: noqa: TC003
from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from leavedesk.models.enums import EmploymentType
from leavedesk.schemas.user import EMAIL_PATTERN, UserResponse


class LoginRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    """Self-registration always creates an employee account."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=128)
    employment_type: EmploymentType = EmploymentType.REGULAR
    department: str | None = Field(default=None, max_length=255)
    joining_date: date | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=128)


class TokenResponse(BaseModel):
    """Bearer token issued on login or registration."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
