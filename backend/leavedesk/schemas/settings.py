"""Domain settings stored in the ``system_config`` row.

Every read of the JSON columns goes through these models, so defaults fill
in any key missing from older rows.
"""

from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from leavedesk.models.enums import EmploymentType, LeaveType, LopResetPeriod

# ---------------------------------------------------------------------------
# Quotas and accrual rates
# ---------------------------------------------------------------------------


class LeaveAllowance(BaseModel):
    """Days per ordinary leave type."""

    sick: float = Field(default=0, ge=0)
    casual: float = Field(default=0, ge=0)
    vacation: float = Field(default=0, ge=0)
    academic: float = Field(default=0, ge=0)

    def for_type(self, leave_type: LeaveType | str) -> Decimal:
        value = getattr(self, str(leave_type), 0)
        return Decimal(str(value))


class LeaveQuotas(BaseModel):
    """Annual quota per employment type."""

    regular: LeaveAllowance = LeaveAllowance(sick=12, casual=8, vacation=20, academic=15)
    intern: LeaveAllowance = LeaveAllowance(sick=6, casual=6, vacation=0, academic=10)

    def for_employment(self, employment_type: EmploymentType | str) -> LeaveAllowance:
        if employment_type == EmploymentType.INTERN:
            return self.intern
        return self.regular


class AccrualRates(BaseModel):
    """Monthly accrual per employment type."""

    regular: LeaveAllowance = LeaveAllowance(sick=1, casual=0.67, vacation=1.67, academic=1.25)
    intern: LeaveAllowance = LeaveAllowance(sick=0.5, casual=0.5, vacation=0, academic=0.83)

    def for_employment(self, employment_type: EmploymentType | str) -> LeaveAllowance:
        if employment_type == EmploymentType.INTERN:
            return self.intern
        return self.regular


# ---------------------------------------------------------------------------
# System settings
# ---------------------------------------------------------------------------


class AdvanceNotice(BaseModel):
    """Minimum days between filing and the start date."""

    casual: int = Field(default=7, ge=0)
    vacation: int = Field(default=7, ge=0)
    academic: int = Field(default=14, ge=0)

    def for_type(self, leave_type: LeaveType | str) -> int:
        return getattr(self, str(leave_type), 0)


class AcademicLeaveSettings(BaseModel):
    require_documents: bool = True
    max_documents: int = Field(default=5, ge=1)
    allowed_file_types: list[str] = ["pdf", "jpg", "jpeg", "png", "doc", "docx"]
    max_file_size_mb: int = Field(default=5, gt=0)
    max_consecutive_days: int = Field(default=30, gt=0)

    @field_validator("allowed_file_types")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return [ext.lower().lstrip(".") for ext in value]


class LopSettings(BaseModel):
    """Loss-of-pay behaviour."""

    allow_negative: bool = True
    auto_convert_negative_balance: bool = True
    lop_reset_period: LopResetPeriod = LopResetPeriod.YEARLY
    allow_lop_carry_forward: bool = False
    lop_alert_threshold: float = Field(default=5, ge=0)
    restrict_leave_after_max_lop: bool = True
    lop_deduction_from_salary: bool = True


class SystemSettings(BaseModel):
    max_lop_days: float = Field(default=10, ge=0)
    max_lop_days_per_month: float = Field(default=5, ge=0)
    carry_forward_cap: float = Field(default=15, ge=0)
    advance_notice: AdvanceNotice = AdvanceNotice()
    sick_leave_cutoff_time: time = time(11, 0)
    hr_email: str | None = None
    working_days: list[int] = Field(default=[1, 2, 3, 4, 5], description="ISO weekdays, Monday is 1")
    auto_approve_wfh: bool = False
    academic_leave: AcademicLeaveSettings = AcademicLeaveSettings()
    lop_settings: LopSettings = LopSettings()

    @field_validator("working_days")
    @classmethod
    def _validate_working_days(cls, value: list[int]) -> list[int]:
        if not value:
            msg = "working_days must not be empty"
            raise ValueError(msg)
        if any(day < 1 or day > 7 for day in value):
            msg = "working_days must be ISO weekdays between 1 and 7"
            raise ValueError(msg)
        return sorted(set(value))

    @model_validator(mode="after")
    def _validate_lop_limits(self) -> Self:
        if self.max_lop_days_per_month > self.max_lop_days:
            msg = "max_lop_days_per_month cannot exceed max_lop_days"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ConfigResponse(BaseModel):
    """Full configuration as stored in the system_config row."""

    leave_quotas: LeaveQuotas
    accrual_rates: AccrualRates
    system_settings: SystemSettings
    last_accrual_run_at: datetime | None


def merge_settings(current: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``changes`` on ``current`` without mutating either."""
    merged = dict(current)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged
