"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

DAYS = sa.Numeric(10, 2)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "user_account",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _created_at(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=50), server_default="employee", nullable=False),
        sa.Column("employment_type", sa.String(length=50), server_default="regular", nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("manager_id", sa.Uuid(), sa.ForeignKey("user_account.id", ondelete="SET NULL"), nullable=True),
        sa.Column("joining_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("lop_days", DAYS, server_default="0", nullable=False),
        sa.Column("carry_forward_days", DAYS, server_default="0", nullable=False),
    )
    op.create_index("ix_user_account_email", "user_account", ["email"], unique=True)
    op.create_index("ix_user_account_department", "user_account", ["department"])
    op.create_index("ix_user_account_manager_id", "user_account", ["manager_id"])

    op.create_table(
        "leave_balance",
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False),
        sa.Column("leave_type", sa.String(length=50), nullable=False),
        sa.Column("balance", DAYS, server_default="0", nullable=False),
        sa.Column("last_accrual_period", sa.String(length=7), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.PrimaryKeyConstraint("user_id", "leave_type"),
    )

    op.create_table(
        "leave_ledger_entry",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False),
        sa.Column("leave_type", sa.String(length=50), nullable=False),
        sa.Column("entry_type", sa.String(length=50), nullable=False),
        sa.Column("amount_days", DAYS, nullable=False),
        sa.Column("balance_after", DAYS, nullable=True),
        sa.Column("source_type", sa.String(length=50), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=False),
        sa.Column("metadata_json", sa.JSON(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("source_type", "source_id", "entry_type", name="uq_ledger_idempotency"),
    )
    op.create_index("ix_leave_ledger_entry_user_id", "leave_ledger_entry", ["user_id"])
    op.create_index("ix_leave_ledger_entry_created_at", "leave_ledger_entry", ["created_at"])
    op.create_index("ix_ledger_user_type", "leave_ledger_entry", ["user_id", "leave_type"])

    op.create_table(
        "leave_request",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _created_at(),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(length=50), nullable=False),
        sa.Column("leave_type", sa.String(length=50), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("is_half_day", sa.Boolean(), nullable=False),
        sa.Column("working_days", DAYS, nullable=False),
        sa.Column("comp_off_days", DAYS, nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=50), server_default="pending", nullable=False),
        sa.Column("documents_json", sa.JSON(), nullable=True),
        sa.Column("balance_deducted", sa.Boolean(), nullable=False),
        sa.Column("lop_converted_days", DAYS, server_default="0", nullable=False),
        sa.Column("decided_by", sa.Uuid(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_note", sa.String(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(), nullable=True),
    )
    op.create_index("ix_leave_request_user_id", "leave_request", ["user_id"])
    op.create_index("ix_leave_request_status", "leave_request", ["status"])
    op.create_index("ix_request_user_status", "leave_request", ["user_id", "status"])
    op.create_index("ix_request_dates", "leave_request", ["start_date", "end_date"])

    op.create_table(
        "holiday",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.UniqueConstraint("date", "department", name="uq_holiday_date_department"),
    )
    op.create_index("ix_holiday_date", "holiday", ["date"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])

    op.create_table(
        "system_config",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column("leave_quotas_json", sa.JSON(), nullable=False),
        sa.Column("accrual_rates_json", sa.JSON(), nullable=False),
        sa.Column("system_settings_json", sa.JSON(), nullable=False),
        sa.Column("last_accrual_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.Uuid(), nullable=True),
    )

    op.create_table(
        "accrual_run",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _created_at(),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("processed", sa.Integer(), nullable=False),
        sa.Column("credited", sa.Integer(), nullable=False),
        sa.Column("skipped", sa.Integer(), nullable=False),
        sa.Column("failed", sa.Integer(), nullable=False),
        sa.Column("total_credited", DAYS, nullable=False),
        sa.Column("converted_to_lop", DAYS, nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("run_by", sa.Uuid(), nullable=True),
    )
    op.create_index("ix_accrual_run_period", "accrual_run", ["period"])


def downgrade() -> None:
    op.drop_table("accrual_run")
    op.drop_table("system_config")
    op.drop_table("audit_log")
    op.drop_table("holiday")
    op.drop_table("leave_request")
    op.drop_table("leave_ledger_entry")
    op.drop_table("leave_balance")
    op.drop_table("user_account")
