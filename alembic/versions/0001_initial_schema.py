"""Initial annual leave schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "annual_leave_policies",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("policy_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("first_year_monthly_grant", sa.Float(), nullable=False),
        sa.Column("first_year_max_days", sa.Float(), nullable=False),
        sa.Column("base_annual_days", sa.Float(), nullable=False),
        sa.Column("increment_years", sa.Integer(), nullable=False),
        sa.Column("increment_days", sa.Float(), nullable=False),
        sa.Column("max_annual_days", sa.Float(), nullable=False),
        sa.Column("expire_after_months", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_policy_active", "annual_leave_policies", ["is_active"])

    op.create_table(
        "annual_leave_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column("member_name", sa.String(length=255), nullable=False),
        sa.Column("transaction_type", sa.String(length=50), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=False),
        sa.Column("grant_date", sa.Date(), nullable=True),
        sa.Column("expire_date", sa.Date(), nullable=True),
        sa.Column("reference_id", sa.Uuid(), nullable=True),
        sa.Column("request_id", sa.Uuid(), nullable=True),
        sa.Column("policy_id", sa.Uuid(), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="active", nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["policy_id"], ["annual_leave_policies.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key", name="uq_leave_txn_idempotency"),
    )
    op.create_index("ix_annual_leave_transactions_member_id", "annual_leave_transactions", ["member_id"])
    op.create_index("ix_annual_leave_transactions_request_id", "annual_leave_transactions", ["request_id"])
    op.create_index("ix_annual_leave_transactions_created_at", "annual_leave_transactions", ["created_at"])
    op.create_index("ix_leave_txn_member_type", "annual_leave_transactions", ["member_id", "transaction_type"])
    op.create_index("ix_leave_txn_reference", "annual_leave_transactions", ["reference_id"])

    op.create_table(
        "annual_leave_balances",
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column("member_name", sa.String(length=255), nullable=False),
        sa.Column("total_granted", sa.Float(), server_default="0", nullable=False),
        sa.Column("total_used", sa.Float(), server_default="0", nullable=False),
        sa.Column("total_expired", sa.Float(), server_default="0", nullable=False),
        sa.Column("total_adjusted", sa.Float(), server_default="0", nullable=False),
        sa.Column("current_balance", sa.Float(), server_default="0", nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.PrimaryKeyConstraint("member_id"),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("annual_leave_balances")
    op.drop_table("annual_leave_transactions")
    op.drop_table("annual_leave_policies")
