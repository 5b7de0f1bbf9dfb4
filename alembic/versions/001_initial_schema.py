"""Initial schema: organisations, users, suppliers, audit logs.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # Organisations
    op.create_table(
        "organisations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(36), sa.ForeignKey("organisations.id"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.Text, nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("organization_id", "email", name="uq_users_organization_email"),
        sa.CheckConstraint("role IN ('Owner', 'Admin', 'Analyst', 'Auditor')", name="ck_users_role"),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])

    # Suppliers
    op.create_table(
        "suppliers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(36), sa.ForeignKey("organisations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("risk_level", sa.String(50), nullable=False, server_default="Medium"),
        sa.Column("status", sa.String(50), nullable=False, server_default="Active"),
        sa.Column("contract_end_date", sa.Date, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("ai_status", sa.String(20), nullable=True),
        sa.Column("ai_risk_score", sa.Float, nullable=True),
        sa.Column("ai_analysis", JSON_TYPE, nullable=True),
        sa.Column("ai_last_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_last_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_error", sa.Text, nullable=True),
        sa.Column("ai_cycle", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("category IN ('SaaS', 'Infrastructure', 'Consulting', 'Other')", name="ck_suppliers_category"),
        sa.CheckConstraint("risk_level IN ('Critical', 'High', 'Medium', 'Low')", name="ck_suppliers_risk_level"),
        sa.CheckConstraint("status IN ('Active', 'Under Review', 'Inactive')", name="ck_suppliers_status"),
        sa.CheckConstraint(
            "ai_status IS NULL OR ai_status IN ('pending', 'processing', 'complete', 'error')",
            name="ck_suppliers_ai_status",
        ),
    )
    op.create_index("ix_suppliers_organization_id", "suppliers", ["organization_id"])
    op.create_index("ix_suppliers_category", "suppliers", ["category"])
    op.create_index("ix_suppliers_risk_level", "suppliers", ["risk_level"])
    op.create_index("ix_suppliers_ai_status", "suppliers", ["ai_status"])

    # Audit logs (user_id is not a foreign key: entries outlive their author)
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(36), sa.ForeignKey("organisations.id"), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("before", JSON_TYPE, nullable=True),
        sa.Column("after", JSON_TYPE, nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("action IN ('CREATE', 'UPDATE', 'DELETE')", name="ck_audit_logs_action"),
    )
    op.create_index("ix_audit_logs_organization_id", "audit_logs", ["organization_id"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("suppliers")
    op.drop_table("users")
    op.drop_table("organisations")
