"""create credit engine schema

Revision ID: 20261019_00
Revises: 
Create Date: 2026-10-19 09:10:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_00"
down_revision = None
branch_labels = None
depends_on = None


def _entity_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("primary_domain", sa.String(length=255), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False, server_default="TRY"),
        sa.Column("pricing_multiplier", sa.Numeric(10, 4), nullable=False, server_default="1"),
        *_entity_columns(),
        sa.CheckConstraint(
            "pricing_multiplier > 0 AND pricing_multiplier <= 100",
            name="ck_tenants_pricing_multiplier_range",
        ),
    )
    op.create_index("ix_tenants_code", "tenants", ["code"], unique=True)
    op.create_index("ix_tenants_primary_domain", "tenants", ["primary_domain"], unique=True)

    op.create_table(
        "profiles",
        sa.Column("tenant_key", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        *_entity_columns(),
    )
    op.create_index("ix_profiles_tenant_key", "profiles", ["tenant_key"], unique=False)

    op.create_table(
        "organizations",
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("credit_balance", sa.Integer(), nullable=False, server_default="0"),
        *_entity_columns(),
    )

    op.create_table(
        "organization_members",
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_role", sa.String(length=32), nullable=False, server_default="member"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        *_entity_columns(),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.UniqueConstraint("org_id", "user_id", name="uq_organization_members_org_user"),
    )
    op.create_index("ix_organization_members_org_id", "organization_members", ["org_id"], unique=False)
    op.create_index("ix_organization_members_user_id", "organization_members", ["user_id"], unique=False)

    op.create_table(
        "questions",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="submitted"),
        sa.Column("price_base", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("price_final", sa.Numeric(14, 2), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_to", postgresql.UUID(as_uuid=True), nullable=True),
        *_entity_columns(),
    )
    op.create_index("ix_questions_user_id", "questions", ["user_id"], unique=False)
    op.create_index("ix_questions_status", "questions", ["status"], unique=False)

    op.create_table(
        "subscription_settings",
        sa.Column("credit_unit_price", sa.Numeric(14, 2), nullable=False, server_default="1"),
        sa.Column("credit_discount_user", sa.Numeric(7, 4), nullable=False, server_default="0"),
        sa.Column("credit_discount_org", sa.Numeric(7, 4), nullable=False, server_default="0"),
        *_entity_columns(),
    )

    op.create_table(
        "credit_ledger",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scope_type", sa.String(length=8), nullable=False),
        sa.Column("scope_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("change", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=64), nullable=False),
        sa.Column("question_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("scope_type IN ('user', 'org')", name="ck_credit_ledger_scope_type"),
        sa.CheckConstraint("change <> 0", name="ck_credit_ledger_change_nonzero"),
    )
    op.create_index("ix_credit_ledger_scope", "credit_ledger", ["scope_type", "scope_id"], unique=False)
    op.create_index("ix_credit_ledger_question_id", "credit_ledger", ["question_id"], unique=False)
    op.create_index("ix_credit_ledger_created_at", "credit_ledger", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_credit_ledger_created_at", table_name="credit_ledger")
    op.drop_index("ix_credit_ledger_question_id", table_name="credit_ledger")
    op.drop_index("ix_credit_ledger_scope", table_name="credit_ledger")
    op.drop_table("credit_ledger")

    op.drop_table("subscription_settings")

    op.drop_index("ix_questions_status", table_name="questions")
    op.drop_index("ix_questions_user_id", table_name="questions")
    op.drop_table("questions")

    op.drop_index("ix_organization_members_user_id", table_name="organization_members")
    op.drop_index("ix_organization_members_org_id", table_name="organization_members")
    op.drop_table("organization_members")
    op.drop_table("organizations")

    op.drop_index("ix_profiles_tenant_key", table_name="profiles")
    op.drop_table("profiles")

    op.drop_index("ix_tenants_primary_domain", table_name="tenants")
    op.drop_index("ix_tenants_code", table_name="tenants")
    op.drop_table("tenants")
