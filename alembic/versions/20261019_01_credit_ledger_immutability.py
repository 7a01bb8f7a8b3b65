"""reject updates and deletes on credit_ledger

Revision ID: 20261019_01
Revises: 20261019_00
Create Date: 2026-10-19 09:40:00

"""
from __future__ import annotations

from alembic import op


# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = "20261019_00"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE OR REPLACE FUNCTION credit_ledger_reject_mutation() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'credit_ledger is append-only';
        END;
        $$ LANGUAGE plpgsql
        """
    )
    op.execute(
        """
        CREATE TRIGGER credit_ledger_append_only
        BEFORE UPDATE OR DELETE ON credit_ledger
        FOR EACH ROW EXECUTE FUNCTION credit_ledger_reject_mutation()
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS credit_ledger_append_only ON credit_ledger")
    op.execute("DROP FUNCTION IF EXISTS credit_ledger_reject_mutation()")
