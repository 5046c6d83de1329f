# This project was developed with assistance from AI tools.
"""add append-only trigger on audit_logs

Revision ID: 7c8d9e0f1a2b
Revises: 3f1a2b4c5d6e
Create Date: 2026-10-05 09:40:03.000000
"""

from alembic import op

revision = "7c8d9e0f1a2b"
down_revision = "3f1a2b4c5d6e"
branch_labels = None
depends_on = None

TRIGGER_FUNCTION = """
CREATE OR REPLACE FUNCTION audit_logs_prevent_mutation()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'audit_logs is append-only: % denied for row %', TG_OP, OLD.id;
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;
"""

TRIGGER_UPDATE = """
CREATE TRIGGER audit_logs_no_update
    BEFORE UPDATE ON audit_logs
    FOR EACH ROW
    EXECUTE FUNCTION audit_logs_prevent_mutation();
"""

TRIGGER_DELETE = """
CREATE TRIGGER audit_logs_no_delete
    BEFORE DELETE ON audit_logs
    FOR EACH ROW
    EXECUTE FUNCTION audit_logs_prevent_mutation();
"""


def upgrade() -> None:
    op.execute(TRIGGER_FUNCTION)
    op.execute(TRIGGER_UPDATE)
    op.execute(TRIGGER_DELETE)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS audit_logs_no_delete ON audit_logs")
    op.execute("DROP TRIGGER IF EXISTS audit_logs_no_update ON audit_logs")
    op.execute("DROP FUNCTION IF EXISTS audit_logs_prevent_mutation()")
