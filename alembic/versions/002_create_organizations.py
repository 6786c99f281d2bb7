"""002: create organizations table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE organizations (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            external_id         VARCHAR(32)     NOT NULL,
            short_code          VARCHAR(32)     NOT NULL,
            last_reference_id   INT             NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_organizations_external_id     UNIQUE (external_id),
            CONSTRAINT ck_organizations_short_code      CHECK (short_code ~ '^[A-Za-z0-9]+$'),
            CONSTRAINT ck_organizations_counter_gte_0   CHECK (last_reference_id >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_organizations_updated_at
            BEFORE UPDATE ON organizations
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "COMMENT ON COLUMN organizations.last_reference_id IS "
        "'Last allocated order reference_id — only ever incremented via UPDATE ... RETURNING';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS organizations CASCADE;")
