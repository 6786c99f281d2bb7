"""004: create order_items table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE order_items (
            id                  UUID            PRIMARY KEY,
            order_id            UUID            NOT NULL REFERENCES orders (id) ON DELETE CASCADE,
            position            INT             NOT NULL,
            name                VARCHAR(255)    NOT NULL,
            description         VARCHAR(2550),
            price_cents         BIGINT          NOT NULL,
            price_currency      CHAR(3)         NOT NULL,
            quantity            INT             NOT NULL DEFAULT 1,
            taxes               JSONB           NOT NULL DEFAULT '[]'::jsonb,
            CONSTRAINT uq_order_items_position  UNIQUE (order_id, position),
            CONSTRAINT ck_order_items_quantity  CHECK (quantity > 0)
        );
    """)
    op.execute("COMMENT ON COLUMN order_items.price_cents IS 'Unit price in minor units (cents)';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_items CASCADE;")
