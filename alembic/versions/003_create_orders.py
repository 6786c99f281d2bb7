"""003: create orders table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  UUID            PRIMARY KEY,
            name                VARCHAR(255)    NOT NULL,
            description         VARCHAR(2550),
            customer            VARCHAR(255),
            remark              TEXT,
            target_organization VARCHAR(255)    NOT NULL,
            organization_id     UUID            NOT NULL REFERENCES organizations (id),
            reference           VARCHAR(255),
            reference_id        INT,
            price_cents         BIGINT          NOT NULL DEFAULT 0,
            price               NUMERIC(10, 2)  NOT NULL DEFAULT 0,
            price_currency      CHAR(3)         NOT NULL,
            taxes               JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_orders_reference              UNIQUE (reference),
            CONSTRAINT uq_orders_org_reference_id       UNIQUE (organization_id, reference_id),
            CONSTRAINT ck_orders_reference_id_positive  CHECK (reference_id IS NULL OR reference_id > 0),
            CONSTRAINT ck_orders_reference_pair         CHECK ((reference IS NULL) = (reference_id IS NULL)),
            CONSTRAINT ck_orders_price_consistency      CHECK (price * 100 = price_cents)
        );
    """)
    op.execute("CREATE INDEX idx_orders_organization ON orders (organization_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_orders_reference_immutable()
        RETURNS TRIGGER AS $$
        BEGIN
            IF OLD.reference IS NOT NULL AND (
                NEW.reference IS DISTINCT FROM OLD.reference
                OR NEW.reference_id IS DISTINCT FROM OLD.reference_id
            ) THEN
                RAISE EXCEPTION 'order % reference is immutable', OLD.id;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_orders_reference_immutable
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_orders_reference_immutable();
    """)
    op.execute("COMMENT ON TABLE orders IS 'Sales orders — price/taxes are derived from order_items on every write';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_orders_reference_immutable();")
