"""001: create offers table (+ updated_at trigger function)

Orders are embedded in offers.orders (JSONB array, insertion order) and are
always written together with completed_order_count under a row lock.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE offers (
            id                      BIGSERIAL           PRIMARY KEY,
            owner_identity          TEXT                NOT NULL,
            display_name            TEXT                NOT NULL,
            avatar_ref              TEXT                NOT NULL DEFAULT '',
            details                 JSONB               NOT NULL,
            min_unit_amount         DOUBLE PRECISION    NOT NULL,
            max_unit_amount         DOUBLE PRECISION    NOT NULL,
            margin                  DOUBLE PRECISION    NOT NULL,
            contact_handle          TEXT                NOT NULL,
            transfer_time_window    TEXT                NOT NULL,
            completed_order_count   INT                 NOT NULL DEFAULT 0,
            orders                  JSONB               NOT NULL DEFAULT '[]'::jsonb,
            version                 INT                 NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_offers_owner_identity     UNIQUE (owner_identity),
            CONSTRAINT ck_offers_amounts_positive   CHECK (min_unit_amount > 0 AND max_unit_amount > 0),
            CONSTRAINT ck_offers_amounts_ordered    CHECK (min_unit_amount <= max_unit_amount),
            CONSTRAINT ck_offers_margin_positive    CHECK (margin > 0),
            CONSTRAINT ck_offers_completed_gte_0    CHECK (completed_order_count >= 0),
            CONSTRAINT ck_offers_details_nonempty   CHECK (
                jsonb_typeof(details) = 'array' AND jsonb_array_length(details) > 0
            ),
            CONSTRAINT ck_offers_orders_array       CHECK (jsonb_typeof(orders) = 'array')
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_offers_updated_at
            BEFORE UPDATE ON offers
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE offers IS 'Maker payment offers; orders embedded as JSONB array';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS offers CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
