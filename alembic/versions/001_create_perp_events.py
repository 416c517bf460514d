"""001: create perp_events journal table

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
        CREATE TABLE perp_events (
            id              BIGSERIAL       PRIMARY KEY,
            market_id       BIGINT          NOT NULL,
            account_id      BIGINT,
            event_type      VARCHAR(40)     NOT NULL,
            event_time      BIGINT          NOT NULL,
            payload         JSONB           NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_perp_event_type CHECK (
                event_type IN (
                    'MARKET_CREATED',
                    'MARKET_CONFIGURED',
                    'GLOBAL_MARKET_CONFIGURED',
                    'ORDER_COMMITTED',
                    'ORDER_SETTLED',
                    'ORDER_CANCELED',
                    'SETTLEMENT_HOOK_EXECUTED',
                    'SETTLEMENT_HOOK_FAILED',
                    'UTILIZATION_RECOMPUTED',
                    'MARGIN_DEPOSIT',
                    'MARGIN_WITHDRAW',
                    'DEBT_PAID',
                    'POSITION_FLAGGED_LIQUIDATION',
                    'POSITION_LIQUIDATED',
                    'MARGIN_LIQUIDATED',
                    'ACCOUNT_SPLIT',
                    'ACCOUNTS_MERGED'
                )
            )
        );
    """)
    op.execute("CREATE INDEX idx_perp_events_market_time ON perp_events (market_id, event_time);")
    op.execute(
        "CREATE INDEX idx_perp_events_account ON perp_events (account_id, market_id)"
        " WHERE account_id IS NOT NULL;"
    )
    op.execute("COMMENT ON TABLE perp_events IS 'Engine event journal, append-only';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS perp_events CASCADE;")
