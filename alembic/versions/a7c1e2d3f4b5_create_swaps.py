"""create_swaps

Append-only swaps table fed by the event pipeline. The unique index on
signature rejects redelivered transactions.

Revision ID: a7c1e2d3f4b5
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a7c1e2d3f4b5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'swaps',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('launch_id', sa.String(44), nullable=False),
        sa.Column('mint', sa.String(44), nullable=False),
        sa.Column('signature', sa.String(88), nullable=False),
        sa.Column('trader', sa.String(44), nullable=False),
        sa.Column('swap_type', sa.String(4), nullable=False),
        sa.Column('sol_amount', sa.Numeric(20, 0), nullable=False),
        sa.Column('token_amount', sa.Numeric(20, 0), nullable=False),
        sa.Column('price', sa.Numeric(24, 12), nullable=False),
        sa.Column('price_usd', sa.Numeric(24, 12), nullable=True),
        sa.Column('sol_reserves', sa.Numeric(20, 0), nullable=True),
        sa.Column('token_reserves', sa.Numeric(20, 0), nullable=True),
        sa.Column('market_cap_sol', sa.Numeric(24, 12), nullable=True),
        sa.Column('slot', sa.BigInteger(), nullable=False),
        sa.Column('block_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            'indexed_at', sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.CheckConstraint("swap_type IN ('buy', 'sell')", name='ck_swaps_swap_type'),
    )
    op.create_index('uq_swaps_signature', 'swaps', ['signature'], unique=True)
    op.create_index('idx_swaps_launch_time', 'swaps', ['launch_id', 'block_time'])
    op.create_index('idx_swaps_mint_time', 'swaps', ['mint', 'block_time'])
    op.create_index('idx_swaps_trader', 'swaps', ['trader', 'block_time'])
    op.create_index('idx_swaps_block_time', 'swaps', ['block_time'])
    op.create_index('idx_swaps_slot', 'swaps', ['slot'])


def downgrade() -> None:
    op.drop_index('idx_swaps_slot', table_name='swaps')
    op.drop_index('idx_swaps_block_time', table_name='swaps')
    op.drop_index('idx_swaps_trader', table_name='swaps')
    op.drop_index('idx_swaps_mint_time', table_name='swaps')
    op.drop_index('idx_swaps_launch_time', table_name='swaps')
    op.drop_index('uq_swaps_signature', table_name='swaps')
    op.drop_table('swaps')
