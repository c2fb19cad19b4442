"""create_nft_cache_tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:12:44.103518

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'nfts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('fid', sa.BigInteger(), nullable=False, comment='External identity key, never reused'),
        sa.Column('token_id', sa.BigInteger(), nullable=True, comment='On-chain token ID, NULL until minted'),
        sa.Column('minted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('owner_address', sa.String(length=42), nullable=True, comment='Last observed on-chain holder (lowercase)'),
        sa.Column('contract_address', sa.String(length=42), nullable=True),
        sa.Column('tx_hash', sa.String(length=66), nullable=True),
        sa.Column(
            'traits',
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql'),
            nullable=True,
            comment='character_class, gender, background, ...',
        ),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('metadata_uri', sa.String(length=500), nullable=True),
        sa.Column('minted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_nfts_fid'), 'nfts', ['fid'], unique=True)
    op.create_index(op.f('ix_nfts_token_id'), 'nfts', ['token_id'], unique=True)
    op.create_index(op.f('ix_nfts_minted'), 'nfts', ['minted'], unique=False)

    op.create_table(
        'sync_checkpoints',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('task_name', sa.String(length=100), nullable=False, comment='Sync task owning this cursor'),
        sa.Column('cursor_value', sa.BigInteger(), nullable=False, comment='Last processed id'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sync_checkpoints_task_created', 'sync_checkpoints', ['task_name', 'created_at'], unique=False)

    op.create_table(
        'checkins',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('fid', sa.BigInteger(), nullable=False),
        sa.Column('streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('check_in_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_checkins_fid'), 'checkins', ['fid'], unique=False)

    op.create_table(
        'claims',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('fid', sa.BigInteger(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=20, scale=4), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_claims_fid'), 'claims', ['fid'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_claims_fid'), table_name='claims')
    op.drop_table('claims')
    op.drop_index(op.f('ix_checkins_fid'), table_name='checkins')
    op.drop_table('checkins')
    op.drop_index('ix_sync_checkpoints_task_created', table_name='sync_checkpoints')
    op.drop_table('sync_checkpoints')
    op.drop_index(op.f('ix_nfts_minted'), table_name='nfts')
    op.drop_index(op.f('ix_nfts_token_id'), table_name='nfts')
    op.drop_index(op.f('ix_nfts_fid'), table_name='nfts')
    op.drop_table('nfts')
