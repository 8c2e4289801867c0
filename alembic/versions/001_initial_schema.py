"""initial schema: cross_list_links, delist_log, reconcile_locks

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'cross_list_links',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.String(), nullable=False, server_default='default'),
        sa.Column('base_sku', sa.String(), nullable=False),
        sa.Column('size', sa.String(), nullable=False, server_default=''),
        sa.Column('source_listing_id', sa.String(), nullable=True),
        sa.Column('destination_offer_id', sa.String(), nullable=False),
        sa.Column('destination_listing_id', sa.String(), nullable=True),
        sa.Column('destination_sku', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            'account_id', 'destination_offer_id', 'source_listing_id',
            name='uq_cross_list_link_offer_source'
        ),
    )
    op.create_index('ix_cross_list_links_account_id', 'cross_list_links', ['account_id'])
    op.create_index('ix_cross_list_links_source_listing_id', 'cross_list_links', ['source_listing_id'])
    op.create_index('ix_cross_list_links_destination_offer_id', 'cross_list_links', ['destination_offer_id'])
    op.create_index('ix_cross_list_links_destination_sku', 'cross_list_links', ['destination_sku'])
    op.create_index('ix_cross_list_links_account_status', 'cross_list_links', ['account_id', 'status'])

    op.create_table(
        'delist_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.String(), nullable=False),
        sa.Column('link_id', sa.Integer(), nullable=True),
        sa.Column('platform', sa.String(), nullable=False),
        sa.Column('listing_ref', sa.String(), nullable=False),
        sa.Column('sku', sa.String(), nullable=True),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('outcome', sa.String(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_delist_log_account_id', 'delist_log', ['account_id'])

    op.create_table(
        'reconcile_locks',
        sa.Column('account_id', sa.String(), primary_key=True),
        sa.Column('locked_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('reconcile_locks')
    op.drop_index('ix_delist_log_account_id', table_name='delist_log')
    op.drop_table('delist_log')
    op.drop_index('ix_cross_list_links_account_status', table_name='cross_list_links')
    op.drop_index('ix_cross_list_links_destination_sku', table_name='cross_list_links')
    op.drop_index('ix_cross_list_links_destination_offer_id', table_name='cross_list_links')
    op.drop_index('ix_cross_list_links_source_listing_id', table_name='cross_list_links')
    op.drop_index('ix_cross_list_links_account_id', table_name='cross_list_links')
    op.drop_table('cross_list_links')
