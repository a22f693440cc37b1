"""initial schema: users with eBay credential, synced eBay tables, imported workbook tables

Revision ID: initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated: bool = True):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()))
    return cols


def _user_fk():
    return sa.Column(
        'user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True
    )


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=True, index=True),
        sa.Column('name', sa.String(255)),
        sa.Column('ebay_user_id', sa.String(100)),
        sa.Column('ebay_username', sa.String(100)),
        sa.Column('ebay_access_token', sa.Text()),
        sa.Column('ebay_refresh_token', sa.Text()),
        sa.Column('ebay_token_expires_at', sa.DateTime(timezone=True)),
        sa.Column('ebay_connected_at', sa.DateTime(timezone=True)),
        sa.Column('credential_version', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )

    op.create_table(
        'ebay_sales',
        sa.Column('id', sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column('order_id', sa.String(100), nullable=False, index=True),
        sa.Column('legacy_order_id', sa.String(100)),
        sa.Column('buyer_username', sa.String(100), index=True),
        sa.Column('item_id', sa.String(100)),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('sku', sa.String(100), index=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('item_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('shipping_cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('sales_tax', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('ebay_fees', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('order_status', sa.String(20), nullable=False, index=True),
        sa.Column('raw_order_data', sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'order_id', name='uq_ebay_sales_user_order_id'),
    )

    op.create_table(
        'ebay_listings',
        sa.Column('id', sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column('listing_id', sa.String(100), nullable=False, index=True),
        sa.Column('sku', sa.String(100), index=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('current_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('original_price', sa.Numeric(10, 2)),
        sa.Column('quantity_available', sa.Integer(), server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, index=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'listing_id', name='uq_ebay_listings_user_listing_id'),
    )

    op.create_table(
        'ebay_payouts',
        sa.Column('id', sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column('payout_id', sa.String(100), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('payout_date', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('payout_status', sa.String(50)),
        sa.Column('bank_account_last4', sa.String(4)),
        *_timestamps(updated=False),
        sa.UniqueConstraint('user_id', 'payout_id', name='uq_ebay_payouts_user_payout_id'),
    )

    op.create_table(
        'items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('item_number', sa.String(100), unique=True, nullable=False, index=True),
        sa.Column('description', sa.Text(), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        'sales',
        sa.Column('id', sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column('item_id', sa.String(36), sa.ForeignKey('items.id'), nullable=False, index=True),
        sa.Column('listed_date', sa.Date()),
        sa.Column('sale_date', sa.Date(), nullable=False, index=True),
        sa.Column('offer_start_date', sa.Date()),
        sa.Column('offer_expiration_date', sa.Date()),
        sa.Column('listed_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('sale_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('shipping_cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('supplies_cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('net_profit', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('dedupe_key', sa.String(64), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint('user_id', 'dedupe_key', name='uq_sales_user_dedupe'),
    )

    op.create_table(
        'inventory_items',
        sa.Column('id', sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column('item_number', sa.String(100), index=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('minimum_price', sa.Numeric(10, 2)),
        sa.Column('cost', sa.Numeric(10, 2)),
        sa.Column('date_added', sa.Date(), nullable=False),
        sa.Column('dedupe_key', sa.String(64), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint('user_id', 'dedupe_key', name='uq_inventory_items_user_dedupe'),
    )

    op.create_table(
        'deposits',
        sa.Column('id', sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column('sold_date', sa.Date(), nullable=False, index=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('net_profit', sa.Numeric(10, 2)),
        sa.Column('dedupe_key', sa.String(64), nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint('user_id', 'dedupe_key', name='uq_deposits_user_dedupe'),
    )


def downgrade():
    for table in ('deposits', 'inventory_items', 'sales', 'items', 'ebay_payouts', 'ebay_listings', 'ebay_sales', 'users'):
        op.drop_table(table)
