"""Initial schema: canteens, items, users, sessions, stock, sales, supplies

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

Money columns are integer cents. Unique constraints back the
one-row-per-key invariants:
1. stocks (canteen_id, item_id)
2. stock_history (canteen_id, item_id, date)
3. sales (canteen_id, date) and sale_items (sale_id, item_id)
4. supplies (from_canteen_id, to_canteen_id, date)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. CANTEENS / ITEMS / USERS
    # ==========================================================================
    op.create_table('canteens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('contact_number', sa.String(length=32), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.Column('locked_by_user_id', sa.Integer(), nullable=True),
        sa.Column('lock_reason', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_canteens_locked', 'canteens', ['is_locked', 'locked_at'])

    op.create_table('items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=120), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False),
        sa.Column('mrp_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_effect', sa.String(length=16), nullable=False, server_default='decreases'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_name', 'items', ['name'])

    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('canteen_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['canteen_id'], ['canteens.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'])
    op.create_index('ix_users_canteen_id', 'users', ['canteen_id'])

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ==========================================================================
    # 2. STOCK LEDGER
    # ==========================================================================
    op.create_table('stocks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('canteen_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['canteen_id'], ['canteens.id']),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('canteen_id', 'item_id', name='uq_stocks_canteen_item'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stocks_canteen_id', 'stocks', ['canteen_id'])
    op.create_index('ix_stocks_item_id', 'stocks', ['item_id'])

    op.create_table('stock_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('canteen_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('opening_stock', sa.Integer(), nullable=False),
        sa.Column('received_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sold_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('closing_stock', sa.Integer(), nullable=False),
        sa.Column('adjusted_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('adjustment_description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['canteen_id'], ['canteens.id']),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('canteen_id', 'item_id', 'date', name='uq_stock_history_canteen_item_date'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_history_canteen_id', 'stock_history', ['canteen_id'])
    op.create_index('ix_stock_history_item_id', 'stock_history', ['item_id'])
    op.create_index('ix_stock_history_canteen_date', 'stock_history', ['canteen_id', 'date'])

    # ==========================================================================
    # 3. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('canteen_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cash_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('online_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('other_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('previous_day_adjustment_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('previous_day_reason', sa.String(length=500), nullable=True),
        sa.Column('next_day_adjustment_cents', sa.Integer(), nullable=True),
        sa.Column('next_day_reason', sa.String(length=500), nullable=True),
        sa.Column('verified_by_user_id', sa.Integer(), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['canteen_id'], ['canteens.id']),
        sa.ForeignKeyConstraint(['verified_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('canteen_id', 'date', name='uq_sales_canteen_date'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_canteen_id', 'sales', ['canteen_id'])
    op.create_index('ix_sales_date', 'sales', ['date'])

    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', 'item_id', name='uq_sale_items_sale_item'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])

    # ==========================================================================
    # 4. SUPPLIES
    # ==========================================================================
    op.create_table('supplies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('from_canteen_id', sa.Integer(), nullable=False),
        sa.Column('to_canteen_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['from_canteen_id'], ['canteens.id']),
        sa.ForeignKeyConstraint(['to_canteen_id'], ['canteens.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('from_canteen_id', 'to_canteen_id', 'date', name='uq_supplies_from_to_date'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_supplies_from_canteen_id', 'supplies', ['from_canteen_id'])
    op.create_index('ix_supplies_to_canteen_id', 'supplies', ['to_canteen_id'])
    op.create_index('ix_supplies_to_date', 'supplies', ['to_canteen_id', 'date'])

    op.create_table('supply_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supply_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['supply_id'], ['supplies.id']),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_supply_items_supply_id', 'supply_items', ['supply_id'])
    op.create_index('ix_supply_items_item_id', 'supply_items', ['item_id'])
    op.create_index('ix_supply_items_supply_item', 'supply_items', ['supply_id', 'item_id'])


def downgrade():
    op.drop_table('supply_items')
    op.drop_table('supplies')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('stock_history')
    op.drop_table('stocks')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('items')
    op.drop_table('canteens')
