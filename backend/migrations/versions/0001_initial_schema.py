"""initial print shop schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete schema from scratch:
- branches, branch_pricing_configs, branch_extras: branch scope and pricing
- catalog_entries: read-only curriculum hierarchy used for profile checks
- users, session_tokens: accounts, credit balances, lockout state, sessions
- voucher_codes: FRESH -> SOLD -> CONSUMED ledger
- products: printable documents with pricing mode and discount
- orders, order_lines: settled carts with price snapshots
- block_events: append-only lockout audit trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """
    Create all tables from scratch.

    WHY: Every table uses sqlite_autoincrement so ids are never reused;
    users, voucher_codes and orders carry a version_id for optimistic
    concurrency control.
    """

    # ============================================================================
    # branches: physical print shops
    # ============================================================================
    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # branch_pricing_configs / branch_extras: per-branch pricing
    # ============================================================================
    op.create_table(
        'branch_pricing_configs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('price_per_page', sa.Integer(), nullable=False),
        sa.Column('new_badge_window_days', sa.Integer(), nullable=False),
        sa.Column('listing_page_size', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', name='uq_branch_pricing_configs_branch'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_branch_pricing_configs_branch_id', 'branch_pricing_configs', ['branch_id'])

    op.create_table(
        'branch_extras',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('config_id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=16), nullable=False),
        sa.Column('label', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['config_id'], ['branch_pricing_configs.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('config_id', 'key', name='uq_branch_extras_config_key'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_branch_extras_config_id', 'branch_extras', ['config_id'])

    # ============================================================================
    # catalog_entries: faculty > track > year > module > group (+ professors)
    # ============================================================================
    op.create_table(
        'catalog_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['parent_id'], ['catalog_entries.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_catalog_entries_parent_id', 'catalog_entries', ['parent_id'])
    op.create_index('ix_catalog_entries_branch_kind', 'catalog_entries', ['branch_id', 'kind'])

    # ============================================================================
    # users: customers, branch staff, owner
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('faculty_id', sa.Integer(), nullable=True),
        sa.Column('track_id', sa.Integer(), nullable=True),
        sa.Column('year_id', sa.Integer(), nullable=True),
        sa.Column('module_id', sa.Integer(), nullable=True),
        sa.Column('group_id', sa.Integer(), nullable=True),
        sa.Column('credit_balance', sa.Integer(), nullable=False),
        sa.Column('blocked', sa.Boolean(), nullable=False),
        sa.Column('failed_redeem_count', sa.Integer(), nullable=False),
        sa.Column('blocked_count', sa.Integer(), nullable=False),
        sa.Column('last_blocked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('credit_balance >= 0', name='ck_users_credit_non_negative'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['faculty_id'], ['catalog_entries.id']),
        sa.ForeignKeyConstraint(['track_id'], ['catalog_entries.id']),
        sa.ForeignKeyConstraint(['year_id'], ['catalog_entries.id']),
        sa.ForeignKeyConstraint(['module_id'], ['catalog_entries.id']),
        sa.ForeignKeyConstraint(['group_id'], ['catalog_entries.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_branch_role', 'users', ['branch_id', 'role'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # voucher_codes: prepaid code ledger
    # ============================================================================
    op.create_table(
        'voucher_codes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('assigned_staff_id', sa.Integer(), nullable=True),
        sa.Column('visible_to_staff_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('sold_by_user_id', sa.Integer(), nullable=True),
        sa.Column('consumed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['assigned_staff_id'], ['users.id']),
        sa.ForeignKeyConstraint(['visible_to_staff_id'], ['users.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['sold_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['consumed_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_voucher_codes_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_voucher_codes_status', 'voucher_codes', ['status'])
    op.create_index('ix_voucher_codes_assigned_staff_id', 'voucher_codes', ['assigned_staff_id'])
    op.create_index('ix_voucher_codes_consumed_by_user_id', 'voucher_codes', ['consumed_by_user_id'])
    op.create_index('ix_voucher_codes_visible_status', 'voucher_codes', ['visible_to_staff_id', 'status'])
    op.create_index('ix_voucher_codes_branch_status', 'voucher_codes', ['branch_id', 'status'])

    # ============================================================================
    # products: printable documents
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('faculty_id', sa.Integer(), nullable=True),
        sa.Column('track_id', sa.Integer(), nullable=True),
        sa.Column('year_id', sa.Integer(), nullable=True),
        sa.Column('module_id', sa.Integer(), nullable=True),
        sa.Column('group_id', sa.Integer(), nullable=True),
        sa.Column('professor_id', sa.Integer(), nullable=True),
        sa.Column('pages', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(length=16), nullable=False),
        sa.Column('fixed_price', sa.Integer(), nullable=False),
        sa.Column('extra_key', sa.String(length=16), nullable=True),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('discount_value', sa.Integer(), nullable=False),
        sa.Column('hidden', sa.Boolean(), nullable=False),
        sa.Column('pdf_path', sa.String(length=512), nullable=True),
        sa.Column('thumb_path', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['faculty_id'], ['catalog_entries.id']),
        sa.ForeignKeyConstraint(['track_id'], ['catalog_entries.id']),
        sa.ForeignKeyConstraint(['year_id'], ['catalog_entries.id']),
        sa.ForeignKeyConstraint(['module_id'], ['catalog_entries.id']),
        sa.ForeignKeyConstraint(['group_id'], ['catalog_entries.id']),
        sa.ForeignKeyConstraint(['professor_id'], ['catalog_entries.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_branch_hidden_created', 'products', ['branch_id', 'hidden', 'created_at'])

    # ============================================================================
    # orders / order_lines: settled carts (IMMUTABLE except PAID -> PRINTED)
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('sum', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('printed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('printed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['printed_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_branch_created', 'orders', ['branch_id', 'created_at'])
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('line_total', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])

    # ============================================================================
    # block_events: lockout audit (IMMUTABLE, append-only)
    # ============================================================================
    op.create_table(
        'block_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(length=64), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_block_events_user_id', 'block_events', ['user_id'])
    op.create_index('ix_block_events_occurred_at', 'block_events', ['occurred_at'])
    op.create_index('ix_block_events_branch_occurred', 'block_events', ['branch_id', 'occurred_at'])


def downgrade():
    op.drop_table('block_events')
    op.drop_table('order_lines')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('voucher_codes')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('catalog_entries')
    op.drop_table('branch_extras')
    op.drop_table('branch_pricing_configs')
    op.drop_table('branches')
