"""Driver daily sales, loading, returns and cash reconciliation

Revision ID: 20261019_driver_daily
Revises:
Create Date: 2026-10-19

This migration creates:
1. Back-office accounts and session tokens
2. Drivers, delivery routes, customers, products, loss reasons
3. Route customer assignments (stop order)
4. Driver daily summaries and the reconciliation audit trail
5. Driver sales and sale items
6. Loading batches and product returns
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_driver_daily'
down_revision = None
branch_labels = None
depends_on = None


NOW = sa.text('(CURRENT_TIMESTAMP)')


def upgrade():
    # ==========================================================================
    # 1. ACCOUNTS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_username'), ['username'], unique=True)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_token_hash'), ['token_hash'], unique=True)
        batch_op.create_index(batch_op.f('ix_session_tokens_expires_at'), ['expires_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_is_revoked'), ['is_revoked'], unique=False)
        batch_op.create_index('ix_session_tokens_user_active', ['user_id', 'is_revoked'], unique=False)

    # ==========================================================================
    # 2. REFERENCE RECORDS
    # ==========================================================================
    op.create_table('drivers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=128), nullable=False),
        sa.Column('last_name', sa.String(length=128), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('drivers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_drivers_is_active'), ['is_active'], unique=False)

    op.create_table('delivery_routes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('route_name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('route_name'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('delivery_routes', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_delivery_routes_is_active'), ['is_active'], unique=False)

    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customers_customer_name'), ['customer_name'], unique=False)
        batch_op.create_index(batch_op.f('ix_customers_is_active'), ['is_active'], unique=False)

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit_of_measure', sa.String(length=32), nullable=True),
        sa.Column('default_unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_is_active'), ['is_active'], unique=False)

    op.create_table('loss_reasons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('reason_description', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reason_description'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 3. ROUTE CUSTOMER ASSIGNMENTS
    # ==========================================================================
    op.create_table('customer_route_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('route_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('route_sequence', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_sale_date', sa.Date(), nullable=True),
        sa.Column('total_sales_count', sa.Integer(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(['route_id'], ['delivery_routes.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('route_id', 'customer_id', name='uq_route_assignments_route_customer'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customer_route_assignments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customer_route_assignments_route_id'), ['route_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_customer_route_assignments_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_customer_route_assignments_is_active'), ['is_active'], unique=False)
        batch_op.create_index(
            'ix_route_assignments_route_active_seq', ['route_id', 'is_active', 'route_sequence'], unique=False
        )

    # ==========================================================================
    # 4. DRIVER DAILY SUMMARIES
    # ==========================================================================
    op.create_table('driver_daily_summaries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('driver_id', sa.Integer(), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('route_id', sa.Integer(), nullable=True),
        sa.Column('total_cash_sales_value_cents', sa.Integer(), nullable=False),
        sa.Column('total_new_credit_sales_value_cents', sa.Integer(), nullable=False),
        sa.Column('total_other_payment_sales_value_cents', sa.Integer(), nullable=False),
        sa.Column('cash_collected_cents', sa.Integer(), nullable=True),
        sa.Column('cash_difference_cents', sa.Integer(), nullable=True),
        sa.Column('reconciliation_status', sa.String(length=32), nullable=False),
        sa.Column('reconciliation_notes', sa.Text(), nullable=True),
        sa.Column('reconciled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reconciled_by_user_id', sa.Integer(), nullable=True),
        sa.Column('unlocked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unlocked_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['driver_id'], ['drivers.id'], ),
        sa.ForeignKeyConstraint(['route_id'], ['delivery_routes.id'], ),
        sa.ForeignKeyConstraint(['reconciled_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['unlocked_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('driver_id', 'sale_date', name='uq_driver_daily_summaries_driver_date'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('driver_daily_summaries', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_driver_daily_summaries_driver_id'), ['driver_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_driver_daily_summaries_sale_date'), ['sale_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_driver_daily_summaries_route_id'), ['route_id'], unique=False)
        batch_op.create_index(
            batch_op.f('ix_driver_daily_summaries_reconciliation_status'), ['reconciliation_status'], unique=False
        )
        batch_op.create_index(
            'ix_driver_daily_summaries_date_status', ['sale_date', 'reconciliation_status'], unique=False
        )

    op.create_table('reconciliation_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('driver_daily_summary_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=16), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('actor_role', sa.String(length=32), nullable=True),
        sa.Column('from_status', sa.String(length=32), nullable=False),
        sa.Column('to_status', sa.String(length=32), nullable=False),
        sa.Column('expected_cash_cents', sa.Integer(), nullable=True),
        sa.Column('cash_collected_cents', sa.Integer(), nullable=True),
        sa.Column('cash_difference_cents', sa.Integer(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(['driver_daily_summary_id'], ['driver_daily_summaries.id'], ),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('reconciliation_events', schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f('ix_reconciliation_events_driver_daily_summary_id'), ['driver_daily_summary_id'], unique=False
        )
        batch_op.create_index(
            'ix_reconciliation_events_summary_occurred', ['driver_daily_summary_id', 'occurred_at'], unique=False
        )

    # ==========================================================================
    # 5. DRIVER SALES
    # ==========================================================================
    op.create_table('driver_sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('driver_daily_summary_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name_override', sa.String(length=255), nullable=True),
        sa.Column('payment_type', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('total_sale_amount_cents', sa.Integer(), nullable=False),
        sa.Column('logged_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.CheckConstraint(
            '(customer_id IS NULL) <> (customer_name_override IS NULL)',
            name='ck_driver_sales_one_customer_identity',
        ),
        sa.ForeignKeyConstraint(['driver_daily_summary_id'], ['driver_daily_summaries.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['logged_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('driver_sales', schema=None) as batch_op:
        batch_op.create_index('ix_driver_sales_summary', ['driver_daily_summary_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_driver_sales_customer_id'), ['customer_id'], unique=False)

    op.create_table('driver_sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('driver_sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity_sold', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity_sold > 0', name='ck_driver_sale_items_quantity_positive'),
        sa.CheckConstraint('unit_price_cents >= 0', name='ck_driver_sale_items_price_non_negative'),
        sa.ForeignKeyConstraint(['driver_sale_id'], ['driver_sales.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('driver_sale_id', 'product_id', name='uq_driver_sale_items_sale_product'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('driver_sale_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_driver_sale_items_driver_sale_id'), ['driver_sale_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_driver_sale_items_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 6. LOADING AND RETURNS
    # ==========================================================================
    op.create_table('loading_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('driver_daily_summary_id', sa.Integer(), nullable=False),
        sa.Column('batch_uuid', sa.String(length=36), nullable=False),
        sa.Column('load_timestamp', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('declared_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(['driver_daily_summary_id'], ['driver_daily_summaries.id'], ),
        sa.ForeignKeyConstraint(['declared_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('driver_daily_summary_id', name='uq_loading_batches_summary'),
        sa.UniqueConstraint('batch_uuid'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('loading_batches', schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f('ix_loading_batches_driver_daily_summary_id'), ['driver_daily_summary_id'], unique=False
        )

    op.create_table('loading_batch_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('loading_batch_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity_loaded', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity_loaded > 0', name='ck_loading_batch_items_quantity_positive'),
        sa.ForeignKeyConstraint(['loading_batch_id'], ['loading_batches.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('loading_batch_id', 'product_id', name='uq_loading_batch_items_product'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('loading_batch_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_loading_batch_items_loading_batch_id'), ['loading_batch_id'], unique=False)

    op.create_table('product_returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('driver_daily_summary_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity_returned', sa.Integer(), nullable=False),
        sa.Column('loss_reason_id', sa.Integer(), nullable=True),
        sa.Column('custom_reason_for_loss', sa.String(length=255), nullable=True),
        sa.Column('logged_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.CheckConstraint('quantity_returned > 0', name='ck_product_returns_quantity_positive'),
        sa.ForeignKeyConstraint(['driver_daily_summary_id'], ['driver_daily_summaries.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['loss_reason_id'], ['loss_reasons.id'], ),
        sa.ForeignKeyConstraint(['logged_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('driver_daily_summary_id', 'product_id', name='uq_product_returns_summary_product'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_returns', schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f('ix_product_returns_driver_daily_summary_id'), ['driver_daily_summary_id'], unique=False
        )


def downgrade():
    op.drop_table('product_returns')
    op.drop_table('loading_batch_items')
    op.drop_table('loading_batches')
    op.drop_table('driver_sale_items')
    op.drop_table('driver_sales')
    op.drop_table('reconciliation_events')
    op.drop_table('driver_daily_summaries')
    op.drop_table('customer_route_assignments')
    op.drop_table('loss_reasons')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('delivery_routes')
    op.drop_table('drivers')
    op.drop_table('session_tokens')
    op.drop_table('users')
