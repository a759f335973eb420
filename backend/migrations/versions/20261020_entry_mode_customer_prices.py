"""Sale entry mode and customer-specific prices

Revision ID: 20261020_entry_mode_prices
Revises: 20261019_driver_daily
Create Date: 2026-10-20

This migration:
1. Adds driver_sales.entry_mode ('grid' or 'editor'); existing rows become
   'editor' so a grid commit never replaces sales it did not create
2. Creates customer_prices (negotiated unit price per customer, product and
   effective date)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261020_entry_mode_prices'
down_revision = '20261019_driver_daily'
branch_labels = None
depends_on = None


NOW = sa.text('(CURRENT_TIMESTAMP)')


def upgrade():
    with op.batch_alter_table('driver_sales', schema=None) as batch_op:
        batch_op.add_column(
            sa.Column('entry_mode', sa.String(length=16), nullable=False, server_default='editor')
        )
        batch_op.create_index(batch_op.f('ix_driver_sales_entry_mode'), ['entry_mode'], unique=False)

    op.create_table('customer_prices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('effective_date', sa.Date(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('set_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.CheckConstraint('unit_price_cents >= 0', name='ck_customer_prices_price_non_negative'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['set_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'customer_id', 'product_id', 'effective_date', name='uq_customer_prices_customer_product_date'
        ),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('customer_prices', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_customer_prices_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_customer_prices_product_id'), ['product_id'], unique=False)


def downgrade():
    op.drop_table('customer_prices')
    with op.batch_alter_table('driver_sales', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_driver_sales_entry_mode'))
        batch_op.drop_column('entry_mode')
