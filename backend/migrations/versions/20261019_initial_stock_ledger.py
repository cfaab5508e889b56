"""Initial schema: owners, products, stock ledger, partner payments, invoices

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. business_owners (API token hash per owner)
2. products (two-party stock, version_id optimistic lock)
3. inventory_transactions (append-only stock log, no FK to products)
4. partner_payments (append-only partner balance log)
5. invoices and invoice_line_items
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. BUSINESS OWNERS
    # ==========================================================================
    op.create_table('business_owners',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='Rs'),
        sa.Column('api_token_hash', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('api_token_hash', name='uq_business_owners_token_hash'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 2. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('name_en', sa.String(length=255), nullable=True),
        sa.Column('name_ur', sa.String(length=255), nullable=True),
        sa.Column('unit', sa.String(length=32), nullable=False, server_default='pcs'),
        sa.Column('purchase_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sale_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('partner_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('my_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('partner_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_received_from_partner_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('archived', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('my_stock >= 0', name='ck_products_my_stock_nonneg'),
        sa.CheckConstraint('partner_stock >= 0', name='ck_products_partner_stock_nonneg'),
        sa.CheckConstraint('amount_received_from_partner_cents >= 0', name='ck_products_partner_received_nonneg'),
        sa.ForeignKeyConstraint(['owner_id'], ['business_owners.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_owner_id'), ['owner_id'], unique=False)
        batch_op.create_index('ix_products_owner_name_en', ['owner_id', 'name_en'], unique=False)
        batch_op.create_index('ix_products_owner_archived', ['owner_id', 'archived'], unique=False)

    # ==========================================================================
    # 3. INVENTORY TRANSACTIONS (append-only)
    # ==========================================================================
    op.create_table('inventory_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('change_my_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('change_partner_stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reason', sa.String(length=32), nullable=False),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('sale_price_cents', sa.Integer(), nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['business_owners.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('inventory_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_inventory_transactions_owner_id'), ['owner_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_transactions_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_transactions_reason'), ['reason'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_transactions_reference_id'), ['reference_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_transactions_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_invtx_owner_created', ['owner_id', 'created_at'], unique=False)
        batch_op.create_index('ix_invtx_owner_product_reason', ['owner_id', 'product_id', 'reason'], unique=False)

    # ==========================================================================
    # 4. PARTNER PAYMENTS (append-only)
    # ==========================================================================
    op.create_table('partner_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('source', sa.String(length=32), nullable=False, server_default='payment'),
        sa.Column('inventory_transaction_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('amount_cents > 0', name='ck_partner_payments_amount_pos'),
        sa.ForeignKeyConstraint(['owner_id'], ['business_owners.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('partner_payments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_partner_payments_owner_id'), ['owner_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_partner_payments_product_id'), ['product_id'], unique=False)
        batch_op.create_index('ix_partner_payments_owner_created', ['owner_id', 'created_at'], unique=False)

    # ==========================================================================
    # 5. INVOICES
    # ==========================================================================
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('company', sa.JSON(), nullable=True),
        sa.Column('client', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='Rs'),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_tax_enabled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('discount_type', sa.String(length=16), nullable=False, server_default='percentage'),
        sa.Column('discount_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('stock_settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['business_owners.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_invoices_owner_id'), ['owner_id'], unique=False)
        batch_op.create_index('ix_invoices_owner_created', ['owner_id', 'created_at'], unique=False)
        batch_op.create_index('ix_invoices_owner_number', ['owner_id', 'invoice_number'], unique=False)

    op.create_table('invoice_line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.CheckConstraint('quantity >= 0', name='ck_invoice_lines_quantity_nonneg'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('invoice_line_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_invoice_line_items_invoice_id'), ['invoice_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_invoice_line_items_product_id'), ['product_id'], unique=False)


def downgrade():
    with op.batch_alter_table('invoice_line_items', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_invoice_line_items_product_id'))
        batch_op.drop_index(batch_op.f('ix_invoice_line_items_invoice_id'))
    op.drop_table('invoice_line_items')

    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.drop_index('ix_invoices_owner_number')
        batch_op.drop_index('ix_invoices_owner_created')
        batch_op.drop_index(batch_op.f('ix_invoices_owner_id'))
    op.drop_table('invoices')

    with op.batch_alter_table('partner_payments', schema=None) as batch_op:
        batch_op.drop_index('ix_partner_payments_owner_created')
        batch_op.drop_index(batch_op.f('ix_partner_payments_product_id'))
        batch_op.drop_index(batch_op.f('ix_partner_payments_owner_id'))
    op.drop_table('partner_payments')

    with op.batch_alter_table('inventory_transactions', schema=None) as batch_op:
        batch_op.drop_index('ix_invtx_owner_product_reason')
        batch_op.drop_index('ix_invtx_owner_created')
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_created_at'))
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_reference_id'))
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_reason'))
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_product_id'))
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_owner_id'))
    op.drop_table('inventory_transactions')

    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.drop_index('ix_products_owner_archived')
        batch_op.drop_index('ix_products_owner_name_en')
        batch_op.drop_index(batch_op.f('ix_products_owner_id'))
    op.drop_table('products')

    op.drop_table('business_owners')
