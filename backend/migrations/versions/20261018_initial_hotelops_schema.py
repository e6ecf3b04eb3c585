"""Initial hotel operations schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration adds:
1. Departments and their sections (consumption points)
2. Inventory catalogue, scoped stock counters, movement log, reservations
3. Orders, order/department links, order lines, fulfillment records
4. Transfers and transfer items
5. Extras and their per-scope allocations
6. Audit events and document number sequences
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)
        for name in names
    ]


def upgrade():
    # ==========================================================================
    # 1. DIRECTORY
    # ==========================================================================
    op.create_table('departments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column('stats', sa.JSON(), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('departments', schema=None) as batch_op:
        batch_op.create_index('ix_departments_code', ['code'], unique=True)
        batch_op.create_index('ix_departments_is_active', ['is_active'], unique=False)

    op.create_table('department_sections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column('stats', sa.JSON(), nullable=True),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('department_id', 'slug', name='uq_department_sections_dept_slug'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('department_sections', schema=None) as batch_op:
        batch_op.create_index('ix_department_sections_department_id', ['department_id'], unique=False)

    # ==========================================================================
    # 2. INVENTORY
    # ==========================================================================
    op.create_table('inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('item_type', sa.String(length=32), nullable=False, server_default='inventoryItem'),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('inventory_items', schema=None) as batch_op:
        batch_op.create_index('ix_inventory_items_type_name', ['item_type', 'name'], unique=False)

    op.create_table('stock_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=False),
        sa.Column('section_id', sa.Integer(), nullable=True),
        sa.Column('scope_key', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column('reserved', sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps('created_at', 'updated_at'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_entries_quantity_nonneg'),
        sa.CheckConstraint('reserved >= 0', name='ck_stock_entries_reserved_nonneg'),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id']),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.ForeignKeyConstraint(['section_id'], ['department_sections.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('item_id', 'scope_key', name='uq_stock_entries_item_scope'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('stock_entries', schema=None) as batch_op:
        batch_op.create_index('ix_stock_entries_item_id', ['item_id'], unique=False)
        batch_op.create_index('ix_stock_entries_dept_section', ['department_id', 'section_id'], unique=False)

    op.create_table('movement_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=False),
        sa.Column('section_id', sa.Integer(), nullable=True),
        sa.Column('movement_type', sa.String(length=8), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=32), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=True),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id']),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.ForeignKeyConstraint(['section_id'], ['department_sections.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('movement_records', schema=None) as batch_op:
        batch_op.create_index('ix_movement_records_department_id', ['department_id'], unique=False)
        batch_op.create_index('ix_movement_records_reason', ['reason'], unique=False)
        batch_op.create_index('ix_movements_item_created', ['item_id', 'created_at'], unique=False)
        batch_op.create_index('ix_movements_reference', ['reference'], unique=False)

    # ==========================================================================
    # 3. ORDERS
    # ==========================================================================
    op.create_table('orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('customer_ref', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='unpaid'),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column('discount_total_cents', sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column('next_line_number', sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        *_timestamps('created_at', 'updated_at'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.CheckConstraint('total_cents >= 0', name='ck_orders_total_nonneg'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('orders', schema=None) as batch_op:
        batch_op.create_index('ix_orders_customer_ref', ['customer_ref'], unique=False)
        batch_op.create_index('ix_orders_status', ['status'], unique=False)
        batch_op.create_index('ix_orders_created_at', ['created_at'], unique=False)

    op.create_table('order_departments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        *_timestamps('updated_at'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'department_id', name='uq_order_departments_order_dept'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('order_departments', schema=None) as batch_op:
        batch_op.create_index('ix_order_departments_order_id', ['order_id'], unique=False)
        batch_op.create_index('ix_order_departments_department_id', ['department_id'], unique=False)

    op.create_table('order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_type', sa.String(length=32), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=False),
        sa.Column('department_code', sa.String(length=64), nullable=False),
        sa.Column('section_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        *_timestamps('created_at'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.ForeignKeyConstraint(['section_id'], ['department_sections.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'line_number', name='uq_order_lines_order_line_number'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('order_lines', schema=None) as batch_op:
        batch_op.create_index('ix_order_lines_order_id', ['order_id'], unique=False)
        batch_op.create_index('ix_order_lines_department_id', ['department_id'], unique=False)
        batch_op.create_index('ix_order_lines_status', ['status'], unique=False)

    op.create_table('fulfillment_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_line_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('fulfilled_quantity', sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        *_timestamps('created_at'),
        sa.CheckConstraint('fulfilled_quantity >= 0', name='ck_fulfillment_records_qty_nonneg'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['order_line_id'], ['order_lines.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('fulfillment_records', schema=None) as batch_op:
        batch_op.create_index('ix_fulfillment_records_order_id', ['order_id'], unique=False)
        batch_op.create_index('ix_fulfillment_records_order_line_id', ['order_line_id'], unique=False)

    # Reservations reference orders and lines, so they follow them
    op.create_table('reservations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_line_id', sa.Integer(), nullable=True),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=False),
        sa.Column('section_id', sa.Integer(), nullable=True),
        sa.Column('scope_key', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='reserved'),
        *_timestamps('reserved_at'),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['order_line_id'], ['order_lines.id']),
        sa.ForeignKeyConstraint(['item_id'], ['inventory_items.id']),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.ForeignKeyConstraint(['section_id'], ['department_sections.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('reservations', schema=None) as batch_op:
        batch_op.create_index('ix_reservations_order_id', ['order_id'], unique=False)
        batch_op.create_index('ix_reservations_status', ['status'], unique=False)
        batch_op.create_index('ix_reservations_order_item_status', ['order_id', 'item_id', 'status'], unique=False)

    # ==========================================================================
    # 4. TRANSFERS
    # ==========================================================================
    op.create_table('transfers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transfer_number', sa.String(length=64), nullable=False),
        sa.Column('from_department_id', sa.Integer(), nullable=False),
        sa.Column('to_department_id', sa.Integer(), nullable=False),
        sa.Column('to_section_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=True),
        *_timestamps('created_at'),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['from_department_id'], ['departments.id']),
        sa.ForeignKeyConstraint(['to_department_id'], ['departments.id']),
        sa.ForeignKeyConstraint(['to_section_id'], ['department_sections.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transfer_number'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('transfers', schema=None) as batch_op:
        batch_op.create_index('ix_transfers_from_department_id', ['from_department_id'], unique=False)
        batch_op.create_index('ix_transfers_to_department_id', ['to_department_id'], unique=False)
        batch_op.create_index('ix_transfers_status', ['status'], unique=False)

    op.create_table('transfer_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transfer_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_type', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_transfer_items_qty_positive'),
        sa.ForeignKeyConstraint(['transfer_id'], ['transfers.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('transfer_items', schema=None) as batch_op:
        batch_op.create_index('ix_transfer_items_transfer_id', ['transfer_id'], unique=False)

    # ==========================================================================
    # 5. EXTRAS
    # ==========================================================================
    op.create_table('extras',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False, server_default='unit'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column('track_inventory', sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column('inventory_item_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['inventory_item_id'], ['inventory_items.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )

    op.create_table('extra_allocations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('extra_id', sa.Integer(), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=False),
        sa.Column('section_id', sa.Integer(), nullable=True),
        sa.Column('scope_key', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps('created_at', 'updated_at'),
        sa.CheckConstraint('quantity >= 0', name='ck_extra_allocations_quantity_nonneg'),
        sa.ForeignKeyConstraint(['extra_id'], ['extras.id']),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.ForeignKeyConstraint(['section_id'], ['department_sections.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('extra_id', 'scope_key', name='uq_extra_allocations_extra_scope'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('extra_allocations', schema=None) as batch_op:
        batch_op.create_index('ix_extra_allocations_extra_id', ['extra_id'], unique=False)
        batch_op.create_index('ix_extra_allocations_department_id', ['department_id'], unique=False)

    # ==========================================================================
    # 6. AUDIT + DOCUMENT SEQUENCES
    # ==========================================================================
    op.create_table('audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('event_category', sa.String(length=32), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('department_id', sa.Integer(), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        *_timestamps('occurred_at', 'created_at'),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('audit_events', schema=None) as batch_op:
        batch_op.create_index('ix_audit_events_event_type', ['event_type'], unique=False)
        batch_op.create_index('ix_audit_events_event_category', ['event_category'], unique=False)
        batch_op.create_index('ix_audit_events_department_id', ['department_id'], unique=False)
        batch_op.create_index('ix_audit_events_actor_user_id', ['actor_user_id'], unique=False)
        batch_op.create_index('ix_audit_events_occurred_at', ['occurred_at'], unique=False)
        batch_op.create_index('ix_audit_events_entity', ['entity_type', 'entity_id'], unique=False)

    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type'),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table('document_sequences')
    op.drop_table('audit_events')
    op.drop_table('extra_allocations')
    op.drop_table('extras')
    op.drop_table('transfer_items')
    op.drop_table('transfers')
    op.drop_table('reservations')
    op.drop_table('fulfillment_records')
    op.drop_table('order_lines')
    op.drop_table('order_departments')
    op.drop_table('orders')
    op.drop_table('movement_records')
    op.drop_table('stock_entries')
    op.drop_table('inventory_items')
    op.drop_table('department_sections')
    op.drop_table('departments')
