from alembic import op
import sqlalchemy as sa

revision = '0002_add_orders'
down_revision = '0001_init'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('activity_id', sa.String(36), nullable=False, index=True),
        sa.Column('room_id', sa.String(36), nullable=False),
        sa.Column('kiosk_id', sa.String(36), nullable=True, index=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending', index=True),
        sa.Column('checkout_method', sa.String(20), nullable=False),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(20), nullable=True),
        sa.Column('client_transaction_id', sa.String(100), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime, nullable=False, index=True),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_table(
        'order_products',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.String(36), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.UniqueConstraint('order_id', 'product_id', name='uq_order_products_order_product'),
    )
    op.create_table(
        'order_options',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('option_id', sa.String(36), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.UniqueConstraint('order_id', 'option_id', name='uq_order_options_order_option'),
    )

def downgrade():
    op.drop_table('order_options')
    op.drop_table('order_products')
    op.drop_table('orders')
