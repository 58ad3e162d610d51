from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime, nullable=False, index=True),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    ]

def upgrade():
    op.create_table(
        'readers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('api_reference_id', sa.String(100), nullable=False, unique=True),
        sa.Column('reader_tag', sa.String(5), nullable=True, unique=True),
        *_timestamps()
    )
    op.create_table(
        'kiosks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('kiosk_tag', sa.String(5), nullable=True, unique=True),
        sa.Column('reader_id', sa.String(36), nullable=True, unique=True),
        *_timestamps()
    )
    op.create_table(
        'activities',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False, unique=True),
        *_timestamps()
    )
    op.create_table(
        'rooms',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        *_timestamps()
    )
    for table in ('products', 'options'):
        op.create_table(
            table,
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('name', sa.String(50), nullable=False),
            sa.Column('price', sa.Numeric(10, 2), nullable=False),
            *_timestamps()
        )

def downgrade():
    for table in ('options', 'products', 'rooms', 'activities', 'kiosks', 'readers'):
        op.drop_table(table)
