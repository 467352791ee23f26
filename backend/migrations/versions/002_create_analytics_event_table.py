"""Create analytics_event table

Revision ID: 002
Revises: 001
Create Date: 2026-10-05 10:30:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade():
    # Append-only; no updated_at
    op.create_table(
        'analytics_event',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('catalog_id', sa.Text(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('query', sa.Text(), nullable=True),
        sa.Column('image_id', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "type IN ('search', 'image_search', 'image_not_found', 'add_to_cart', "
            "'prompt_image_generation', 'prompt_image_failed')",
            name='ck_analytics_event_type'
        ),
    )

    op.create_index('ix_analytics_event_catalog_created', 'analytics_event', ['catalog_id', sa.text('created_at DESC')])
    op.create_index('ix_analytics_event_catalog_type', 'analytics_event', ['catalog_id', 'type'])


def downgrade():
    op.drop_index('ix_analytics_event_catalog_type', table_name='analytics_event')
    op.drop_index('ix_analytics_event_catalog_created', table_name='analytics_event')

    op.drop_table('analytics_event')
