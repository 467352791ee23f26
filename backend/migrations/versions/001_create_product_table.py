"""Create product table

Revision ID: 001
Revises:
Create Date: 2026-10-05 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Shared trigger function for updated_at columns
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
          NEW.updated_at = NOW();
          RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.create_table(
        'product',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('catalog_id', sa.Text(), nullable=False),
        sa.Column('slug', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('short_description', sa.Text(), nullable=True),
        sa.Column('category_slug', sa.Text(), nullable=True),
        sa.Column('brand', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('media', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('all_sizes', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
    )

    # Slugs are unique within one catalog
    op.create_unique_constraint(
        'uq_product_catalog_slug',
        'product',
        ['catalog_id', 'slug']
    )

    op.create_index('ix_product_catalog_id', 'product', ['catalog_id'])
    op.create_index('ix_product_slug', 'product', ['slug'])

    op.execute("""
        CREATE TRIGGER update_product_updated_at
        BEFORE UPDATE ON product
        FOR EACH ROW
        EXECUTE FUNCTION update_updated_at_column();
    """)


def downgrade():
    op.execute('DROP TRIGGER IF EXISTS update_product_updated_at ON product')

    op.drop_index('ix_product_slug', table_name='product')
    op.drop_index('ix_product_catalog_id', table_name='product')
    op.drop_constraint('uq_product_catalog_slug', 'product', type_='unique')

    op.drop_table('product')

    op.execute('DROP FUNCTION IF EXISTS update_updated_at_column()')
