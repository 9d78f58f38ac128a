"""Initial schema - products table with Stripe linkage columns

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('weight', sa.Numeric(8, 2), nullable=False),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('available', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('selling_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('regular_price', sa.Numeric(10, 2), nullable=True),
        # Stripe linkage
        sa.Column('stripe_product_id', sa.String(), nullable=True),
        sa.Column('stripe_price_id', sa.String(), nullable=True),
        sa.Column('stripe_price_amount_cents', sa.Integer(), nullable=True),
        sa.Column('stripe_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('stripe_active', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'stripe_price_id IS NULL OR stripe_product_id IS NOT NULL',
            name='ck_products_price_requires_product',
        ),
    )
    op.create_index(op.f('ix_products_weight'), 'products', ['weight'], unique=False)
    op.create_index(op.f('ix_products_stripe_product_id'), 'products', ['stripe_product_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_products_stripe_product_id'), table_name='products')
    op.drop_index(op.f('ix_products_weight'), table_name='products')
    op.drop_table('products')
