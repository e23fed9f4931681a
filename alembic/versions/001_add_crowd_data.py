"""Add crowd_data table

Revision ID: 001_add_crowd_data
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_add_crowd_data'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'crowd_data',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.String(), nullable=False),
        sa.Column('restaurant_name', sa.String(), nullable=False),
        sa.Column('crowd_level', sa.String(), nullable=False),
        sa.Column('crowd_percentage', sa.Integer(), nullable=True),
        sa.Column('peak_hours', sa.JSON(), nullable=True),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('source', sa.String(), nullable=False, server_default='google'),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_crowd_data_id', 'crowd_data', ['id'])
    op.create_index('idx_crowd_restaurant_id', 'crowd_data', ['restaurant_id'])
    op.create_index('idx_crowd_expires_at', 'crowd_data', ['expires_at'])


def downgrade() -> None:
    op.drop_index('idx_crowd_expires_at', table_name='crowd_data')
    op.drop_index('idx_crowd_restaurant_id', table_name='crowd_data')
    op.drop_index('ix_crowd_data_id', table_name='crowd_data')
    op.drop_table('crowd_data')
