"""initial_food_analysis_tables

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-16

Adds:
- users table with the profile fields used by analyses
- medicine_records table for registered medicines and health-functional foods
- food_records table for persisted analysis results
- food_cache table (general food info smart cache)
- medicine_cache table (keyword-keyed medicine search cache)
- api_usage_counters table (shared daily quota counters)
"""
from alembic import op
import sqlalchemy as sa

revision = '0a1b2c3d4e5f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('gender', sa.String(16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'medicine_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('medicine_name', sa.String(255), nullable=False),
        sa.Column('dosage', sa.String(100), nullable=True),
        sa.Column('frequency', sa.String(100), nullable=True),
        sa.Column('is_health_food', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_medicine_records_id'), 'medicine_records', ['id'], unique=False)
    op.create_index(op.f('ix_medicine_records_user_id'), 'medicine_records', ['user_id'], unique=False)
    op.create_index(op.f('ix_medicine_records_is_active'), 'medicine_records', ['is_active'], unique=False)

    op.create_table(
        'food_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('food_name', sa.String(255), nullable=False),
        sa.Column('source', sa.String(16), nullable=False, server_default='text'),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('diseases', sa.JSON(), nullable=False),
        sa.Column('analysis_json', sa.JSON(), nullable=True),
        sa.Column('summary_text', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_food_records_id'), 'food_records', ['id'], unique=False)
    op.create_index(op.f('ix_food_records_user_id'), 'food_records', ['user_id'], unique=False)
    op.create_index(op.f('ix_food_records_created_at'), 'food_records', ['created_at'], unique=False)

    op.create_table(
        'food_cache',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('food_name', sa.String(255), nullable=False),
        sa.Column('nutrition_json', sa.JSON(), nullable=True),
        sa.Column('general_benefit', sa.JSON(), nullable=False),
        sa.Column('general_harm', sa.JSON(), nullable=False),
        sa.Column('nutrition_summary', sa.Text(), nullable=False, server_default=''),
        sa.Column('cooking_tips', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_food_cache_food_name'), 'food_cache', ['food_name'], unique=True)
    op.create_index(op.f('ix_food_cache_created_at'), 'food_cache', ['created_at'], unique=False)

    op.create_table(
        'medicine_cache',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('keyword', sa.String(255), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('source', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_medicine_cache_keyword'), 'medicine_cache', ['keyword'], unique=True)

    op.create_table(
        'api_usage_counters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('usage_date', sa.Date(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('category', 'usage_date', name='uq_api_usage_category_date')
    )
    op.create_index(op.f('ix_api_usage_counters_category'), 'api_usage_counters', ['category'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_api_usage_counters_category'), table_name='api_usage_counters')
    op.drop_table('api_usage_counters')

    op.drop_index(op.f('ix_medicine_cache_keyword'), table_name='medicine_cache')
    op.drop_table('medicine_cache')

    op.drop_index(op.f('ix_food_cache_created_at'), table_name='food_cache')
    op.drop_index(op.f('ix_food_cache_food_name'), table_name='food_cache')
    op.drop_table('food_cache')

    op.drop_index(op.f('ix_food_records_created_at'), table_name='food_records')
    op.drop_index(op.f('ix_food_records_user_id'), table_name='food_records')
    op.drop_index(op.f('ix_food_records_id'), table_name='food_records')
    op.drop_table('food_records')

    op.drop_index(op.f('ix_medicine_records_is_active'), table_name='medicine_records')
    op.drop_index(op.f('ix_medicine_records_user_id'), table_name='medicine_records')
    op.drop_index(op.f('ix_medicine_records_id'), table_name='medicine_records')
    op.drop_table('medicine_records')

    op.drop_table('users')
