"""create companies and users tables

Revision ID: 4f1c2a9e7b3d
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1c2a9e7b3d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'companies',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('domain', sa.String(), nullable=True),
        sa.Column('industry', sa.String(), nullable=True),
        sa.Column('size', sa.String(), nullable=True),
        sa.Column('logo_url', sa.String(), nullable=True),
        sa.Column('apollo_id', sa.String(), nullable=True),
        sa.Column('enriched_at', sa.DateTime(), nullable=True),
        sa.Column('website', sa.String(), nullable=True),
        sa.Column('linkedin_url', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sub_industry', sa.String(), nullable=True),
        sa.Column('company_type', sa.String(), nullable=True),
        sa.Column('employee_count', sa.Integer(), nullable=True),
        sa.Column('employee_range', sa.String(), nullable=True),
        sa.Column('founded_year', sa.Integer(), nullable=True),
        sa.Column('revenue', sa.String(), nullable=True),
        sa.Column('hq_city', sa.String(), nullable=True),
        sa.Column('hq_state', sa.String(), nullable=True),
        sa.Column('hq_country', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('twitter_url', sa.String(), nullable=True),
        sa.Column('facebook_url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_companies_domain', 'companies', ['domain'])
    op.create_index('ix_companies_apollo_id', 'companies', ['apollo_id'], unique=True)
    # Case-insensitive uniqueness on name
    op.create_index(
        'uq_companies_name_lower',
        'companies',
        [sa.text('lower(name)')],
        unique=True,
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('firebase_id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('photo_url', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('company_id', sa.Uuid(), nullable=True),
        sa.Column('division', sa.String(), nullable=True),
        sa.Column('unit', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_firebase_id', 'users', ['firebase_id'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_users_firebase_id', table_name='users')
    op.drop_table('users')
    op.drop_index('uq_companies_name_lower', table_name='companies')
    op.drop_index('ix_companies_apollo_id', table_name='companies')
    op.drop_index('ix_companies_domain', table_name='companies')
    op.drop_table('companies')
