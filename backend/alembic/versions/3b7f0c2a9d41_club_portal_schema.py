"""Club portal schema

Revision ID: 3b7f0c2a9d41
Revises:
Create Date: 2026-10-19 10:12:07.518220

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB


# revision identifiers, used by Alembic.
revision: str = '3b7f0c2a9d41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade() -> None:
    contribution_status = sa.Enum('pending', 'verified', 'rejected', name='contribution_status')
    join_request_status = sa.Enum('pending', 'approved', 'rejected', name='join_request_status')

    # Departments: capacity 0 means unlimited
    op.create_table(
        'departments',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('filled_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *timestamps(),
        sa.CheckConstraint('capacity >= 0', name='ck_departments_capacity'),
        sa.CheckConstraint('filled_count >= 0', name='ck_departments_filled_count'),
    )

    op.create_table(
        'projects',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('department_id', sa.String(64), nullable=True),
        sa.Column('members', JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *timestamps(),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_projects_department_id', 'projects', ['department_id'])

    # Users are keyed by the identity provider uid
    op.create_table(
        'users',
        sa.Column('id', sa.String(128), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('role', sa.String(50), nullable=False, server_default='member'),
        sa.Column('departments', JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('project_id', UUID(as_uuid=True), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *timestamps(),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='SET NULL'),
        sa.CheckConstraint('total_points >= 0', name='ck_users_total_points'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_project_id', 'users', ['project_id'])
    # Leaderboard ordering
    op.create_index('ix_users_leaderboard', 'users', [sa.text('total_points DESC'), 'created_at', 'id'])

    op.create_table(
        'contributions',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('project_id', UUID(as_uuid=True), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('image_key', sa.String(500), nullable=True),
        sa.Column('status', contribution_status, nullable=False, server_default='pending'),
        sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('verified_by', sa.String(128), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='SET NULL'),
        sa.CheckConstraint('points_awarded >= 0', name='ck_contributions_points_awarded'),
    )
    op.create_index('ix_contributions_user_id', 'contributions', ['user_id'])
    op.create_index('ix_contributions_project_id', 'contributions', ['project_id'])
    op.create_index('ix_contributions_status', 'contributions', ['status'])

    # pending_key is only set while pending: one pending request per (user, project)
    op.create_table(
        'join_requests',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('project_id', UUID(as_uuid=True), nullable=False),
        sa.Column('status', join_request_status, nullable=False, server_default='pending'),
        sa.Column('pending_key', sa.String(255), nullable=True, unique=True),
        sa.Column('decided_by', sa.String(128), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_join_requests_user_id', 'join_requests', ['user_id'])
    op.create_index('ix_join_requests_project_id', 'join_requests', ['project_id'])

    op.create_table(
        'reviews',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('project_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(128), nullable=False),
        sa.Column('user_name', sa.String(255), nullable=False, server_default='Anonymous'),
        sa.Column('comment', sa.Text(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
    )
    op.create_index('ix_reviews_project_id', 'reviews', ['project_id'])
    op.create_index('ix_reviews_user_id', 'reviews', ['user_id'])


def downgrade() -> None:
    # Drop tables in reverse order to respect foreign key constraints
    op.drop_table('reviews')
    op.drop_table('join_requests')
    op.drop_table('contributions')
    op.drop_table('users')
    op.drop_table('projects')
    op.drop_table('departments')
    sa.Enum(name='join_request_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='contribution_status').drop(op.get_bind(), checkfirst=True)
