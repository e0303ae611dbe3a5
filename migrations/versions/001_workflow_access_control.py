"""Create access-control, survey workflow and notification tables

Revision ID: 001_workflow_access_control
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_workflow_access_control'
down_revision = None
branch_labels = None
depends_on = None

SURVEY_STATUSES = ('created', 'submitted', 'under_revision', 'rework', 'approved')
NOTIFICATION_TYPES = ('survey_created', 'status_change', 'assignment', 'rework', 'approval')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(80), nullable=False, unique=True, server_default=''),
        sa.Column('email', sa.String(120), nullable=False, unique=True, server_default=''),
        sa.Column('password_hash', sa.String(256), nullable=False, server_default=''),
        sa.Column('first_name', sa.String(100), server_default=''),
        sa.Column('last_name', sa.String(100), server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
    )

    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False, unique=True),
        sa.Column('description', sa.Text(), server_default=''),
        sa.Column('permissions', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
    )

    op.create_table(
        'user_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id'), nullable=False),
        sa.Column('assigned_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])
    op.create_index('ix_user_roles_role_id', 'user_roles', ['role_id'])
    op.create_index('idx_user_roles_user_active', 'user_roles', ['user_id', 'is_active'])

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('code', sa.String(50), server_default=''),
        sa.Column('description', sa.Text(), server_default=''),
        sa.Column('client', sa.String(255), server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
    )
    op.create_index('ix_projects_name', 'projects', ['name'], unique=True)

    op.create_table(
        'user_projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('assigned_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('role_in_project', sa.String(100), nullable=True),
        sa.Column('permissions', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
    )
    op.create_index('ix_user_projects_user_id', 'user_projects', ['user_id'])
    op.create_index('ix_user_projects_project_id', 'user_projects', ['project_id'])
    op.create_index('idx_user_projects_project_active', 'user_projects', ['project_id', 'is_active'])

    op.create_table(
        'survey',
        sa.Column('site_id', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('session_id', sa.String(255), nullable=False, unique=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('country', sa.String(255), server_default=''),
        sa.Column('ct', sa.String(255), server_default=''),
        sa.Column('project', sa.String(255), server_default=''),
        sa.Column('company', sa.String(255), server_default=''),
        sa.Column('TSSR_Status', sa.Enum(*SURVEY_STATUSES, name='surveystatus', native_enum=False, length=20),
                  nullable=False, server_default='created'),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('site_id', 'created_at'),
    )
    op.create_index('ix_survey_user_id', 'survey', ['user_id'])
    op.create_index('ix_survey_project', 'survey', ['project'])

    op.create_table(
        'survey_status_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.String(255), sa.ForeignKey('survey.session_id', ondelete='CASCADE'), nullable=False),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('current_status', sa.String(50), nullable=False),
        sa.Column('new_status', sa.String(50), nullable=False),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
    )
    op.create_index('ix_survey_status_history_session_id', 'survey_status_history', ['session_id'])
    op.create_index('ix_survey_status_history_username', 'survey_status_history', ['username'])
    op.create_index('ix_survey_status_history_changed_at', 'survey_status_history', ['changed_at'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.Enum(*NOTIFICATION_TYPES, name='notificationtype', native_enum=False, length=20),
                  nullable=False),
        sa.Column('related_survey_id', sa.String(255),
                  sa.ForeignKey('survey.session_id', ondelete='SET NULL'), nullable=True),
        sa.Column('related_project_id', sa.Integer(),
                  sa.ForeignKey('projects.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    op.create_table(
        'app_config',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(100), nullable=False, unique=True, server_default=''),
        sa.Column('value', sa.Text(), server_default=''),
        sa.Column('description', sa.String(300), server_default=''),
        sa.Column('category', sa.String(50), server_default=''),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )


def downgrade():
    op.drop_table('app_config')
    op.drop_table('notifications')
    op.drop_table('survey_status_history')
    op.drop_table('survey')
    op.drop_table('user_projects')
    op.drop_table('projects')
    op.drop_table('user_roles')
    op.drop_table('roles')
    op.drop_table('users')
