"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')

UNITS = ('OFFENSE', 'DEFENSE', 'SPECIAL_TEAMS')
COORDINATOR_TYPES = ('OFFENSIVE_COORDINATOR', 'DEFENSIVE_COORDINATOR', 'SPECIAL_TEAMS_COORDINATOR')


def _base_columns():
    return [
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def _team_fk():
    return sa.Column('team_id', sa.String(length=36), sa.ForeignKey('team.id', ondelete='CASCADE'), nullable=False)


def _scoping_columns():
    return [
        sa.Column('created_by', sa.String(length=36), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('scoped_unit', sa.Enum(*UNITS, name='scoped_unit', native_enum=False), nullable=True),
        sa.Column('scoped_position_groups', JSON_TYPE, nullable=True),
        sa.Column('scoped_player_ids', JSON_TYPE, nullable=True),
        sa.Column('coordinator_type', sa.Enum(*COORDINATOR_TYPES, name='coordinator_type', native_enum=False), nullable=True),
    ]


def upgrade():
    op.create_table(
        'organization',
        *_base_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('org_type', sa.Enum('SCHOOL', 'COLLEGE', name='organization_type', native_enum=False), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'user',
        *_base_columns(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    op.create_table(
        'team',
        *_base_columns(),
        sa.Column('org_id', sa.String(length=36), sa.ForeignKey('organization.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('season_start', sa.Date(), nullable=True),
        sa.Column('season_end', sa.Date(), nullable=True),
        sa.Column('subscription_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('subscription_due_date', sa.Date(), nullable=True),
        sa.Column('ai_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('ai_disabled_by_platform', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('locked_by_platform', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('account_status', sa.Enum('ACTIVE', 'GRACE', 'READ_ONLY', 'LOCKED', name='account_status', native_enum=False), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_team_org_id', 'team', ['org_id'])

    op.create_table(
        'season',
        *_base_columns(),
        _team_fk(),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('first_game_week_date', sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'year', name='uq_season_team_year'),
    )
    op.create_index('ix_season_team_id', 'season', ['team_id'])

    op.create_table(
        'game',
        *_base_columns(),
        _team_fk(),
        sa.Column('season_id', sa.String(length=36), sa.ForeignKey('season.id', ondelete='CASCADE'), nullable=False),
        sa.Column('opponent', sa.String(length=255), nullable=True),
        sa.Column('game_date', sa.Date(), nullable=False),
        sa.Column('confirmed_by_coach', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_team_id', 'game', ['team_id'])
    op.create_index('ix_game_season_id', 'game', ['season_id'])

    op.create_table(
        'membership',
        *_base_columns(),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        _team_fk(),
        sa.Column(
            'role',
            sa.Enum('HEAD_COACH', 'ASSISTANT_COACH', 'PLAYER', 'PARENT', 'SCHOOL_ADMIN', 'PLATFORM_OWNER',
                    name='membership_role', native_enum=False),
            nullable=False,
        ),
        sa.Column('permissions', JSON_TYPE, nullable=True),
        sa.Column('position_groups', JSON_TYPE, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'team_id', name='uq_membership_user_team'),
    )
    op.create_index('ix_membership_user_id', 'membership', ['user_id'])
    op.create_index('ix_membership_team_id', 'membership', ['team_id'])

    op.create_table(
        'player',
        *_base_columns(),
        _team_fk(),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('user.id', ondelete='SET NULL'), nullable=True),
        sa.Column('first_name', sa.String(length=120), nullable=False),
        sa.Column('last_name', sa.String(length=120), nullable=False),
        sa.Column('position_group', sa.String(length=16), nullable=True),
        sa.Column('jersey_number', sa.Integer(), nullable=True),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', name='player_status', native_enum=False), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_player_team_id', 'player', ['team_id'])
    op.create_index('ix_player_user_id', 'player', ['user_id'])

    op.create_table(
        'guardian',
        *_base_columns(),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'guardian_player',
        *_base_columns(),
        sa.Column('guardian_id', sa.String(length=36), sa.ForeignKey('guardian.id', ondelete='CASCADE'), nullable=False),
        sa.Column('player_id', sa.String(length=36), sa.ForeignKey('player.id', ondelete='CASCADE'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('guardian_id', 'player_id', name='uq_guardian_player'),
    )
    op.create_index('ix_guardian_player_guardian_id', 'guardian_player', ['guardian_id'])
    op.create_index('ix_guardian_player_player_id', 'guardian_player', ['player_id'])

    op.create_table(
        'event',
        *_base_columns(),
        _team_fk(),
        *_scoping_columns(),
        sa.Column('event_type', sa.Enum('PRACTICE', 'GAME', 'MEETING', 'CUSTOM', name='event_type', native_enum=False), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column(
            'visibility',
            sa.Enum('COACHES_ONLY', 'TEAM', 'PARENTS_AND_TEAM', name='event_visibility', native_enum=False),
            nullable=False,
        ),
        sa.Column('locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_event_team_id', 'event', ['team_id'])
    op.create_index('ix_event_created_by', 'event', ['created_by'])

    op.create_table(
        'calendar_settings',
        *_base_columns(),
        sa.Column('team_id', sa.String(length=36), sa.ForeignKey('team.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('assistants_can_add_meetings', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('assistants_can_add_practices', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'document',
        *_base_columns(),
        _team_fk(),
        *_scoping_columns(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('file_url', sa.String(length=1024), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column(
            'visibility',
            sa.Enum('ALL', 'STAFF', 'PLAYERS', 'PARENTS', name='document_visibility', native_enum=False),
            nullable=False,
        ),
        sa.Column('locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_document_team_id', 'document', ['team_id'])
    op.create_index('ix_document_created_by', 'document', ['created_by'])

    op.create_table(
        'inventory_item',
        *_base_columns(),
        _team_fk(),
        *_scoping_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('condition', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('assigned_to_player_id', sa.String(length=36), sa.ForeignKey('player.id', ondelete='SET NULL'), nullable=True),
        sa.Column('locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_inventory_item_team_id', 'inventory_item', ['team_id'])
    op.create_index('ix_inventory_item_created_by', 'inventory_item', ['created_by'])
    op.create_index('ix_inventory_item_assigned_to_player_id', 'inventory_item', ['assigned_to_player_id'])

    op.create_table(
        'depth_chart_entry',
        *_base_columns(),
        _team_fk(),
        sa.Column('unit', sa.Enum('OFFENSE', 'DEFENSE', 'SPECIAL_TEAMS', name='depth_chart_unit', native_enum=False), nullable=False),
        sa.Column('position', sa.String(length=16), nullable=False),
        sa.Column('string', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.String(length=36), sa.ForeignKey('player.id', ondelete='CASCADE'), nullable=False),
        sa.Column('special_team_type', sa.String(length=32), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'unit', 'position', 'string', 'special_team_type', name='uq_depth_chart_slot'),
    )
    op.create_index('ix_depth_chart_entry_team_id', 'depth_chart_entry', ['team_id'])

    op.create_table(
        'play',
        *_base_columns(),
        _team_fk(),
        sa.Column('created_by', sa.String(length=36), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('side', sa.Enum('OFFENSE', 'DEFENSE', 'SPECIAL_TEAMS', name='play_side', native_enum=False), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('formation', sa.String(length=255), nullable=True),
        sa.Column('data', JSON_TYPE, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_play_team_id', 'play', ['team_id'])

    op.create_table(
        'message_thread',
        *_base_columns(),
        _team_fk(),
        sa.Column('subject', sa.String(length=255), nullable=True),
        sa.Column('thread_type', sa.Enum('GENERAL', 'CUSTOM', name='thread_type', native_enum=False), nullable=False),
        sa.Column('created_by', sa.String(length=36), sa.ForeignKey('user.id'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_message_thread_team_id', 'message_thread', ['team_id'])

    op.create_table(
        'thread_participant',
        *_base_columns(),
        sa.Column('thread_id', sa.String(length=36), sa.ForeignKey('message_thread.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        sa.Column('read_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('thread_id', 'user_id', name='uq_thread_participant'),
    )
    op.create_index('ix_thread_participant_thread_id', 'thread_participant', ['thread_id'])
    op.create_index('ix_thread_participant_user_id', 'thread_participant', ['user_id'])

    op.create_table(
        'message',
        *_base_columns(),
        sa.Column('thread_id', sa.String(length=36), sa.ForeignKey('message_thread.id', ondelete='CASCADE'), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('created_by', sa.String(length=36), sa.ForeignKey('user.id'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_message_thread_id', 'message', ['thread_id'])

    op.create_table(
        'announcement',
        *_base_columns(),
        _team_fk(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('audience', sa.Enum('ALL', 'TEAM', 'PARENTS', name='announcement_audience', native_enum=False), nullable=False),
        sa.Column('created_by', sa.String(length=36), sa.ForeignKey('user.id'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_announcement_team_id', 'announcement', ['team_id'])

    op.create_table(
        'ai_action_proposal',
        *_base_columns(),
        _team_fk(),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('action_type', sa.String(length=64), nullable=False),
        sa.Column('payload', JSON_TYPE, nullable=True),
        sa.Column('preview', JSON_TYPE, nullable=True),
        sa.Column('status', sa.Enum('PENDING', 'EXECUTED', 'REJECTED', name='proposal_status', native_enum=False), nullable=False),
        sa.Column('idempotency_key', sa.String(length=128), nullable=True),
        sa.Column('decided_by', sa.String(length=36), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('result', JSON_TYPE, nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'idempotency_key', name='uq_proposal_idempotency'),
    )
    op.create_index('ix_ai_action_proposal_team_id', 'ai_action_proposal', ['team_id'])

    op.create_table(
        'audit_log',
        *_base_columns(),
        _team_fk(),
        sa.Column('actor_user_id', sa.String(length=36), sa.ForeignKey('user.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(length=128), nullable=False),
        sa.Column('entity_type', sa.String(length=128), nullable=False),
        sa.Column('entity_id', sa.String(length=36), nullable=True),
        sa.Column('meta', JSON_TYPE, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_log_team_id', 'audit_log', ['team_id'])
    op.create_index('ix_audit_log_actor_user_id', 'audit_log', ['actor_user_id'])

    op.create_table(
        'notification',
        *_base_columns(),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('user.id', ondelete='CASCADE'), nullable=False),
        _team_fk(),
        sa.Column('notification_type', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('link_type', sa.String(length=64), nullable=True),
        sa.Column('link_id', sa.String(length=36), nullable=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notification_user_id', 'notification', ['user_id'])
    op.create_index('ix_notification_team_id', 'notification', ['team_id'])


def downgrade():
    for table in (
        'notification',
        'audit_log',
        'ai_action_proposal',
        'announcement',
        'message',
        'thread_participant',
        'message_thread',
        'play',
        'depth_chart_entry',
        'inventory_item',
        'document',
        'calendar_settings',
        'event',
        'guardian_player',
        'guardian',
        'player',
        'membership',
        'game',
        'season',
        'team',
        'user',
        'organization',
    ):
        op.drop_table(table)
