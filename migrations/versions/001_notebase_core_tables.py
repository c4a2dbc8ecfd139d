"""Notebase core tables - users and roles, content hierarchy, enrollments, AI credits, access log

Revision ID: 001_notebase_core_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '001_notebase_core_tables'
down_revision = None
branch_labels = None
depends_on = None

app_role_enum = postgresql.ENUM(
    'super_admin', 'content_admin', 'support_admin', 'student', 'cmo', 'content_creator', 'head_ops',
    name='app_role_enum', create_type=False,
)
grade_level_enum = postgresql.ENUM('ol', 'al_grade12', 'al_grade13', name='grade_level_enum', create_type=False)
stream_enum = postgresql.ENUM('maths', 'biology', 'commerce', 'arts', 'technology', name='stream_enum', create_type=False)
medium_enum = postgresql.ENUM('english', 'sinhala', name='medium_enum', create_type=False)
tier_enum = postgresql.ENUM('starter', 'standard', 'lifetime', name='tier_enum', create_type=False)
chat_role_enum = postgresql.ENUM('user', 'assistant', name='chat_role_enum', create_type=False)
ALL_ENUMS = (app_role_enum, grade_level_enum, stream_enum, medium_enum, tier_enum, chat_role_enum)


def _timestamp(name='created_at'):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade():
    # Shared enum types are created once up front; the columns reference them with create_type=False
    bind = op.get_bind()
    for enum in ALL_ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(100), nullable=False),
        sa.Column('full_name', sa.String(100), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        _timestamp(),
        _timestamp('updated_at'),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    op.create_table(
        'user_role',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('role', app_role_enum, nullable=False),
        _timestamp(),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )
    op.create_index('ix_user_role_user_id', 'user_role', ['user_id'])

    op.create_table(
        'user_session',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('session_token', sa.String(512), nullable=False),
        _timestamp(),
        _timestamp('updated_at'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_user_session_session_token', 'user_session', ['session_token'], unique=True)

    op.create_table(
        'subject',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('grade', grade_level_enum, nullable=False),
        sa.Column('stream', stream_enum, nullable=False),
        sa.Column('medium', medium_enum, nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp(),
    )

    op.create_table(
        'topic',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('subject.id'), nullable=False),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp(),
    )
    op.create_index('ix_topic_subject_id', 'topic', ['subject_id'])

    op.create_table(
        'note',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('topic_id', sa.Integer(), sa.ForeignKey('topic.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('file_url', sa.String(1024), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('min_tier', tier_enum, nullable=False, server_default='starter'),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        _timestamp(),
        _timestamp('updated_at'),
    )
    op.create_index('ix_note_topic_id', 'note', ['topic_id'])

    op.create_table(
        'enrollment',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('grade', grade_level_enum, nullable=False),
        sa.Column('stream', stream_enum, nullable=False),
        sa.Column('medium', medium_enum, nullable=False),
        sa.Column('tier', tier_enum, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_order_id', sa.String(100), nullable=True),
        sa.Column('access_code', sa.String(50), nullable=True),
        _timestamp(),
        _timestamp('updated_at'),
    )
    op.create_index('ix_enrollment_lookup', 'enrollment', ['user_id', 'grade', 'stream', 'medium', 'is_active'])

    op.create_table(
        'user_subject_selection',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('enrollment_id', sa.Integer(), sa.ForeignKey('enrollment.id'), nullable=False, unique=True),
        sa.Column('subject_1', sa.String(100), nullable=False),
        sa.Column('subject_2', sa.String(100), nullable=False),
        sa.Column('subject_3', sa.String(100), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp(),
    )
    op.create_index('ix_user_subject_selection_user_id', 'user_subject_selection', ['user_id'])

    op.create_table(
        'ai_credit',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('enrollment_id', sa.Integer(), sa.ForeignKey('enrollment.id'), nullable=True),
        sa.Column('month_year', sa.String(7), nullable=False),
        sa.Column('credits_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('credits_limit', sa.Integer(), nullable=False),
        sa.Column('strikes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_suspended', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('suspended_at', sa.DateTime(timezone=True), nullable=True),
        _timestamp(),
        _timestamp('updated_at'),
        sa.UniqueConstraint('user_id', 'month_year', name='uq_ai_credit_user_month'),
        sa.CheckConstraint('credits_used >= 0', name='ck_ai_credit_used_non_negative'),
        sa.CheckConstraint('strikes >= 0', name='ck_ai_credit_strikes_non_negative'),
    )
    op.create_index('ix_ai_credit_user_id', 'ai_credit', ['user_id'])
    # Admin review lists flagged records per month
    op.create_index(
        'ix_ai_credit_flagged',
        'ai_credit',
        ['month_year', 'strikes'],
        postgresql_where=sa.text('strikes > 0 OR is_suspended'),
    )

    op.create_table(
        'ai_chat_message',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('enrollment_id', sa.Integer(), sa.ForeignKey('enrollment.id'), nullable=True),
        sa.Column('role', chat_role_enum, nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('word_count', sa.Integer(), nullable=True),
        _timestamp(),
    )
    op.create_index('ix_ai_chat_message_user_id', 'ai_chat_message', ['user_id'])

    op.create_table(
        'download_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('note_id', sa.Integer(), sa.ForeignKey('note.id'), nullable=False),
        sa.Column('order_id', sa.String(16), nullable=False),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('downloaded_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_download_log_user_id', 'download_log', ['user_id'])
    op.create_index('ix_download_log_note_id', 'download_log', ['note_id'])
    op.create_index('ix_download_log_order_id', 'download_log', ['order_id'])


def downgrade():
    for table in (
        'download_log', 'ai_chat_message', 'ai_credit', 'user_subject_selection',
        'enrollment', 'note', 'topic', 'subject', 'user_session', 'user_role', 'user',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in reversed(ALL_ENUMS):
        enum.drop(bind, checkfirst=True)
