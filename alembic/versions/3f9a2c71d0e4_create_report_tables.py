"""create_report_tables

Revision ID: 3f9a2c71d0e4
Revises:
Create Date: 2025-03-02 10:00:00.000000

"""
from typing import Sequence, Union
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "..", "src"))

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import sqlite
from voiceai.db.base import UUIDType

# revision identifiers, used by Alembic.
revision: str = '3f9a2c71d0e4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    """Create users, calls, notifications and monthly_reports tables."""
    op.create_table('users',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='user', comment='user or admin'),
        sa.Column('plan', sa.String(length=50), nullable=True),
        sa.Column('subscription_status', sa.String(length=30), nullable=True, comment='active, trialing, past_due, canceled, expired'),
        sa.Column('subscription_current_period_end', sa.DateTime(), nullable=True, comment='Next renewal date of the subscription'),
        sa.Column('account_status', sa.String(length=20), nullable=False, server_default='active'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_subscription_status', 'users', ['subscription_status'])
    op.create_index('ix_users_subscription_current_period_end', 'users', ['subscription_current_period_end'])

    op.create_table('calls',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('user_id', UUIDType(), nullable=False),
        sa.Column('phone_number', sa.String(length=50), nullable=True, comment='Caller phone number'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='completed, failed, canceled, no_answer, active'),

        # Timing
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=True, comment='Call duration in seconds'),

        # Outcome
        sa.Column('event_type', sa.String(length=50), nullable=True),
        sa.Column('conversion_result', sa.String(length=50), nullable=True),
        sa.Column('call_successful', sa.Boolean(), nullable=True),
        sa.Column('appointment_date', sa.DateTime(), nullable=True, comment='Booked appointment, if the call converted'),
        sa.Column('appointment_day_of_week', sa.Integer(), nullable=True, comment='0=Sunday .. 6=Saturday'),
        sa.Column('booking_delay_days', sa.Integer(), nullable=True),
        sa.Column('is_last_minute', sa.Boolean(), nullable=True),

        # AI analysis
        sa.Column('client_mood', sa.String(length=30), nullable=True),
        sa.Column('is_returning_client', sa.Boolean(), nullable=True),
        sa.Column('service_type', sa.String(length=100), nullable=True),
        sa.Column('booking_confidence', sa.Integer(), nullable=True, comment='0-100'),
        sa.Column('call_quality', sa.String(length=30), nullable=True),
        sa.Column('upsell_accepted', sa.Boolean(), nullable=True),
        sa.Column('keywords', sqlite.JSON(), nullable=True),
        sa.Column('transcript', sa.Text(), nullable=True, comment='Full call transcript'),
        sa.Column('summary', sa.Text(), nullable=True, comment='AI-generated call summary'),

        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_calls_user_id', 'calls', ['user_id'])
    op.create_index('ix_calls_status', 'calls', ['status'])
    op.create_index('ix_calls_user_created', 'calls', ['user_id', 'created_at'])

    op.create_table('notifications',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('user_id', UUIDType(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False, comment='See NotificationType'),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('metadata', sa.Text(), nullable=True, comment='JSON-encoded context, e.g. the report id'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'is_read'])

    op.create_table('monthly_reports',
        sa.Column('id', UUIDType(), nullable=False),
        sa.Column('user_id', UUIDType(), nullable=False),
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('period_end', sa.DateTime(), nullable=False),
        sa.Column('subscription_renewal_at', sa.DateTime(), nullable=False, comment='Snapshot taken when the report was generated'),
        sa.Column('metrics', sa.Text(), nullable=False, comment='Serialized MonthlyReportMetrics (JSON)'),
        sa.Column('pdf_path', sa.String(length=500), nullable=False),
        sa.Column('pdf_checksum', sa.String(length=32), nullable=False, comment='MD5 hex digest of the PDF bytes'),
        sa.Column('generated_at', sa.DateTime(), nullable=False),
        sa.Column('emailed_at', sa.DateTime(), nullable=True),
        sa.Column('notification_id', UUIDType(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['notification_id'], ['notifications.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('user_id', 'period_start', 'period_end', name='uq_monthly_reports_user_period'),
    )
    op.create_index('ix_monthly_reports_user_id', 'monthly_reports', ['user_id'])
    op.create_index('ix_monthly_reports_pending_email', 'monthly_reports', ['emailed_at', 'retry_count'])


def downgrade() -> None:
    """Drop the report tables."""
    op.drop_index('ix_monthly_reports_pending_email', 'monthly_reports')
    op.drop_index('ix_monthly_reports_user_id', 'monthly_reports')
    op.drop_table('monthly_reports')
    op.drop_index('ix_notifications_user_read', 'notifications')
    op.drop_index('ix_notifications_user_id', 'notifications')
    op.drop_table('notifications')
    op.drop_index('ix_calls_user_created', 'calls')
    op.drop_index('ix_calls_status', 'calls')
    op.drop_index('ix_calls_user_id', 'calls')
    op.drop_table('calls')
    op.drop_index('ix_users_subscription_current_period_end', 'users')
    op.drop_index('ix_users_subscription_status', 'users')
    op.drop_table('users')
