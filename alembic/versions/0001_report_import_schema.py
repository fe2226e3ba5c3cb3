"""Report import schema: profiles, reports, picks, import attempts, picks history

Revision ID: 0001_report_import_schema
Revises:
Create Date: 2025-01-06

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '0001_report_import_schema'
down_revision = None
branch_labels = None
depends_on = None

payload_json = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade():
    """Create report, pick and audit tables."""
    op.create_table(
        'profiles',
        sa.Column('user_id', sa.Uuid(), primary_key=True),
        sa.Column('display_name', sa.String(200), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('api_token_hash', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_profiles_api_token_hash', 'profiles', ['api_token_hash'], unique=True)

    op.create_table(
        'reports',
        sa.Column('report_id', sa.Uuid(), primary_key=True),
        sa.Column('permalink', sa.String(200), nullable=False),
        sa.Column('period_key', sa.String(8), nullable=False),
        sa.Column('version', sa.String(20), nullable=False),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('source_checksum', sa.String(128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('period_key', 'version', name='uq_reports_period_version'),
        sa.UniqueConstraint('permalink', name='uq_reports_permalink'),
    )
    op.create_index('ix_reports_published_at', 'reports', ['published_at'])

    op.create_table(
        'picks',
        sa.Column('pick_id', sa.Uuid(), primary_key=True),
        sa.Column('report_id', sa.Uuid(), sa.ForeignKey('reports.report_id', ondelete='CASCADE'), nullable=False),
        sa.Column('ticker', sa.String(16), nullable=False),
        sa.Column('exchange', sa.String(32), nullable=False),
        sa.Column('side', sa.String(5), nullable=False),
        sa.Column('target_change_pct', sa.Numeric(10, 2), nullable=False),
        sa.Column('rationale', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('report_id', 'ticker', 'side', name='uq_picks_report_ticker_side'),
        sa.CheckConstraint("side IN ('long', 'short')", name='ck_picks_side'),
        sa.CheckConstraint('target_change_pct BETWEEN -1000 AND 1000', name='ck_picks_target_change_pct'),
    )
    op.create_index('ix_picks_report_id', 'picks', ['report_id'])

    op.create_table(
        'import_attempts',
        sa.Column('attempt_id', sa.Uuid(), primary_key=True),
        sa.Column('actor_id', sa.Uuid(), sa.ForeignKey('profiles.user_id', ondelete='SET NULL'), nullable=True),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('declared_checksum', sa.String(128), nullable=True),
        sa.Column('schema_version', sa.String(32), nullable=False),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('error_category', sa.String(32), nullable=True),
        sa.Column('error_detail', sa.Text(), nullable=True),
        sa.Column('raw_payload', payload_json, nullable=True),
        sa.Column('report_id', sa.Uuid(), sa.ForeignKey('reports.report_id', ondelete='SET NULL'), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('success', 'failed')", name='ck_import_attempts_status'),
    )
    op.create_index('ix_import_attempts_started_at', 'import_attempts', ['started_at'])
    op.create_index('ix_import_attempts_status', 'import_attempts', ['status'])
    op.create_index('ix_import_attempts_actor', 'import_attempts', ['actor_id'])

    op.create_table(
        'picks_history',
        sa.Column('pick_id', sa.Uuid(), primary_key=True),
        sa.Column('report_id', sa.Uuid(), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_key', sa.String(8), nullable=False),
        sa.Column('ticker', sa.String(16), nullable=False),
        sa.Column('exchange', sa.String(32), nullable=False),
        sa.Column('side', sa.String(5), nullable=False),
        sa.Column('target_change_pct', sa.Numeric(10, 2), nullable=False),
    )
    op.create_index('ix_picks_history_published_at', 'picks_history', ['published_at'])
    op.create_index('ix_picks_history_ticker', 'picks_history', ['ticker'])


def downgrade():
    """Drop report, pick and audit tables."""
    op.drop_index('ix_picks_history_ticker', 'picks_history')
    op.drop_index('ix_picks_history_published_at', 'picks_history')
    op.drop_table('picks_history')
    op.drop_index('ix_import_attempts_actor', 'import_attempts')
    op.drop_index('ix_import_attempts_status', 'import_attempts')
    op.drop_index('ix_import_attempts_started_at', 'import_attempts')
    op.drop_table('import_attempts')
    op.drop_index('ix_picks_report_id', 'picks')
    op.drop_table('picks')
    op.drop_index('ix_reports_published_at', 'reports')
    op.drop_table('reports')
    op.drop_index('ix_profiles_api_token_hash', 'profiles')
    op.drop_table('profiles')
