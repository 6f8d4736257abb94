"""
Calling Schema - Tables used by the call request coordinator

This migration creates:
1. call_requests - One voice/video request per (match, requester)
2. call_blocks - Blocks created by rejecting a request
3. match_permissions - Which call kinds each participant accepts

profiles and matches are owned by the onboarding and swipe services and
are expected to exist already.

Revision ID: 20261019_calling_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261019_calling_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================
    # CREATE CALL_REQUESTS TABLE
    # ============================================
    op.create_table(
        'call_requests',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('match_id', sa.String(length=36), sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requester_id', sa.String(length=36), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=10), nullable=False, server_default='voice'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('match_id', 'requester_id', name='uq_call_request_match_requester'),
    )
    op.create_index('ix_call_requests_match_id', 'call_requests', ['match_id'])
    op.create_index('ix_call_requests_requester_id', 'call_requests', ['requester_id'])
    op.create_index('ix_call_requests_status', 'call_requests', ['status'])

    # ============================================
    # CREATE CALL_BLOCKS TABLE
    # ============================================
    op.create_table(
        'call_blocks',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('match_id', sa.String(length=36), sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('blocker_id', sa.String(length=36), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('blocked_user_id', sa.String(length=36), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('blocked', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('match_id', 'blocked_user_id', name='uq_call_block_match_blocked'),
    )
    op.create_index('ix_call_blocks_match_id', 'call_blocks', ['match_id'])
    op.create_index('ix_call_blocks_blocker_id', 'call_blocks', ['blocker_id'])
    op.create_index('ix_call_blocks_blocked_user_id', 'call_blocks', ['blocked_user_id'])

    # ============================================
    # CREATE MATCH_PERMISSIONS TABLE
    # ============================================
    op.create_table(
        'match_permissions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('match_id', sa.String(length=36), sa.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('allow_voice', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('allow_video', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('match_id', 'user_id', name='uq_match_permission_user'),
    )
    op.create_index('ix_match_permissions_match_id', 'match_permissions', ['match_id'])
    op.create_index('ix_match_permissions_user_id', 'match_permissions', ['user_id'])


def downgrade():
    op.drop_table('match_permissions')
    op.drop_table('call_blocks')
    op.drop_table('call_requests')
