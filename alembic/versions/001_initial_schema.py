"""Initial schema - creates all tables and indexes for webtracker.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

This migration creates the complete database schema from scratch.
For existing databases, use `alembic stamp head` instead of running this.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables and indexes."""

    # ==========================================================================
    # Identity
    # ==========================================================================

    # users - mapped from the bearer-token issuer's uid
    op.create_table('users',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('auth_uid', sa.String(128), nullable=False),
        sa.Column('email', sa.String(320), nullable=True),
        sa.Column('phone_number', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_auth_uid', 'users', ['auth_uid'], unique=True)

    # devices - device key registry
    op.create_table('devices',
        sa.Column('device_id', sa.String(128), nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('public_key', sa.String(128), nullable=True),  # base64 raw Ed25519
        sa.Column('label', sa.String(200), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('device_id'),
    )
    op.create_index('ix_devices_user_id', 'devices', ['user_id'])

    # nonces - one row per claimed (nonce, device); the primary key makes claims atomic
    op.create_table('nonces',
        sa.Column('nonce', sa.String(128), nullable=False),
        sa.Column('device_id', sa.String(128), nullable=False),
        sa.Column('ts', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('nonce', 'device_id', name='pk_nonces'),
    )
    op.create_index('ix_nonces_ts', 'nonces', ['ts'])

    # device_links - one-time link codes
    op.create_table('device_links',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('device_id', sa.String(128), nullable=False),
        sa.Column('public_key', sa.String(128), nullable=True),
        sa.Column('code', sa.String(16), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_device_links_code', 'device_links', ['code'], unique=True)

    # ==========================================================================
    # Tracking data
    # ==========================================================================

    op.create_table('locations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('device_id', sa.String(128), nullable=False),
        sa.Column('ts_ms', sa.BigInteger(), nullable=False),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lon', sa.Float(), nullable=False),
        sa.Column('accuracy_m', sa.Float(), nullable=True),
        sa.Column('speed_mps', sa.Float(), nullable=True),
        sa.Column('provider', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['device_id'], ['devices.device_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_locations_user_ts', 'locations', ['user_id', 'ts_ms'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('device_id', sa.String(128), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['device_id'], ['devices.device_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_device_unread', 'notifications', ['device_id', 'is_read'])

    op.create_table('trusted_places',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('label', sa.Text(), nullable=True),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lon', sa.Float(), nullable=False),
        sa.Column('radius_m', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_trusted_places_user_id', 'trusted_places', ['user_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('trusted_places')
    op.drop_table('notifications')
    op.drop_table('locations')
    op.drop_table('device_links')
    op.drop_table('nonces')
    op.drop_table('devices')
    op.drop_table('users')
