"""Initial schema

Revision ID: 001_initial
Revises: 
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create initial database schema:
    - short_links table: slug -> destination mappings with counters and expiry
    - click_events table: one row per resolved redirect, cascade-deleted with its link
    """
    bind = op.get_bind()
    inspector = inspect(bind)
    existing_tables = inspector.get_table_names()

    if 'short_links' not in existing_tables:
        op.create_table(
            'short_links',
            sa.Column('id', sa.Uuid(), nullable=False),
            sa.Column('original_url', sa.Text(), nullable=False),
            sa.Column('slug', sa.String(length=20), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('click_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('utm_parameters', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )

        op.create_index(
            'ix_short_links_slug',
            'short_links',
            ['slug'],
            unique=True
        )

        op.create_index(
            'ix_short_links_created_at',
            'short_links',
            ['created_at']
        )

    if 'click_events' not in existing_tables:
        # Foreign key is declared inline: SQLite can't add it after creation
        op.create_table(
            'click_events',
            sa.Column('id', sa.Uuid(), nullable=False),
            sa.Column('short_link_id', sa.Uuid(), nullable=False),
            sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
            sa.Column('ip_address', sa.String(length=45), nullable=True),
            sa.Column('user_agent', sa.Text(), nullable=True),
            sa.Column('referer', sa.Text(), nullable=True),
            sa.Column('browser', sa.String(length=100), nullable=True),
            sa.Column('browser_version', sa.String(length=50), nullable=True),
            sa.Column('os', sa.String(length=100), nullable=True),
            sa.Column('os_version', sa.String(length=50), nullable=True),
            sa.Column('device', sa.String(length=50), nullable=True),
            sa.Column('is_mobile', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('is_bot', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.ForeignKeyConstraint(
                ['short_link_id'],
                ['short_links.id'],
                name='fk_click_events_short_link_id',
                ondelete='CASCADE'
            ),
            sa.PrimaryKeyConstraint('id')
        )

        op.create_index(
            'ix_click_events_short_link_id',
            'click_events',
            ['short_link_id']
        )

        op.create_index(
            'ix_click_events_timestamp',
            'click_events',
            ['timestamp']
        )


def downgrade() -> None:
    """
    Drop all tables and indexes.
    """
    op.drop_index('ix_click_events_timestamp', table_name='click_events')
    op.drop_index('ix_click_events_short_link_id', table_name='click_events')
    op.drop_table('click_events')

    op.drop_index('ix_short_links_created_at', table_name='short_links')
    op.drop_index('ix_short_links_slug', table_name='short_links')
    op.drop_table('short_links')
