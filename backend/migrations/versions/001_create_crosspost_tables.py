"""Create videos, posts, social_connections and oauth_states tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    if 'videos' not in existing_tables:
        op.create_table(
            'videos',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(length=255), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('file_path', sa.String(length=512), nullable=False),
            sa.Column('file_name', sa.String(length=255), nullable=False),
            sa.Column('file_size', sa.BigInteger(), nullable=False),
            sa.Column('mime_type', sa.String(length=100), nullable=False),
            sa.Column('status', sa.String(length=50), nullable=False, server_default='ready'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_videos_user_id', 'videos', ['user_id'])
        op.create_index('ix_videos_user_created', 'videos', ['user_id', 'created_at'])

    if 'posts' not in existing_tables:
        op.create_table(
            'posts',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('video_id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(length=255), nullable=False),
            sa.Column('platform', sa.String(length=50), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('tags', sa.JSON(), nullable=True),
            sa.Column('status', sa.String(length=50), nullable=False, server_default='pending'),
            sa.Column('platform_post_id', sa.String(length=255), nullable=True),
            sa.Column('platform_url', sa.String(length=1024), nullable=True),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('posted_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(['video_id'], ['videos.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_posts_video_id', 'posts', ['video_id'])
        op.create_index('ix_posts_user_id', 'posts', ['user_id'])
        op.create_index('ix_posts_user_created', 'posts', ['user_id', 'created_at'])

    if 'social_connections' not in existing_tables:
        op.create_table(
            'social_connections',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('user_id', sa.String(length=255), nullable=False),
            sa.Column('platform', sa.String(length=50), nullable=False),
            sa.Column('platform_user_id', sa.String(length=255), nullable=False),
            sa.Column('platform_username', sa.String(length=255), nullable=True),
            sa.Column('access_token', sa.Text(), nullable=False),
            sa.Column('refresh_token', sa.Text(), nullable=True),
            sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('scope', sa.Text(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'platform', name='uq_social_connections_user_platform')
        )
        op.create_index('ix_social_connections_user_id', 'social_connections', ['user_id'])

    if 'oauth_states' not in existing_tables:
        op.create_table(
            'oauth_states',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('state_token', sa.String(length=128), nullable=False),
            sa.Column('user_id', sa.String(length=255), nullable=False),
            sa.Column('platform', sa.String(length=50), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_oauth_states_state_token', 'oauth_states', ['state_token'], unique=True)
        op.create_index('ix_oauth_states_expires_at', 'oauth_states', ['expires_at'])


def downgrade() -> None:
    conn = op.get_bind()
    existing_tables = inspect(conn).get_table_names()

    # posts first: it references videos
    for table in ('posts', 'oauth_states', 'social_connections', 'videos'):
        if table in existing_tables:
            op.drop_table(table)
