"""Create playlist tree tables

Revision ID: 4c1e9a7d2b30
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4c1e9a7d2b30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create user, playlist and playlisttrack tables."""
    op.create_table(
        "user",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("spotify_id", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("spotify_access_token", sa.Text(), nullable=True),
        sa.Column("spotify_refresh_token", sa.Text(), nullable=True),
        sa.Column("spotify_token_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_spotify_id", "user", ["spotify_id"], unique=True)

    op.create_table(
        "playlist",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("icon", sa.String(32), nullable=False),
        sa.Column("color", sa.String(255), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("spotify_playlist_id", sa.String(50), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"]),
        sa.ForeignKeyConstraint(["parent_id"], ["playlist.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_playlist_user_id", "playlist", ["user_id"])
    op.create_index("ix_playlist_parent_id", "playlist", ["parent_id"])

    op.create_table(
        "playlisttrack",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("playlist_id", sa.Uuid(), nullable=False),
        sa.Column("spotify_track_id", sa.String(50), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("track_name", sa.String(255), nullable=True),
        sa.Column("track_artists", sa.JSON(), nullable=True),
        sa.Column("album_name", sa.String(255), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("preview_url", sa.Text(), nullable=True),
        sa.Column("track_image_url", sa.Text(), nullable=True),
        sa.Column("metadata_cached_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["playlist_id"], ["playlist.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_playlisttrack_playlist_id", "playlisttrack", ["playlist_id"])


def downgrade() -> None:
    """Drop playlist tree tables."""
    op.drop_index("ix_playlisttrack_playlist_id", table_name="playlisttrack")
    op.drop_table("playlisttrack")
    op.drop_index("ix_playlist_parent_id", table_name="playlist")
    op.drop_index("ix_playlist_user_id", table_name="playlist")
    op.drop_table("playlist")
    op.drop_index("ix_user_spotify_id", table_name="user")
    op.drop_table("user")
