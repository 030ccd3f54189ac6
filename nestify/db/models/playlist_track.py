from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from nestify.db.base import Base
from nestify.utils.datetime_helper import utc_now


class PlaylistTrack(Base):
    """One occurrence of a Spotify track directly inside a playlist."""

    playlist_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("playlist.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    spotify_track_id = Column(String(50), nullable=False)
    order = Column(Integer, nullable=False, default=0)
    added_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    # Cached catalog metadata, null until fetched
    track_name = Column(String(255), nullable=True)
    track_artists = Column(JSON, nullable=True)
    album_name = Column(String(255), nullable=True)
    duration_ms = Column(Integer, nullable=True)
    preview_url = Column(Text, nullable=True)
    track_image_url = Column(Text, nullable=True)
    metadata_cached_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    playlist = relationship("Playlist", back_populates="tracks")
