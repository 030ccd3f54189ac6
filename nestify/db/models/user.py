from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from nestify.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Owner of a playlist forest, linked to a Spotify account."""

    spotify_id = Column(String(50), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    image_url = Column(Text, nullable=True)

    # Spotify integration
    spotify_access_token = Column(Text, nullable=True)
    spotify_refresh_token = Column(Text, nullable=True)
    spotify_token_expiry = Column(DateTime(timezone=True), nullable=True)

    # Status
    is_active = Column(Boolean, default=True)

    # Relationships
    playlists = relationship("Playlist", back_populates="user", passive_deletes=True)
