from sqlalchemy import Column, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from nestify.db.base import Base, TimestampMixin

DEFAULT_ICON = "🎵"
DEFAULT_COLOR = "linear-gradient(135deg,#7c6af7,#f76a8a)"


class Playlist(Base, TimestampMixin):
    """A node in a user's playlist tree.

    Child playlists and direct tracks share one order space per parent.
    """

    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("user.id"), index=True, nullable=False
    )
    parent_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("playlist.id", ondelete="CASCADE"),
        index=True,
        nullable=True,
    )

    # Playlist details
    name = Column(String(100), nullable=False)
    icon = Column(String(32), nullable=False, default=DEFAULT_ICON)
    color = Column(String(255), nullable=False, default=DEFAULT_COLOR)
    image_url = Column(Text, nullable=True)
    spotify_playlist_id = Column(String(50), nullable=True)
    order = Column(Integer, nullable=False, default=0)

    # Relationships
    user = relationship("User", back_populates="playlists")
    tracks = relationship(
        "PlaylistTrack", back_populates="playlist", passive_deletes=True
    )
