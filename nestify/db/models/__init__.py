from nestify.db.models.user import User
from nestify.db.models.playlist import Playlist
from nestify.db.models.playlist_track import PlaylistTrack

__all__ = [
    "User",
    "Playlist",
    "PlaylistTrack",
]
