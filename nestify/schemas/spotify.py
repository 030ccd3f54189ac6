from pydantic import BaseModel
from typing import List, Optional, Dict, Any


class SpotifyTokenSchema(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class SpotifyUserProfile(BaseModel):
    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    images: Optional[List[Dict[str, Any]]] = None
    uri: str


class SpotifyTrack(BaseModel):
    id: str
    name: str
    artists: List[Dict[str, Any]]
    album: Dict[str, Any]
    duration_ms: int
    uri: str
    preview_url: Optional[str] = None


class SpotifyPlaylist(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    public: Optional[bool] = None
    uri: str
    external_urls: Dict[str, str]


class TrackMetadata(BaseModel):
    """Display metadata of a track, flattened from the Spotify track object."""

    id: str
    name: str
    artists: List[str]
    album: Optional[str] = None
    duration_ms: Optional[int] = None
    preview_url: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_spotify(cls, track: SpotifyTrack) -> "TrackMetadata":
        images = track.album.get("images") or []
        return cls(
            id=track.id,
            name=track.name,
            artists=[artist.get("name", "") for artist in track.artists],
            album=track.album.get("name"),
            duration_ms=track.duration_ms,
            preview_url=track.preview_url,
            image_url=images[0].get("url") if images else None,
        )
