"""
Pydantic models for the playlist tree API.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from nestify.schemas.spotify import TrackMetadata


class PlaylistCreate(BaseModel):
    """Schema for creating a playlist node."""

    name: str = Field(min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None
    image_url: Optional[str] = None
    spotify_playlist_id: Optional[str] = None
    parent_id: Optional[uuid.UUID] = None


class PlaylistUpdate(BaseModel):
    """Schema for updating a playlist node.

    ``parent_id`` and ``order`` are structural; sending either moves the node.
    Explicitly sending ``parent_id: null`` moves it to the root level.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = None
    color: Optional[str] = None
    image_url: Optional[str] = None
    spotify_playlist_id: Optional[str] = None
    parent_id: Optional[uuid.UUID] = None
    order: Optional[int] = Field(default=None, ge=0)


class ReparentRequest(BaseModel):
    """Schema for moving a playlist under another parent."""

    parent_id: Optional[uuid.UUID] = None
    order: Optional[int] = Field(default=None, ge=0)


class PlaylistResponse(BaseModel):
    """Schema for a single playlist node."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    parent_id: Optional[uuid.UUID] = None
    name: str
    icon: str
    color: str
    image_url: Optional[str] = None
    spotify_playlist_id: Optional[str] = None
    order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PlaylistTreeResponse(PlaylistResponse):
    """Schema for a playlist node with its nested children."""

    children: List["PlaylistTreeResponse"] = Field(default_factory=list)
    track_count: int = 0


class ItemRefSchema(BaseModel):
    """One direct item of a container, as sent by reorder requests."""

    type: Literal["track", "playlist"]
    id: uuid.UUID


class ReorderRequest(BaseModel):
    """Schema for reordering every item of a container."""

    items: List[ItemRefSchema]


class AddTrackRequest(BaseModel):
    """Schema for adding a Spotify track to a playlist."""

    spotify_track_id: str = Field(min_length=1, max_length=50)


class MoveTrackRequest(BaseModel):
    """Schema for moving a track to another playlist."""

    target_playlist_id: uuid.UUID
    order: int = Field(default=0, ge=0)


class PlaylistTrackResponse(BaseModel):
    """Schema for a track membership."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    playlist_id: uuid.UUID
    spotify_track_id: str
    order: int
    added_at: datetime


class TrackWithSource(PlaylistTrackResponse):
    """Schema for a track in a linearized playlist, with the playlist it came from."""

    source_playlist_name: str
    track: Optional[TrackMetadata] = None


class DeletedResponse(BaseModel):
    deleted: bool = True


class ReorderedResponse(BaseModel):
    reordered: bool = True


class MovedResponse(BaseModel):
    moved: bool = True


class RemovedResponse(BaseModel):
    removed: bool = True


class ExportResponse(BaseModel):
    """Schema for the result of exporting a playlist subtree to Spotify."""

    spotify_playlist_id: str
    url: str
    track_count: int
