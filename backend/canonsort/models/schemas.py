"""
Data Models and Schemas

Pydantic models used for request/response validation throughout the API.

Classes:
    UserProfile: Spotify user profile information
    PlaylistSimple: Simplified playlist information for list views
    MoveOperationModel: One planned block move
    SortAnalysisResponse: Preview of a canonical sort
    SortJobResponse / SortStatusResponse: Background sort job state
    ErrorResponse: Standard error response format
"""

from pydantic import BaseModel, ConfigDict
from typing import Optional, List


class ImageObject(BaseModel):
    """Spotify image at a specific size."""
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


class UserProfile(BaseModel):
    """
    Spotify User Profile

    Attributes:
        id: Spotify user ID
        display_name: User's display name
        images: Profile images
        product: Subscription level
    """
    id: str
    display_name: Optional[str] = None
    images: List[ImageObject] = []
    product: Optional[str] = None


class PlaylistOwner(BaseModel):
    """Playlist Owner Information"""
    display_name: Optional[str] = None
    id: str


class PlaylistTracks(BaseModel):
    """Playlist Tracks Summary"""
    href: str
    total: int


class PlaylistSimple(BaseModel):
    """
    Simplified Playlist Information

    Enough data to list the playlists a user can sort.

    Attributes:
        id: Spotify playlist ID
        name: Playlist name
        images: Playlist cover images
        tracks: Tracks summary with total count
        owner: Playlist owner information
        uri: Spotify URI
    """
    id: str
    name: str
    description: Optional[str] = None
    images: List[ImageObject] = []
    tracks: PlaylistTracks
    owner: PlaylistOwner
    public: Optional[bool] = None
    collaborative: Optional[bool] = None
    uri: str

    @property
    def tracks_total(self) -> int:
        """Get total track count"""
        return self.tracks.total

    model_config = ConfigDict(populate_by_name=True)


class MoveOperationModel(BaseModel):
    """A block move: ``block_length`` items from ``source_index`` to ``destination_index``."""
    source_index: int
    destination_index: int
    block_length: int


class SortAnalysisResponse(BaseModel):
    """What a canonical sort of the playlist would do."""
    playlist_id: str
    total_tracks: int
    moves_needed: int
    already_sorted: bool
    estimated_time_seconds: int
    moves: List[MoveOperationModel] = []


class SortJobResponse(BaseModel):
    """Response when starting a sort job."""
    job_id: str
    status: str
    message: str


class SortStatusResponse(BaseModel):
    """Status of a sort job."""
    job_id: str
    playlist_id: str
    status: str
    progress: int
    total: int
    message: Optional[str] = None
    error: Optional[str] = None
    started_at: str
    updated_at: str
    completed_at: Optional[str] = None
    tracks_to_move: Optional[int] = None
    estimated_time: Optional[int] = None


class ErrorResponse(BaseModel):
    """
    Standard Error Response

    Attributes:
        error: Error type
        message: Human-readable message
        detail: Extra detail (development only)
    """
    error: str
    message: str
    detail: Optional[str] = None


class AuthUrlResponse(BaseModel):
    """OAuth authorization URL for the Spotify consent page."""
    auth_url: str


class AuthStatusResponse(BaseModel):
    """Whether a usable token is cached, and for whom."""
    authenticated: bool
    user: Optional[UserProfile] = None
