"""
Playlist Routes

Lists the playlists the authenticated user owns, which are the ones the
sorter can reorder.

All routes are prefixed with /playlists and require authentication.
"""

from fastapi import APIRouter, HTTPException, Depends
from typing import List
import logging

from canonsort.errors import RemoteError
from canonsort.services.spotify_service import SpotifyService, get_spotify_service
from canonsort.models.schemas import PlaylistSimple

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/playlists", tags=["playlists"])


def require_auth(spotify: SpotifyService = Depends(get_spotify_service)) -> SpotifyService:
    """
    Authentication Dependency

    Raises:
        HTTPException: 401 if no usable token is cached
    """
    if not spotify.is_authenticated():
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Please login with Spotify."
        )
    return spotify


@router.get("/", response_model=List[PlaylistSimple])
async def get_playlists(spotify: SpotifyService = Depends(require_auth)):
    """
    Get the playlists owned by the current user

    Returns:
        List[PlaylistSimple]: Owned playlists, in the order Spotify lists them

    Raises:
        HTTPException: 401 if not authenticated, 502 on Spotify errors
    """
    try:
        playlists = spotify.get_owned_playlists()
    except ValueError as e:
        logger.error(f"Authentication error: {e}")
        raise HTTPException(status_code=401, detail=str(e))
    except RemoteError as e:
        logger.error(f"Failed to fetch playlists: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch playlists: {e}")

    if not playlists:
        logger.info("User owns no playlists to order")
    return playlists
