"""
Spotify Service Module

High-level interface to the Spotify Web API using Spotipy. Covers the calls
the sorter needs: OAuth with a cached token, listing the playlists the user
owns, paging through a playlist's items and moving blocks of items.

Classes:
    SpotifyService: Main service class for Spotify API operations

Functions:
    get_spotify_service: Dependency injection function for FastAPI routes
"""

import spotipy
from spotipy.exceptions import SpotifyException
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth
from pydantic import ValidationError
from typing import Any, Dict, Iterator, List, Optional
import logging

from canonsort.config import settings
from canonsort.errors import RemoteError
from canonsort.models.schemas import (
    PlaylistSimple,
    PlaylistOwner,
    PlaylistTracks,
    UserProfile,
    ImageObject,
)
from canonsort.utils.token_manager import TokenManager

logger = logging.getLogger(__name__)

# Only what the sort key needs
PLAYLIST_ITEM_FIELDS = (
    "items(track(id,name,type,is_local,disc_number,track_number,"
    "artists(name),album(name,release_date,release_date_precision))),next"
)


def _remote_error(error: SpotifyException) -> RemoteError:
    return RemoteError(str(error), status=getattr(error, "http_status", None))


class SpotifyService:
    """
    Spotify API Service

    Attributes:
        token_manager: Token cache
        oauth: SpotifyOAuth instance for authentication

    Methods:
        get_auth_url: Generate OAuth authorization URL
        handle_callback: Process OAuth callback and cache tokens
        get_client: Get authenticated Spotify client
        get_user_profile: Fetch current user's profile
        get_owned_playlists: Playlists owned by the current user
        iter_playlist_items: Lazily page through a playlist
        move_block: Move a contiguous block of playlist items
    """

    REQUIRED_SCOPES = [
        "playlist-read-private",
        "playlist-modify-private",
        "playlist-modify-public",
    ]

    def __init__(self, token_manager: Optional[TokenManager] = None):
        self.token_manager = token_manager or TokenManager()
        self.oauth = SpotifyOAuth(
            client_id=settings.spotify_client_id,
            client_secret=settings.spotify_client_secret,
            redirect_uri=settings.spotify_redirect_uri,
            scope=" ".join(self.REQUIRED_SCOPES),
            cache_handler=MemoryCacheHandler()  # We handle caching ourselves
        )

    def get_auth_url(self, state: str | None = None) -> str:
        """Generate the Spotify OAuth authorization URL."""
        auth_url = self.oauth.get_authorize_url(state=state)
        logger.info("Generated OAuth authorization URL")
        return auth_url

    def handle_callback(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for tokens and cache them

        Args:
            code: Authorization code from OAuth callback

        Returns:
            Dict containing token information

        Raises:
            SpotifyOauthError: If token exchange fails
        """
        try:
            token_info = self.oauth.get_access_token(code, as_dict=True, check_cache=False)
        except Exception as e:
            logger.error(f"Failed to authenticate into spotify: {e}")
            raise

        self.token_manager.save_token(
            access_token=token_info["access_token"],
            refresh_token=token_info["refresh_token"],
            expires_in=token_info["expires_in"],
            token_type=token_info.get("token_type", "Bearer"),
            scope=token_info.get("scope", "")
        )
        profile = self.get_user_profile()
        self.token_manager.set_user_id(profile.id)
        logger.info(f"Logged in as {profile.display_name or profile.id}")
        return token_info

    def is_authenticated(self) -> bool:
        """True if a cached token exists that is valid or can be refreshed."""
        return self.token_manager.is_authenticated() or bool(self.token_manager.get_refresh_token())

    def _refresh_token_if_needed(self) -> None:
        if self.token_manager.is_authenticated():
            logger.debug("Access token still valid, no refresh needed")
            return

        refresh_token = self.token_manager.get_refresh_token()
        if not refresh_token:
            raise ValueError("No refresh token available")

        logger.info("Refreshing expired access token")
        token_info = self.oauth.refresh_access_token(refresh_token)
        self.token_manager.update_token(
            access_token=token_info["access_token"],
            expires_in=token_info["expires_in"],
            refresh_token=token_info.get("refresh_token")
        )

    def get_client(self) -> spotipy.Spotify:
        """
        Get authenticated Spotify client, refreshing the token if expired

        Raises:
            ValueError: If no valid token available
        """
        self._refresh_token_if_needed()

        access_token = self.token_manager.get_access_token()
        if not access_token:
            raise ValueError("No access token available. Please authenticate first.")

        return spotipy.Spotify(auth=access_token)

    def get_user_profile(self) -> UserProfile:
        """
        Fetch current user's Spotify profile

        Raises:
            RemoteError: If the API call fails
        """
        client = self.get_client()
        try:
            user_data = client.current_user()
        except SpotifyException as e:
            raise _remote_error(e) from e

        return UserProfile(
            id=user_data["id"],
            display_name=user_data.get("display_name"),
            images=[ImageObject(**img) for img in user_data.get("images") or []],
            product=user_data.get("product")
        )

    def get_owned_playlists(self, limit: int = 50) -> List[PlaylistSimple]:
        """
        Fetch the playlists the current user owns

        Only owned playlists can be reordered, so followed playlists are
        left out.

        Raises:
            RemoteError: If an API call fails
        """
        client = self.get_client()
        playlists = []
        offset = 0

        try:
            user_id = client.current_user()["id"]
            while True:
                results = client.current_user_playlists(limit=limit, offset=offset)

                for item in results["items"]:
                    if not item or item["owner"]["id"] != user_id:
                        continue
                    try:
                        playlists.append(PlaylistSimple(
                            id=item["id"],
                            name=item["name"],
                            description=item.get("description"),
                            images=[ImageObject(**img) for img in item.get("images") or []],
                            tracks=PlaylistTracks(
                                href=item["tracks"]["href"],
                                total=item["tracks"]["total"]
                            ),
                            owner=PlaylistOwner(
                                id=item["owner"]["id"],
                                display_name=item["owner"].get("display_name")
                            ),
                            public=item.get("public"),
                            collaborative=item.get("collaborative", False),
                            uri=item["uri"]
                        ))
                    except (KeyError, ValidationError) as e:
                        logger.warning(f"Failed to parse playlist {item.get('id')}: {e}")

                if results["next"] is None:
                    break
                offset += limit
        except SpotifyException as e:
            raise _remote_error(e) from e

        logger.info(f"Retrieved {len(playlists)} owned playlists")
        return playlists

    def iter_playlist_items(self, playlist_id: str) -> Iterator[Dict[str, Any]]:
        """
        Yield a playlist's items in playlist order

        Pages are fetched lazily, one request per page, so a slow or failing
        page surfaces in the consumer.

        Raises:
            RemoteError: If a page request fails
        """
        client = self.get_client()
        try:
            page = client.playlist_items(
                playlist_id,
                fields=PLAYLIST_ITEM_FIELDS,
                limit=settings.playlist_page_size,
                market="from_token",
                additional_types=("track", "episode")
            )
            while page:
                for item in page["items"]:
                    yield item
                page = client.next(page) if page.get("next") else None
        except SpotifyException as e:
            raise _remote_error(e) from e

    def move_block(
        self,
        playlist_id: str,
        source_index: int,
        destination_index: int,
        block_length: int
    ) -> None:
        """
        Move ``block_length`` items starting at ``source_index`` so that the
        first one ends up at ``destination_index``

        Spotify takes the insertion point as an index in the playlist before
        the move, so moving a block later means inserting before
        ``destination_index + block_length``.

        Raises:
            ValueError: Negative index or non-positive length
            RemoteError: If the API call fails
        """
        if source_index < 0 or destination_index < 0:
            raise ValueError("Indices must not be negative")
        if block_length < 1:
            raise ValueError("block_length must be positive")

        if destination_index <= source_index:
            insert_before = destination_index
        else:
            insert_before = destination_index + block_length

        client = self.get_client()
        try:
            client.playlist_reorder_items(
                playlist_id,
                range_start=source_index,
                insert_before=insert_before,
                range_length=block_length
            )
        except SpotifyException as e:
            logger.error(f"Reorder failed for playlist {playlist_id}: {e}")
            raise _remote_error(e) from e

    def logout(self) -> None:
        """Clear the cached token."""
        self.token_manager.clear_token()
        logger.info("User logged out, tokens cleared")


def get_spotify_service() -> SpotifyService:
    """
    Dependency injection function for FastAPI routes

    Example:
        @router.get("/playlists")
        async def get_playlists(
            spotify: SpotifyService = Depends(get_spotify_service)
        ):
            return spotify.get_owned_playlists()
    """
    return SpotifyService()
