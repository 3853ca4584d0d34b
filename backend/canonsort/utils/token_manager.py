"""
Token Manager Utility

File-based OAuth token cache. A cached token lets the service log back in
without sending the user through the Spotify consent page again.

Classes:
    TokenManager: Manages OAuth token lifecycle
"""

import json
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from pathlib import Path
import logging

from canonsort.config import settings

logger = logging.getLogger(__name__)


class TokenManager:
    """
    OAuth Token Manager

    Attributes:
        storage_path: Path to token cache file

    Methods:
        save_token: Store a new token with metadata
        get_token: Retrieve the cached token
        update_token: Update stored token (called after refresh)
        clear_token: Remove stored token (logout)
        is_authenticated: Check if a non-expired token exists
    """

    def __init__(self, storage_path: Optional[str] = None):
        """
        Initialize Token Manager

        Args:
            storage_path: Path to token cache file. If None, uses config setting.
        """
        self.storage_path = Path(storage_path or settings.token_cache_path)
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)

    def save_token(
        self,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        token_type: str = "Bearer",
        scope: str = "",
        user_id: Optional[str] = None
    ) -> None:
        """
        Save OAuth token to the cache file

        Args:
            access_token: Short-lived access token
            refresh_token: Long-lived refresh token
            expires_in: Token lifetime in seconds
            token_type: Token type (usually "Bearer")
            scope: Granted OAuth scopes
            user_id: Spotify user the token belongs to

        Raises:
            IOError: If unable to write to storage file
        """
        token_data = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": token_type,
            "scope": scope,
            "user_id": user_id,
            "expires_at": (datetime.now() + timedelta(seconds=expires_in)).isoformat(),
            "updated_at": datetime.now().isoformat()
        }

        try:
            with open(self.storage_path, "w") as f:
                json.dump(token_data, f, indent=2)
            logger.info("Successfully cached token.")
        except IOError as e:
            logger.error(f"Couldn't cache the token: {e}")
            raise

    def get_token(self) -> Optional[Dict[str, Any]]:
        """
        Retrieve the cached token

        Returns:
            Dict containing token data if the cache exists, None otherwise
        """
        if not self.storage_path.exists():
            logger.debug("Token cache does not exist")
            return None

        try:
            with open(self.storage_path, "r") as f:
                return json.load(f)
        except (IOError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read token cache: {e}")
            return None

    def update_token(
        self,
        access_token: str,
        expires_in: int,
        refresh_token: Optional[str] = None
    ) -> None:
        """
        Update existing token after a refresh

        Keeps the existing refresh token and user id when the refresh
        response does not carry new ones.
        """
        existing_token = self.get_token()
        if not existing_token:
            logger.warning("No existing token to update")
            return

        self.save_token(
            access_token=access_token,
            refresh_token=refresh_token or existing_token.get("refresh_token"),
            expires_in=expires_in,
            token_type=existing_token.get("token_type", "Bearer"),
            scope=existing_token.get("scope", ""),
            user_id=existing_token.get("user_id")
        )

    def set_user_id(self, user_id: str) -> None:
        """Record which Spotify user the cached token belongs to."""
        token = self.get_token()
        if not token:
            return
        token["user_id"] = user_id
        with open(self.storage_path, "w") as f:
            json.dump(token, f, indent=2)

    def clear_token(self) -> None:
        """Delete the token cache (logout)."""
        if self.storage_path.exists():
            try:
                self.storage_path.unlink()
                logger.info("Token cleared successfully")
            except OSError as e:
                logger.error(f"Failed to clear token: {e}")

    def is_authenticated(self) -> bool:
        """
        Check if a non-expired access token is cached

        Note:
            Does not validate the token with Spotify. The token could be revoked.
        """
        token = self.get_token()
        if not token:
            return False

        try:
            expires_at = datetime.fromisoformat(token["expires_at"])
            # 60 second buffer for clock skew
            return datetime.now() < (expires_at - timedelta(seconds=60))
        except (KeyError, ValueError) as e:
            logger.error(f"Invalid token format: {e}")
            return False

    def get_access_token(self) -> Optional[str]:
        """Current access token if valid, None otherwise."""
        if not self.is_authenticated():
            return None

        token = self.get_token()
        return token.get("access_token") if token else None

    def get_refresh_token(self) -> Optional[str]:
        """Cached refresh token, if any."""
        token = self.get_token()
        return token.get("refresh_token") if token else None

    def get_user_id(self) -> Optional[str]:
        """Spotify user id stored alongside the token, if any."""
        token = self.get_token()
        return token.get("user_id") if token else None
