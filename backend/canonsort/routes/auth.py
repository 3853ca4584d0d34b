"""
Authentication Routes

OAuth flow against Spotify with a single cached token:
- OAuth flow initialization
- OAuth callback handling
- Authentication status checking
- Logout

All routes are prefixed with /auth
"""

from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.responses import RedirectResponse
import logging
import secrets
import time

from canonsort.config import settings
from canonsort.errors import RemoteError
from canonsort.services.spotify_service import SpotifyService, get_spotify_service
from canonsort.models.schemas import AuthStatusResponse, UserProfile
from canonsort.db.database import get_db_connection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

STATE_TTL_SECONDS = 10 * 60  # 10 minutes


def _store_state(state: str):
    """Store OAuth state in database with timestamp."""
    with get_db_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "INSERT INTO oauth_states (state, created_at) VALUES (?, ?)",
            (state, int(time.time()))
        )
        conn.commit()


def _validate_state(state: str) -> bool:
    """Consume a state param; True if it existed and hasn't expired."""
    if not state:
        return False

    with get_db_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT created_at FROM oauth_states WHERE state = ?",
            (state,)
        )
        row = cursor.fetchone()

        if not row:
            return False

        cursor.execute("DELETE FROM oauth_states WHERE state = ?", (state,))
        conn.commit()
        return time.time() - row["created_at"] <= STATE_TTL_SECONDS


def _cleanup_expired_states():
    """Remove expired OAuth states from database."""
    cutoff = int(time.time()) - STATE_TTL_SECONDS
    with get_db_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM oauth_states WHERE created_at < ?", (cutoff,))
        conn.commit()


@router.get("/login")
async def login(spotify: SpotifyService = Depends(get_spotify_service)):
    """
    Initialize OAuth Flow

    Redirects to the Spotify authorization page. If a usable token is
    already cached, redirects straight back to the frontend.
    """
    if spotify.is_authenticated():
        logger.info("Already logged in with cached token")
        return RedirectResponse(url=f"{settings.frontend_url}/callback?status=success", status_code=303)

    _cleanup_expired_states()
    state = secrets.token_urlsafe(32)
    _store_state(state)

    auth_url = spotify.get_auth_url(state=state)
    logger.info(f"Redirecting to Spotify OAuth (state={state[:8]}...)")
    return RedirectResponse(url=auth_url, status_code=303)


@router.get("/callback")
async def callback(
    code: str = Query(..., description="Authorization code from Spotify"),
    state: str = Query(None, description="OAuth state"),
    spotify: SpotifyService = Depends(get_spotify_service)
):
    """
    Handle OAuth Callback

    Exchanges the authorization code for tokens, caches them and redirects
    to the frontend with ?status=success, or ?status=error&message=...
    """
    if not _validate_state(state):
        logger.warning("OAuth state validation failed")
        return RedirectResponse(
            url=f"{settings.frontend_url}/callback?status=error&message=invalid_state"
        )

    try:
        spotify.handle_callback(code)
    except Exception as e:
        logger.error(f"OAuth callback failed: {e}")
        return RedirectResponse(
            url=f"{settings.frontend_url}/callback?status=error&message=auth_failed"
        )

    return RedirectResponse(url=f"{settings.frontend_url}/callback?status=success")


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(spotify: SpotifyService = Depends(get_spotify_service)):
    """
    Check Authentication Status

    Example Response (authenticated):
        {"authenticated": true, "user": {"id": "user123", ...}}
    """
    if not spotify.is_authenticated():
        return AuthStatusResponse(authenticated=False)

    try:
        return AuthStatusResponse(authenticated=True, user=spotify.get_user_profile())
    except (ValueError, RemoteError) as e:
        logger.warning(f"Unable to login with cached token: {e}")
        return AuthStatusResponse(authenticated=False)


@router.get("/user", response_model=UserProfile)
async def get_current_user(spotify: SpotifyService = Depends(get_spotify_service)):
    """Current user's profile."""
    if not spotify.is_authenticated():
        raise HTTPException(status_code=401, detail="Not authenticated. Please login first.")

    try:
        return spotify.get_user_profile()
    except RemoteError as e:
        logger.error(f"Failed to fetch user profile: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch user profile: {e}")


@router.post("/logout")
async def logout(spotify: SpotifyService = Depends(get_spotify_service)):
    """Clear the cached token."""
    spotify.logout()
    return {"message": "Successfully logged out"}
