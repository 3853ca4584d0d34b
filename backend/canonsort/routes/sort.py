"""
API routes for canonical playlist sorting.
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
import logging

from canonsort.config import settings
from canonsort.errors import InternalConsistencyError, RemoteError, SortValidationError
from canonsort.models.schemas import (
    MoveOperationModel,
    SortAnalysisResponse,
    SortJobResponse,
    SortStatusResponse,
)
from canonsort.routes.playlists import require_auth
from canonsort.services import task_executor
from canonsort.services.job_service import SortJobService
from canonsort.services.spotify_service import SpotifyService
from canonsort.services.sort_service import (
    canonicalize,
    delay_policy_from_settings,
    estimate_sort_time,
    plan_moves,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/playlists/{playlist_id}/sort", tags=["sorting"])


def _current_user_id(spotify: SpotifyService) -> str:
    return spotify.token_manager.get_user_id() or "me"


@router.post("/analyze", response_model=SortAnalysisResponse)
async def analyze_sort(playlist_id: str, spotify: SpotifyService = Depends(require_auth)):
    """
    Preview a canonical sort without changing the playlist.

    Returns the number of tracks, the block moves that would be issued and
    an estimated duration.
    """
    try:
        current_keys, target_keys = canonicalize(spotify.iter_playlist_items(playlist_id))
        moves = plan_moves(current_keys, target_keys)
    except ValueError as e:
        logger.error(f"Authentication error: {e}")
        raise HTTPException(status_code=401, detail=str(e))
    except SortValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RemoteError as e:
        logger.error(f"Error analyzing sort for playlist {playlist_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except InternalConsistencyError as e:
        logger.error(f"Inconsistent order for playlist {playlist_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    estimated_time = estimate_sort_time(
        len(current_keys),
        len(moves),
        delay_policy_from_settings(settings),
        settings.estimated_call_latency_seconds,
    )
    return SortAnalysisResponse(
        playlist_id=playlist_id,
        total_tracks=len(current_keys),
        moves_needed=len(moves),
        already_sorted=not moves,
        estimated_time_seconds=estimated_time,
        moves=[
            MoveOperationModel(
                source_index=m.source_index,
                destination_index=m.destination_index,
                block_length=m.block_length,
            )
            for m in moves
        ],
    )


@router.post("", response_model=SortJobResponse)
async def start_sort(playlist_id: str, spotify: SpotifyService = Depends(require_auth)):
    """
    Start a canonical sort in the background.

    Only one sort runs per playlist; asking again while one is active
    returns the running job. Returns a job_id to poll for progress.
    """
    active_job = SortJobService.get_active_job_for_playlist(playlist_id)
    if active_job:
        return SortJobResponse(
            job_id=active_job['job_id'],
            status=active_job['status'],
            message=f"Sort already in progress: {active_job['message']}"
        )

    job_id = SortJobService.create_job(
        playlist_id=playlist_id,
        user_id=_current_user_id(spotify),
        total_tracks=0,  # Known once the background job has read the playlist
    )
    task_executor.start_sort_job(job_id=job_id, playlist_id=playlist_id)

    return SortJobResponse(job_id=job_id, status='pending', message='Sort job started')


@router.get("/status/{job_id}", response_model=SortStatusResponse)
async def get_sort_status(
    playlist_id: str,
    job_id: str,
    spotify: SpotifyService = Depends(require_auth)
):
    """Get the status of a sort job."""
    job = SortJobService.get_job(job_id)

    if not job or job['playlist_id'] != playlist_id:
        raise HTTPException(status_code=404, detail="Job not found")

    if job['user_id'] != _current_user_id(spotify):
        raise HTTPException(status_code=403, detail="Not authorized to view this job")

    return SortStatusResponse(**job)


@router.get("/active", response_model=Optional[SortStatusResponse])
async def get_active_sort(playlist_id: str, spotify: SpotifyService = Depends(require_auth)):
    """Active sort job for this playlist, if any."""
    job = SortJobService.get_active_job_for_playlist(playlist_id)

    if job and job['user_id'] == _current_user_id(spotify):
        return SortStatusResponse(**job)

    return None
