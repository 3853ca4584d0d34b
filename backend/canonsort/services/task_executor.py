"""
Background task executor for long-running sort operations.

A single worker thread runs sort jobs one after another while the API stays
responsive. A job cannot be cancelled once it is running.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Optional

from canonsort.config import settings
from canonsort.errors import OrderingError
from canonsort.services.job_service import SortJobService
from canonsort.services.spotify_service import SpotifyService
from canonsort.services.sort_service import (
    canonicalize,
    delay_policy_from_settings,
    estimate_sort_time,
    plan_moves,
    reconcile,
)

logger = logging.getLogger(__name__)

# Moves on a playlist must be strictly sequential
_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sort-worker")


def start_sort_job(job_id: str, playlist_id: str) -> Future:
    """
    Start a sort job in the background.

    This is the entry point that submits work to the thread pool.
    """
    future = _executor.submit(run_sort_job, job_id, playlist_id)
    logger.info(f"Sort job {job_id} submitted to background executor")
    return future


def run_sort_job(
    job_id: str,
    playlist_id: str,
    spotify_service: Optional[SpotifyService] = None,
) -> None:
    """
    Execute a sort job.

    Fetches the playlist, computes the canonical order, then reorders the
    playlist, recording progress on the job row. Failures are recorded on
    the job; moves already applied stay applied.
    """
    spotify_service = spotify_service or SpotifyService()
    try:
        logger.info(f"Starting sort job {job_id}: playlist={playlist_id}")
        SortJobService.update_job(job_id, status='in_progress', message='Fetching playlist tracks...')

        current_keys, target_keys = canonicalize(spotify_service.iter_playlist_items(playlist_id))
        planned = len(plan_moves(current_keys, target_keys))
        delay_policy = delay_policy_from_settings(settings)
        estimated = estimate_sort_time(
            len(current_keys), planned, delay_policy, settings.estimated_call_latency_seconds
        )

        SortJobService.update_job(
            job_id,
            total=planned,
            tracks_to_move=planned,
            estimated_time=estimated,
            message=f'Analyzing: {planned} moves needed for {len(current_keys)} tracks (est. {estimated}s)'
        )
        logger.info(f"Job {job_id}: {planned} moves planned for {len(current_keys)} tracks")

        def progress_callback(current: int, message: str):
            SortJobService.update_job(job_id, progress=current, message=message)

        moves_made = reconcile(
            current_keys,
            target_keys,
            partial(spotify_service.move_block, playlist_id),
            delay_policy=delay_policy,
            progress_callback=progress_callback,
        )

        SortJobService.update_job(
            job_id,
            status='completed',
            progress=moves_made,
            total=moves_made,
            message=(
                "Playlist already sorted." if moves_made == 0
                else f'Playlist is now sorted ({moves_made} moves).'
            )
        )
        logger.info(f"Job {job_id} completed with {moves_made} moves")

    except Exception as e:
        # Ordering errors carry their own message; anything else gets a traceback
        logger.error(f"Sort job {job_id} failed: {e}", exc_info=not isinstance(e, OrderingError))
        SortJobService.update_job(
            job_id,
            status='failed',
            error=str(e),
            message=f'Sort failed: {e}'
        )
