"""
Job management service for playlist sorting operations.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
import logging

from canonsort.db.database import get_db_connection

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ('pending', 'in_progress')
FINAL_STATUSES = ('completed', 'failed')


class SortJobService:
    """Service for managing playlist sort jobs."""

    @staticmethod
    def create_job(
        playlist_id: str,
        user_id: str,
        total_tracks: int,
        tracks_to_move: int = 0,
        estimated_time: int = 0
    ) -> str:
        """
        Create a new sort job.

        Returns:
            job_id: Unique identifier for the job
        """
        job_id = f"sort_{uuid.uuid4().hex[:12]}"
        now = datetime.now(timezone.utc).isoformat()

        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO sort_jobs (
                    job_id, playlist_id, user_id, status, progress, total,
                    started_at, updated_at, tracks_to_move, estimated_time, message
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                job_id, playlist_id, user_id, 'pending', 0, total_tracks,
                now, now, tracks_to_move, estimated_time, 'Sort job created'
            ))
            conn.commit()

        logger.info(f"Created sort job {job_id} for playlist {playlist_id}")
        return job_id

    @staticmethod
    def get_job(job_id: str) -> Optional[Dict[str, Any]]:
        """Get job details by job_id."""
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM sort_jobs WHERE job_id = ?", (job_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_active_job_for_playlist(playlist_id: str) -> Optional[Dict[str, Any]]:
        """Most recent pending or running job for a playlist, if any."""
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM sort_jobs
                WHERE playlist_id = ?
                AND status IN (?, ?)
                ORDER BY started_at DESC
                LIMIT 1
            """, (playlist_id, *ACTIVE_STATUSES))
            row = cursor.fetchone()
            return dict(row) if row else None

    @staticmethod
    def update_job(
        job_id: str,
        status: Optional[str] = None,
        progress: Optional[int] = None,
        message: Optional[str] = None,
        error: Optional[str] = None,
        total: Optional[int] = None,
        tracks_to_move: Optional[int] = None,
        estimated_time: Optional[int] = None
    ) -> bool:
        """Update job status and progress."""
        now = datetime.now(timezone.utc).isoformat()

        updates = ["updated_at = ?"]
        params: List[Any] = [now]

        if status is not None:
            updates.append("status = ?")
            params.append(status)

            if status in FINAL_STATUSES:
                updates.append("completed_at = ?")
                params.append(now)

        for column, value in (
            ("progress", progress),
            ("message", message),
            ("error", error),
            ("total", total),
            ("tracks_to_move", tracks_to_move),
            ("estimated_time", estimated_time),
        ):
            if value is not None:
                updates.append(f"{column} = ?")
                params.append(value)

        params.append(job_id)

        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                UPDATE sort_jobs
                SET {', '.join(updates)}
                WHERE job_id = ?
            """, params)
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def recover_interrupted_jobs() -> int:
        """
        Mark jobs left running by a previous process as failed.

        Sorts are not resumed; the playlist keeps whatever moves were applied
        and a new sort picks up from its current order.
        """
        now = datetime.now(timezone.utc).isoformat()
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE sort_jobs
                SET status = 'failed',
                    error = 'Service restarted while job was running',
                    message = 'Job interrupted by service restart',
                    updated_at = ?,
                    completed_at = ?
                WHERE status IN (?, ?)
            """, (now, now, *ACTIVE_STATUSES))
            conn.commit()

            recovered = cursor.rowcount
            if recovered > 0:
                logger.warning(f"Marked {recovered} interrupted jobs as failed")
            return recovered
