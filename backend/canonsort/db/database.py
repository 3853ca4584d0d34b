"""
Database management for sort jobs using SQLite.
"""

import os
import sqlite3
from pathlib import Path
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

# Database file location (env override for tests)
DB_PATH = Path(os.getenv("CANONSORT_DB_PATH", "./data/canonsort.db"))


def init_db():
    """Initialize the database with required tables."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(DB_PATH))
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS sort_jobs (
            job_id TEXT PRIMARY KEY,
            playlist_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            status TEXT NOT NULL,
            progress INTEGER DEFAULT 0,
            total INTEGER DEFAULT 0,
            started_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            completed_at TEXT,
            message TEXT,
            error TEXT,
            tracks_to_move INTEGER,
            estimated_time INTEGER
        )
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_playlist_id ON sort_jobs(playlist_id)
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_status ON sort_jobs(status)
    """)

    # Temporary OAuth state storage
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS oauth_states (
            state TEXT PRIMARY KEY,
            created_at INTEGER NOT NULL
        )
    """)
    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_oauth_states_created_at ON oauth_states(created_at)
    """)

    conn.commit()
    conn.close()

    logger.info(f"Database initialized at {DB_PATH}")


@contextmanager
def get_db_connection():
    """Context manager for database connections."""
    conn = sqlite3.connect(str(DB_PATH))
    conn.row_factory = sqlite3.Row  # Enable column access by name
    try:
        yield conn
    finally:
        conn.close()


# Initialize database on module import
init_db()
