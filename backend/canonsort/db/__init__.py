"""Database package for sort job management."""

from .database import init_db, get_db_connection

__all__ = ['init_db', 'get_db_connection']
