"""App routes module - exports all route routers"""

from canonsort.routes import auth, playlists, sort

__all__ = ["auth", "playlists", "sort"]
