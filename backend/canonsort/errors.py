"""
Error types raised while canonicalizing and reordering a playlist.

Hierarchy:
    OrderingError
        SortValidationError
            IneligibleItemError
                EpisodeInPlaylistError
                LocalTrackInPlaylistError
                UnavailableItemError
            MissingFieldError
        RemoteError
        InternalConsistencyError
"""

from typing import Optional


class OrderingError(Exception):
    """Base class for every failure of a sort run."""


class SortValidationError(OrderingError):
    """The playlist contents cannot be given a canonical order."""


class IneligibleItemError(SortValidationError):
    """An item in the playlist cannot take part in the canonical order."""

    def __init__(self, item_name: str, item_id: Optional[str] = None):
        self.item_name = item_name
        self.item_id = item_id
        super().__init__(self._describe())

    def _describe(self) -> str:
        return f"The playlist cannot be sorted, as it has an unsupported item: {self.item_name}"


class EpisodeInPlaylistError(IneligibleItemError):
    def _describe(self) -> str:
        return f"The playlist cannot be sorted, as it has a podcast: {self.item_name}"


class LocalTrackInPlaylistError(IneligibleItemError):
    def _describe(self) -> str:
        return f"The playlist cannot be sorted, as it has a music from your storage: {self.item_name}"


class UnavailableItemError(IneligibleItemError):
    def _describe(self) -> str:
        return "The playlist cannot be sorted, as it has an entry with no track attached"


class MissingFieldError(SortValidationError):
    """A required metadata field is blank on an otherwise sortable track."""

    def __init__(self, field_name: str, item_name: str):
        self.field_name = field_name
        self.item_name = item_name
        super().__init__(
            f"The sorting process failed because the music {item_name} param {field_name} is blank"
        )


class RemoteError(OrderingError):
    """
    A Spotify call failed.

    The message is the original error's message; the original exception is
    chained as ``__cause__`` by the raiser.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class InternalConsistencyError(OrderingError):
    """The local mirror and the target order disagree about their contents."""
