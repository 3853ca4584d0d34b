"""
Canonical playlist ordering for Spotify.

Three steps:
1. Key: build a totally ordered string key from each track's metadata
2. Canonicalize: turn the playlist items into (current, target) key lists
3. Reconcile: move blocks of tracks with the reorder API until the
   playlist matches the target order (keeps date_added)
"""

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from canonsort.errors import (
    EpisodeInPlaylistError,
    InternalConsistencyError,
    LocalTrackInPlaylistError,
    MissingFieldError,
    UnavailableItemError,
)

if TYPE_CHECKING:
    from canonsort.config import Settings

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "\x1f"
NUMBER_WIDTH = 6

# Suffix that turns a partial release date into a day-precision one
_PRECISION_PADDING = {
    "year": "-01-01",
    "month": "-01",
    "day": "",
}


@dataclass(frozen=True)
class MoveOperation:
    """Move ``block_length`` items starting at ``source_index`` so the first lands on ``destination_index``."""

    source_index: int
    destination_index: int
    block_length: int


MoveFunction = Callable[[int, int, int], None]


def _normalize_release_date(release_date: str, precision: str, item_name: str) -> str:
    try:
        return release_date + _PRECISION_PADDING[precision]
    except KeyError:
        raise MissingFieldError("album.release_date_precision", item_name) from None


def build_sort_key(track: Optional[Dict[str, Any]]) -> str:
    """
    Build the canonical sort key for one playlist track.

    The key orders by primary artist, release date (day precision), album,
    disc number, track number and track name. Numbers are zero padded so
    string comparison matches numeric comparison.

    Args:
        track: Track (or episode) object from a playlist item

    Returns:
        The canonical key

    Raises:
        EpisodeInPlaylistError: The entry is a podcast episode
        LocalTrackInPlaylistError: The entry is a local file
        UnavailableItemError: The playlist item carries no track
        MissingFieldError: Release date or its precision is blank
    """
    if not track:
        raise UnavailableItemError("<unavailable>")

    name = track.get("name") or ""
    if track.get("type") == "episode":
        raise EpisodeInPlaylistError(name, track.get("id"))
    if track.get("is_local"):
        raise LocalTrackInPlaylistError(name, track.get("id"))

    album = track.get("album") or {}
    release_date = album.get("release_date")
    if not release_date:
        raise MissingFieldError("album.release_date", name)
    precision = album.get("release_date_precision")
    if not precision:
        raise MissingFieldError("album.release_date_precision", name)

    artists = track.get("artists") or []
    artist = artists[0].get("name", "") if artists else ""

    return KEY_SEPARATOR.join([
        artist,
        _normalize_release_date(release_date, precision, name),
        album.get("name") or "",
        str(track.get("disc_number") or 0).zfill(NUMBER_WIDTH),
        str(track.get("track_number") or 0).zfill(NUMBER_WIDTH),
        name,
    ])


def describe_key(key: str) -> str:
    """Short 'Artist - Track' label for a canonical key."""
    parts = key.split(KEY_SEPARATOR)
    if len(parts) < 2:
        return key
    return f"{parts[0]} - {parts[-1]}"


def canonicalize(items: Iterable[Dict[str, Any]]) -> Tuple[List[str], List[str]]:
    """
    Compute the current and target key order of a playlist.

    ``items`` is consumed once, in order. It is usually a lazy generator
    paging through the Spotify API, so errors from the producer surface here
    too. The first item that cannot be keyed aborts the whole run.

    Args:
        items: Playlist item objects (``{"track": {...}, ...}``)

    Returns:
        (current_keys, target_keys)
    """
    current_keys = [build_sort_key(item.get("track") if item else None) for item in items]
    target_keys = sorted(current_keys)
    logger.debug(f"Canonicalized {len(current_keys)} items")
    return current_keys, target_keys


def apply_move(mirror: List[str], operation: MoveOperation) -> None:
    """
    Apply a block move to the local mirror.

    Removes the block at the source index, then inserts it, in order, at
    the destination index.
    """
    start = operation.source_index
    end = start + operation.block_length
    block = mirror[start:end]
    del mirror[start:end]
    mirror[operation.destination_index:operation.destination_index] = block


class DelayPolicy(Protocol):
    """Pause taken after each reorder call."""

    def seconds(self, total_items: int) -> float:
        """Length of one pause for a playlist of ``total_items``."""
        ...

    def wait(self, total_items: int) -> None:
        """Block for one pause."""
        ...


class NoDelay:
    """Delay policy that never waits."""

    def seconds(self, total_items: int) -> float:
        return 0.0

    def wait(self, total_items: int) -> None:
        return None


class ProportionalDelay:
    """
    Wait a little after every move, proportional to the playlist length.

    Spotify has been seen ignoring reorders issued back to back on large
    playlists; 2 ms per item was enough in practice.
    """

    def __init__(self, ms_per_item: float = 2.0, sleep: Callable[[float], None] = time.sleep):
        if ms_per_item < 0:
            raise ValueError("ms_per_item must not be negative")
        self.ms_per_item = ms_per_item
        self._sleep = sleep

    def seconds(self, total_items: int) -> float:
        return total_items * self.ms_per_item / 1000.0

    def wait(self, total_items: int) -> None:
        delay = self.seconds(total_items)
        if delay > 0:
            self._sleep(delay)


def delay_policy_from_settings(settings: "Settings") -> DelayPolicy:
    """Build the post-move delay policy configured in settings."""
    if settings.move_delay_ms_per_item <= 0:
        return NoDelay()
    return ProportionalDelay(settings.move_delay_ms_per_item)


def _matching_run_length(target_keys: List[str], current_keys: List[str], t: int, c: int) -> int:
    n = len(target_keys)
    run_length = 1
    while (
        t + run_length < n
        and c + run_length < n
        and target_keys[t + run_length] == current_keys[c + run_length]
    ):
        run_length += 1
    return run_length


def reconcile(
    current_keys: List[str],
    target_keys: List[str],
    move: MoveFunction,
    delay_policy: Optional[DelayPolicy] = None,
    progress_callback: Optional[Callable[[int, str], None]] = None,
) -> int:
    """
    Reorder the remote playlist until it matches the target order.

    Walks the target positions left to right. When the key that belongs at
    position ``t`` sits at ``c != t`` in the mirror, the run of keys starting
    there that already follows the target order is moved in a single call.
    The mirror is updated after each successful move, so the next source
    index is computed against the post-move state.

    Args:
        current_keys: Mirror of the remote order, mutated in place
        target_keys: Desired order, same keys as ``current_keys``
        move: ``move(source_index, destination_index, block_length)``;
            raises RemoteError on failure
        delay_policy: DelayPolicy whose ``wait(total_items)`` runs after every
            move. Defaults to ProportionalDelay()
        progress_callback: Optional callback(moves_made, message)

    Returns:
        Number of moves issued

    Raises:
        RemoteError: A move failed. Earlier moves stay applied and the
            mirror reflects them.
        InternalConsistencyError: The two lists are not the same keys, or
            the mirror does not match the target once the walk ends
    """
    if delay_policy is None:
        delay_policy = ProportionalDelay()

    n = len(target_keys)
    if len(current_keys) != n:
        raise InternalConsistencyError(
            f"Current order has {len(current_keys)} items but target has {n}"
        )

    moves_made = 0
    t = 0
    while t < n:
        key = target_keys[t]
        # Positions before t already match; duplicates must come from the rest
        try:
            c = current_keys.index(key, t)
        except ValueError:
            raise InternalConsistencyError(f"Key missing from current order: {describe_key(key)}") from None

        if c == t:
            logger.debug(f"Position {t} already in place")
            t += 1
            continue

        operation = MoveOperation(
            source_index=c,
            destination_index=t,
            block_length=_matching_run_length(target_keys, current_keys, t, c),
        )
        logger.info(
            f"Currently working on {describe_key(key)} "
            f"(range_start={c}, insert_at={t}, length={operation.block_length})"
        )
        move(operation.source_index, operation.destination_index, operation.block_length)
        apply_move(current_keys, operation)
        moves_made += 1

        if progress_callback:
            progress_callback(moves_made, f"Moved {describe_key(key)[:60]}")

        t += 1
        delay_policy.wait(n)

    if current_keys != target_keys:
        raise InternalConsistencyError(
            f"Order still differs from target after {moves_made} moves"
        )

    logger.info(f"Reconcile finished: {moves_made} moves for {n} items")
    return moves_made


def plan_moves(current_keys: List[str], target_keys: List[str]) -> List[MoveOperation]:
    """
    Dry run of reconcile().

    Works on a copy of ``current_keys``; nothing is sent to Spotify.

    Returns:
        The moves reconcile() would issue, in order
    """
    planned: List[MoveOperation] = []

    def record(source_index: int, destination_index: int, block_length: int) -> None:
        planned.append(MoveOperation(source_index, destination_index, block_length))

    reconcile(list(current_keys), target_keys, record, delay_policy=NoDelay())
    return planned


def estimate_sort_time(
    total_items: int,
    moves: int,
    delay_policy: Optional[DelayPolicy] = None,
    call_latency: float = 0.5,
) -> int:
    """
    Estimate sort time in seconds.

    Args:
        total_items: Tracks in the playlist
        moves: Planned reorder calls
        delay_policy: Post-move delay policy
        call_latency: Assumed seconds per Spotify call

    Returns:
        Estimated time in seconds
    """
    if moves == 0:
        return 0
    delay = delay_policy.seconds(total_items) if delay_policy else 0.0
    return int(round(moves * (call_latency + delay))) + 1
