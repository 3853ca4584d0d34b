import itertools
import random
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from canonsort.errors import InternalConsistencyError, RemoteError
from canonsort.services.sort_service import (
    MoveOperation,
    NoDelay,
    ProportionalDelay,
    apply_move,
    delay_policy_from_settings,
    estimate_sort_time,
    plan_moves,
    reconcile,
)


class FakePlaylist:
    """In-memory stand-in for the remote playlist."""

    def __init__(self, keys, fail_on_call=None):
        self.keys = list(keys)
        self.calls = []
        self.fail_on_call = fail_on_call

    def move(self, source_index, destination_index, block_length):
        self.calls.append((source_index, destination_index, block_length))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RemoteError("http status: 503, code: -1 - Service unavailable")
        apply_move(self.keys, MoveOperation(source_index, destination_index, block_length))


class RecordingDelay:
    def __init__(self):
        self.waits = []

    def wait(self, total_items):
        self.waits.append(total_items)


def run(current):
    mirror = list(current)
    target = sorted(mirror)
    remote = FakePlaylist(mirror)
    moves = reconcile(mirror, target, remote.move, delay_policy=NoDelay())
    return mirror, target, remote, moves


def test_already_sorted_issues_no_moves():
    mirror, target, remote, moves = run(["A", "B", "C", "D"])
    assert moves == 0
    assert remote.calls == []
    assert mirror == target


def test_empty_playlist():
    mirror, target, remote, moves = run([])
    assert moves == 0
    assert remote.calls == []


def test_single_swap_scenario():
    mirror, target, remote, moves = run(["A", "C", "B", "D"])
    assert remote.calls == [(2, 1, 1)]
    assert moves == 1
    assert mirror == ["A", "B", "C", "D"]
    assert remote.keys == ["A", "B", "C", "D"]


def test_offset_run_moves_in_one_call():
    mirror, target, remote, moves = run(["D", "E", "A", "B", "C"])
    assert remote.calls == [(2, 0, 3)]
    assert mirror == target


def test_run_inside_playlist_moves_in_one_call():
    mirror, target, remote, moves = run(["A", "D", "B", "C", "E"])
    assert remote.calls == [(2, 1, 2)]
    assert mirror == target


def test_reversed_playlist_needs_one_move_per_position():
    mirror, target, remote, moves = run(["E", "D", "C", "B", "A"])
    assert moves == 4
    assert remote.keys == target


def test_every_permutation_converges():
    for permutation in itertools.permutations("ABCDEF"):
        mirror, target, remote, moves = run(permutation)
        assert mirror == target, permutation
        assert remote.keys == target, permutation
        assert moves <= len(target)
        assert (moves == 0) == (list(permutation) == target)


def test_large_shuffled_playlist_converges():
    rng = random.Random(1234)
    keys = [f"key-{i:04d}" for i in range(300)]
    rng.shuffle(keys)
    mirror, target, remote, moves = run(keys)
    assert remote.keys == target
    assert 0 < moves <= len(target)


def test_moves_are_issued_in_increasing_target_position():
    mirror, target, remote, moves = run(["C", "E", "A", "D", "B", "F"])
    destinations = [dst for _, dst, _ in remote.calls]
    assert destinations == sorted(destinations)
    assert len(set(destinations)) == len(destinations)


def test_remote_failure_stops_and_leaves_mirror_matching_remote():
    mirror = ["E", "D", "C", "B", "A"]
    target = sorted(mirror)
    remote = FakePlaylist(mirror, fail_on_call=2)

    with pytest.raises(RemoteError, match="503"):
        reconcile(mirror, target, remote.move, delay_policy=NoDelay())

    assert len(remote.calls) == 2
    assert mirror == remote.keys
    assert mirror[0] == "A"


def test_delay_policy_waits_after_each_move():
    delay = RecordingDelay()
    mirror = ["B", "A", "D", "C"]
    remote = FakePlaylist(mirror)
    moves = reconcile(mirror, sorted(mirror), remote.move, delay_policy=delay)
    assert moves == 2
    assert delay.waits == [4, 4]


def test_progress_callback_receives_move_count():
    updates = []
    mirror = ["C", "A", "B"]
    reconcile(
        mirror,
        sorted(mirror),
        FakePlaylist(mirror).move,
        delay_policy=NoDelay(),
        progress_callback=lambda count, message: updates.append(count),
    )
    assert updates == [1]


def test_length_mismatch_is_internal_error():
    with pytest.raises(InternalConsistencyError):
        reconcile(["A", "B"], ["A", "B", "C"], FakePlaylist([]).move, delay_policy=NoDelay())


def test_unknown_target_key_is_internal_error():
    remote = FakePlaylist(["A", "X"])
    with pytest.raises(InternalConsistencyError):
        reconcile(["A", "X"], ["A", "B"], remote.move, delay_policy=NoDelay())
    assert remote.calls == []


def test_duplicate_keys_converge():
    mirror, target, remote, moves = run(["A", "C", "A", "B"])
    assert mirror == target == ["A", "A", "B", "C"]
    assert remote.keys == target
    assert remote.calls == [(2, 1, 2)]
    assert moves == 1


def test_settled_duplicate_is_not_moved_again():
    mirror, target, remote, moves = run(["A", "B", "A"])
    assert remote.keys == ["A", "A", "B"]
    assert remote.calls == [(2, 1, 1)]


def test_every_arrangement_with_duplicates_converges():
    for arrangement in set(itertools.permutations("AABBBC")):
        mirror, target, remote, moves = run(arrangement)
        assert remote.keys == target, arrangement
        assert moves <= len(target)


def test_mirror_diverging_from_target_is_internal_error():
    mirror = ["B", "A"]
    remote = FakePlaylist(mirror)

    def corrupt(count, message):
        mirror[0] = "Z"

    with pytest.raises(InternalConsistencyError, match="differs"):
        reconcile(mirror, ["A", "B"], remote.move, delay_policy=NoDelay(), progress_callback=corrupt)


def test_plan_moves_matches_reconcile_and_leaves_input_untouched():
    current = ["C", "E", "A", "D", "B", "F"]
    planned = plan_moves(current, sorted(current))
    assert current == ["C", "E", "A", "D", "B", "F"]

    _, _, remote, _ = run(current)
    assert [(m.source_index, m.destination_index, m.block_length) for m in planned] == remote.calls


def test_apply_move_forward_and_backward():
    keys = ["A", "B", "C", "D", "E"]
    apply_move(keys, MoveOperation(3, 0, 2))
    assert keys == ["D", "E", "A", "B", "C"]
    apply_move(keys, MoveOperation(0, 3, 2))
    assert keys == ["A", "B", "C", "D", "E"]


def test_proportional_delay_scales_with_playlist_length():
    slept = []
    delay = ProportionalDelay(ms_per_item=2.0, sleep=slept.append)
    delay.wait(500)
    assert slept == [pytest.approx(1.0)]


def test_proportional_delay_rejects_negative_rate():
    with pytest.raises(ValueError):
        ProportionalDelay(ms_per_item=-1)


def test_delay_policy_from_settings():
    assert isinstance(delay_policy_from_settings(SimpleNamespace(move_delay_ms_per_item=0)), NoDelay)
    policy = delay_policy_from_settings(SimpleNamespace(move_delay_ms_per_item=3.0))
    assert isinstance(policy, ProportionalDelay)
    assert policy.seconds(1000) == pytest.approx(3.0)


def test_estimate_sort_time():
    assert estimate_sort_time(100, 0, ProportionalDelay()) == 0
    assert estimate_sort_time(100, 10, ProportionalDelay(2.0), call_latency=0.5) == 8
    assert estimate_sort_time(100, 10, NoDelay(), call_latency=0.5) == 6
