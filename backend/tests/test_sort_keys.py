import sys
from pathlib import Path

import pytest

# Make `canonsort` importable when running tests from repo root
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from canonsort.errors import (
    EpisodeInPlaylistError,
    IneligibleItemError,
    LocalTrackInPlaylistError,
    MissingFieldError,
    RemoteError,
    SortValidationError,
    UnavailableItemError,
)
from canonsort.services.sort_service import KEY_SEPARATOR, build_sort_key, canonicalize, describe_key


def make_track(
    name="Song",
    artist="Artist",
    album="Album",
    release_date="2020-06-15",
    precision="day",
    disc=1,
    number=1,
    **extra,
):
    track = {
        "id": f"id-{name}",
        "type": "track",
        "is_local": False,
        "name": name,
        "artists": [{"name": artist}, {"name": "Featured"}],
        "album": {
            "name": album,
            "release_date": release_date,
            "release_date_precision": precision,
        },
        "disc_number": disc,
        "track_number": number,
    }
    track.update(extra)
    return track


def test_key_fields_in_order():
    key = build_sort_key(make_track(name="Intro", artist="Band", album="Debut", disc=2, number=7))
    assert key.split(KEY_SEPARATOR) == ["Band", "2020-06-15", "Debut", "000002", "000007", "Intro"]


def test_only_primary_artist_is_used():
    assert build_sort_key(make_track()).split(KEY_SEPARATOR)[0] == "Artist"


@pytest.mark.parametrize(
    "release_date,precision,expected",
    [
        ("1999", "year", "1999-01-01"),
        ("1999-04", "month", "1999-04-01"),
        ("1999-04-20", "day", "1999-04-20"),
    ],
)
def test_release_date_normalized_to_day(release_date, precision, expected):
    key = build_sort_key(make_track(release_date=release_date, precision=precision))
    assert key.split(KEY_SEPARATOR)[1] == expected


def test_year_precision_sorts_before_later_release_same_year():
    early = build_sort_key(make_track(album="Same", release_date="2020", precision="year", number=5))
    later = build_sort_key(make_track(album="Same", release_date="2020-06-15", precision="day", number=1))
    assert early < later


def test_track_number_padding_keeps_numeric_order():
    nine = build_sort_key(make_track(name="Z", disc=1, number=9))
    ten = build_sort_key(make_track(name="A", disc=1, number=10))
    assert nine < ten


def test_disc_number_padding_keeps_numeric_order():
    disc_two = build_sort_key(make_track(disc=2, number=99))
    disc_ten = build_sort_key(make_track(disc=10, number=1))
    assert disc_two < disc_ten


def test_episode_is_rejected_with_identity():
    episode = {"type": "episode", "name": "Daily News", "id": "ep123"}
    with pytest.raises(EpisodeInPlaylistError) as exc_info:
        build_sort_key(episode)
    assert exc_info.value.item_name == "Daily News"
    assert exc_info.value.item_id == "ep123"
    assert "podcast: Daily News" in str(exc_info.value)


def test_local_track_is_rejected():
    with pytest.raises(LocalTrackInPlaylistError) as exc_info:
        build_sort_key(make_track(name="Home Recording", is_local=True))
    assert exc_info.value.item_name == "Home Recording"
    assert isinstance(exc_info.value, IneligibleItemError)


def test_missing_track_payload_is_rejected():
    with pytest.raises(UnavailableItemError):
        build_sort_key(None)


@pytest.mark.parametrize(
    "field,album",
    [
        ("album.release_date", {"name": "A", "release_date": None, "release_date_precision": "day"}),
        ("album.release_date_precision", {"name": "A", "release_date": "2001-01-01"}),
    ],
)
def test_missing_release_fields(field, album):
    track = make_track(name="Blank")
    track["album"] = album
    with pytest.raises(MissingFieldError) as exc_info:
        build_sort_key(track)
    assert exc_info.value.field_name == field
    assert exc_info.value.item_name == "Blank"
    assert isinstance(exc_info.value, SortValidationError)


def test_describe_key():
    key = build_sort_key(make_track(name="Song Title", artist="The Band"))
    assert describe_key(key) == "The Band - Song Title"


def test_canonicalize_returns_current_and_sorted_keys():
    items = [
        {"track": make_track(name="C", number=3)},
        {"track": make_track(name="A", number=1)},
        {"track": make_track(name="B", number=2)},
    ]
    current, target = canonicalize(items)
    assert [describe_key(k) for k in current] == ["Artist - C", "Artist - A", "Artist - B"]
    assert [describe_key(k) for k in target] == ["Artist - A", "Artist - B", "Artist - C"]
    assert sorted(current) == target


def test_canonicalize_keeps_duplicate_tracks_together():
    items = [
        {"track": make_track(name="B", number=2)},
        {"track": make_track(name="A", number=1)},
        {"track": make_track(name="B", number=2)},
    ]
    current, target = canonicalize(items)
    assert current[0] == current[2]
    assert target == [current[1], current[0], current[2]]
    assert [describe_key(k) for k in target] == ["Artist - A", "Artist - B", "Artist - B"]


def test_canonicalize_orders_by_artist_then_date():
    items = [
        {"track": make_track(artist="Beta", release_date="1990", precision="year")},
        {"track": make_track(artist="Alpha", release_date="2010", precision="year")},
        {"track": make_track(artist="Alpha", release_date="2001-03", precision="month")},
    ]
    _, target = canonicalize(items)
    assert [k.split(KEY_SEPARATOR)[:2] for k in target] == [
        ["Alpha", "2001-03-01"],
        ["Alpha", "2010-01-01"],
        ["Beta", "1990-01-01"],
    ]


def test_canonicalize_aborts_on_first_ineligible_item():
    consumed = []

    def produce():
        for item in [
            {"track": make_track(name="A")},
            {"track": {"type": "episode", "name": "Pod", "id": "ep1"}},
            {"track": make_track(name="B")},
        ]:
            consumed.append(item)
            yield item

    with pytest.raises(EpisodeInPlaylistError):
        canonicalize(produce())
    assert len(consumed) == 2


def test_canonicalize_propagates_producer_errors():
    def produce():
        yield {"track": make_track(name="A")}
        raise RemoteError("http status: 502")

    with pytest.raises(RemoteError, match="502"):
        canonicalize(produce())


def test_canonicalize_empty_playlist():
    assert canonicalize(iter([])) == ([], [])
