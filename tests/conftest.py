"""Test configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tunedin.blend.types import BlendInput, InputTrack, InputUser

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


def make_track(title, artist, rank, source="top_short", isrc=None, track_id=None):
    return InputTrack(
        id=track_id or f"{title}-{artist}".lower().replace(" ", "-"),
        title=title,
        artist=artist,
        isrc=isrc,
        source=source,
        rank=rank,
    )


def make_user(user_id, tracks, provider="spotify"):
    """Build an InputUser from (title, artist) pairs or ready InputTracks, ranked in list order."""
    built = []
    for rank, item in enumerate(tracks, start=1):
        if isinstance(item, InputTrack):
            built.append(item)
        else:
            title, artist = item[0], item[1]
            isrc = item[2] if len(item) > 2 else None
            built.append(make_track(title, artist, rank, isrc=isrc))
    return InputUser(user_id=user_id, provider=provider, tracks=tuple(built))


def make_input(*users, room_id="room-1"):
    return BlendInput(room_id=room_id, users=tuple(users))


def distinct_tracks(prefix, count, start=0):
    """(title, artist) pairs with a distinct artist per track."""
    return [(f"{prefix} Song {i}", f"{prefix} Artist {i}") for i in range(start, start + count)]


@pytest.fixture()
def fixtures_dir():
    return FIXTURES_DIR
