from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from tunedin.artist_utils import split_artist_credit
from tunedin.string_utils import slugify

ISRC_PREFIX = "isrc:"
TEXT_KEY_SEPARATOR = "||"


def slug(text: str) -> str:
    """Comparable key for a title or artist string (see slugify)."""
    return slugify(text)


def normalize_isrc(isrc: Optional[str]) -> str:
    """Trimmed, upper-cased ISRC, or "" when missing."""
    if not isrc:
        return ""
    return str(isrc).strip().upper()


def canonical_id(title: str, artist: str, isrc: Optional[str] = None) -> str:
    """
    Deduplication key for a track.

    An ISRC is authoritative: two records sharing one are the same recording
    even when their title/artist text disagrees (spelling, localization).
    Without an ISRC the key falls back to slugged title and artist.
    """
    code = normalize_isrc(isrc)
    if code:
        return f"{ISRC_PREFIX}{code}"
    return f"{slug(title)}{TEXT_KEY_SEPARATOR}{slug(artist)}"


def artist_keys(artist: str) -> Tuple[str, ...]:
    """
    One key per credited artist, first-seen order, no duplicates.

    "DJ Snake, Justin Bieber" and "DJ Snake" therefore share the key "dj snake".
    """
    keys = []
    seen = set()
    for name in split_artist_credit(artist):
        key = slug(name)
        if key and key not in seen:
            seen.add(key)
            keys.append(key)
    return tuple(keys)


def primary_artist_key(artist: str, keys: Optional[Tuple[str, ...]] = None) -> str:
    """First credited artist key; artist caps are charged against this key only."""
    if keys is None:
        keys = artist_keys(artist)
    if keys:
        return keys[0]
    return slug(artist)


@dataclass(frozen=True)
class TrackIdentityKeys:
    canonical_id: str
    artist_keys: Tuple[str, ...]
    primary_artist_key: str


def identity_keys_for(title: str, artist: str, isrc: Optional[str] = None) -> TrackIdentityKeys:
    """Compute all identity keys of one track record in a single pass."""
    keys = artist_keys(artist)
    return TrackIdentityKeys(
        canonical_id=canonical_id(title, artist, isrc),
        artist_keys=keys,
        primary_artist_key=primary_artist_key(artist, keys),
    )
