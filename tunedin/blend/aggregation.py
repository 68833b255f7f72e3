"""
Contribution aggregation for blend generation.

Flattens every user's ranked track list into contributions and folds them
into groups keyed by canonical id. A group keeps the display fields of its
first-seen contribution and only ever grows: new artist keys are unioned in,
a missing ISRC, provider id or primary artist key is backfilled, nothing is
overwritten.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from tunedin.blend.identity_keys import identity_keys_for
from tunedin.blend.types import BlendInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Contribution:
    """One user's inclusion of one track at one rank from one source."""

    user_id: str
    provider: str
    source: str
    rank: int
    id: str
    title: str
    artist: str
    isrc: Optional[str] = None


@dataclass(frozen=True)
class Group:
    canonical_id: str
    title: str
    artist: str
    artist_keys: Tuple[str, ...]
    primary_artist_key: str
    isrc: Optional[str]
    provider_ids: Dict[str, str]
    contributions: Tuple[Contribution, ...]


def _clean_isrc(isrc: Optional[str]) -> Optional[str]:
    if not isrc or not str(isrc).strip():
        return None
    return str(isrc).strip()


class _GroupBuilder:
    """Mutable accumulator for one canonical id; frozen into a Group at the end."""

    def __init__(self, canonical_id: str, first: Contribution, artist_keys: Tuple[str, ...], primary_key: str):
        self.canonical_id = canonical_id
        self.title = first.title
        self.artist = first.artist
        self.artist_keys: List[str] = list(artist_keys)
        self.primary_artist_key = ""
        self.isrc = _clean_isrc(first.isrc)
        self.provider_ids: Dict[str, str] = {}
        self.contributions: List[Contribution] = []
        self.add(first, artist_keys, primary_key)

    def add(self, contribution: Contribution, artist_keys: Tuple[str, ...], primary_key: str = "") -> None:
        self.contributions.append(contribution)
        # an artist that slugs to nothing leaves the key empty until a later credit fills it
        if not self.primary_artist_key:
            self.primary_artist_key = primary_key
        for key in artist_keys:
            if key not in self.artist_keys:
                self.artist_keys.append(key)
        if not self.isrc:
            self.isrc = _clean_isrc(contribution.isrc)
        if contribution.provider and contribution.id and contribution.provider not in self.provider_ids:
            self.provider_ids[contribution.provider] = contribution.id

    def freeze(self) -> Group:
        return Group(
            canonical_id=self.canonical_id,
            title=self.title,
            artist=self.artist,
            artist_keys=tuple(self.artist_keys),
            primary_artist_key=self.primary_artist_key,
            isrc=self.isrc,
            provider_ids=dict(self.provider_ids),
            contributions=tuple(self.contributions),
        )


def collect_contributions(blend_input: BlendInput) -> List[Contribution]:
    """Flatten users' track lists in request order (user order, then list order)."""
    contributions: List[Contribution] = []
    for user in blend_input.users:
        for track in user.tracks:
            contributions.append(
                Contribution(
                    user_id=user.user_id,
                    provider=user.provider,
                    source=track.source,
                    rank=track.rank,
                    id=track.id,
                    title=track.title,
                    artist=track.artist,
                    isrc=track.isrc,
                )
            )
    return contributions


def group_contributions(contributions: List[Contribution]) -> List[Group]:
    """
    Fold contributions into groups keyed by canonical id.

    Groups are returned in first-seen order.
    """
    builders: Dict[str, _GroupBuilder] = {}
    for contribution in contributions:
        keys = identity_keys_for(contribution.title, contribution.artist, contribution.isrc)
        builder = builders.get(keys.canonical_id)
        if builder is None:
            builders[keys.canonical_id] = _GroupBuilder(
                keys.canonical_id, contribution, keys.artist_keys, keys.primary_artist_key
            )
        else:
            builder.add(contribution, keys.artist_keys, keys.primary_artist_key)

    groups = [b.freeze() for b in builders.values()]
    logger.debug(
        "Aggregated %d contributions into %d groups",
        len(contributions),
        len(groups),
    )
    return groups
