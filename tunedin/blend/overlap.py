from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List

from tunedin.blend.aggregation import Group

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlapIndex:
    """
    Track- and artist-level overlap across users.

    Attributes:
        shared_counts: canonical id -> number of distinct users who contributed it
        artist_users: artist key -> users who contributed any track crediting that artist
    """

    shared_counts: Dict[str, int]
    artist_users: Dict[str, FrozenSet[str]]

    def shared_count(self, group: Group) -> int:
        return self.shared_counts.get(group.canonical_id, 0)

    def artist_shared_count(self, artist_key: str) -> int:
        users = self.artist_users.get(artist_key)
        return len(users) if users else 0

    def best_artist_overlap(self, group: Group) -> int:
        """A collaboration benefits from whichever collaborator has the broadest overlap."""
        return max((self.artist_shared_count(k) for k in group.artist_keys), default=0)


def build_overlap_index(groups: List[Group]) -> OverlapIndex:
    """Count distinct users per track and per credited artist."""
    shared_counts: Dict[str, int] = {}
    artist_users: Dict[str, set] = {}

    for group in groups:
        users = {c.user_id for c in group.contributions}
        shared_counts[group.canonical_id] = len(users)
        for key in group.artist_keys:
            artist_users.setdefault(key, set()).update(users)

    multi_user_tracks = sum(1 for n in shared_counts.values() if n >= 2)
    multi_user_artists = sum(1 for users in artist_users.values() if len(users) >= 2)
    logger.debug(
        "Overlap: %d/%d tracks and %d/%d artists shared by 2+ users",
        multi_user_tracks,
        len(shared_counts),
        multi_user_artists,
        len(artist_users),
    )

    return OverlapIndex(
        shared_counts=shared_counts,
        artist_users={k: frozenset(v) for k, v in artist_users.items()},
    )
