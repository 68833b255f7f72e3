"""
Apple Music taste source - heavy rotation plus recently added library songs
"""
import logging
from typing import Dict, List, Optional

import requests

from tunedin.string_utils import loose_match_key
from tunedin.taste.candidate_track import CandidateTrack
from tunedin.taste.http import request_json_with_retry
from tunedin.taste.mappers import map_apple_items
from tunedin.taste.session import AppleMusicSession
from tunedin.taste.spotify import clamp_limit

logger = logging.getLogger(__name__)

HEAVY_ROTATION = "heavyRotation"
RECENTLY_ADDED = "recentlyAdded"


def dedupe_key(track: CandidateTrack) -> str:
    if track.isrc:
        return f"isrc:{track.isrc}"
    return loose_match_key(track.title, track.artist)


def _is_better(candidate: CandidateTrack, existing: CandidateTrack) -> bool:
    """Lower rank wins; on a tie heavy rotation beats other surfaces."""
    if candidate.rank != existing.rank:
        return candidate.rank < existing.rank
    return candidate.source == HEAVY_ROTATION and existing.source != HEAVY_ROTATION


class AppleMusicTasteClient:
    """Client for a user's Apple Music listening taste"""

    BASE_URL = "https://api.music.apple.com"

    def __init__(
        self,
        session: AppleMusicSession,
        http: Optional[requests.Session] = None,
        *,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.session = session
        self.http = http or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _fetch(self, endpoint: str, limit: int) -> List[dict]:
        raw = request_json_with_retry(
            self.http,
            "GET",
            f"{self.BASE_URL}{endpoint}",
            provider="Apple Music",
            endpoint=endpoint,
            headers=self.session.headers(),
            params={"limit": limit},
            timeout=self.timeout,
            max_retries=self.max_retries,
            initial_delay=self.retry_delay,
        )
        return (raw or {}).get("data") or []

    def get_taste(self, heavy_limit: int = 25, added_limit: int = 25) -> List[CandidateTrack]:
        """
        Heavy rotation and recently added songs, deduped across both surfaces.

        Raises:
            NotConnectedError: Music user token missing or rejected
        """
        heavy = map_apple_items(
            self._fetch("/v1/me/history/heavy-rotation", clamp_limit(heavy_limit)), HEAVY_ROTATION
        )
        added = map_apple_items(
            self._fetch("/v1/me/library/recently-added", clamp_limit(added_limit)), RECENTLY_ADDED
        )

        by_key: Dict[str, CandidateTrack] = {}
        for track in heavy + added:
            key = dedupe_key(track)
            existing = by_key.get(key)
            if existing is None or _is_better(track, existing):
                by_key[key] = track

        tracks = list(by_key.values())
        logger.info(
            "Apple Music taste: %d tracks (heavy=%d, added=%d)", len(tracks), len(heavy), len(added)
        )
        return tracks
