"""
Spotify taste source - top tracks over the short and medium term
"""
import logging
from dataclasses import replace
from typing import Dict, List, Optional

import requests

from tunedin.taste.candidate_track import CandidateTrack
from tunedin.taste.errors import NotConnectedError
from tunedin.taste.http import request_json_with_retry
from tunedin.taste.mappers import map_spotify_top_tracks
from tunedin.taste.session import SpotifySession

logger = logging.getLogger(__name__)

TIME_RANGES = ("short_term", "medium_term")
# source label per time range; the blend source bonus keys off these
RANGE_SOURCES = {"short_term": "top_short", "medium_term": "top_medium"}
MAX_LIMIT = 50


def clamp_limit(limit: int, maximum: int = MAX_LIMIT) -> int:
    return min(maximum, max(1, int(limit)))


class SpotifyTasteClient:
    """Client for a user's Spotify listening taste"""

    BASE_URL = "https://api.spotify.com"

    def __init__(
        self,
        session: SpotifySession,
        http: Optional[requests.Session] = None,
        *,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.session = session
        self.http = http or session.http
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def fetch_top_tracks(self, time_range: str, limit: int = MAX_LIMIT) -> List[CandidateTrack]:
        """
        Fetch one page of top tracks for a time range (source label "top").

        Raises:
            ValueError: Unknown time_range
            NotConnectedError: No usable Spotify credential
        """
        if time_range not in TIME_RANGES:
            raise ValueError(f"Unsupported time_range {time_range}")
        raw = self._get(
            "/v1/me/top/tracks",
            endpoint=f"top tracks ({time_range})",
            params={"limit": clamp_limit(limit), "time_range": time_range},
        )
        tracks = map_spotify_top_tracks(raw)
        logger.debug("Spotify top tracks (%s): %d", time_range, len(tracks))
        return tracks

    def get_taste(self, per_range_limit: int = MAX_LIMIT) -> List[CandidateTrack]:
        """
        Combined short- and medium-term taste.

        Each range is relabeled (top_short / top_medium), then tracks are
        deduped by Spotify id keeping the better rank (short term wins ties).
        Returned in rank order.
        """
        limit = clamp_limit(per_range_limit)
        medium = self._fetch_labeled("medium_term", limit)
        short = self._fetch_labeled("short_term", limit)

        by_id: Dict[str, CandidateTrack] = {}
        for track in short + medium:
            existing = by_id.get(track.id)
            if existing is None or track.rank < existing.rank:
                by_id[track.id] = track

        tracks = sorted(by_id.values(), key=lambda t: t.rank)
        logger.info(
            "Spotify taste: %d tracks (short=%d, medium=%d, limit=%d)",
            len(tracks), len(short), len(medium), limit,
        )
        return tracks

    def _fetch_labeled(self, time_range: str, limit: int) -> List[CandidateTrack]:
        source = RANGE_SOURCES[time_range]
        return [
            replace(t, source=source)
            for t in self.fetch_top_tracks(time_range, limit)
        ]

    def _get(self, path: str, *, endpoint: str, params: Dict[str, object]) -> object:
        while True:
            try:
                return request_json_with_retry(
                    self.http,
                    "GET",
                    f"{self.BASE_URL}{path}",
                    provider="Spotify",
                    endpoint=endpoint,
                    headers=self.session.auth_headers(),
                    params=params,
                    timeout=self.session.timeout,
                    max_retries=self.max_retries,
                    initial_delay=self.retry_delay,
                )
            except NotConnectedError:
                # at most one refresh per session, so this loop ends
                if not self.session.refresh_after_rejection():
                    raise
