from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence

from tunedin.blend.types import InputTrack, InputUser


@dataclass(frozen=True)
class CandidateTrack:
    """
    One taste signal produced by a provider fetcher and mapper.

    `rank` is 1..N within its `source` list. album/artwork/duration are
    display extras; the blend engine ignores them.
    """

    provider: str
    id: str
    title: str
    artist: str
    source: str
    rank: int
    isrc: Optional[str] = None
    album: Optional[str] = None
    artwork_url: Optional[str] = None
    duration_ms: Optional[int] = None

    def to_input_track(self, rank: Optional[int] = None) -> InputTrack:
        return InputTrack(
            id=self.id,
            title=self.title,
            artist=self.artist,
            isrc=self.isrc,
            source=self.source,
            rank=self.rank if rank is None else rank,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "provider": data["provider"],
            "id": data["id"],
            "title": data["title"],
            "artist": data["artist"],
            "isrc": data["isrc"],
            "source": data["source"],
            "rank": data["rank"],
            "album": data["album"],
            "artworkUrl": data["artwork_url"],
            "durationMs": data["duration_ms"],
        }


def candidate_tracks_to_user(
    user_id: str,
    provider: str,
    tracks: Sequence[CandidateTrack],
    rerank: bool = False,
) -> InputUser:
    """
    Build a blend InputUser from taste tracks.

    Args:
        rerank: Replace ranks with 1..N in list order (used when slicing a taste list)
    """
    return InputUser(
        user_id=user_id,
        provider=provider,
        tracks=tuple(
            t.to_input_track(rank=i if rerank else None)
            for i, t in enumerate(tracks, start=1)
        ),
    )
