"""
Response mappers: provider JSON payloads -> CandidateTrack lists.

Items missing an id, a title or an artist are dropped; ranks are 1-based
positions among the kept items.
"""
from typing import Any, Dict, List, Mapping, Optional, Sequence

from tunedin.taste.candidate_track import CandidateTrack

SPOTIFY = "spotify"
APPLE = "apple"

APPLE_ARTWORK_SIZE = "300"


def map_spotify_top_tracks(raw: Optional[Mapping[str, Any]], source: str = "top") -> List[CandidateTrack]:
    """Map a /v1/me/top/tracks response; multi-artist credits are joined with ", "."""
    items = (raw or {}).get("items") or []
    kept = [t for t in items if t and t.get("id") and t.get("name") and t.get("artists")]

    tracks = []
    for rank, item in enumerate(kept, start=1):
        album = item.get("album") or {}
        images = album.get("images") or []
        tracks.append(
            CandidateTrack(
                provider=SPOTIFY,
                id=item["id"],
                title=item["name"],
                artist=", ".join(a.get("name", "") for a in item["artists"] if a),
                isrc=(item.get("external_ids") or {}).get("isrc"),
                source=source,
                rank=rank,
                album=album.get("name"),
                artwork_url=images[0].get("url") if images else None,
                duration_ms=item.get("duration_ms"),
            )
        )
    return tracks


def _apple_artwork(attributes: Dict[str, Any]) -> Optional[str]:
    url = (attributes.get("artwork") or {}).get("url")
    if not url:
        return None
    return url.replace("{w}", APPLE_ARTWORK_SIZE).replace("{h}", APPLE_ARTWORK_SIZE)


def map_apple_items(items: Optional[Sequence[Mapping[str, Any]]], source: str) -> List[CandidateTrack]:
    """Map Apple Music resource items (songs, library-songs, ...) for one surface."""
    kept = [
        x for x in (items or [])
        if x and x.get("id") and (x.get("attributes") or {}).get("name") and (x.get("attributes") or {}).get("artistName")
    ]

    tracks = []
    for rank, item in enumerate(kept, start=1):
        attributes = item["attributes"]
        tracks.append(
            CandidateTrack(
                provider=APPLE,
                id=item["id"],
                title=attributes["name"],
                artist=attributes["artistName"],
                isrc=attributes.get("isrc"),
                source=source,
                rank=rank,
                album=attributes.get("albumName"),
                artwork_url=_apple_artwork(attributes),
                duration_ms=attributes.get("durationInMillis"),
            )
        )
    return tracks
