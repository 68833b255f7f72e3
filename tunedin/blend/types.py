from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

Provider = Literal["spotify", "apple"]
KNOWN_PROVIDERS: Tuple[str, ...] = ("spotify", "apple")

PICKED_FOR_SHARED = "shared"


class Bucket(str, Enum):
    """Selection bucket of a candidate, swept in declaration order."""

    SHARED = "shared"
    BRIDGE = "bridge"
    UNIQUE = "unique"


BUCKET_ORDER: Tuple[Bucket, ...] = (Bucket.SHARED, Bucket.BRIDGE, Bucket.UNIQUE)


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class InputTrack:
    id: str
    title: str
    artist: str
    source: str
    rank: int
    isrc: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InputTrack":
        return cls(
            id=str(_pick(data, "id", default="")),
            title=str(_pick(data, "title", default="")),
            artist=str(_pick(data, "artist", default="")),
            source=str(_pick(data, "source", default="")),
            rank=int(_pick(data, "rank", default=0)),
            isrc=_pick(data, "isrc"),
        )


@dataclass(frozen=True)
class InputUser:
    user_id: str
    provider: str
    tracks: Tuple[InputTrack, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InputUser":
        return cls(
            user_id=str(_pick(data, "userId", "user_id", default="")),
            provider=str(_pick(data, "provider", default="")),
            tracks=tuple(InputTrack.from_dict(t) for t in _pick(data, "tracks", default=[])),
        )


@dataclass(frozen=True)
class BlendInput:
    room_id: str
    users: Tuple[InputUser, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BlendInput":
        return cls(
            room_id=str(_pick(data, "roomId", "room_id", default="")),
            users=tuple(InputUser.from_dict(u) for u in _pick(data, "users", default=[])),
        )


@dataclass(frozen=True)
class OutputTrack:
    canonical_id: str
    title: str
    artist: str
    provider_ids: Dict[str, str]
    source_user_id: str
    score: float
    picked_for: Tuple[str, ...]
    explain: str
    fallback_query: str
    isrc: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "canonicalId": self.canonical_id,
            "title": self.title,
            "artist": self.artist,
        }
        if self.isrc:
            out["isrc"] = self.isrc
        out.update(
            {
                "providerIds": dict(self.provider_ids),
                "sourceUserId": self.source_user_id,
                "score": self.score,
                "pickedFor": list(self.picked_for),
                "explain": self.explain,
                "fallbackQuery": self.fallback_query,
            }
        )
        return out


@dataclass(frozen=True)
class BlendStats:
    per_user_counts: Dict[str, int]
    per_artist_counts: Dict[str, int]
    artist_cap: int
    user_cap: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "perUserCounts": dict(self.per_user_counts),
            "perArtistCounts": dict(self.per_artist_counts),
            "artistCap": self.artist_cap,
            "userCap": self.user_cap,
        }


@dataclass(frozen=True)
class BlendOutput:
    tracks: List[OutputTrack] = field(default_factory=list)
    stats: BlendStats = field(default_factory=lambda: BlendStats({}, {}, 0, 0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tracks": [t.to_dict() for t in self.tracks],
            "stats": self.stats.to_dict(),
        }
