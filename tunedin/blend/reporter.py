"""
Output assembly for blend generation.

Maps selected candidates to the public track shape and builds the stats
block, plus a human-readable run summary for logs.
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence

from tunedin.blend.scoring import Candidate
from tunedin.blend.selection import SelectionResult
from tunedin.blend.types import KNOWN_PROVIDERS, BlendOutput, BlendStats, OutputTrack
from tunedin.logging_utils import RunSummary

logger = logging.getLogger(__name__)


def fallback_query(artist: str, title: str) -> str:
    """Search string a client can use when no provider id matches its catalog."""
    return f"{artist} {title}".strip()


def to_output_track(candidate: Candidate) -> OutputTrack:
    return OutputTrack(
        canonical_id=candidate.canonical_id,
        title=candidate.title,
        artist=candidate.artist,
        isrc=candidate.isrc,
        provider_ids={p: candidate.provider_ids[p] for p in KNOWN_PROVIDERS if p in candidate.provider_ids},
        source_user_id=candidate.owner_user_id,
        score=candidate.score,
        picked_for=(candidate.picked_for,),
        explain=candidate.explain,
        fallback_query=fallback_query(candidate.artist, candidate.title),
    )


def assemble_output(selection: SelectionResult) -> BlendOutput:
    return BlendOutput(
        tracks=[to_output_track(c) for c in selection.selected],
        stats=BlendStats(
            per_user_counts=dict(selection.per_user_counts),
            per_artist_counts=dict(selection.per_artist_counts),
            artist_cap=selection.artist_cap,
            user_cap=selection.user_cap,
        ),
    )


def empty_output(user_ids: Sequence[str], artist_cap: int) -> BlendOutput:
    """Result for a request with no tracks at all: every user at 0, userCap 0."""
    return BlendOutput(
        tracks=[],
        stats=BlendStats(
            per_user_counts={u: 0 for u in user_ids},
            per_artist_counts={},
            artist_cap=artist_cap,
            user_cap=0,
        ),
    )


def bucket_breakdown(candidates: Sequence[Candidate]) -> Dict[str, int]:
    counts = Counter(c.bucket.value for c in candidates)
    return {bucket: counts.get(bucket, 0) for bucket in ("shared", "bridge", "unique")}


def log_blend_summary(
    *,
    room_id: str,
    target_size: int,
    candidates: Sequence[Candidate],
    selection: SelectionResult,
    logger_: Optional[logging.Logger] = None,
) -> None:
    """Log a run summary (DEBUG) with candidate and pick breakdowns by bucket."""
    summary = RunSummary(f"Blend {room_id or '-'}", logger=logger_ or logger)
    summary.add("target_size", target_size)
    summary.add("candidates", len(candidates))
    picked = bucket_breakdown(selection.selected)
    pool = bucket_breakdown(candidates)
    for bucket in ("shared", "bridge", "unique"):
        summary.add(f"{bucket}_picked", f"{picked[bucket]}/{pool[bucket]}")
    summary.add("selected", len(selection.selected))
    summary.add("artist_cap", selection.artist_cap)
    summary.add("user_cap", selection.user_cap)
    summary.log(level=logging.DEBUG)


def describe_tracks(output: BlendOutput, limit: Optional[int] = None) -> List[str]:
    """One line per track: '<n>. <artist> - <title> [<pickedFor>] <score>'."""
    tracks = output.tracks if limit is None else output.tracks[:limit]
    return [
        f"{i}. {t.artist} - {t.title} [{', '.join(t.picked_for)}] {t.score:.3f}"
        for i, t in enumerate(tracks, start=1)
    ]
