"""
Candidate scoring module for blend generation.

Builds one candidate per (track group, contributing user), scores it with a
weighted overlap/rank heuristic and classifies it into a selection bucket.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from tunedin.blend.aggregation import Contribution, Group
from tunedin.blend.config import BlendParams
from tunedin.blend.overlap import OverlapIndex
from tunedin.blend.types import PICKED_FOR_SHARED, Bucket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """One user's best pick within a track group, scored and bucketed."""

    canonical_id: str
    title: str
    artist: str
    artist_keys: Tuple[str, ...]
    primary_artist_key: str
    isrc: Optional[str]
    provider_ids: Dict[str, str]
    owner_user_id: str
    best_source: str
    best_rank: int
    shared_count: int
    artist_overlap: int
    score: float
    bucket: Bucket
    picked_for: str
    explain: str


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def best_contribution(contributions: Sequence[Contribution], params: BlendParams) -> Contribution:
    """
    Pick the contribution carrying the user's strongest signal.

    Lowest rank wins; ties go to the higher source bonus, then to the first seen.
    """
    if not contributions:
        raise ValueError("best_contribution requires at least one contribution")
    return min(contributions, key=lambda c: (c.rank, -params.bonus_for(c.source)))


def rank_score(rank: int) -> float:
    """1/2 for rank 1, decaying with rank; ranks below 1 count as 1."""
    return 1.0 / (1.0 + max(1, rank))


def compute_score(
    *,
    shared_count: int,
    artist_overlap: int,
    best: Contribution,
    user_count: int,
    params: BlendParams,
) -> float:
    """Weighted desirability of a candidate, clamped to [0, 1]."""
    users = max(1, user_count)
    raw = (
        params.w_shared * (shared_count / users)
        + params.w_artist * (artist_overlap / users)
        + params.w_rank * rank_score(best.rank)
        + params.bonus_for(best.source)
    )
    return clamp01(raw)


def classify_bucket(shared_count: int, artist_overlap: int) -> Bucket:
    if shared_count >= 2:
        return Bucket.SHARED
    if artist_overlap >= 2:
        return Bucket.BRIDGE
    return Bucket.UNIQUE


def explain_candidate(bucket: Bucket, shared_count: int, artist_overlap: int, best: Contribution) -> str:
    reasons = [bucket.value]
    if shared_count >= 2:
        reasons.append(f"shared by {shared_count} users")
    if artist_overlap >= 2:
        reasons.append(f"artist overlap ({artist_overlap} users)")
    reasons.append(f"{best.source} rank {best.rank}")
    return "; ".join(reasons)


def _contributions_by_user(group: Group) -> Dict[str, List[Contribution]]:
    by_user: Dict[str, List[Contribution]] = {}
    for contribution in group.contributions:
        by_user.setdefault(contribution.user_id, []).append(contribution)
    return by_user


def build_candidates(
    *,
    groups: Sequence[Group],
    overlap: OverlapIndex,
    user_count: int,
    params: BlendParams,
) -> List[Candidate]:
    """
    Build one scored candidate per (group, distinct contributing user).

    Args:
        groups: Aggregated track groups
        overlap: Overlap index built from the same groups
        user_count: Number of users in the request (floored at 1 for scoring)
        params: Blend parameters

    Returns:
        Candidates in group order, then first-seen user order within a group
    """
    candidates: List[Candidate] = []

    for group in groups:
        shared_n = overlap.shared_count(group)
        artist_n = overlap.best_artist_overlap(group)
        bucket = classify_bucket(shared_n, artist_n)

        for user_id, contributions in _contributions_by_user(group).items():
            best = best_contribution(contributions, params)
            candidates.append(
                Candidate(
                    canonical_id=group.canonical_id,
                    title=group.title,
                    artist=group.artist,
                    artist_keys=group.artist_keys,
                    primary_artist_key=group.primary_artist_key,
                    isrc=group.isrc,
                    provider_ids=group.provider_ids,
                    owner_user_id=user_id,
                    best_source=best.source,
                    best_rank=best.rank,
                    shared_count=shared_n,
                    artist_overlap=artist_n,
                    score=compute_score(
                        shared_count=shared_n,
                        artist_overlap=artist_n,
                        best=best,
                        user_count=user_count,
                        params=params,
                    ),
                    bucket=bucket,
                    picked_for=PICKED_FOR_SHARED if bucket is Bucket.SHARED else user_id,
                    explain=explain_candidate(bucket, shared_n, artist_n, best),
                )
            )

    bucket_counts = Counter(c.bucket.value for c in candidates)
    logger.debug(
        "Built %d candidates (shared=%d, bridge=%d, unique=%d)",
        len(candidates),
        bucket_counts.get(Bucket.SHARED.value, 0),
        bucket_counts.get(Bucket.BRIDGE.value, 0),
        bucket_counts.get(Bucket.UNIQUE.value, 0),
    )
    return candidates
