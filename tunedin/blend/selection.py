"""
Constrained selection for blend generation.

Greedy, deterministic top-K selection honoring:
1. One pick per canonical track
2. Per-user cap: ceil(K / U) + slack
3. Per-primary-artist cap (relaxed to 3 on a second pass if K is not reached)
4. Per-user limit on unique (discovery) picks
5. Soft run limit: no more than N consecutive picks owned by one user

The run limit only looks back at what is already selected; it never reorders.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set

from tunedin.blend.config import RELAXED_ARTIST_CAP, BlendParams
from tunedin.blend.scoring import Candidate
from tunedin.blend.types import BUCKET_ORDER, Bucket

logger = logging.getLogger(__name__)


@dataclass
class SelectionState:
    """Running counters threaded through the selection passes."""

    per_user_counts: Dict[str, int] = field(default_factory=dict)
    per_artist_counts: Dict[str, int] = field(default_factory=dict)
    unique_per_user: Dict[str, int] = field(default_factory=dict)
    picked_ids: Set[str] = field(default_factory=set)
    selected: List[Candidate] = field(default_factory=list)

    @classmethod
    def for_users(cls, user_ids: Sequence[str]) -> "SelectionState":
        return cls(
            per_user_counts={u: 0 for u in user_ids},
            unique_per_user={u: 0 for u in user_ids},
        )

    def admit(self, candidate: Candidate) -> None:
        owner = candidate.owner_user_id
        self.selected.append(candidate)
        self.picked_ids.add(candidate.canonical_id)
        self.per_user_counts[owner] = self.per_user_counts.get(owner, 0) + 1
        key = candidate.primary_artist_key
        self.per_artist_counts[key] = self.per_artist_counts.get(key, 0) + 1
        if candidate.bucket is Bucket.UNIQUE:
            self.unique_per_user[owner] = self.unique_per_user.get(owner, 0) + 1


@dataclass(frozen=True)
class SelectionResult:
    selected: List[Candidate]
    per_user_counts: Dict[str, int]
    per_artist_counts: Dict[str, int]
    artist_cap: int
    user_cap: int
    relaxed: bool


def compute_user_cap(target_size: int, user_count: int, slack: int) -> int:
    return math.ceil(target_size / max(1, user_count)) + slack


def sort_candidates(candidates: Sequence[Candidate], user_order: Sequence[str]) -> List[Candidate]:
    """
    Global score-descending order with a total tie-break.

    Ties fall back to the owner's best rank, then canonical id, then the
    owner's position in the request.
    """
    position = {}
    for idx, user_id in enumerate(user_order):
        position.setdefault(user_id, idx)
    return sorted(
        candidates,
        key=lambda c: (
            -c.score,
            c.best_rank,
            c.canonical_id,
            position.get(c.owner_user_id, len(position)),
        ),
    )


def can_admit(
    candidate: Candidate,
    state: SelectionState,
    *,
    user_cap: int,
    artist_cap: int,
    params: BlendParams,
) -> bool:
    if candidate.canonical_id in state.picked_ids:
        return False

    owner = candidate.owner_user_id
    if state.per_user_counts.get(owner, 0) >= user_cap:
        return False

    # Cap on the primary artist only, so featured artists never use up a slot
    if state.per_artist_counts.get(candidate.primary_artist_key, 0) >= artist_cap:
        return False

    if candidate.bucket is Bucket.UNIQUE and state.unique_per_user.get(owner, 0) >= params.max_unique_per_user:
        return False

    run = params.max_run_same_user
    if run > 0 and len(state.selected) >= run:
        if all(c.owner_user_id == owner for c in state.selected[-run:]):
            return False

    return True


def _sweep(
    candidates: Sequence[Candidate],
    state: SelectionState,
    *,
    target_size: int,
    user_cap: int,
    artist_cap: int,
    params: BlendParams,
) -> int:
    """One bucket-ordered admission pass; returns the number admitted."""
    admitted = 0
    for bucket in BUCKET_ORDER:
        for candidate in candidates:
            if len(state.selected) >= target_size:
                return admitted
            if candidate.bucket is not bucket:
                continue
            if not can_admit(candidate, state, user_cap=user_cap, artist_cap=artist_cap, params=params):
                continue
            state.admit(candidate)
            admitted += 1
    return admitted


def select_candidates(
    *,
    candidates: Sequence[Candidate],
    user_ids: Sequence[str],
    target_size: int,
    params: BlendParams,
) -> SelectionResult:
    """
    Select up to target_size candidates under the fairness constraints.

    Pass 1 uses params.artist_cap. If it under-fills, pass 2 repeats the sweep
    with the artist cap raised to max(artist_cap, 3); earlier picks stay put.

    Args:
        candidates: Scored candidates (any order; sorted here)
        user_ids: Users of the request in request order
        target_size: K, the maximum number of picks
        params: Blend parameters

    Returns:
        SelectionResult with picks in admission order and final counters
    """
    user_count = max(1, len(user_ids))
    user_cap = compute_user_cap(target_size, user_count, params.cap_user_slack)
    ordered = sort_candidates(candidates, user_ids)
    state = SelectionState.for_users(user_ids)

    artist_cap = params.artist_cap
    first = _sweep(
        ordered, state, target_size=target_size, user_cap=user_cap, artist_cap=artist_cap, params=params
    )
    logger.debug("Selection pass 1: %d picks (artist_cap=%d, user_cap=%d)", first, artist_cap, user_cap)

    relaxed = False
    if len(state.selected) < target_size:
        relaxed = True
        artist_cap = max(artist_cap, RELAXED_ARTIST_CAP)
        second = _sweep(
            ordered, state, target_size=target_size, user_cap=user_cap, artist_cap=artist_cap, params=params
        )
        logger.debug("Selection pass 2: %d more picks (artist_cap=%d)", second, artist_cap)

    if len(state.selected) < target_size:
        logger.info(
            "Blend under-filled: %d/%d picks from %d candidates",
            len(state.selected),
            target_size,
            len(ordered),
        )

    return SelectionResult(
        selected=list(state.selected),
        per_user_counts=dict(state.per_user_counts),
        per_artist_counts=dict(state.per_artist_counts),
        artist_cap=artist_cap,
        user_cap=user_cap,
        relaxed=relaxed,
    )
