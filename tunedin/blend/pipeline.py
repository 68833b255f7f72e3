from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from tunedin.blend.aggregation import collect_contributions, group_contributions
from tunedin.blend.config import BlendParams, default_blend_params
from tunedin.blend.overlap import build_overlap_index
from tunedin.blend.reporter import assemble_output, empty_output, log_blend_summary
from tunedin.blend.scoring import build_candidates
from tunedin.blend.selection import select_candidates
from tunedin.blend.types import BlendInput, BlendOutput
from tunedin.logging_utils import stage_timer

logger = logging.getLogger(__name__)

DEFAULT_TARGET_SIZE = 40


def _validate_target_size(target_size: Any) -> int:
    if isinstance(target_size, bool) or not isinstance(target_size, int):
        raise ValueError(f"target_size must be a positive int, got {target_size!r}")
    if target_size < 1:
        raise ValueError(f"target_size must be >= 1, got {target_size}")
    return target_size


def generate_blend(
    blend_input: BlendInput,
    target_size: int = DEFAULT_TARGET_SIZE,
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    base_params: Optional[BlendParams] = None,
) -> BlendOutput:
    """
    Blend several users' ranked track lists into one fair top-K list.

    Orchestrates:
    - flatten users' tracks into contributions and group them by canonical id
    - count track-level and artist-level overlap across users
    - build one scored, bucketed candidate per (track, contributing user)
    - select up to target_size candidates under user/artist/discovery/run caps
    - assemble public tracks and stats

    Pure and deterministic: no I/O beyond logging, no state kept between calls.
    Input data is not validated beyond types (duplicate user ids, empty artist
    strings and non-positive ranks are the caller's responsibility).

    Args:
        blend_input: Users and their ranked tracks
        target_size: K, the maximum number of tracks returned
        overrides: Partial parameter mapping applied over base_params
        base_params: Parameter defaults (e.g. from config.yaml); BlendParams() if omitted

    Returns:
        BlendOutput; an empty-shaped result when there are no tracks at all

    Raises:
        ValueError: Invalid target_size, input type, or parameter overrides
    """
    if not isinstance(blend_input, BlendInput):
        raise ValueError(f"blend_input must be a BlendInput, got {type(blend_input).__name__}")
    target_size = _validate_target_size(target_size)
    params = default_blend_params(overrides=overrides, base=base_params)
    logger.debug("Blend %s params: %s", blend_input.room_id, params.as_dict())

    user_ids = [u.user_id for u in blend_input.users]

    contributions = collect_contributions(blend_input)
    if not contributions:
        logger.info("Blend %s: no tracks from %d users; returning empty blend", blend_input.room_id, len(user_ids))
        return empty_output(user_ids, params.artist_cap)

    with stage_timer("Blend grouping", logger):
        groups = group_contributions(contributions)
        overlap = build_overlap_index(groups)

    with stage_timer("Blend scoring", logger):
        candidates = build_candidates(
            groups=groups,
            overlap=overlap,
            user_count=len(user_ids),
            params=params,
        )

    with stage_timer("Blend selection", logger):
        selection = select_candidates(
            candidates=candidates,
            user_ids=user_ids,
            target_size=target_size,
            params=params,
        )

    log_blend_summary(
        room_id=blend_input.room_id,
        target_size=target_size,
        candidates=candidates,
        selection=selection,
    )
    logger.info(
        "Blend %s: %d users, %d contributions, %d groups -> %d/%d tracks (artist_cap=%d, user_cap=%d)",
        blend_input.room_id,
        len(user_ids),
        len(contributions),
        len(groups),
        len(selection.selected),
        target_size,
        selection.artist_cap,
        selection.user_cap,
    )
    return assemble_output(selection)
