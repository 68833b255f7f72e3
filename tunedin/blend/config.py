from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional

DEFAULT_SOURCE_BONUS: Dict[str, float] = {"top_short": 0.05, "top_medium": 0.03}

# Pass-2 artist cap floor when pass 1 under-fills the target size
RELAXED_ARTIST_CAP = 3

# camelCase names accepted from JSON clients
_PARAM_ALIASES = {
    "sourceBonus": "source_bonus",
    "artistCap": "artist_cap",
    "capUserSlack": "cap_user_slack",
    "maxUniquePerUser": "max_unique_per_user",
    "maxRunSameUser": "max_run_same_user",
}


@dataclass(frozen=True)
class BlendParams:
    """Tunable weights and fairness limits for a blend run."""

    w_shared: float = 0.55
    """Weight on the fraction of users who contributed the exact track."""

    w_artist: float = 0.25
    """Weight on the fraction of users who contributed any track by the artist."""

    w_rank: float = 0.20
    """Weight on the owner's own rank strength."""

    source_bonus: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SOURCE_BONUS))
    """Additive bonus per taste source; unknown sources get 0."""

    artist_cap: int = 2
    """Max selected tracks per primary artist in pass 1."""

    cap_user_slack: int = 2
    """Headroom added to the even per-user share ceil(K/U)."""

    max_unique_per_user: int = 0
    """Max unique-bucket picks per user."""

    max_run_same_user: int = 3
    """Max consecutive picks owned by one user (0 disables)."""

    def __post_init__(self):
        for name in ("w_shared", "w_artist", "w_rank"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{name} must be a non-negative number, got {value!r}")
        if not isinstance(self.source_bonus, Mapping):
            raise ValueError(f"source_bonus must be a mapping, got {type(self.source_bonus).__name__}")
        for source, bonus in self.source_bonus.items():
            if not isinstance(bonus, (int, float)) or isinstance(bonus, bool) or bonus < 0:
                raise ValueError(f"source_bonus[{source!r}] must be a non-negative number, got {bonus!r}")
        if not _is_int(self.artist_cap) or self.artist_cap < 1:
            raise ValueError(f"artist_cap must be an int >= 1, got {self.artist_cap!r}")
        for name in ("cap_user_slack", "max_unique_per_user", "max_run_same_user"):
            value = getattr(self, name)
            if not _is_int(value) or value < 0:
                raise ValueError(f"{name} must be an int >= 0, got {value!r}")

    def bonus_for(self, source: str) -> float:
        return float(self.source_bonus.get(source, 0.0))

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def normalize_param_keys(overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Map camelCase keys to field names and reject unknown keys."""
    if not overrides:
        return {}
    known = {f.name for f in fields(BlendParams)}
    normalized: Dict[str, Any] = {}
    for key, value in overrides.items():
        name = _PARAM_ALIASES.get(key, key)
        if name not in known:
            raise ValueError(f"Unknown blend parameter: {key}")
        normalized[name] = value
    return normalized


def default_blend_params(
    *,
    overrides: Optional[Mapping[str, Any]] = None,
    base: Optional[BlendParams] = None,
) -> BlendParams:
    """
    Return blend parameters with partial overrides applied.

    Args:
        overrides: Partial parameter mapping (snake_case or camelCase keys).
            A `source_bonus` override replaces the whole bonus table.
        base: Parameters to layer the overrides onto (defaults to BlendParams())

    Raises:
        ValueError: On unknown keys or invalid values
    """
    params = base or BlendParams()
    updates = normalize_param_keys(overrides)
    if not updates:
        return params
    if "source_bonus" in updates and isinstance(updates["source_bonus"], Mapping):
        updates["source_bonus"] = dict(updates["source_bonus"])
    return replace(params, **updates)
