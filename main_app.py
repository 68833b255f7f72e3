# -*- coding: utf-8 -*-
"""
TunedIn Blend - mock runner
Blends users' taste lists from JSON files without any provider connection
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from tunedin.blend import BlendInput, InputUser, generate_blend
from tunedin.blend.reporter import describe_tracks
from tunedin.config_loader import Config
from tunedin.logging_utils import RunSummary, add_logging_args, configure_logging, resolve_log_level

logger = logging.getLogger("tunedin.main_app")

FIXTURES_DIR = Path(__file__).resolve().parent / "tests" / "fixtures"
DEFAULT_USER_FILES = (
    FIXTURES_DIR / "spotify_sample.json",
    FIXTURES_DIR / "apple_sample.json",
)
MOCK_ROOM_ID = "mock-room"


def load_users(path: Path) -> List[InputUser]:
    """Read one user object, a list of users, or a {"users": [...]} document."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict) and "users" in data:
        data = data["users"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a user object or a list of users")
    return [InputUser.from_dict(u) for u in data]


def load_overrides(path: Optional[Path]) -> Dict[str, Any]:
    """Parameter overrides from a YAML or JSON file (JSON is valid YAML)."""
    if path is None:
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: parameter overrides must be a mapping")
    return data


def run(
    user_files: Sequence[Path],
    k: int,
    overrides: Optional[Dict[str, Any]] = None,
    config: Optional[Config] = None,
) -> Dict[str, Any]:
    """Load users, blend them, and return the output document."""
    config = config or Config()
    summary = RunSummary(f"Blend {MOCK_ROOM_ID}", logger=logger)

    users: List[InputUser] = []
    for path in user_files:
        loaded = load_users(path)
        logger.info("Loaded %d user(s) from %s", len(loaded), path.name)
        summary.increment("users", len(loaded))
        summary.increment("input_tracks", sum(len(u.tracks) for u in loaded))
        users.extend(loaded)

    blend_input = BlendInput(room_id=MOCK_ROOM_ID, users=tuple(users))
    output = generate_blend(blend_input, k, overrides, base_params=config.blend_params)

    summary.add("target_size", k)
    summary.add("selected", len(output.tracks))
    for user_id, count in output.stats.per_user_counts.items():
        summary.add(f"picks_{user_id}", count)
    summary.log()

    for line in describe_tracks(output, limit=10):
        logger.debug(line)
    return output.to_dict()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point"""
    parser = argparse.ArgumentParser(
        description="Blend mock users' taste lists into one playlist (no provider connection needed)"
    )
    parser.add_argument(
        "users",
        nargs="*",
        type=Path,
        help="InputUser JSON files (default: the bundled Spotify and Apple samples)",
    )
    parser.add_argument(
        "--k",
        type=int,
        default=None,
        help="Target number of tracks (default: server.default_k from config, 40)",
    )
    parser.add_argument(
        "--params",
        type=Path,
        help="YAML/JSON file with blend parameter overrides (e.g. artistCap: 3)",
    )
    parser.add_argument("--config", type=str, help="Path to config.yaml (default: TUNEDIN_CONFIG_PATH or ./config.yaml)")
    parser.add_argument("--output", type=Path, help="Write the blend JSON here instead of stdout")
    add_logging_args(parser)
    args = parser.parse_args(argv)

    configure_logging(level=resolve_log_level(args), log_file=args.log_file)

    try:
        config = Config(args.config, required=bool(args.config))
        k = args.k if args.k is not None else config.default_target_size
        result = run(args.users or list(DEFAULT_USER_FILES), k, load_overrides(args.params), config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error("Blend failed: %s", e)
        return 1

    text = json.dumps(result, indent=2, ensure_ascii=False)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text + "\n", encoding='utf-8')
        logger.info("Wrote %d tracks to %s", len(result["tracks"]), args.output)
    else:
        sys.stdout.write(text + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
