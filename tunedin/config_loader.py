"""
Configuration Loader - Manages YAML configuration and environment variables
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from tunedin.blend.config import BlendParams, default_blend_params

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
CONFIG_PATH_ENV = "TUNEDIN_CONFIG_PATH"


def resolve_config_path(config_path: Optional[Union[str, Path]] = None) -> Path:
    """Explicit path > TUNEDIN_CONFIG_PATH > ./config.yaml."""
    if config_path:
        return Path(config_path)
    return Path(os.getenv(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))


class Config:
    """Configuration manager for TunedIn Blend"""

    def __init__(self, config_path: Optional[Union[str, Path]] = None, required: bool = False):
        """
        Args:
            config_path: YAML file to load (see resolve_config_path)
            required: Raise FileNotFoundError instead of falling back to defaults
        """
        self.config_path = resolve_config_path(config_path)
        self.config = self._load_config(required)
        self._validate_config()

    def _load_config(self, required: bool) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        if not self.config_path.exists():
            if required:
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
            logger.info("No config file at %s; using built-in defaults", self.config_path)
            return {}

        with open(self.config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        return data or {}

    def _validate_config(self):
        """Validate section shapes and the blend parameter block"""
        if not isinstance(self.config, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")
        for section in ("server", "blend", "spotify", "apple_music"):
            value = self.config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"Configuration section '{section}' must be a mapping")
        # Fails fast on unknown keys or invalid values
        self.blend_params

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            section: Configuration section
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        if section not in self.config or not self.config[section]:
            return default
        return self.config[section].get(key, default)

    @property
    def blend_params(self) -> BlendParams:
        """Blend parameter defaults from the `blend:` section layered on BlendParams()"""
        return default_blend_params(overrides=self.config.get('blend') or {})

    @property
    def default_target_size(self) -> int:
        return int(self.get('server', 'default_k', 40))

    @property
    def client_url(self) -> str:
        """Frontend origin allowed by CORS"""
        return os.getenv('CLIENT_URL') or self.get('server', 'client_url', 'http://localhost:5173')

    @property
    def server_host(self) -> str:
        return self.get('server', 'host', '127.0.0.1')

    @property
    def server_port(self) -> int:
        return int(os.getenv('PORT') or self.get('server', 'port', 3001))

    @property
    def spotify_client_id(self) -> str:
        """Spotify client id (with environment variable override)"""
        return os.getenv('SPOTIFY_CLIENT_ID') or self.get('spotify', 'client_id', '') or ''

    @property
    def spotify_client_secret(self) -> str:
        """Spotify client secret (with environment variable override)"""
        return os.getenv('SPOTIFY_CLIENT_SECRET') or self.get('spotify', 'client_secret', '') or ''

    @property
    def apple_developer_token(self) -> str:
        """Apple Music developer token (with environment variable override)"""
        return os.getenv('APPLE_MUSIC_DEVELOPER_TOKEN') or self.get('apple_music', 'developer_token', '') or ''

    @property
    def http_timeout_seconds(self) -> float:
        return float(self.get('server', 'http_timeout_seconds', 10))
