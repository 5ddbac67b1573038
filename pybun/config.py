"""Configuration management for pybun.

Values are resolved in this order: environment variables, then the config
file at ``~/.config/pybun/config``. CLI options take precedence over both
and are applied by the command-line front end.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

KEY_ENV_NAME = "BUN_KEY"
ZONE_ENV_NAME = "BUN_ZONE"
API_URL_ENV_NAME = "BUN_API_URL"

DEFAULT_API_URL = "https://storage.bunnycdn.com"


class Config:
    """Configuration backed by environment variables and a config file."""

    def __init__(self, config_path: Path | None = None):
        self._config_path = config_path or (
            Path.home() / ".config" / "pybun" / "config"
        )

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self._config_path

    def _read_file(self) -> dict[str, str]:
        values: dict[str, str] = {}
        if not self._config_path.exists():
            return values
        try:
            for line in self._config_path.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                name, value = line.split("=", 1)
                values[name.strip()] = value.strip()
        except OSError as e:
            logger.warning("Could not read config file %s: %s", self._config_path, e)
        return values

    def _get(self, name: str) -> str | None:
        value = os.environ.get(name)
        if value:
            return value
        return self._read_file().get(name) or None

    @property
    def api_key(self) -> str | None:
        """Storage zone access key."""
        return self._get(KEY_ENV_NAME)

    @property
    def zone(self) -> str | None:
        """Storage zone name."""
        return self._get(ZONE_ENV_NAME)

    @property
    def api_url(self) -> str:
        """Base URL of the storage API."""
        return self._get(API_URL_ENV_NAME) or DEFAULT_API_URL

    def is_configured(self) -> bool:
        """Check whether both a key and a zone are available."""
        return bool(self.api_key and self.zone)

    def save(self, api_key: str, zone: str) -> None:
        """Store key and zone in the config file.

        The file is created with owner-only permissions.
        """
        values = self._read_file()
        values[KEY_ENV_NAME] = api_key
        values[ZONE_ENV_NAME] = zone

        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        content = "".join(f"{name}={value}\n" for name, value in values.items())
        self._config_path.write_text(content, encoding="utf-8")
        self._config_path.chmod(0o600)


config = Config()
