"""Configuration management for pyghsync.

Settings are resolved from environment variables first, then from a
``KEY=value`` file at ``~/.config/pyghsync/config``.
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"

_ENV_KEYS = {
    "user": "GITHUB_USER",
    "token": "GITHUB_TOKEN",
    "api_url": "GHSYNC_API_URL",
    "author_name": "GHSYNC_AUTHOR_NAME",
    "author_email": "GHSYNC_AUTHOR_EMAIL",
}


class Config:
    """Resolved pyghsync settings."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Optional config file location (defaults to
                $GHSYNC_CONFIG or ~/.config/pyghsync/config)
        """
        self._config_path = config_path

    def get_config_path(self) -> Path:
        """Get the path of the configuration file."""
        if self._config_path is not None:
            return self._config_path
        override = os.environ.get("GHSYNC_CONFIG")
        if override:
            return Path(override)
        return Path.home() / ".config" / "pyghsync" / "config"

    def _read_file(self) -> dict[str, str]:
        path = self.get_config_path()
        if not path.exists():
            return {}

        values: dict[str, str] = {}
        try:
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip()
        except OSError as e:
            logger.warning(f"Failed to read config file {path}: {e}")
        return values

    def _get(self, name: str) -> Optional[str]:
        env_key = _ENV_KEYS[name]
        value = os.environ.get(env_key)
        if value:
            return value
        return self._read_file().get(env_key) or None

    @property
    def user(self) -> Optional[str]:
        """GitHub user name."""
        return self._get("user")

    @property
    def token(self) -> Optional[str]:
        """GitHub personal access token."""
        return self._get("token")

    @property
    def api_url(self) -> str:
        """GitHub API base URL."""
        return self._get("api_url") or DEFAULT_API_URL

    @property
    def author_name(self) -> Optional[str]:
        """Commit author name (falls back to the user name)."""
        return self._get("author_name") or self.user

    @property
    def author_email(self) -> Optional[str]:
        """Commit author email."""
        return self._get("author_email")

    def author(self) -> Optional[dict[str, str]]:
        """Author block for new commits, or None to let GitHub use the token owner."""
        name = self.author_name
        email = self.author_email
        if not name or not email:
            return None
        return {"name": name, "email": email}

    def is_configured(self) -> bool:
        """Check whether a token is available."""
        return bool(self.token)

    def save_credentials(
        self,
        user: str,
        token: str,
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
    ) -> None:
        """Store credentials in the config file, keeping unrelated keys."""
        path = self.get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        values = self._read_file()
        values[_ENV_KEYS["user"]] = user
        values[_ENV_KEYS["token"]] = token
        if author_name:
            values[_ENV_KEYS["author_name"]] = author_name
        if author_email:
            values[_ENV_KEYS["author_email"]] = author_email

        with open(path, "w", encoding="utf-8") as f:
            for key, value in values.items():
                f.write(f"{key}={value}\n")
        # The file holds a token
        path.chmod(0o600)
        logger.debug(f"Saved credentials to {path}")


config = Config()
