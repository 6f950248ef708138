"""YAML config loader with validation and defaults."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import click
import yaml
from dotenv import load_dotenv


def get_app_dir() -> Path:
    """Get the platform-specific application config directory.

    - macOS: ~/Library/Application Support/bookmark-insights/
    - Windows: C:\\Users\\<user>\\AppData\\Roaming\\bookmark-insights\\
    - Linux: ~/.config/bookmark-insights/
    """
    return Path(click.get_app_dir("bookmark-insights"))


CONFIG_VERSION = 1

CONTENT_TYPES = ("bookmark", "post", "collection")
TIME_WINDOWS = ("24h", "7d", "30d")

_DEFAULT_CONFIG = {
    "config_version": CONFIG_VERSION,
    "feed": {
        "limit": 20,
        "offset": 0,
        "include_following": True,
        "include_public": True,
        "content_types": list(CONTENT_TYPES),
    },
    "trending": {
        "window": "7d",
        "limit": 20,
        "collections_limit": 10,
        "topics_limit": 10,
        "topic_ttl_hours": 72,
    },
    "analytics": {
        "days_ahead": 30,
        "alpha": 0.3,
        "anomaly_threshold": 2.0,
        "moving_average_window": 7,
        "earnings_lookback_days": 90,
        "trend_days": 30,
    },
    "database": {"path": "data/bookmark_insights.db"},
    "logging": {"level": "INFO", "file": "data/logs/bookmark_insights.log", "max_size_mb": 10, "backup_count": 5},
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class Config:
    """Application configuration loaded from YAML with env var support."""

    def __init__(self, data: dict[str, Any], project_root: Path):
        self._data = data
        self.project_root = project_root

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> Config:
        """Load config from YAML file, merging with defaults.

        Resolution order:
        1. Explicit config_path argument (--config flag)
        2. CWD ./config/config.yaml (development mode)
        3. APP_DIR/config.yaml (installed mode)
        """
        if config_path is not None:
            config_path = Path(config_path)
            project_root = config_path.parent.parent if config_path.parent.name == "config" else config_path.parent
        else:
            cwd_config = Path.cwd() / "config" / "config.yaml"
            app_dir_config = get_app_dir() / "config.yaml"

            if cwd_config.exists():
                config_path = cwd_config
                project_root = Path.cwd()
            elif app_dir_config.exists():
                config_path = app_dir_config
                project_root = get_app_dir()
            else:
                # No config found, defaults only with CWD as project root
                config_path = cwd_config
                project_root = Path.cwd()

        env_path = project_root / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        user_config: dict = {}
        if config_path.exists():
            with open(config_path) as f:
                user_config = yaml.safe_load(f) or {}

        data = _deep_merge(_DEFAULT_CONFIG, user_config)
        return cls(data, project_root)

    def get(self, *keys: str, default: Any = None) -> Any:
        """Get a nested config value using dot-separated keys or varargs."""
        if len(keys) == 1 and "." in keys[0]:
            keys = tuple(keys[0].split("."))

        current = self._data
        for key in keys:
            if isinstance(current, dict):
                current = current.get(key)
                if current is None:
                    return default
            else:
                return default
        return current

    @property
    def db_path(self) -> Path:
        env_override = self.env("BOOKMARK_INSIGHTS_DB")
        if env_override:
            return Path(env_override)
        return self.project_root / self.get("database.path", default="data/bookmark_insights.db")

    @property
    def log_file(self) -> Path | None:
        log = self.get("logging.file")
        return self.project_root / log if log else None

    @property
    def feed(self) -> dict:
        return self._data.get("feed", {})

    @property
    def trending(self) -> dict:
        return self._data.get("trending", {})

    @property
    def analytics(self) -> dict:
        return self._data.get("analytics", {})

    def env(self, key: str, default: str | None = None) -> str | None:
        """Get an environment variable."""
        return os.environ.get(key, default)

    def validate(self) -> list[str]:
        """Return a list of validation warnings."""
        warnings = []

        unknown_types = [t for t in self.feed.get("content_types", []) if t not in CONTENT_TYPES]
        if unknown_types:
            warnings.append(f"Unknown feed content types: {', '.join(unknown_types)}")

        window = self.trending.get("window")
        if window not in TIME_WINDOWS:
            warnings.append(f"Unknown trending window '{window}' (expected one of {', '.join(TIME_WINDOWS)})")

        alpha = self.analytics.get("alpha")
        if not isinstance(alpha, (int, float)) or not 0 < alpha <= 1:
            warnings.append(f"analytics.alpha must be in (0, 1], got {alpha!r}")

        for key in ("limit", "offset"):
            value = self.feed.get(key)
            if not isinstance(value, int) or value < 0:
                warnings.append(f"feed.{key} must be a non-negative integer, got {value!r}")

        window_size = self.analytics.get("moving_average_window")
        if not isinstance(window_size, int) or window_size < 1:
            warnings.append(f"analytics.moving_average_window must be a positive integer, got {window_size!r}")
        return warnings
