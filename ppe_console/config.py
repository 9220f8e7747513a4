"""Configuration management for ppe_console"""

import json
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Base directory for the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
ENV_FILE = BASE_DIR / ".env"
load_dotenv(ENV_FILE)

# Settings file paths
SETTINGS_FILE = BASE_DIR / "settings.json"
SETTINGS_DEFAULT_FILE = BASE_DIR / "settings.default.json"
PYPROJECT_FILE = BASE_DIR / "pyproject.toml"

# Environment variable names for configuration
ENV_API_BASE_URL = "PPE_API_BASE_URL"
ENV_TIMEZONE = "PPE_TIMEZONE"
ENV_LOG_DIRECTORY = "PPE_LOG_DIRECTORY"
ENV_REQUEST_TIMEOUT = "PPE_REQUEST_TIMEOUT"


def get_package_version() -> str:
    """Get the package version from pyproject.toml."""
    try:
        with open(PYPROJECT_FILE, "rb") as f:
            pyproject = tomllib.load(f)
        return str(pyproject.get("project", {}).get("version", "0.0.0"))
    except Exception:
        return "0.0.0"


def _resolve_path(value: str) -> Path:
    """Resolve a configured path relative to the project directory."""
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = BASE_DIR / path
    return path


class Settings:
    """Manages application settings stored in JSON format."""

    _instance: "Settings | None" = None
    _settings: dict[str, Any]

    def __new__(cls) -> "Settings":
        """Singleton pattern to ensure only one settings instance exists."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load_settings()
        return cls._instance

    def _load_settings(self) -> None:
        """Load settings from file, with environment variables taking precedence.

        Priority order (highest to lowest):
        1. Environment variables (from .env file or system)
        2. settings.json (user-saved settings)
        3. settings.default.json (template defaults)
        4. Hardcoded defaults
        """
        defaults: dict[str, Any] = {
            "api_base_url": "http://localhost:4000/api",
            "request_timeout": 60,
            "timezone": "",
            "log_directory": "logs",
            "token_file": ".ppe_token",
            "download_directory": "downloads",
            "history_page_size": 8,
            "analytics_page_size": 100,
            "fetch_safety_bound": 10000,
            "recent_activity_limit": 10,
            "redirect_delays_enabled": True,
            "session_max_age_seconds": 3600,
            "display_name": "PPE Console",
        }

        if SETTINGS_DEFAULT_FILE.exists():
            with open(SETTINGS_DEFAULT_FILE, encoding="utf-8") as f:
                defaults.update(json.load(f))

        if SETTINGS_FILE.exists():
            with open(SETTINGS_FILE, encoding="utf-8") as f:
                defaults.update(json.load(f))

        env_overrides = {
            "api_base_url": os.environ.get(ENV_API_BASE_URL),
            "timezone": os.environ.get(ENV_TIMEZONE),
            "log_directory": os.environ.get(ENV_LOG_DIRECTORY),
            "request_timeout": os.environ.get(ENV_REQUEST_TIMEOUT),
        }

        for key, value in env_overrides.items():
            if value is not None:
                defaults[key] = value

        self._settings = defaults

        if not SETTINGS_FILE.exists():
            self._save_settings()

    def _save_settings(self) -> None:
        """Save current settings to file."""
        with open(SETTINGS_FILE, "w", encoding="utf-8") as f:
            json.dump(self._settings, f, indent=4)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value by key."""
        return self._settings.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a setting value and save to file."""
        self._settings[key] = value
        self._save_settings()

    def update(self, data: dict[str, Any]) -> None:
        """Update multiple settings at once."""
        self._settings.update(data)
        self._save_settings()

    def all(self) -> dict[str, Any]:
        """Get all settings as a dictionary."""
        return self._settings.copy()

    def reload(self) -> None:
        """Reload settings from file."""
        self._load_settings()

    @property
    def api_base_url(self) -> str:
        """Base URL of the detection API, without trailing slash."""
        return str(self._settings.get("api_base_url", "")).rstrip("/")

    @property
    def request_timeout(self) -> float:
        """Timeout in seconds for API requests."""
        return float(self._settings.get("request_timeout", 60))

    @property
    def timezone(self) -> str | None:
        """IANA zone used to interpret calendar dates, or None for the host zone."""
        value = str(self._settings.get("timezone") or "").strip()
        return value or None

    @property
    def log_directory(self) -> Path:
        """Directory holding the JSONL event logs."""
        return _resolve_path(str(self._settings.get("log_directory", "logs")))

    @property
    def token_file(self) -> Path:
        """File the auth token is persisted to."""
        return _resolve_path(str(self._settings.get("token_file", ".ppe_token")))

    @property
    def download_directory(self) -> Path:
        """Directory downloaded result images are written to."""
        return _resolve_path(str(self._settings.get("download_directory", "downloads")))

    @property
    def history_page_size(self) -> int:
        return int(self._settings.get("history_page_size", 8))

    @property
    def analytics_page_size(self) -> int:
        return int(self._settings.get("analytics_page_size", 100))

    @property
    def fetch_safety_bound(self) -> int:
        """Highest offset an exhaustive fetch may request."""
        return int(self._settings.get("fetch_safety_bound", 10000))

    @property
    def recent_activity_limit(self) -> int:
        return int(self._settings.get("recent_activity_limit", 10))

    @property
    def redirect_delays_enabled(self) -> bool:
        """Whether commit results carry the post-upload display delay."""
        return bool(self._settings.get("redirect_delays_enabled", True))

    @property
    def session_max_age_seconds(self) -> float:
        """Seconds an untouched upload session is kept before it is dropped."""
        return float(self._settings.get("session_max_age_seconds", 3600))

    @property
    def display_name(self) -> str:
        return str(self._settings.get("display_name", "PPE Console"))


def get_settings() -> Settings:
    """Get the singleton Settings instance."""
    return Settings()
