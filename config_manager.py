"""
Configuration management for the Site Analytics service.
Handles loading, validating, and providing access to application settings.
"""

import os
import json
import logging
import re
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_HEX_HASH_RE = re.compile(r"[a-fA-F0-9]{64}")


@dataclass
class AppConfig:
    """Application configuration settings."""
    host: str
    port: int
    debug: bool


@dataclass
class AnalyticsConfig:
    """Analytics store and HTTP boundary settings."""
    data_file: str
    max_event_log: int
    max_body_size: int
    allowed_origins: list[str]
    admin_password: str
    admin_password_hash: str
    fallback_to_memory: bool


def parse_allowed_origins(value: Any) -> list[str]:
    """Parse a list or comma-separated string of origins; empty means ``*``."""
    if not value:
        return ["*"]
    if isinstance(value, (list, tuple)):
        origins = [str(item).strip() for item in value if str(item).strip()]
    else:
        origins = [item.strip() for item in str(value).split(",") if item.strip()]
    return origins or ["*"]


def is_hex_hash(value: Any) -> bool:
    """Check whether a value looks like a SHA-256 hex digest."""
    return isinstance(value, str) and bool(_HEX_HASH_RE.fullmatch(value))


class ConfigManager:
    """Manages application configuration loading and access."""

    def __init__(self, config_file: str = "analytics_config.json"):
        self.config_file = Path(config_file)
        self._config: Optional[Dict[str, Any]] = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        # Start with default config
        self._config = self._get_default_config()

        # Load base config from file
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    file_config = json.load(f)
                    # Merge file config with defaults
                    self._merge_config(file_config)
            except (json.JSONDecodeError, FileNotFoundError):
                # Keep default config if file is invalid or not found
                logger.warning(f"Ignoring unreadable config file {self.config_file}")

        # Override with environment variables
        self._override_with_env()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "app": {
                "host": "0.0.0.0",
                "port": 3000,
                "debug": False
            },
            "analytics": {
                "data_file": "data/analytics.json",
                "max_event_log": 500,
                "max_body_size": 1_000_000,
                "allowed_origins": ["*"],
                "admin_password": "",
                "admin_password_hash": "",
                "fallback_to_memory": False
            }
        }

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Merge file configuration with current config."""
        for section, values in file_config.items():
            if section in self._config:
                if isinstance(values, dict):
                    self._config[section].update(values)
                else:
                    self._config[section] = values
            else:
                self._config[section] = values

    def _override_with_env(self) -> None:
        """Override configuration with environment variables."""
        # App settings
        if os.getenv("APP_HOST"):
            self._config["app"]["host"] = os.getenv("APP_HOST")

        if os.getenv("APP_PORT"):
            self._config["app"]["port"] = int(os.getenv("APP_PORT"))
        elif os.getenv("PORT"):
            self._config["app"]["port"] = int(os.getenv("PORT"))

        if os.getenv("APP_DEBUG"):
            self._config["app"]["debug"] = os.getenv("APP_DEBUG").lower() == "true"

        # Analytics settings
        if os.getenv("ANALYTICS_DATA_FILE"):
            self._config["analytics"]["data_file"] = os.getenv("ANALYTICS_DATA_FILE")

        if os.getenv("MAX_EVENT_LOG"):
            self._config["analytics"]["max_event_log"] = int(os.getenv("MAX_EVENT_LOG"))

        if os.getenv("MAX_BODY_SIZE"):
            self._config["analytics"]["max_body_size"] = int(os.getenv("MAX_BODY_SIZE"))

        if os.getenv("ALLOWED_ORIGINS"):
            self._config["analytics"]["allowed_origins"] = parse_allowed_origins(os.getenv("ALLOWED_ORIGINS"))

        if os.getenv("ADMIN_PASSWORD"):
            self._config["analytics"]["admin_password"] = os.getenv("ADMIN_PASSWORD")

        # Only a well-formed digest is accepted as a pre-hashed password
        if is_hex_hash(os.getenv("ADMIN_PASSWORD_HASH")):
            self._config["analytics"]["admin_password_hash"] = os.getenv("ADMIN_PASSWORD_HASH").lower()

        if os.getenv("ANALYTICS_FALLBACK_TO_MEMORY"):
            self._config["analytics"]["fallback_to_memory"] = (
                os.getenv("ANALYTICS_FALLBACK_TO_MEMORY").lower() == "true"
            )

    def get_app_config(self) -> AppConfig:
        """Get application configuration."""
        app_config = self._config["app"]
        return AppConfig(
            host=app_config["host"],
            port=app_config["port"],
            debug=app_config["debug"]
        )

    def get_analytics_config(self) -> AnalyticsConfig:
        """Get analytics configuration."""
        analytics_config = self._config["analytics"]
        admin_hash = analytics_config.get("admin_password_hash") or ""
        return AnalyticsConfig(
            data_file=analytics_config["data_file"],
            max_event_log=max(1, int(analytics_config["max_event_log"])),
            max_body_size=max(1, int(analytics_config["max_body_size"])),
            allowed_origins=parse_allowed_origins(analytics_config.get("allowed_origins")),
            admin_password=analytics_config.get("admin_password") or "",
            admin_password_hash=admin_hash.lower() if is_hex_hash(admin_hash) else "",
            fallback_to_memory=bool(analytics_config.get("fallback_to_memory"))
        )


# Global configuration instance
config_manager = ConfigManager()


def get_app_config() -> AppConfig:
    """Get application configuration."""
    return config_manager.get_app_config()


def get_analytics_config() -> AnalyticsConfig:
    """Get analytics configuration."""
    return config_manager.get_analytics_config()

