"""
Factory for creating the analytics module.
"""
from pathlib import Path
from typing import Optional

from config_manager import AnalyticsConfig
from analytics_service.storage import (
    FallbackBackend,
    JsonFileBackend,
    MemoryBackend,
    StorageBackend,
)
from analytics_service.store import AnalyticsStore

from .auth import AdminAuthenticator
from .routes import create_analytics_blueprint
from .services import AnalyticsService


def create_storage_backend(analytics_config: AnalyticsConfig) -> StorageBackend:
    """Build the storage backend described by the analytics configuration."""
    file_backend = JsonFileBackend(Path(analytics_config.data_file))
    if analytics_config.fallback_to_memory:
        return FallbackBackend(file_backend, MemoryBackend())
    return file_backend


def create_analytics_module(
    analytics_config: AnalyticsConfig,
    backend: Optional[StorageBackend] = None
) -> dict:
    """Create analytics module with service and routes.

    Args:
        analytics_config: Analytics settings
        backend: Storage backend to use instead of the configured one

    Returns:
        Dictionary containing the started service and blueprint
    """
    store = AnalyticsStore(
        backend or create_storage_backend(analytics_config),
        max_events=analytics_config.max_event_log
    )
    authenticator = AdminAuthenticator(
        password_hash=analytics_config.admin_password_hash or None,
        password=analytics_config.admin_password or None
    )

    # Create analytics service
    analytics_service = AnalyticsService(store, authenticator).start()

    # Create routes
    blueprint = create_analytics_blueprint(
        analytics_service=analytics_service,
        max_body_size=analytics_config.max_body_size,
        allowed_origins=analytics_config.allowed_origins
    )

    return {
        "service": analytics_service,
        "blueprint": blueprint
    }
