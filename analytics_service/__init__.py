# Analytics service package: aggregation engine for visit and click statistics

from .coercion import (
    to_non_negative_int,
    to_bounded_string,
    to_label,
    to_path,
    to_iso_timestamp,
    resolve_timestamp,
    to_counter_map,
    format_referrer,
    language_tag,
    generate_visitor_id,
)
from .models import StatisticsDocument, CURRENT_VERSION, DEFAULT_MAX_EVENTS
from .normalizer import normalize, default_document
from .mutators import apply_visit, apply_click, apply_clear, click_label
from .storage import StorageBackend, JsonFileBackend, MemoryBackend, FallbackBackend
from .store import AnalyticsStore
from .client import AnalyticsClient
from .errors import (
    AnalyticsError,
    PersistenceError,
    CorruptStateError,
    AuthorizationError,
    PayloadTooLargeError,
    InvalidPayloadError,
)
from .logging_config import (
    setup_logging,
    stop_logging,
    AnalyticsLoggingConfig,
)

__all__ = [
    "to_non_negative_int",
    "to_bounded_string",
    "to_label",
    "to_path",
    "to_iso_timestamp",
    "resolve_timestamp",
    "to_counter_map",
    "format_referrer",
    "language_tag",
    "generate_visitor_id",
    "StatisticsDocument",
    "CURRENT_VERSION",
    "DEFAULT_MAX_EVENTS",
    "normalize",
    "default_document",
    "apply_visit",
    "apply_click",
    "apply_clear",
    "click_label",
    "StorageBackend",
    "JsonFileBackend",
    "MemoryBackend",
    "FallbackBackend",
    "AnalyticsStore",
    "AnalyticsClient",
    "AnalyticsError",
    "PersistenceError",
    "CorruptStateError",
    "AuthorizationError",
    "PayloadTooLargeError",
    "InvalidPayloadError",
    "setup_logging",
    "stop_logging",
    "AnalyticsLoggingConfig",
]
