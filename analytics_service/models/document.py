"""
Statistics document models.

This module contains Pydantic models for the aggregated analytics document.
Every field carries a ``mode="before"`` validator that routes the raw value
through a coercion function, so validating arbitrary input never fails: bad
values are replaced with type-correct defaults.
"""

from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from ..coercion import (
    DEFAULT_PATH,
    DIRECT_REFERRER,
    MAX_HREF_LENGTH,
    MAX_LANGUAGE_LENGTH,
    MAX_PATH_LENGTH,
    MAX_TITLE_LENGTH,
    MAX_USER_AGENT_LENGTH,
    MAX_VISITOR_ID_LENGTH,
    MAX_REFERRER_LENGTH,
    to_bounded_string,
    to_counter_map,
    to_iso_timestamp,
    to_label,
    to_non_negative_int,
    to_path,
)

CURRENT_VERSION = 2
DEFAULT_MAX_EVENTS = 500
UNKNOWN_LABEL = "Unknown"


# Key caps for counter maps, by field name
COUNTER_KEY_LIMITS = {
    "languages": MAX_LANGUAGE_LENGTH,
    "visitors": MAX_VISITOR_ID_LENGTH,
    "referrers": MAX_REFERRER_LENGTH,
    "pages": MAX_PATH_LENGTH,
    "hrefs": MAX_HREF_LENGTH,
}


def _keyed_records(
    value: Any,
    key_field: str,
    coerce_key: Callable[[Any], Optional[str]]
) -> Dict[str, Dict[str, Any]]:
    """Keep only mapping-valued entries and stamp each with its coerced key.

    Entries whose key coerces to nothing are dropped; when two keys coerce to
    the same value the first entry wins.
    """
    if not isinstance(value, Mapping):
        return {}
    records = {}
    for key, entry in value.items():
        name = coerce_key(key)
        if not name or name in records or not isinstance(entry, Mapping):
            continue
        record = dict(entry)
        record[key_field] = name
        records[name] = record
    return records


def _bounded_events(value: Any, info: ValidationInfo) -> List[Dict[str, Any]]:
    """Keep only mapping entries, then the most recent ``max_events`` of them."""
    if not isinstance(value, list):
        return []
    max_events = DEFAULT_MAX_EVENTS
    if info.context and "max_events" in info.context:
        max_events = info.context["max_events"]
    entries = [dict(entry) for entry in value if isinstance(entry, Mapping)]
    if max_events <= 0:
        return []
    return entries[-max_events:]


class AnalyticsModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(by_alias=True)


class Totals(AnalyticsModel):
    """Cumulative counters; not bounded by the event logs."""
    visits: int = 0
    clicks: int = 0

    @field_validator("visits", "clicks", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return to_non_negative_int(value)


class VisitorRecord(AnalyticsModel):
    """Per-visitor aggregate."""
    id: str
    visit_count: int = Field(default=0, alias="visitCount")
    first_visit: Optional[str] = Field(default=None, alias="firstVisit")
    last_visit: Optional[str] = Field(default=None, alias="lastVisit")
    last_path: Optional[str] = Field(default=None, alias="lastPath")
    languages: Dict[str, int] = Field(default_factory=dict)

    @field_validator("visit_count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return to_non_negative_int(value)

    @field_validator("first_visit", "last_visit", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[str]:
        return to_iso_timestamp(value)

    @field_validator("last_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Optional[str]:
        return to_bounded_string(value, MAX_PATH_LENGTH)

    @field_validator("languages", mode="before")
    @classmethod
    def _coerce_languages(cls, value: Any) -> Dict[str, int]:
        return to_counter_map(value, MAX_LANGUAGE_LENGTH)


class PageRecord(AnalyticsModel):
    """Per-page aggregate keyed by normalized path."""
    path: str
    title: Optional[str] = None
    visits: int = 0
    clicks: int = 0
    unique_visitors: int = Field(default=0, alias="uniqueVisitors")
    visitors: Dict[str, int] = Field(default_factory=dict)
    referrers: Dict[str, int] = Field(default_factory=dict)
    last_visit: Optional[str] = Field(default=None, alias="lastVisit")

    @field_validator("visits", "clicks", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return to_non_negative_int(value)

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: Any) -> Optional[str]:
        return to_bounded_string(value, MAX_TITLE_LENGTH)

    @field_validator("visitors", "referrers", mode="before")
    @classmethod
    def _coerce_counters(cls, value: Any, info: ValidationInfo) -> Dict[str, int]:
        return to_counter_map(value, COUNTER_KEY_LIMITS[info.field_name])

    @field_validator("last_visit", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[str]:
        return to_iso_timestamp(value)

    @model_validator(mode="after")
    def _derive_fields(self) -> "PageRecord":
        # uniqueVisitors is never trusted from input
        self.title = self.title or self.path
        self.unique_visitors = len(self.visitors)
        return self


class ClickAggregate(AnalyticsModel):
    """Per-label click aggregate."""
    label: str
    count: int = 0
    first_timestamp: Optional[str] = Field(default=None, alias="firstTimestamp")
    last_timestamp: Optional[str] = Field(default=None, alias="lastTimestamp")
    pages: Dict[str, int] = Field(default_factory=dict)
    visitors: Dict[str, int] = Field(default_factory=dict)
    unique_visitors: int = Field(default=0, alias="uniqueVisitors")
    hrefs: Dict[str, int] = Field(default_factory=dict)

    @field_validator("count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return to_non_negative_int(value)

    @field_validator("first_timestamp", "last_timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[str]:
        return to_iso_timestamp(value)

    @field_validator("pages", "visitors", "hrefs", mode="before")
    @classmethod
    def _coerce_counters(cls, value: Any, info: ValidationInfo) -> Dict[str, int]:
        return to_counter_map(value, COUNTER_KEY_LIMITS[info.field_name])

    @model_validator(mode="after")
    def _derive_fields(self) -> "ClickAggregate":
        self.unique_visitors = len(self.visitors)
        return self


class VisitEvent(AnalyticsModel):
    """One entry of the bounded visit log."""
    timestamp: Optional[str] = None
    path: str = DEFAULT_PATH
    referrer: str = DIRECT_REFERRER
    visitor_id: Optional[str] = Field(default=None, alias="visitorId")
    title: Optional[str] = None
    language: Optional[str] = None
    user_agent: Optional[str] = Field(default=None, alias="userAgent")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[str]:
        return to_iso_timestamp(value)

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> str:
        return to_path(value)

    @field_validator("referrer", mode="before")
    @classmethod
    def _coerce_referrer(cls, value: Any) -> str:
        return to_bounded_string(value, MAX_REFERRER_LENGTH) or DIRECT_REFERRER

    @field_validator("visitor_id", mode="before")
    @classmethod
    def _coerce_visitor_id(cls, value: Any) -> Optional[str]:
        return to_bounded_string(value, MAX_VISITOR_ID_LENGTH)

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: Any) -> Optional[str]:
        return to_bounded_string(value, MAX_TITLE_LENGTH)

    @field_validator("language", mode="before")
    @classmethod
    def _coerce_language(cls, value: Any) -> Optional[str]:
        return to_bounded_string(value, MAX_LANGUAGE_LENGTH)

    @field_validator("user_agent", mode="before")
    @classmethod
    def _coerce_user_agent(cls, value: Any) -> Optional[str]:
        return to_bounded_string(value, MAX_USER_AGENT_LENGTH)

    @model_validator(mode="after")
    def _default_title(self) -> "VisitEvent":
        self.title = self.title or self.path
        return self


class ClickEvent(AnalyticsModel):
    """One entry of the bounded click log."""
    timestamp: Optional[str] = None
    path: str = DEFAULT_PATH
    label: str = UNKNOWN_LABEL
    href: Optional[str] = None
    visitor_id: Optional[str] = Field(default=None, alias="visitorId")

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[str]:
        return to_iso_timestamp(value)

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> str:
        return to_path(value)

    @field_validator("label", mode="before")
    @classmethod
    def _coerce_label(cls, value: Any) -> str:
        return to_label(value) or UNKNOWN_LABEL

    @field_validator("href", mode="before")
    @classmethod
    def _coerce_href(cls, value: Any) -> Optional[str]:
        return to_bounded_string(value, MAX_HREF_LENGTH)

    @field_validator("visitor_id", mode="before")
    @classmethod
    def _coerce_visitor_id(cls, value: Any) -> Optional[str]:
        return to_bounded_string(value, MAX_VISITOR_ID_LENGTH)


class StatisticsDocument(AnalyticsModel):
    """The single aggregate root persisted by the store."""
    totals: Totals = Field(default_factory=Totals)
    visitors: Dict[str, VisitorRecord] = Field(default_factory=dict)
    pages: Dict[str, PageRecord] = Field(default_factory=dict)
    visits: List[VisitEvent] = Field(default_factory=list)
    clicks: Dict[str, ClickAggregate] = Field(default_factory=dict)
    click_events: List[ClickEvent] = Field(default_factory=list, alias="clickEvents")
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    version: int = CURRENT_VERSION

    @field_validator("totals", mode="before")
    @classmethod
    def _coerce_totals(cls, value: Any) -> Dict[str, Any]:
        return dict(value) if isinstance(value, Mapping) else {}

    @field_validator("visitors", mode="before")
    @classmethod
    def _coerce_visitors(cls, value: Any) -> Dict[str, Dict[str, Any]]:
        return _keyed_records(value, "id", lambda key: to_bounded_string(key, MAX_VISITOR_ID_LENGTH))

    @field_validator("pages", mode="before")
    @classmethod
    def _coerce_pages(cls, value: Any) -> Dict[str, Dict[str, Any]]:
        return _keyed_records(value, "path", lambda key: to_bounded_string(key, MAX_PATH_LENGTH))

    @field_validator("clicks", mode="before")
    @classmethod
    def _coerce_clicks(cls, value: Any) -> Dict[str, Dict[str, Any]]:
        return _keyed_records(value, "label", to_label)

    @field_validator("visits", "click_events", mode="before")
    @classmethod
    def _coerce_events(cls, value: Any, info: ValidationInfo) -> List[Dict[str, Any]]:
        return _bounded_events(value, info)

    @field_validator("last_updated", mode="before")
    @classmethod
    def _coerce_last_updated(cls, value: Any) -> Optional[str]:
        return to_iso_timestamp(value)

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> int:
        return to_non_negative_int(value) or CURRENT_VERSION

    @classmethod
    def from_raw(cls, raw: Any, max_events: int = DEFAULT_MAX_EVENTS) -> "StatisticsDocument":
        """Build a document from arbitrary input; never raises."""
        if isinstance(raw, StatisticsDocument):
            raw = raw.to_dict()
        if not isinstance(raw, Mapping):
            return cls()
        return cls.model_validate(dict(raw), context={"max_events": max_events})
