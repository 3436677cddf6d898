"""
Statistics Document Mutators

Pure functions that fold one raw, untrusted event into a normalized
statistics document. The input document is never modified; each mutator
returns a new normalized document.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, List, Optional

from .coercion import (
    MAX_HREF_LENGTH,
    MAX_LANGUAGE_LENGTH,
    MAX_TITLE_LENGTH,
    MAX_USER_AGENT_LENGTH,
    MAX_VISITOR_ID_LENGTH,
    coerce_visitor_id,
    format_referrer,
    language_tag,
    resolve_timestamp,
    to_bounded_string,
    to_label,
    to_path,
)
from .models import (
    DEFAULT_MAX_EVENTS,
    ClickAggregate,
    ClickEvent,
    PageRecord,
    StatisticsDocument,
    VisitEvent,
    VisitorRecord,
)
from .normalizer import default_document, normalize


def _as_event(event: Any) -> Mapping:
    return event if isinstance(event, Mapping) else {}


def _pick(event: Mapping, *names: str) -> Any:
    """Return the first non-empty value among the given keys."""
    for name in names:
        value = event.get(name)
        if value not in (None, ""):
            return value
    return None


def _trim(entries: List[Any], max_events: int) -> List[Any]:
    """Drop the oldest entries so at most ``max_events`` remain."""
    if max_events <= 0:
        return []
    return entries[-max_events:]


def _increment(counter: Dict[str, int], key: str) -> None:
    counter[key] = counter.get(key, 0) + 1


def click_label(event: Any) -> str:
    """Resolve the sanitized label of a raw click event (empty if unusable)."""
    return to_label(_pick(_as_event(event), "label", "text"))


def _ensure_page(doc: StatisticsDocument, path: str, title: str) -> PageRecord:
    """Look up a page record, creating it with defaults if absent."""
    page = doc.pages.get(path)
    if page is None:
        page = PageRecord(path=path, title=title)
        doc.pages[path] = page
    elif not page.title:
        page.title = title
    return page


def apply_visit(
    document: Any,
    event: Any,
    max_events: int = DEFAULT_MAX_EVENTS,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Fold a page visit into the document.

    Args:
        document: The current statistics document
        event: Raw visit payload (``timestamp``, ``visitorId``, ``path``,
            ``title``, ``referrer``, ``language``, ``userAgent``; all optional)
        max_events: Bound for the visit log
        now: Clock override used when the event carries no usable timestamp

    Returns:
        The updated, normalized document
    """
    event = _as_event(event)
    doc = StatisticsDocument.from_raw(document, max_events)

    timestamp = resolve_timestamp(event.get("timestamp"), now)
    visitor_id = coerce_visitor_id(_pick(event, "visitorId", "visitor_id"))
    path = to_path(event.get("path"))
    title = to_bounded_string(event.get("title"), MAX_TITLE_LENGTH) or path
    referrer = format_referrer(event.get("referrer"))
    language = to_bounded_string(event.get("language"), MAX_LANGUAGE_LENGTH)
    user_agent = to_bounded_string(_pick(event, "userAgent", "user_agent"), MAX_USER_AGENT_LENGTH)

    doc.totals.visits += 1

    visitor = doc.visitors.get(visitor_id)
    if visitor is None:
        visitor = VisitorRecord(id=visitor_id)
        doc.visitors[visitor_id] = visitor
    visitor.visit_count += 1
    visitor.first_visit = visitor.first_visit or timestamp
    visitor.last_visit = timestamp
    visitor.last_path = path
    tag = language_tag(language)
    if tag:
        _increment(visitor.languages, tag)

    page = _ensure_page(doc, path, title)
    page.visits += 1
    page.last_visit = timestamp
    _increment(page.referrers, referrer)
    _increment(page.visitors, visitor_id)
    page.unique_visitors = len(page.visitors)

    doc.visits.append(VisitEvent(
        timestamp=timestamp,
        path=path,
        referrer=referrer,
        visitor_id=visitor_id,
        title=title,
        language=language,
        user_agent=user_agent,
    ))
    doc.visits = _trim(doc.visits, max_events)

    doc.last_updated = timestamp
    return doc.to_dict()


def apply_click(
    document: Any,
    event: Any,
    max_events: int = DEFAULT_MAX_EVENTS,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Fold a click into the document.

    A click whose label is empty after sanitization is ignored and the
    document comes back unchanged.

    Args:
        document: The current statistics document
        event: Raw click payload (``label``, ``visitorId``, ``path``, ``href``,
            ``timestamp``, ``pageTitle``/``title``)
        max_events: Bound for the click log
        now: Clock override used when the event carries no usable timestamp

    Returns:
        The updated, normalized document
    """
    event = _as_event(event)
    label = click_label(event)
    if not label:
        return normalize(document, max_events)

    doc = StatisticsDocument.from_raw(document, max_events)

    timestamp = resolve_timestamp(event.get("timestamp"), now)
    visitor_id = to_bounded_string(_pick(event, "visitorId", "visitor_id"), MAX_VISITOR_ID_LENGTH)
    path = to_path(event.get("path"))
    href = to_bounded_string(event.get("href"), MAX_HREF_LENGTH)
    title = to_bounded_string(_pick(event, "pageTitle", "title"), MAX_TITLE_LENGTH) or path

    doc.totals.clicks += 1

    page = _ensure_page(doc, path, title)
    page.clicks += 1

    entry = doc.clicks.get(label)
    if entry is None:
        entry = ClickAggregate(label=label)
        doc.clicks[label] = entry
    entry.count += 1
    entry.first_timestamp = entry.first_timestamp or timestamp
    entry.last_timestamp = timestamp
    _increment(entry.pages, path)
    if href:
        _increment(entry.hrefs, href)
    if visitor_id:
        _increment(entry.visitors, visitor_id)
    entry.unique_visitors = len(entry.visitors)

    doc.click_events.append(ClickEvent(
        timestamp=timestamp,
        path=path,
        label=label,
        href=href,
        visitor_id=visitor_id,
    ))
    doc.click_events = _trim(doc.click_events, max_events)

    doc.last_updated = timestamp
    return doc.to_dict()


def apply_clear(document: Any = None) -> Dict[str, Any]:
    """Discard the document and return fresh defaults."""
    return default_document()
