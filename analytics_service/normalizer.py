"""
Statistics Document Normalizer

Turns arbitrary input (freshly loaded storage, a remote peer's JSON, a
hand-edited file) into a well-typed, bounded statistics document.
"""

from typing import Any, Dict

from .models import DEFAULT_MAX_EVENTS, StatisticsDocument


def default_document() -> Dict[str, Any]:
    """Return a fresh all-zero statistics document."""
    return StatisticsDocument().to_dict()


def normalize(raw: Any, max_events: int = DEFAULT_MAX_EVENTS) -> Dict[str, Any]:
    """Normalize a raw statistics document.

    Never raises: any field with the wrong type at any depth is replaced with
    its default, malformed record entries are dropped, event logs are trimmed
    to the most recent ``max_events`` entries and ``uniqueVisitors`` is
    recomputed from the visitor maps.

    Args:
        raw: Anything; non-mappings yield the default document
        max_events: Bound for the ``visits`` and ``clickEvents`` logs

    Returns:
        A JSON-ready dictionary with camelCase keys
    """
    return StatisticsDocument.from_raw(raw, max_events).to_dict()
