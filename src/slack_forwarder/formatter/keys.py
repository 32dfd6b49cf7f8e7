"""Record field lookup with text coercion."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)


def to_text(value: Any) -> str:
    """Convert a record value to the text substituted into templates."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)


def resolve_key(record: Mapping[str, Any], key: str) -> str:
    """Look up a record field as text.

    A missing key is logged as a warning and resolves to an empty string
    so one absent field never fails the whole batch.

    Args:
        record: Log record to read from.
        key: Field name to look up.

    Returns:
        Text representation of the field, or "" if absent.
    """
    try:
        value = record[key]
    except KeyError:
        logger.warning(f"The specified key '{key}' not found in record. [{record}]")
        return ""
    return to_text(value)


def resolve_keys(record: Mapping[str, Any], keys: Iterable[str]) -> tuple[str, ...]:
    """Resolve several keys in order."""
    return tuple(resolve_key(record, key) for key in keys)
