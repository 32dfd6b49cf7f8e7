"""Host-supplied tag and time fields merged into records before formatting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_TIME_FORMAT = "%H:%M:%S"


def to_datetime(timestamp: Any, *, localtime: bool = True) -> datetime:
    """Convert an event timestamp (epoch seconds or datetime) to a datetime."""
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
    else:
        timestamp = datetime.fromtimestamp(float(timestamp), UTC)
    return timestamp.astimezone() if localtime else timestamp.astimezone(UTC)


@dataclass(frozen=True)
class RecordEnricher:
    """Adds the event tag and formatted time to a copy of each record.

    Existing record fields with the same names are overwritten in the
    copy; the source record is left untouched.
    """

    include_time_key: bool = True
    time_key: str = "time"
    time_format: str = DEFAULT_TIME_FORMAT
    localtime: bool = True
    include_tag_key: bool = True
    tag_key: str = "tag"

    @property
    def enabled(self) -> bool:
        return self.include_time_key or self.include_tag_key

    def enrich(self, tag: str, timestamp: Any, record: Mapping[str, Any]) -> Mapping[str, Any]:
        """Return ``record`` with tag/time fields applied."""
        if not self.enabled:
            return record
        enriched = dict(record)
        if self.include_time_key and timestamp is not None:
            when = to_datetime(timestamp, localtime=self.localtime)
            enriched[self.time_key] = when.strftime(self.time_format)
        if self.include_tag_key:
            enriched[self.tag_key] = tag
        return enriched
