"""Schema definitions for syndication events and their aggregates.

``SyndicationEvent`` maps 1:1 to the ``syndication_events`` table. Each row
records one republication of a source post reported by an agent site.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

# Fixed look-back for duplicate classification. Independent of the
# configurable spike scanning window.
DUPLICATE_WINDOW = timedelta(hours=24)


@dataclass
class SyndicationEvent:
    """A reported syndication event.

    Attributes:
        post_id: Identifier of the original content item.
        site_url: Origin of the reporting agent; dedup dimension.
        site_name: Display name of the reporting agent.
        aggregator: Normalised aggregator name (allow-listed or "Unknown").
        timestamp: When the hub accepted the event.
        is_duplicate: Computed once at insert, never updated.
        id: Database identifier, None until stored.
    """

    post_id: int
    site_url: str
    site_name: str = ""
    aggregator: str = "Unknown"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_duplicate: bool = False
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "post_id": self.post_id,
            "site_url": self.site_url,
            "site_name": self.site_name,
            "aggregator": self.aggregator,
            "timestamp": self.timestamp.isoformat(),
            "is_duplicate": self.is_duplicate,
        }


@dataclass(frozen=True)
class EventMetrics:
    """All-time aggregate over stored events."""

    total: int = 0
    duplicates: int = 0
    unique_partners: int = 0

    @property
    def duplicate_rate(self) -> float:
        """Duplicate share in percent, rounded to 2 decimals."""
        return duplicate_rate(self.total, self.duplicates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "duplicates": self.duplicates,
            "unique_partners": self.unique_partners,
            "duplicate_rate": self.duplicate_rate,
        }


@dataclass(frozen=True)
class WindowMetrics:
    """Aggregate restricted to a trailing window."""

    total: int = 0
    duplicates: int = 0
    window_hours: int = 1

    @property
    def duplicate_rate(self) -> float:
        return duplicate_rate(self.total, self.duplicates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "duplicates": self.duplicates,
            "window_hours": self.window_hours,
            "duplicate_rate": self.duplicate_rate,
        }


def duplicate_rate(total: int, duplicates: int) -> float:
    if total <= 0:
        return 0.0
    return round(duplicates / total * 100, 2)
