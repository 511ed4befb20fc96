"""Data models for site keys."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

KeyStatus = Literal["active", "revoked"]

VALID_KEY_STATUSES: frozenset[str] = frozenset({"active", "revoked"})


@dataclass
class SiteKey:
    """An opaque credential issued to one agent site.

    Attributes:
        id: Database identifier, used for rate limiting and admin actions.
        key_value: The secret the agent sends in ``X-Site-Key``.
        site_name: Operator-facing label of the owning site.
        status: ``active`` or ``revoked``. Revoked keys keep their value
            reserved so it is never issued again.
        created_at: Issue time.
        last_seen: Last authenticated request, ``None`` until first use.
    """

    id: int
    key_value: str
    site_name: str
    status: KeyStatus = "active"
    created_at: datetime | None = None
    last_seen: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "key_value": self.key_value,
            "site_name": self.site_name,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
        }
