"""Site keys: per-agent credentials for ingestion.

Components:
- SiteKey: Dataclass mapping to the site_keys table
- KeyRepository: CRUD operations for key persistence
- KeyRegistry: Generation, constant-time validation, revoke/delete, liveness
"""

from synditracker.keys.repository import KeyRepository
from synditracker.keys.schemas import VALID_KEY_STATUSES, KeyStatus, SiteKey
from synditracker.keys.service import KeyRegistry, hash_key

__all__ = [
    "KeyRegistry",
    "KeyRepository",
    "KeyStatus",
    "SiteKey",
    "VALID_KEY_STATUSES",
    "hash_key",
]
