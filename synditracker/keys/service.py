"""Key registry: issues, validates, and retires site credentials.

Secrets are looked up by their SHA-256 digest and the final match uses
``hmac.compare_digest``, so response timing does not depend on how much of
a guessed key is right.
"""

import hashlib
import hmac
import logging
import secrets
import string

import asyncpg

from synditracker.errors import PersistenceError, ValidationError
from synditracker.hooks import HookRegistry
from synditracker.keys.repository import KeyRepository
from synditracker.keys.schemas import SiteKey

logger = logging.getLogger(__name__)

_KEY_ALPHABET = string.ascii_uppercase + string.digits
_KEY_LENGTH = 16
_MAX_GENERATE_ATTEMPTS = 5


def hash_key(key_value: str) -> str:
    """Hex SHA-256 digest used as the lookup column for a secret."""
    return hashlib.sha256(key_value.encode("utf-8")).hexdigest()


class KeyRegistry:
    """Orchestrates key generation, validation, and lifecycle changes."""

    def __init__(
        self,
        repository: KeyRepository,
        prefix: str = "ST-",
        hooks: HookRegistry | None = None,
    ) -> None:
        self._repo = repository
        self._prefix = prefix
        self._hooks = hooks or HookRegistry()

    @property
    def repository(self) -> KeyRepository:
        return self._repo

    def _new_value(self) -> str:
        body = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(_KEY_LENGTH))
        return f"{self._prefix}{body}"

    async def generate(self, site_name: str) -> SiteKey:
        """Issue a new active key for a partner site.

        Args:
            site_name: Operator-facing label for the site.

        Returns:
            The stored SiteKey including its secret value.

        Raises:
            ValidationError: If the site name is blank.
            PersistenceError: If the key could not be stored.
        """
        site_name = (site_name or "").strip()
        if not site_name:
            raise ValidationError("Partner Site Name is required.")

        for attempt in range(_MAX_GENERATE_ATTEMPTS):
            value = self._new_value()
            try:
                key = await self._repo.create(value, hash_key(value), site_name)
            except asyncpg.UniqueViolationError:
                logger.warning(
                    "Generated key collided with an issued key (attempt %d)",
                    attempt + 1,
                )
                continue
            except Exception as e:
                logger.error("Failed to generate key for site %s: %s", site_name, e)
                raise PersistenceError("Failed to generate key.") from e

            logger.info("New key generated for site: %s (id=%d)", site_name, key.id)
            self._hooks.key_generated.fire(key)
            return key

        logger.error("Could not find an unused key value for site %s", site_name)
        raise PersistenceError("Failed to generate key.")

    async def validate(self, key_value: str | None) -> int | None:
        """Return the key id if the secret belongs to an active key.

        Args:
            key_value: Secret presented by the caller.

        Returns:
            Key id, or None for unknown, revoked, or blank secrets.

        Raises:
            PersistenceError: If the key table cannot be read.
        """
        if not key_value:
            return None

        try:
            key = await self._repo.get_by_hash(hash_key(key_value))
        except Exception as e:
            logger.error("Key lookup failed: %s", e)
            raise PersistenceError("Failed to validate key.") from e

        if key is None or not key.is_active:
            return None
        if not hmac.compare_digest(key.key_value.encode(), key_value.encode()):
            return None
        return key.id

    async def revoke(self, key_id: int) -> bool:
        """Mark a key revoked, keeping its row. Idempotent.

        Returns:
            True if the key exists.
        """
        try:
            found = await self._repo.set_status(key_id, "revoked")
        except Exception as e:
            logger.error("Failed to revoke key ID %d: %s", key_id, e)
            raise PersistenceError("Failed to revoke key.") from e

        if found:
            logger.info("Key ID %d revoked", key_id)
            self._hooks.key_revoked.fire(key_id)
        return found

    async def delete(self, key_id: int) -> bool:
        """Hard-delete a key. Idempotent.

        Returns:
            True if a row was removed by this call.
        """
        try:
            removed = await self._repo.delete(key_id)
        except Exception as e:
            logger.error("Failed to delete key ID %d: %s", key_id, e)
            raise PersistenceError("Failed to delete key.") from e

        if removed:
            logger.info("Key ID %d deleted", key_id)
            self._hooks.key_deleted.fire(key_id)
        return removed

    async def touch_last_seen(self, key_id: int) -> None:
        """Refresh liveness. Failures are logged and swallowed."""
        try:
            await self._repo.touch_last_seen(key_id)
        except Exception as e:
            logger.warning("Failed to refresh last_seen for key ID %d: %s", key_id, e)

    async def list_keys(self) -> list[SiteKey]:
        return await self._repo.list_keys()

    async def get(self, key_id: int) -> SiteKey | None:
        return await self._repo.get_by_id(key_id)

    async def active_count(self) -> int:
        return await self._repo.count_active()
