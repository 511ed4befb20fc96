"""Tests for KeyRegistry generation, validation and lifecycle."""

import re
from unittest.mock import AsyncMock

import asyncpg
import pytest

from synditracker.errors import PersistenceError, ValidationError
from synditracker.keys.schemas import SiteKey
from synditracker.keys.service import KeyRegistry, hash_key

KEY_PATTERN = re.compile(r"^ST-[A-Z0-9]{16}$")


@pytest.fixture
def registry(key_repo, hooks):
    return KeyRegistry(key_repo, prefix="ST-", hooks=hooks)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_format_and_persistence(self, registry, key_repo):
        key = await registry.generate("  Partner Site  ")

        assert KEY_PATTERN.match(key.key_value)
        assert key.site_name == "Partner Site"
        assert key.status == "active"
        assert key_repo.keys[key.id] is key

    @pytest.mark.asyncio
    async def test_values_are_unique(self, registry):
        values = {(await registry.generate("Site")).key_value for _ in range(20)}
        assert len(values) == 20

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, registry, key_repo):
        with pytest.raises(ValidationError):
            await registry.generate("   ")
        assert key_repo.keys == {}

    @pytest.mark.asyncio
    async def test_fires_key_generated(self, registry, hooks):
        seen = []
        hooks.key_generated.register(seen.append)
        key = await registry.generate("Site")
        assert seen == [key]

    @pytest.mark.asyncio
    async def test_collision_retries(self, hooks):
        repo = AsyncMock()
        stored = SiteKey(id=3, key_value="ST-AAAAAAAAAAAAAAAA", site_name="Site")
        repo.create.side_effect = [asyncpg.UniqueViolationError("duplicate key"), stored]
        registry = KeyRegistry(repo, hooks=hooks)

        key = await registry.generate("Site")

        assert key is stored
        assert repo.create.await_count == 2
        first, second = (c.args[0] for c in repo.create.await_args_list)
        assert first != second

    @pytest.mark.asyncio
    async def test_persistent_collisions_give_up(self):
        repo = AsyncMock()
        repo.create.side_effect = asyncpg.UniqueViolationError("duplicate key")
        registry = KeyRegistry(repo)

        with pytest.raises(PersistenceError):
            await registry.generate("Site")
        assert repo.create.await_count == 5

    @pytest.mark.asyncio
    async def test_storage_failure(self):
        repo = AsyncMock()
        repo.create.side_effect = ConnectionError("down")
        with pytest.raises(PersistenceError, match="Failed to generate key"):
            await KeyRegistry(repo).generate("Site")

    @pytest.mark.asyncio
    async def test_stores_hash_of_value(self):
        repo = AsyncMock()
        repo.create.return_value = SiteKey(id=1, key_value="x", site_name="Site")
        await KeyRegistry(repo).generate("Site")
        value, digest, _ = repo.create.call_args.args
        assert digest == hash_key(value)
        assert len(digest) == 64


class TestValidate:
    @pytest.mark.asyncio
    async def test_active_key(self, registry, key_repo):
        key = key_repo.add("ST-ABCDEFGHIJKLMNOP")
        assert await registry.validate("ST-ABCDEFGHIJKLMNOP") == key.id

    @pytest.mark.asyncio
    async def test_revoked_key(self, registry, key_repo):
        key_repo.add("ST-ABCDEFGHIJKLMNOP", status="revoked")
        assert await registry.validate("ST-ABCDEFGHIJKLMNOP") is None

    @pytest.mark.asyncio
    async def test_unknown_and_blank(self, registry, key_repo):
        key_repo.add("ST-ABCDEFGHIJKLMNOP")
        assert await registry.validate("ST-ABCDEFGHIJKLMNOQ") is None
        assert await registry.validate("") is None
        assert await registry.validate(None) is None

    @pytest.mark.asyncio
    async def test_lookup_failure_raises(self):
        repo = AsyncMock()
        repo.get_by_hash.side_effect = ConnectionError("down")
        with pytest.raises(PersistenceError):
            await KeyRegistry(repo).validate("ST-ABCDEFGHIJKLMNOP")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_revoke_keeps_row(self, registry, key_repo, hooks):
        revoked = []
        hooks.key_revoked.register(revoked.append)
        key = key_repo.add("ST-ABCDEFGHIJKLMNOP")

        assert await registry.revoke(key.id) is True
        assert await registry.revoke(key.id) is True

        assert key_repo.keys[key.id].status == "revoked"
        assert revoked == [key.id, key.id]
        assert await registry.validate(key.key_value) is None

    @pytest.mark.asyncio
    async def test_revoke_unknown(self, registry):
        assert await registry.revoke(404) is False

    @pytest.mark.asyncio
    async def test_delete(self, registry, key_repo, hooks):
        deleted = []
        hooks.key_deleted.register(deleted.append)
        key = key_repo.add("ST-ABCDEFGHIJKLMNOP")

        assert await registry.delete(key.id) is True
        assert await registry.delete(key.id) is False

        assert deleted == [key.id]
        assert await registry.get(key.id) is None

    @pytest.mark.asyncio
    async def test_delete_failure_raises(self):
        repo = AsyncMock()
        repo.delete.side_effect = ConnectionError("down")
        with pytest.raises(PersistenceError):
            await KeyRegistry(repo).delete(1)

    @pytest.mark.asyncio
    async def test_touch_last_seen(self, registry, key_repo):
        key = key_repo.add("ST-ABCDEFGHIJKLMNOP")
        await registry.touch_last_seen(key.id)
        assert key_repo.keys[key.id].last_seen is not None

    @pytest.mark.asyncio
    async def test_touch_last_seen_failure_is_swallowed(self):
        repo = AsyncMock()
        repo.touch_last_seen.side_effect = ConnectionError("down")
        await KeyRegistry(repo).touch_last_seen(1)

    @pytest.mark.asyncio
    async def test_list_and_count(self, registry, key_repo):
        key_repo.add("ST-AAAAAAAAAAAAAAAA")
        key_repo.add("ST-BBBBBBBBBBBBBBBB", status="revoked")

        keys = await registry.list_keys()

        assert [k.key_value for k in keys] == ["ST-BBBBBBBBBBBBBBBB", "ST-AAAAAAAAAAAAAAAA"]
        assert await registry.active_count() == 1
