"""
Tests for session storage backends.
"""

import json

import pytest

from explainer_client.storage import (
    REFRESH_TOKEN_KEY,
    SESSION_KEYS,
    TOKEN_KEY,
    USER_KEY,
    FileSessionStorage,
    InMemorySessionStorage,
)


class TestInMemoryStorage:
    """Test the in-process backend."""

    @pytest.mark.asyncio
    async def test_set_get_remove(self):
        storage = InMemorySessionStorage()

        await storage.set(TOKEN_KEY, "token-1")
        assert await storage.get(TOKEN_KEY) == "token-1"

        await storage.remove(TOKEN_KEY)
        await storage.remove(TOKEN_KEY)
        assert await storage.get(TOKEN_KEY) is None

    @pytest.mark.asyncio
    async def test_clear_only_touches_session_keys(self):
        storage = InMemorySessionStorage({key: "x" for key in SESSION_KEYS})
        await storage.set("other", "kept")

        await storage.clear()

        assert storage.snapshot() == {"other": "kept"}


class TestFileStorage:
    """Test the JSON file backend."""

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "session.json"
        storage = FileSessionStorage(path)

        await storage.set(TOKEN_KEY, "token-1")
        await storage.set(REFRESH_TOKEN_KEY, "refresh-1")

        reopened = FileSessionStorage(path)
        assert await reopened.get(TOKEN_KEY) == "token-1"
        assert await reopened.get(REFRESH_TOKEN_KEY) == "refresh-1"
        assert json.loads(path.read_text()) == {TOKEN_KEY: "token-1", REFRESH_TOKEN_KEY: "refresh-1"}

    @pytest.mark.asyncio
    async def test_writes_leave_no_temp_files(self, tmp_path):
        storage = FileSessionStorage(tmp_path / "session.json")

        await storage.set(USER_KEY, '{"id": "user-1"}')
        await storage.set(USER_KEY, '{"id": "user-2"}')

        assert [p.name for p in tmp_path.iterdir()] == ["session.json"]

    @pytest.mark.asyncio
    async def test_missing_file_reads_empty(self, tmp_path):
        storage = FileSessionStorage(tmp_path / "absent.json")

        assert await storage.get(TOKEN_KEY) is None
        await storage.remove(TOKEN_KEY)
        assert not (tmp_path / "absent.json").exists()

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        storage = FileSessionStorage(path)

        assert await storage.get(TOKEN_KEY) is None

        await storage.set(TOKEN_KEY, "token-1")
        assert await storage.get(TOKEN_KEY) == "token-1"

    @pytest.mark.asyncio
    async def test_non_string_values_ignored(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({TOKEN_KEY: 42, REFRESH_TOKEN_KEY: "refresh-1"}))
        storage = FileSessionStorage(path)

        assert await storage.get(TOKEN_KEY) is None
        assert await storage.get(REFRESH_TOKEN_KEY) == "refresh-1"

    @pytest.mark.asyncio
    async def test_clear(self, tmp_path):
        storage = FileSessionStorage(tmp_path / "session.json")
        for key in SESSION_KEYS:
            await storage.set(key, "x")

        await storage.clear()

        for key in SESSION_KEYS:
            assert await storage.get(key) is None
