"""Tests for the in-memory vault cache."""

import asyncio

import pytest

from obsidian_rest.errors import ErrorKind, VaultError
from obsidian_rest.services.vault_cache import VaultCacheStore


def fail_once(client, dir_path, kind):
    """Make the next listing of ``dir_path`` fail with ``kind``."""
    list_files = client.list_files
    pending = [kind]

    async def flaky_list_files(path=""):
        if path.strip("/") == dir_path and pending:
            client.calls.append(("list_files", path))
            failure = pending.pop()
            raise VaultError(failure, f"Injected {failure.value} listing {dir_path}")
        return await list_files(path)

    client.list_files = flaky_list_files


@pytest.fixture
def store(fake_client):
    return VaultCacheStore(fake_client, refresh_interval_seconds=600, retry_delay_seconds=0)


@pytest.fixture
def populated(fake_client):
    fake_client.add_file("Home.md", "home", mtime=1000)
    fake_client.add_file("notes/a.md", "hello world", mtime=2000, ctime=500)
    fake_client.add_file("notes/deep/b.md", "nested", mtime=3000)
    fake_client.add_file("attachments/image.png", "binary", mtime=4000)
    fake_client.add_file("notes/data.json", "{}", mtime=5000)
    return fake_client


@pytest.fixture
def gate(fake_client):
    """Event that blocks directory listings while cleared."""
    event = asyncio.Event()
    event.set()
    list_files = fake_client.list_files

    async def gated_list_files(dir_path=""):
        await event.wait()
        return await list_files(dir_path)

    fake_client.list_files = gated_list_files
    return event


class TestRebuild:
    @pytest.mark.asyncio
    async def test_caches_only_markdown_files(self, store, populated):
        await store.initialize()

        assert store.is_ready()
        assert sorted(store.get_cache()) == ["Home.md", "notes/a.md", "notes/deep/b.md"]

    @pytest.mark.asyncio
    async def test_entry_mirrors_remote_note(self, store, populated):
        await store.initialize()

        entry = store.get_entry("notes/a.md")
        assert entry.content == "hello world"
        assert entry.mtime == 2000
        assert entry.ctime == 500
        assert entry.size == len("hello world")

    @pytest.mark.asyncio
    async def test_not_ready_before_first_build(self, store, populated):
        assert not store.is_ready()
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_vanished_directory_is_skipped(self, store, populated):
        populated.list_failures["notes/deep"] = ErrorKind.NOT_FOUND

        await store.initialize()

        assert "notes/deep/b.md" not in store.get_cache()
        assert "notes/a.md" in store.get_cache()

    @pytest.mark.asyncio
    async def test_listing_failure_aborts_initial_build(self, store, populated):
        populated.list_failures["notes"] = ErrorKind.SERVICE_UNAVAILABLE

        with pytest.raises(VaultError):
            await store.initialize()

        assert not store.is_ready()
        assert not store.is_building()

    @pytest.mark.asyncio
    async def test_failed_rebuild_keeps_previous_snapshot(self, store, populated):
        await store.initialize()
        before = dict(store.get_cache())

        populated.list_failures[""] = ErrorKind.SERVICE_UNAVAILABLE
        assert await store.rebuild() is False

        assert dict(store.get_cache()) == before
        assert store.is_ready()

    @pytest.mark.asyncio
    async def test_unreadable_file_is_skipped(self, store, populated):
        populated.get_failures["Home.md"] = [ErrorKind.FORBIDDEN]

        await store.initialize()

        assert "Home.md" not in store.get_cache()
        assert "notes/a.md" in store.get_cache()

    @pytest.mark.asyncio
    async def test_transient_not_found_is_retried(self, store, populated):
        populated.get_failures["Home.md"] = [ErrorKind.NOT_FOUND, ErrorKind.NOT_FOUND]

        await store.initialize()

        assert store.get_entry("Home.md").content == "home"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind", [ErrorKind.SERVICE_UNAVAILABLE, ErrorKind.TIMEOUT, ErrorKind.NOT_FOUND]
    )
    async def test_transient_listing_failure_is_retried(self, store, populated, kind):
        fail_once(populated, "notes", kind)

        assert await store.rebuild() is True

        assert store.is_ready()
        assert "notes/a.md" in store.get_cache()
        assert "notes/deep/b.md" in store.get_cache()
        assert populated.calls.count(("list_files", "notes")) == 2

    @pytest.mark.asyncio
    async def test_forbidden_listing_is_not_retried(self, store, populated):
        populated.list_failures["notes"] = ErrorKind.FORBIDDEN

        assert await store.rebuild() is False

        assert populated.calls.count(("list_files", "notes")) == 1

    @pytest.mark.asyncio
    async def test_rebuild_drops_files_deleted_remotely(self, store, populated):
        await store.initialize()
        del populated.files["Home.md"]

        assert await store.rebuild() is True

        assert "Home.md" not in store.get_cache()

    @pytest.mark.asyncio
    async def test_rebuild_is_idempotent(self, store, populated):
        await store.initialize()
        first = dict(store.get_cache())

        await store.rebuild()

        assert dict(store.get_cache()) == first

    @pytest.mark.asyncio
    async def test_initialize_twice_skips_second_build(self, store, populated):
        await store.initialize()
        listings = populated.count("list_files")

        await store.initialize()

        assert populated.count("list_files") == listings

    @pytest.mark.asyncio
    async def test_readers_never_see_partial_snapshot(self, store, populated, gate):
        await store.initialize()
        view = store.get_cache()
        before = dict(view)

        populated.add_file("notes/new.md", "fresh")
        gate.clear()
        rebuild = asyncio.create_task(store.rebuild())
        await asyncio.sleep(0)
        assert store.is_building()
        assert dict(store.get_cache()) == before

        gate.set()
        await rebuild
        assert "notes/new.md" in store.get_cache()
        # a view taken before the swap still shows the old snapshot
        assert "notes/new.md" not in view

    @pytest.mark.asyncio
    async def test_concurrent_rebuild_is_skipped(self, store, populated, gate):
        gate.clear()
        first = asyncio.create_task(store.rebuild())
        await asyncio.sleep(0)

        assert await store.rebuild() is False
        gate.set()
        assert await first is True


class TestUpdateCacheForFile:
    @pytest.mark.asyncio
    async def test_upserts_new_file(self, store, populated):
        await store.initialize()
        populated.add_file("notes/c.md", "created later", mtime=9000)

        assert await store.update_cache_for_file("notes/c.md") is True

        entry = store.get_entry("notes/c.md")
        assert entry.content == "created later"
        assert entry.mtime == 9000

    @pytest.mark.asyncio
    async def test_removes_deleted_file(self, store, populated):
        await store.initialize()
        del populated.files["notes/a.md"]

        assert await store.update_cache_for_file("notes/a.md") is True

        assert store.get_entry("notes/a.md") is None

    @pytest.mark.asyncio
    async def test_other_failures_leave_entry_untouched(self, store, populated):
        await store.initialize()
        previous = store.get_entry("notes/a.md")
        populated.get_failures["notes/a.md"] = [ErrorKind.FORBIDDEN]

        assert await store.update_cache_for_file("notes/a.md") is False

        assert store.get_entry("notes/a.md") == previous

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self, store, populated):
        await store.initialize()
        populated.files["notes/a.md"]["content"] = "edited"
        populated.get_failures["notes/a.md"] = [ErrorKind.SERVICE_UNAVAILABLE]

        assert await store.update_cache_for_file("notes/a.md") is True

        assert store.get_entry("notes/a.md").content == "edited"

    @pytest.mark.asyncio
    async def test_repeated_refresh_of_unchanged_file(self, store, populated):
        await store.initialize()

        assert await store.update_cache_for_file("notes/a.md") is True
        first = store.get_entry("notes/a.md")
        assert await store.update_cache_for_file("notes/a.md") is True

        assert store.get_entry("notes/a.md") == first
        assert first.content == "hello world"

    @pytest.mark.asyncio
    async def test_refresh_only_touches_one_key(self, store, populated):
        await store.initialize()
        others = {path: entry for path, entry in store.get_cache().items() if path != "Home.md"}
        populated.files["Home.md"]["content"] = "changed"

        await store.update_cache_for_file("Home.md")

        assert {p: e for p, e in store.get_cache().items() if p != "Home.md"} == others


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_periodic_refresh_rebuilds(self, fake_client):
        fake_client.add_file("a.md", "one")
        store = VaultCacheStore(fake_client, refresh_interval_seconds=0.01, retry_delay_seconds=0)

        store.start_periodic_refresh()
        try:
            for _ in range(100):
                if store.is_ready():
                    break
                await asyncio.sleep(0.01)
        finally:
            await store.dispose()

        assert store.is_ready()
        assert store.get_entry("a.md").content == "one"

    @pytest.mark.asyncio
    async def test_dispose_stops_future_rebuilds(self, store, populated):
        store.start_periodic_refresh()
        await store.dispose()

        assert await store.rebuild() is False
        assert not store.is_ready()

    @pytest.mark.asyncio
    async def test_dispose_without_refresh_task(self, store):
        await store.dispose()
        assert await store.rebuild() is False
