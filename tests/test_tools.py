"""End-to-end tests of the registered MCP tools over the in-memory vault."""

import logging
from dataclasses import replace

import pytest

from obsidian_rest.core.global_search import GlobalSearchEngine
from obsidian_rest.data_models import ServerConfiguration
from obsidian_rest.errors import ErrorKind, VaultError
from obsidian_rest.models import (
    DeleteNoteInput,
    GlobalSearchInput,
    ListNotesInput,
    ManageFrontmatterInput,
    ManageTagsInput,
    ReadNoteInput,
    SearchReplaceInput,
    UpdateNoteInput,
)
from obsidian_rest.server import _initial_cache_build, mcp
from obsidian_rest.services.vault_cache import VaultCacheStore
from obsidian_rest.session import (
    ServerServices,
    build_services,
    register_services,
    resolve_services,
)
from obsidian_rest.tools.frontmatter_tools import obsidian_manage_frontmatter, obsidian_manage_tags
from obsidian_rest.tools.note_tools import (
    obsidian_delete_note,
    obsidian_list_notes,
    obsidian_read_note,
    obsidian_update_note,
)
from obsidian_rest.tools.search_tools import obsidian_global_search, obsidian_search_replace

CONFIGURATION = ServerConfiguration(
    base_url="http://127.0.0.1:27123",
    api_key="test-key",
    verify_ssl=False,
    enable_cache=True,
    cache_refresh_interval_min=10,
    api_search_timeout_ms=50,
    log_level="INFO",
)


@pytest.fixture
def services(fake_client):
    fake_client.add_file("Inbox.md", "---\nstatus: open\n---\nRemember the #milk\n", mtime=1000)
    fake_client.add_file("Projects/Plan.md", "Plan: ship it", mtime=2000)
    cache = VaultCacheStore(fake_client, refresh_interval_seconds=600, retry_delay_seconds=0)
    engine = GlobalSearchEngine(
        fake_client, cache, api_timeout_seconds=0.05, api_max_attempts=1, api_retry_delay_seconds=0
    )
    active = ServerServices(
        configuration=CONFIGURATION, client=fake_client, cache=cache, search_engine=engine
    )
    register_services(active)
    yield active
    register_services(None)


class TestSession:
    def test_build_services_with_cache(self, fake_client):
        built = build_services(CONFIGURATION, client=fake_client)
        assert built.client is fake_client
        assert isinstance(built.cache, VaultCacheStore)
        assert isinstance(built.search_engine, GlobalSearchEngine)

    def test_build_services_without_cache(self, fake_client):
        disabled = replace(CONFIGURATION, enable_cache=False)
        assert build_services(disabled, client=fake_client).cache is None

    def test_build_services_requires_api_key(self):
        missing = replace(CONFIGURATION, api_key="")
        with pytest.raises(VaultError) as excinfo:
            build_services(missing)
        assert excinfo.value.kind is ErrorKind.CONFIGURATION_ERROR

    def test_resolve_before_start(self):
        register_services(None)
        with pytest.raises(VaultError) as excinfo:
            resolve_services()
        assert excinfo.value.kind is ErrorKind.SERVICE_UNAVAILABLE

    def test_resolve_registered(self, services):
        assert resolve_services() is services


class TestInitialCacheBuild:
    @pytest.mark.asyncio
    async def test_builds_cache(self, services):
        await _initial_cache_build(services)
        assert services.cache.is_ready()

    @pytest.mark.asyncio
    async def test_vault_error_is_logged(self, services, caplog, monkeypatch):
        async def unreachable():
            raise VaultError(ErrorKind.SERVICE_UNAVAILABLE, "vault offline")

        monkeypatch.setattr(services.cache, "initialize", unreachable)

        with caplog.at_level(logging.ERROR, logger="obsidian_rest.server"):
            await _initial_cache_build(services)

        assert "vault offline" in caplog.text
        assert not services.cache.is_ready()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged_with_traceback(self, services, caplog, monkeypatch):
        async def malformed_listing():
            raise ValueError("malformed JSON body")

        monkeypatch.setattr(services.cache, "initialize", malformed_listing)

        with caplog.at_level(logging.ERROR, logger="obsidian_rest.server"):
            await _initial_cache_build(services)

        records = [record for record in caplog.records if record.name == "obsidian_rest.server"]
        assert records[-1].exc_info is not None
        assert isinstance(records[-1].exc_info[1], ValueError)
        assert not services.cache.is_ready()


class TestToolRegistration:
    @pytest.mark.asyncio
    async def test_all_tools_registered(self):
        names = {tool.name for tool in await mcp.list_tools()}
        assert names == {
            "obsidian_list_notes",
            "obsidian_read_note",
            "obsidian_update_note",
            "obsidian_delete_note",
            "obsidian_global_search",
            "obsidian_search_replace",
            "obsidian_manage_frontmatter",
            "obsidian_manage_tags",
        }


class TestTools:
    @pytest.mark.asyncio
    async def test_list_and_read(self, services):
        listing = await obsidian_list_notes(ListNotesInput(dir_path="/"))
        assert listing["tree"].splitlines() == ["├── Projects/", "│   └── Plan.md", "└── Inbox.md"]

        note = await obsidian_read_note(ReadNoteInput(file_path="/Projects/plan.md"))
        assert note["content"] == "Plan: ship it"

    @pytest.mark.asyncio
    async def test_update_then_search_via_cache(self, services):
        await services.cache.initialize()
        services.client.search_error = RuntimeError("API offline")

        await obsidian_update_note(UpdateNoteInput(file_path="Projects/Plan.md", content="Add a rocket"))
        result = await obsidian_global_search(GlobalSearchInput(query="rocket"))

        assert result["strategy"] == "cache"
        assert result["total_files_found"] == 1
        assert result["results"][0]["matches"][0]["match_text"] == "rocket"

    @pytest.mark.asyncio
    async def test_search_via_api(self, services):
        services.client.add_search_hit("Projects/Plan.md", "Plan: ship it")

        result = await obsidian_global_search(GlobalSearchInput(query="ship"))

        assert result["strategy"] == "api"
        assert result["results"][0]["path"] == "Projects/Plan.md"
        assert "also_found_in_files" not in result

    @pytest.mark.asyncio
    async def test_search_replace(self, services):
        result = await obsidian_search_replace(
            SearchReplaceInput(
                file_path="Projects/Plan.md",
                replacements=[{"search": "ship it", "replace": "launch"}],
            )
        )
        assert result["total_replacements_made"] == 1
        assert services.client.files["Projects/Plan.md"]["content"] == "Plan: launch"

    @pytest.mark.asyncio
    async def test_frontmatter_and_tags(self, services):
        got = await obsidian_manage_frontmatter(
            ManageFrontmatterInput(file_path="Inbox.md", operation="get", key="status")
        )
        assert got["value"] == "open"

        tags = await obsidian_manage_tags(ManageTagsInput(file_path="Inbox.md", operation="list"))
        assert tags["current_tags"] == ["milk"]

    @pytest.mark.asyncio
    async def test_delete(self, services):
        await services.cache.initialize()

        result = await obsidian_delete_note(DeleteNoteInput(file_path="Inbox.md"))

        assert result["success"]
        assert services.cache.get_entry("Inbox.md") is None
