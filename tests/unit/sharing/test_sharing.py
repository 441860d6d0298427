"""Tests for document and key-pattern sharing, and shared memory reads."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest

from toolgate.apps.artifacts import ArtifactStore
from toolgate.apps.stores.inmemory import InMemoryAppStore
from toolgate.content.documents import DocumentService
from toolgate.content.library import LibraryBuilder
from toolgate.content.memory import MemoryService
from toolgate.content.models import Content
from toolgate.content.stores.inmemory import InMemoryContentStore, InMemoryMemoryStore
from toolgate.gateway.errors import ErrorCode, ToolError
from toolgate.gateway.sink import BestEffortSink
from toolgate.providers.blob.inmemory import InMemoryBlobStore
from toolgate.sharing.patterns import any_match, matches
from toolgate.sharing.service import SharingService
from toolgate.sharing.stores.inmemory import InMemoryShareStore
from toolgate.users.models import User
from toolgate.users.stores.inmemory import InMemoryUserStore


@dataclass
class World:
    sharing: SharingService
    memory: MemoryService
    contents: InMemoryContentStore
    users: InMemoryUserStore


@pytest.fixture
async def world(owner: User, guest: User) -> AsyncIterator[World]:
    sink = BestEffortSink()
    users = InMemoryUserStore()
    await users.upsert(owner)
    await users.upsert(guest)
    contents = InMemoryContentStore()
    blob = InMemoryBlobStore()
    documents = DocumentService(contents, blob, sink)
    apps = InMemoryAppStore()
    library = LibraryBuilder(apps, ArtifactStore(blob, None), documents)
    sharing = SharingService(InMemoryShareStore(), contents, documents, library, users)
    memory = MemoryService(InMemoryMemoryStore(), documents, sharing, users)
    yield World(sharing=sharing, memory=memory, contents=contents, users=users)
    await sink.drain()


async def create_page(contents: InMemoryContentStore, owner: User, slug: str) -> Content:
    return await contents.upsert(
        Content(owner_id=owner.id, type="page", slug=slug, title=slug.title(), body="# hi")
    )


class TestPatterns:
    @pytest.mark.parametrize(
        ("pattern", "key", "expected"),
        [
            ("prefs", "prefs", True),
            ("prefs", "prefs.theme", False),
            ("prefs.*", "prefs.theme", True),
            ("prefs.*", "profile", False),
            ("*", "anything", True),
        ],
    )
    def test_matches(self, pattern: str, key: str, expected: bool) -> None:
        assert matches(pattern, key) is expected

    def test_any_match(self) -> None:
        assert any_match(["a", "b*"], "bee")
        assert not any_match([], "bee")


class TestDocumentShares:
    @pytest.mark.asyncio
    async def test_share_page_sets_token_and_visibility(
        self, world: World, owner: User, guest: User
    ) -> None:
        page = await create_page(world.contents, owner, "notes")

        result = await world.sharing.grant(owner, "page", guest.email, slug="notes")

        assert result["status"] == "active"
        assert result["access_token"]
        stored = await world.contents.get_by_id(page.id)
        assert stored.visibility == "shared"
        assert stored.access_token == result["access_token"]

    @pytest.mark.asyncio
    async def test_share_missing_page(self, world: World, owner: User, guest: User) -> None:
        with pytest.raises(ToolError) as exc_info:
            await world.sharing.grant(owner, "page", guest.email, slug="nope")
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_cannot_share_with_self(self, world: World, owner: User) -> None:
        with pytest.raises(ToolError) as exc_info:
            await world.sharing.grant(owner, "memory_md", owner.email.upper())
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_bad_access_level(self, world: World, owner: User, guest: User) -> None:
        with pytest.raises(ToolError):
            await world.sharing.grant(owner, "memory_md", guest.email, access_level="admin")

    @pytest.mark.asyncio
    async def test_memory_md_created_on_first_share(
        self, world: World, owner: User, guest: User
    ) -> None:
        await world.sharing.grant(owner, "memory_md", guest.email)

        incoming = await world.sharing.list_incoming(guest)

        assert [d["slug"] for d in incoming["memory_md"]] == ["_memory"]
        assert incoming["memory_md"][0]["owner_email"] == owner.email

    @pytest.mark.asyncio
    async def test_expired_shares_hidden_from_incoming(
        self, world: World, owner: User, guest: User
    ) -> None:
        await create_page(world.contents, owner, "old")
        await world.sharing.grant(
            owner,
            "page",
            guest.email,
            slug="old",
            expires_at=datetime.now(UTC) - timedelta(minutes=1),
        )

        incoming = await world.sharing.list_incoming(guest)

        assert incoming["pages"] == []

    @pytest.mark.asyncio
    async def test_pending_share_claimed_on_signup(self, world: World, owner: User) -> None:
        await create_page(world.contents, owner, "notes")
        granted = await world.sharing.grant(owner, "page", "later@example.com", slug="notes")
        assert granted["status"] == "pending"

        newcomer, _ = await world.users.upsert(User(id="user-later", email="later@example.com"))
        assert await world.sharing.convert_pending(newcomer) == 1

        outgoing = await world.sharing.list_outgoing(owner)
        assert outgoing["pages"][0]["status"] == "active"

    @pytest.mark.asyncio
    async def test_revoke_and_regenerate(self, world: World, owner: User, guest: User) -> None:
        await create_page(world.contents, owner, "notes")
        first = await world.sharing.grant(owner, "page", guest.email, slug="notes")

        regenerated = await world.sharing.regenerate_token(owner, "page", "notes")
        revoked = await world.sharing.revoke(owner, "page", guest.email, slug="notes")

        assert regenerated["access_token"] != first["access_token"]
        assert revoked["revoked"] == 1
        assert (await world.sharing.list_incoming(guest))["pages"] == []


class TestSharedMemory:
    @pytest.mark.asyncio
    async def test_reader_needs_matching_pattern(
        self, world: World, owner: User, guest: User
    ) -> None:
        await world.memory.write(owner, key="prefs.theme", value="dark")
        await world.memory.write(owner, key="billing.card", value="4242")
        await world.sharing.grant(owner, "memory_kv", guest.email, key_pattern="prefs.*")

        shared = await world.memory.read(guest, key="prefs.theme", owner_email=owner.email)
        assert shared["value"] == "dark"
        assert shared["owner_email"] == owner.email

        with pytest.raises(ToolError) as exc_info:
            await world.memory.read(guest, key="billing.card", owner_email=owner.email)
        assert exc_info.value.code == ErrorCode.FORBIDDEN

    @pytest.mark.asyncio
    async def test_query_filters_to_shared_keys(
        self, world: World, owner: User, guest: User
    ) -> None:
        await world.memory.write(owner, key="prefs.theme", value="dark")
        await world.memory.write(owner, key="billing.card", value="4242")
        await world.sharing.grant(owner, "memory_kv", guest.email, key_pattern="prefs.*")

        result = await world.memory.query(guest, owner_email=owner.email)

        assert [e["key"] for e in result["entries"]] == ["prefs.theme"]

    @pytest.mark.asyncio
    async def test_pattern_revoke_targets_one_grantee(
        self, world: World, owner: User, guest: User
    ) -> None:
        await world.sharing.grant(owner, "memory_kv", guest.email, key_pattern="notes_*")
        await world.sharing.grant(
            owner, "memory_kv", "other@example.com", key_pattern="notes_*"
        )

        with pytest.raises(ToolError) as exc_info:
            await world.sharing.revoke(owner, "memory_kv", key_pattern="notes_*")
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS

        revoked = await world.sharing.revoke(
            owner, "memory_kv", guest.email, key_pattern="notes_*"
        )

        assert revoked["revoked"] == 1
        outgoing = await world.sharing.list_outgoing(owner)
        assert [s["email"] for s in outgoing["memory_kv"]] == ["other@example.com"]

    @pytest.mark.asyncio
    async def test_reading_other_memory_md_needs_key(
        self, world: World, owner: User, guest: User
    ) -> None:
        with pytest.raises(ToolError) as exc_info:
            await world.memory.read(guest, owner_email=owner.email)
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_own_memory_md_append(self, world: World, guest: User) -> None:
        await world.memory.write(guest, content="likes tea", append=True)

        result = await world.memory.read(guest)

        assert result["exists"] is True
        assert result["memory"].startswith("# Memory")
        assert result["memory"].endswith("likes tea")

    @pytest.mark.asyncio
    async def test_forget(self, world: World, guest: User) -> None:
        await world.memory.write(guest, key="k", value=1)

        assert (await world.memory.forget(guest, "k"))["success"] is True
        assert (await world.memory.read(guest, key="k"))["exists"] is False
