"""Tests for markdown page publishing."""

import pytest

from toolgate.content.pages import PageService, is_valid_slug, page_title
from toolgate.content.stores.inmemory import InMemoryContentStore
from toolgate.gateway.errors import ErrorCode, ToolError
from toolgate.providers.embedding.mock import MockEmbeddingProvider
from toolgate.users.models import User


@pytest.fixture
def contents() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def pages(contents: InMemoryContentStore) -> PageService:
    return PageService(contents, MockEmbeddingProvider(dimensions=8), max_bytes=1024)


class TestHelpers:
    @pytest.mark.parametrize(
        ("slug", "valid"),
        [
            ("weekly-report", True),
            ("a", True),
            ("docs/setup", True),
            ("-leading", False),
            ("Upper", False),
            ("trailing-", False),
        ],
    )
    def test_slugs(self, slug: str, valid: bool) -> None:
        assert is_valid_slug(slug) is valid

    def test_title_resolution(self) -> None:
        assert page_title("# Hello\nbody", "slug", "Explicit") == "Explicit"
        assert page_title("intro\n# Hello  \nbody", "slug") == "Hello"
        assert page_title("no heading", "slug") == "slug"


class TestPublish:
    @pytest.mark.asyncio
    async def test_publish_private_by_default(
        self, pages: PageService, contents: InMemoryContentStore, guest: User
    ) -> None:
        result = await pages.publish(guest.id, "notes", "# Notes\nhello")

        assert result["title"] == "Notes"
        assert result["url"] == f"/p/{guest.id}/notes"
        assert result["visibility"] == "private"
        stored = await contents.get(guest.id, "page", "notes")
        assert stored.embedding is None
        assert stored.published is True

    @pytest.mark.asyncio
    async def test_public_pages_are_embedded(
        self, pages: PageService, contents: InMemoryContentStore, guest: User
    ) -> None:
        await pages.publish(guest.id, "notes", "# Notes", visibility="public")

        stored = await contents.get(guest.id, "page", "notes")
        assert len(stored.embedding) == 8

    @pytest.mark.asyncio
    async def test_republish_keeps_visibility(
        self, pages: PageService, contents: InMemoryContentStore, guest: User
    ) -> None:
        first = await pages.publish(guest.id, "notes", "v1", visibility="public")
        second = await pages.publish(guest.id, "notes", "v2")

        assert second["visibility"] == "public"
        assert second["created_at"] == first["created_at"]
        assert (await contents.get(guest.id, "page", "notes")).body == "v2"

    @pytest.mark.asyncio
    async def test_size_limit(self, pages: PageService, guest: User) -> None:
        with pytest.raises(ToolError) as exc_info:
            await pages.publish(guest.id, "big", "x" * 2048)
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS
        assert "1KB limit" in exc_info.value.message

    @pytest.mark.parametrize(
        ("slug", "body", "visibility"),
        [
            (None, "body", None),
            ("notes", "", None),
            ("Bad Slug", "body", None),
            ("notes", "body", "shared"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_input(
        self,
        pages: PageService,
        guest: User,
        slug: str | None,
        body: str,
        visibility: str | None,
    ) -> None:
        with pytest.raises(ToolError):
            await pages.publish(guest.id, slug, body, visibility=visibility)

    @pytest.mark.asyncio
    async def test_list_pages(self, pages: PageService, guest: User, owner: User) -> None:
        await pages.publish(guest.id, "one", "# One")
        await pages.publish(guest.id, "two", "# Two")
        await pages.publish(owner.id, "other", "# Other")

        listed = await pages.list_pages(guest.id)

        assert listed["total"] == 2
        assert {p["slug"] for p in listed["pages"]} == {"one", "two"}
