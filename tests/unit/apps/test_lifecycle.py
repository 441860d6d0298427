"""Tests for the app version and visibility state machine."""

import base64
from collections.abc import AsyncIterator

import pytest

from toolgate.apps.artifacts import ArtifactStore
from toolgate.apps.lifecycle import AppLifecycle, BillingGate, decode_files
from toolgate.apps.models import Visibility
from toolgate.apps.stores.inmemory import InMemoryAppStore
from toolgate.content.documents import DocumentService
from toolgate.content.library import LibraryBuilder
from toolgate.content.stores.inmemory import InMemoryContentStore
from toolgate.gateway.errors import ErrorCode, ToolError
from toolgate.gateway.sink import BestEffortSink
from toolgate.providers.blob.inmemory import InMemoryBlobStore
from toolgate.providers.embedding.mock import MockEmbeddingProvider
from toolgate.users.models import User
from toolgate.users.stores.inmemory import InMemoryUserStore

SOURCE_V1 = """
export async function forecast(city: string, days?: number) { return []; }
export function current(city: string) { return {}; }
"""

SOURCE_V2 = """
export async function forecast(city: string) { return []; }
export const alerts = async (region: string) => [];
"""


def upload(source: str, path: str = "weather/index.ts") -> list[dict[str, str]]:
    return [{"path": path, "content": source}]


@pytest.fixture
async def sink() -> AsyncIterator[BestEffortSink]:
    sink = BestEffortSink()
    yield sink
    await sink.drain()


@pytest.fixture
def apps() -> InMemoryAppStore:
    return InMemoryAppStore()


@pytest.fixture
def blob() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
async def users(owner: User, guest: User) -> InMemoryUserStore:
    store = InMemoryUserStore()
    await store.upsert(owner)
    await store.upsert(guest)
    return store


def build_lifecycle(
    apps: InMemoryAppStore,
    blob: InMemoryBlobStore,
    users: InMemoryUserStore,
    sink: BestEffortSink,
    min_balance_cents: int = 0,
) -> AppLifecycle:
    artifacts = ArtifactStore(blob, MockEmbeddingProvider(dimensions=8))
    documents = DocumentService(InMemoryContentStore(), blob, sink)
    library = LibraryBuilder(apps, artifacts, documents)
    return AppLifecycle(
        apps=apps,
        artifacts=artifacts,
        library=library,
        billing=BillingGate(users, min_balance_cents),
        sink=sink,
    )


@pytest.fixture
def lifecycle(
    apps: InMemoryAppStore,
    blob: InMemoryBlobStore,
    users: InMemoryUserStore,
    sink: BestEffortSink,
) -> AppLifecycle:
    return build_lifecycle(apps, blob, users, sink)


class TestDecodeFiles:
    def test_base64_content(self) -> None:
        encoded = base64.b64encode(b"export function a() {}").decode()
        files = decode_files([{"path": "index.ts", "content": encoded, "encoding": "base64"}])
        assert files == {"index.ts": "export function a() {}"}

    def test_empty_rejected(self) -> None:
        with pytest.raises(ToolError) as exc_info:
            decode_files([])
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS

    def test_invalid_base64_rejected(self) -> None:
        with pytest.raises(ToolError):
            decode_files([{"path": "index.ts", "content": "@@@", "encoding": "base64"}])


class TestPublish:
    @pytest.mark.asyncio
    async def test_new_app_is_live_at_first_version(
        self, lifecycle: AppLifecycle, apps: InMemoryAppStore, owner: User
    ) -> None:
        result = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        assert result["version"] == "1.0.0"
        assert result["is_live"] is True
        assert result["exports"] == ["forecast", "current"]
        assert result["slug"] == "weather"
        assert result["skills_generated"] is True

        app = await apps.get(result["app_id"])
        assert app.versions == ["1.0.0"]
        assert app.current_version == "1.0.0"
        assert app.visibility == Visibility.PRIVATE
        assert app.skills_md.startswith("# weather")

    @pytest.mark.asyncio
    async def test_missing_entry_file(self, lifecycle: AppLifecycle, owner: User) -> None:
        with pytest.raises(ToolError) as exc_info:
            await lifecycle.publish(owner.id, upload(SOURCE_V1, path="lib/util.ts"))
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_slugs_are_unique_per_owner(
        self, lifecycle: AppLifecycle, owner: User
    ) -> None:
        first = await lifecycle.publish(owner.id, upload(SOURCE_V1), name="Weather")
        second = await lifecycle.publish(owner.id, upload(SOURCE_V1), name="Weather")

        assert first["slug"] == "weather"
        assert second["slug"] == "weather-2"

    @pytest.mark.asyncio
    async def test_new_version_does_not_move_live_pointer(
        self, lifecycle: AppLifecycle, apps: InMemoryAppStore, owner: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        result = await lifecycle.publish(owner.id, upload(SOURCE_V2), app_id=created["app_id"])

        assert result["version"] == "1.0.1"
        assert result["is_live"] is False
        assert result["live_version"] == "1.0.0"
        app = await apps.get(created["app_id"])
        assert app.versions == ["1.0.0", "1.0.1"]
        assert app.current_version == "1.0.0"
        assert app.exports == ["forecast", "current"]

    @pytest.mark.asyncio
    async def test_duplicate_version_rejected(
        self, lifecycle: AppLifecycle, owner: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        with pytest.raises(ToolError) as exc_info:
            await lifecycle.publish(
                owner.id, upload(SOURCE_V2), app_id=created["app_id"], version="1.0.0"
            )
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        assert "already exists" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_auto_bump_follows_short_live_version(
        self, lifecycle: AppLifecycle, owner: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))
        await lifecycle.publish(
            owner.id, upload(SOURCE_V2), app_id=created["app_id"], version="2.5"
        )
        await lifecycle.set_live(owner.id, created["app_id"], "2.5")

        result = await lifecycle.publish(owner.id, upload(SOURCE_V2), app_id=created["app_id"])

        assert result["version"] == "2.5.1"
        assert result["live_version"] == "2.5"

    @pytest.mark.asyncio
    async def test_malformed_explicit_version_rejected(
        self, lifecycle: AppLifecycle, apps: InMemoryAppStore, owner: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        with pytest.raises(ToolError) as exc_info:
            await lifecycle.publish(
                owner.id, upload(SOURCE_V2), app_id=created["app_id"], version="beta"
            )
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS
        assert (await apps.get(created["app_id"])).versions == ["1.0.0"]

    @pytest.mark.asyncio
    async def test_publish_to_foreign_app_forbidden(
        self, lifecycle: AppLifecycle, owner: User, guest: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        with pytest.raises(ToolError) as exc_info:
            await lifecycle.publish(guest.id, upload(SOURCE_V2), app_id=created["app_id"])
        assert exc_info.value.code == ErrorCode.FORBIDDEN


class TestSetLive:
    @pytest.mark.asyncio
    async def test_set_live_moves_pointer_and_rederives_exports(
        self, lifecycle: AppLifecycle, apps: InMemoryAppStore, owner: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))
        await lifecycle.publish(owner.id, upload(SOURCE_V2), app_id=created["app_id"])

        result = await lifecycle.set_live(owner.id, created["slug"], "1.0.1")

        assert result["previous_version"] == "1.0.0"
        assert result["live_version"] == "1.0.1"
        assert result["exports"] == ["forecast", "alerts"]
        app = await apps.get(created["app_id"])
        assert app.current_version == "1.0.1"
        assert app.current_version in app.versions

    @pytest.mark.asyncio
    async def test_unknown_version_rejected(self, lifecycle: AppLifecycle, owner: User) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        with pytest.raises(ToolError) as exc_info:
            await lifecycle.set_live(owner.id, created["app_id"], "9.9.9")
        assert "Available: 1.0.0" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unknown_app_not_found(self, lifecycle: AppLifecycle, owner: User) -> None:
        with pytest.raises(ToolError) as exc_info:
            await lifecycle.set_live(owner.id, "missing", "1.0.0")
        assert exc_info.value.code == ErrorCode.NOT_FOUND


class TestSettings:
    @pytest.mark.asyncio
    async def test_published_is_alias_of_public(
        self, lifecycle: AppLifecycle, apps: InMemoryAppStore, owner: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        result = await lifecycle.set_visibility(owner.id, created["app_id"], "published")

        assert result == {
            "app_id": created["app_id"],
            "previous_visibility": "private",
            "visibility": "public",
        }
        app = await apps.get(created["app_id"])
        assert app.embedding is not None

    @pytest.mark.asyncio
    async def test_leaving_public_drops_embedding(
        self, lifecycle: AppLifecycle, apps: InMemoryAppStore, owner: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1), visibility="public")

        await lifecycle.set_visibility(owner.id, created["app_id"], "unlisted")

        app = await apps.get(created["app_id"])
        assert app.visibility == Visibility.UNLISTED
        assert app.embedding is None

    @pytest.mark.asyncio
    async def test_billing_gate_blocks_going_public(
        self,
        apps: InMemoryAppStore,
        blob: InMemoryBlobStore,
        users: InMemoryUserStore,
        sink: BestEffortSink,
        owner: User,
    ) -> None:
        gated = build_lifecycle(apps, blob, users, sink, min_balance_cents=500)
        created = await gated.publish(owner.id, upload(SOURCE_V1))

        with pytest.raises(ToolError) as exc_info:
            await gated.set_visibility(owner.id, created["app_id"], "public")

        assert exc_info.value.code == ErrorCode.FORBIDDEN
        assert "500 cents" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_ratelimit_bounds(self, lifecycle: AppLifecycle, owner: User) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        with pytest.raises(ToolError) as exc_info:
            await lifecycle.set_ratelimit(owner.id, created["app_id"], calls_per_minute=0)
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR

        result = await lifecycle.set_ratelimit(owner.id, created["app_id"], calls_per_minute=60)
        assert result["rate_limit_config"] == {"calls_per_minute": 60}
        assert result["message"] == "Rate limit set: 60/min, unlimited/day"

    @pytest.mark.asyncio
    async def test_pricing_rejects_unknown_function(
        self, lifecycle: AppLifecycle, owner: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        with pytest.raises(ToolError):
            await lifecycle.set_pricing(owner.id, created["app_id"], functions={"nope": 5})

    @pytest.mark.asyncio
    async def test_binding_can_be_cleared(self, lifecycle: AppLifecycle, owner: User) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        bound = await lifecycle.set_binding(owner.id, created["app_id"], " crm ")
        cleared = await lifecycle.set_binding(owner.id, created["app_id"], None)

        assert bound["external_binding"] == "crm"
        assert cleared["external_binding"] is None


class TestFetchSource:
    @pytest.mark.asyncio
    async def test_owner_gets_original_sources(
        self, lifecycle: AppLifecycle, owner: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        result = await lifecycle.fetch_source(owner.id, created["app_id"])

        assert result["files"] == [{"path": "weather/index.ts", "content": SOURCE_V1}]

    @pytest.mark.asyncio
    async def test_other_users_need_public_download(
        self, lifecycle: AppLifecycle, owner: User, guest: User
    ) -> None:
        created = await lifecycle.publish(owner.id, upload(SOURCE_V1))

        with pytest.raises(ToolError) as exc_info:
            await lifecycle.fetch_source(guest.id, created["app_id"])
        assert exc_info.value.code == ErrorCode.FORBIDDEN

        await lifecycle.set_download(owner.id, created["app_id"], "public")
        result = await lifecycle.fetch_source(guest.id, created["app_id"])
        assert result["file_count"] == 1
