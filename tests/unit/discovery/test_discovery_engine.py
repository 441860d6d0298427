"""Tests for desk, library and app store discovery."""

import random
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta

import pytest

from toolgate.apps.artifacts import ArtifactStore
from toolgate.apps.models import App, EnvSchemaEntry, Visibility
from toolgate.apps.stores.inmemory import InMemoryAppStore
from toolgate.audit.models import CallRecord
from toolgate.audit.stores.inmemory import InMemoryAuditStore
from toolgate.config.models.gateway import DiscoveryConfig
from toolgate.connections.crypto import SecretCipher
from toolgate.connections.service import ConnectionService
from toolgate.connections.stores.inmemory import InMemorySecretStore
from toolgate.content.documents import DocumentService
from toolgate.content.library import LibraryBuilder
from toolgate.content.models import ContentSearchHit
from toolgate.content.stores.inmemory import InMemoryContentStore
from toolgate.discovery.engine import DiscoveryEngine
from toolgate.gateway.errors import ErrorCode, ToolError
from toolgate.gateway.sink import BestEffortSink
from toolgate.providers.blob.inmemory import InMemoryBlobStore
from toolgate.providers.embedding.mock import MockEmbeddingProvider
from toolgate.users.models import User

QUERY = "weather forecast"


@pytest.fixture
async def sink() -> AsyncIterator[BestEffortSink]:
    sink = BestEffortSink()
    yield sink
    await sink.drain()


@pytest.fixture
async def apps(app_factory: Callable[..., App]) -> InMemoryAppStore:
    store = InMemoryAppStore()
    await store.create(
        app_factory(
            id="app-exact",
            slug="exact",
            name="Exact",
            visibility=Visibility.PUBLIC,
            embedding=[1.0, 0.0, 0.0, 0.0],
            env_schema={"TOKEN": EnvSchemaEntry(scope="per_user", required=True)},
        )
    )
    await store.create(
        app_factory(
            id="app-close",
            slug="close",
            name="Close",
            visibility=Visibility.PUBLIC,
            embedding=[0.8, 0.6, 0.0, 0.0],
            likes=4,
            weighted_likes=4,
        )
    )
    await store.create(
        app_factory(
            id="app-unrelated",
            slug="unrelated",
            name="Unrelated",
            visibility=Visibility.PUBLIC,
            embedding=[0.0, 1.0, 0.0, 0.0],
        )
    )
    await store.create(
        app_factory(
            id="app-private",
            slug="private",
            name="Private",
            embedding=[1.0, 0.0, 0.0, 0.0],
        )
    )
    return store


@pytest.fixture
def audit() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def connections() -> ConnectionService:
    return ConnectionService(InMemorySecretStore(), SecretCipher("test-key"))


@pytest.fixture
def engine(
    apps: InMemoryAppStore,
    audit: InMemoryAuditStore,
    connections: ConnectionService,
    sink: BestEffortSink,
    rng: random.Random,
) -> DiscoveryEngine:
    blob = InMemoryBlobStore()
    contents = InMemoryContentStore()
    documents = DocumentService(contents, blob, sink)
    embedder = MockEmbeddingProvider(dimensions=4, overrides={QUERY: [1.0, 0.0, 0.0, 0.0]})
    return DiscoveryEngine(
        apps=apps,
        contents=contents,
        connections=connections,
        audit=audit,
        library=LibraryBuilder(apps, ArtifactStore(blob, embedder), documents),
        documents=documents,
        sink=sink,
        config=DiscoveryConfig(shuffle_window=0, include_pages=False),
        embedder=embedder,
        rng=rng,
    )


class TestAppStoreSearch:
    @pytest.mark.asyncio
    async def test_ranked_search_filters_and_orders(
        self, engine: DiscoveryEngine, guest: User
    ) -> None:
        result = await engine.appstore(guest.id, QUERY)

        ids = [r["id"] for r in result["results"]]
        assert result["mode"] == "search"
        assert "app-unrelated" not in ids
        assert "app-private" not in ids
        assert set(ids) == {"app-exact", "app-close"}
        scores = [r["final_score"] for r in result["results"]]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_native_boost_reflects_connections(
        self,
        engine: DiscoveryEngine,
        connections: ConnectionService,
        apps: InMemoryAppStore,
        guest: User,
    ) -> None:
        before = await engine.appstore(guest.id, QUERY)
        exact_before = next(r for r in before["results"] if r["id"] == "app-exact")
        assert exact_before["fully_connected"] is False

        await connections.connect(guest.id, await apps.get("app-exact"), {"TOKEN": "secret"})
        after = await engine.appstore(guest.id, QUERY)
        exact_after = next(r for r in after["results"] if r["id"] == "app-exact")

        assert exact_after["fully_connected"] is True
        assert exact_after["final_score"] > exact_before["final_score"]

    @pytest.mark.asyncio
    async def test_blocked_apps_hidden(
        self, engine: DiscoveryEngine, apps: InMemoryAppStore, guest: User
    ) -> None:
        await apps.block(guest.id, "app-exact")

        result = await engine.appstore(guest.id, QUERY)

        assert [r["id"] for r in result["results"]] == ["app-close"]

    @pytest.mark.asyncio
    async def test_query_is_logged(
        self,
        engine: DiscoveryEngine,
        audit: InMemoryAuditStore,
        sink: BestEffortSink,
        guest: User,
    ) -> None:
        result = await engine.appstore(guest.id, QUERY)
        await sink.drain()

        record = await audit.get_query(result["query_id"])
        assert record is not None
        assert record.result_count == result["total"]
        assert [r.position for r in record.results] == list(range(1, result["total"] + 1))

    @pytest.mark.asyncio
    async def test_limit_must_be_positive(self, engine: DiscoveryEngine, guest: User) -> None:
        with pytest.raises(ToolError) as exc_info:
            await engine.appstore(guest.id, QUERY, limit=-1)
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS


class TestFeatured:
    @pytest.mark.asyncio
    async def test_featured_orders_by_weighted_likes(
        self, engine: DiscoveryEngine, guest: User
    ) -> None:
        result = await engine.appstore(guest.id)

        assert result["mode"] == "featured"
        assert result["results"][0]["id"] == "app-close"
        assert "app-private" not in [r["id"] for r in result["results"]]


class TestDesk:
    @pytest.mark.asyncio
    async def test_recent_distinct_apps(
        self, engine: DiscoveryEngine, audit: InMemoryAuditStore, guest: User
    ) -> None:
        start = datetime.now(UTC) - timedelta(minutes=10)
        for minutes, app_id in enumerate(["app-exact", "app-close", "app-exact"]):
            await audit.record_call(
                CallRecord(
                    user_id=guest.id,
                    app_id=app_id,
                    function_name="forecast",
                    method="tools/call",
                    success=True,
                    created_at=start + timedelta(minutes=minutes),
                )
            )

        desk = await engine.desk(guest.id)

        assert [d["id"] for d in desk["desk"]] == ["app-exact", "app-close"]

    @pytest.mark.asyncio
    async def test_empty_desk(self, engine: DiscoveryEngine, guest: User) -> None:
        assert await engine.desk(guest.id) == {"desk": [], "total": 0}


class TestLibrary:
    @pytest.mark.asyncio
    async def test_saved_apps_listed_without_library_document(
        self, engine: DiscoveryEngine, apps: InMemoryAppStore, guest: User
    ) -> None:
        await apps.save_to_library(guest.id, "app-close")

        result = await engine.library(guest.id)

        assert [row["id"] for row in result["library"]] == ["app-close"]
        assert result["library"][0]["source"] == "saved"
        assert result["memory"] is None


class RecordingContentStore(InMemoryContentStore):
    def __init__(self) -> None:
        super().__init__()
        self.page_search_limits: list[int] = []

    async def search_pages(
        self, embedding: list[float], limit: int, min_similarity: float
    ) -> list[ContentSearchHit]:
        self.page_search_limits.append(limit)
        return await super().search_pages(embedding, limit, min_similarity)


@pytest.mark.asyncio
async def test_page_search_is_overfetched(
    apps: InMemoryAppStore,
    audit: InMemoryAuditStore,
    connections: ConnectionService,
    sink: BestEffortSink,
    rng: random.Random,
    guest: User,
) -> None:
    contents = RecordingContentStore()
    documents = DocumentService(contents, InMemoryBlobStore(), sink)
    embedder = MockEmbeddingProvider(dimensions=4, overrides={QUERY: [1.0, 0.0, 0.0, 0.0]})
    engine = DiscoveryEngine(
        apps=apps,
        contents=contents,
        connections=connections,
        audit=audit,
        library=LibraryBuilder(apps, ArtifactStore(InMemoryBlobStore(), embedder), documents),
        documents=documents,
        sink=sink,
        config=DiscoveryConfig(search_overfetch=3, include_pages=True),
        embedder=embedder,
        rng=rng,
    )

    await engine.appstore(guest.id, QUERY, limit=2)

    assert contents.page_search_limits == [6]
