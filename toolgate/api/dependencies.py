"""Dependency injection for API routes.

Stores, providers and the gateway are built lazily on first use and reused
for the life of the process. Backends follow settings; when a remote backend
cannot be reached the in-memory implementation is used instead. Every getter
can be replaced through ``app.dependency_overrides`` in tests.
"""

import random
from collections.abc import Callable
from typing import Annotated, Any, TypeVar

import redis.asyncio as redis
from fastapi import Depends

from toolgate.api.middleware.auth import IdentityVerifier
from toolgate.apps.artifacts import ArtifactStore
from toolgate.apps.lifecycle import AppLifecycle, BillingGate
from toolgate.apps.ratings import RatingService
from toolgate.apps.stores.inmemory import InMemoryAppStore
from toolgate.apps.stores.postgres import PostgresAppStore
from toolgate.apps.testing import SandboxTester
from toolgate.audit.service import AuditService
from toolgate.audit.stores.inmemory import InMemoryAuditStore
from toolgate.audit.stores.postgres import PostgresAuditStore
from toolgate.config import get_settings
from toolgate.config.settings import Settings
from toolgate.connections.crypto import SecretCipher
from toolgate.connections.service import ConnectionService
from toolgate.connections.stores.inmemory import InMemorySecretStore
from toolgate.connections.stores.postgres import PostgresSecretStore
from toolgate.content.documents import DocumentService
from toolgate.content.library import LibraryBuilder
from toolgate.content.memory import MemoryService
from toolgate.content.pages import PageService
from toolgate.content.stores.inmemory import InMemoryContentStore, InMemoryMemoryStore
from toolgate.content.stores.postgres import PostgresContentStore, PostgresMemoryStore
from toolgate.db.pool import PostgresPool
from toolgate.discovery.engine import DiscoveryEngine
from toolgate.feedback.service import FeedbackService
from toolgate.feedback.stores.inmemory import InMemoryFeedbackStore
from toolgate.feedback.stores.postgres import PostgresFeedbackStore
from toolgate.gateway.context import GatewayServices
from toolgate.gateway.dispatcher import Gateway
from toolgate.gateway.quota import InMemoryWeeklyQuota, RedisWeeklyQuota, WeeklyQuota
from toolgate.gateway.ratelimit import InMemoryRateLimiter, RateLimiter, RedisRateLimiter
from toolgate.gateway.sink import BestEffortSink
from toolgate.grants.cache import GrantCache, InMemoryGrantCache, RedisGrantCache
from toolgate.grants.service import GrantService
from toolgate.grants.stores.inmemory import InMemoryGrantStore
from toolgate.grants.stores.postgres import PostgresGrantStore
from toolgate.observability.logging import get_logger
from toolgate.providers.blob.base import BlobStore
from toolgate.providers.blob.inmemory import InMemoryBlobStore
from toolgate.providers.blob.s3 import S3BlobStore
from toolgate.providers.bundler.base import Bundler
from toolgate.providers.bundler.http import HttpBundler
from toolgate.providers.embedding import EmbeddingProvider, create_embedding_provider
from toolgate.providers.sandbox.base import SandboxRunner
from toolgate.providers.sandbox.http import HttpSandboxRunner
from toolgate.sharing.service import SharingService
from toolgate.sharing.stores.inmemory import InMemoryShareStore
from toolgate.sharing.stores.postgres import PostgresShareStore
from toolgate.users.stores.inmemory import InMemoryUserStore
from toolgate.users.stores.postgres import PostgresUserStore

logger = get_logger(__name__)

T = TypeVar("T")

# Connection pool and client instances - shared across stores
_postgres_pool: PostgresPool | None = None
_redis_client: redis.Redis | None = None
_postgres_failed = False

# Component instances - created once and reused
_stores: dict[str, Any] = {}
_sink: BestEffortSink | None = None
_blob_store: BlobStore | None = None
_embedding_provider: EmbeddingProvider | None = None
_sandbox_runner: SandboxRunner | None = None
_bundler: Bundler | None = None
_identity_verifier: IdentityVerifier | None = None
_gateway: Gateway | None = None


async def get_postgres_pool() -> PostgresPool:
    """Get the shared PostgreSQL connection pool, connecting on first access."""
    global _postgres_pool
    if _postgres_pool is None:
        pool = PostgresPool(get_settings().storage.postgres)
        await pool.connect()
        _postgres_pool = pool
    return _postgres_pool


async def get_redis_client() -> redis.Redis:
    """Get the shared Redis client, verified with a ping on first access."""
    global _redis_client
    if _redis_client is None:
        url = get_settings().storage.redis.url
        client = redis.from_url(url, decode_responses=True)
        await client.ping()
        _redis_client = client
        logger.info("redis_client_connected", url=url.split("@")[-1])
    return _redis_client


async def _relational_store(
    name: str,
    postgres_factory: Callable[[PostgresPool], T],
    memory_factory: Callable[[], T],
) -> T:
    """One store per name, Postgres when configured and reachable."""
    global _postgres_failed
    if name in _stores:
        return _stores[name]  # type: ignore[no-any-return]

    store: T | None = None
    if get_settings().storage.backend == "postgres" and not _postgres_failed:
        try:
            store = postgres_factory(await get_postgres_pool())
            logger.info("store_initialized", store=name, store_type="postgres")
        except Exception as e:
            _postgres_failed = True
            logger.warning("store_postgres_failed_using_inmemory", store=name, error=str(e))
    if store is None:
        store = memory_factory()
        logger.info("store_initialized", store=name, store_type="inmemory")
    _stores[name] = store
    return store


def get_sink() -> BestEffortSink:
    global _sink
    if _sink is None:
        _sink = BestEffortSink(max_pending=get_settings().gateway.sink_max_pending)
    return _sink


def get_blob_store() -> BlobStore:
    """Blob storage for artifacts and compiled documents."""
    global _blob_store
    if _blob_store is None:
        config = get_settings().storage.blob
        if config.backend == "s3" and config.bucket:
            _blob_store = S3BlobStore(
                bucket=config.bucket,
                prefix=config.prefix,
                region=config.region,
                endpoint_url=config.endpoint_url,
            )
        else:
            if config.backend == "s3":
                logger.warning("blob_store_bucket_missing_using_inmemory")
            _blob_store = InMemoryBlobStore()
        logger.info("blob_store_initialized", backend=type(_blob_store).__name__)
    return _blob_store


def get_embedding_provider() -> EmbeddingProvider | None:
    global _embedding_provider
    if _embedding_provider is None:
        config = get_settings().providers.embedding
        _embedding_provider = create_embedding_provider(config)
        logger.info("embedding_provider_initialized", provider=config.provider)
    return _embedding_provider


def get_sandbox_runner() -> SandboxRunner | None:
    global _sandbox_runner
    config = get_settings().providers.sandbox
    if _sandbox_runner is None and config.base_url:
        _sandbox_runner = HttpSandboxRunner(config.base_url, timeout=config.timeout)
    return _sandbox_runner


def get_bundler() -> Bundler | None:
    global _bundler
    config = get_settings().providers.bundler
    if _bundler is None and config.base_url:
        _bundler = HttpBundler(config.base_url, timeout=config.timeout)
    return _bundler


def get_identity_verifier() -> IdentityVerifier:
    global _identity_verifier
    if _identity_verifier is None:
        _identity_verifier = IdentityVerifier(get_settings().auth)
    return _identity_verifier


async def _redis_or_none(component: str) -> redis.Redis | None:
    try:
        return await get_redis_client()
    except Exception as e:
        logger.warning("redis_failed_using_inmemory", component=component, error=str(e))
        return None


async def _grant_cache(settings: Settings) -> GrantCache:
    config = settings.storage.grant_cache
    if config.backend == "redis":
        client = await _redis_or_none("grant_cache")
        if client is not None:
            return RedisGrantCache(
                client, key_prefix=settings.storage.redis.key_prefix, ttl_seconds=config.ttl_seconds
            )
    return InMemoryGrantCache(ttl_seconds=config.ttl_seconds, max_entries=config.max_entries)


async def _rate_limiter(settings: Settings) -> RateLimiter | None:
    config = settings.api.rate_limit
    if not config.enabled:
        return None
    if config.backend == "redis":
        client = await _redis_or_none("rate_limiter")
        if client is not None:
            return RedisRateLimiter(
                client,
                window_seconds=config.window_seconds,
                key_prefix=f"{settings.storage.redis.key_prefix}:ratelimit:",
            )
    return InMemoryRateLimiter(window_seconds=config.window_seconds)


async def _weekly_quota(settings: Settings) -> WeeklyQuota | None:
    config = settings.gateway.weekly_quota
    if not config.enabled:
        return None
    if config.backend == "redis":
        client = await _redis_or_none("weekly_quota")
        if client is not None:
            return RedisWeeklyQuota(config, client, key_prefix=settings.storage.redis.key_prefix)
    return InMemoryWeeklyQuota(config)


async def get_gateway() -> Gateway:
    """Build the gateway and every service behind it."""
    global _gateway
    if _gateway is not None:
        return _gateway

    settings = get_settings()
    sink = get_sink()
    blob = get_blob_store()
    embedder = get_embedding_provider()

    users = await _relational_store("users", PostgresUserStore, InMemoryUserStore)
    apps = await _relational_store("apps", PostgresAppStore, InMemoryAppStore)
    grant_store = await _relational_store("grants", PostgresGrantStore, InMemoryGrantStore)
    contents = await _relational_store("content", PostgresContentStore, InMemoryContentStore)
    memory_store = await _relational_store("memory", PostgresMemoryStore, InMemoryMemoryStore)
    shares = await _relational_store("shares", PostgresShareStore, InMemoryShareStore)
    secrets = await _relational_store("secrets", PostgresSecretStore, InMemorySecretStore)
    audit_store = await _relational_store("audit", PostgresAuditStore, InMemoryAuditStore)
    feedback_store = await _relational_store(
        "feedback", PostgresFeedbackStore, InMemoryFeedbackStore
    )

    artifacts = ArtifactStore(blob, embedder)
    documents = DocumentService(contents, blob, sink)
    library = LibraryBuilder(apps, artifacts, documents)
    sharing = SharingService(shares, contents, documents, library, users)
    connections = ConnectionService(
        secrets, SecretCipher(settings.secrets.encryption_key or settings.auth.jwt_secret)
    )
    bundler = get_bundler()

    services = GatewayServices(
        apps=apps,
        lifecycle=AppLifecycle(
            apps,
            artifacts,
            library,
            BillingGate(users, settings.gateway.min_publish_balance_cents),
            sink,
            bundler=bundler,
        ),
        grants=GrantService(grant_store, users, await _grant_cache(settings)),
        audit=AuditService(audit_store, users, grant_store),
        discovery=DiscoveryEngine(
            apps,
            contents,
            connections,
            audit_store,
            library,
            documents,
            sink,
            settings.discovery,
            embedder=embedder,
            rng=random.Random(),
        ),
        ratings=RatingService(apps),
        connections=connections,
        memory=MemoryService(memory_store, documents, sharing, users),
        pages=PageService(contents, embedder, max_bytes=settings.gateway.page_max_bytes),
        sharing=sharing,
        feedback=FeedbackService(feedback_store, sink),
        library=library,
        sandbox=SandboxTester(get_sandbox_runner(), bundler),
    )

    _gateway = Gateway(
        services,
        users,
        audit_store,
        sink,
        settings.gateway,
        settings.api.rate_limit,
        limiter=await _rate_limiter(settings),
        quota=await _weekly_quota(settings),
    )
    logger.info("gateway_initialized", storage=settings.storage.backend)
    return _gateway


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
GatewayDep = Annotated[Gateway, Depends(get_gateway)]
IdentityVerifierDep = Annotated[IdentityVerifier, Depends(get_identity_verifier)]
SinkDep = Annotated[BestEffortSink, Depends(get_sink)]


async def postgres_healthy() -> bool | None:
    """Pool health, or None when no pool was opened."""
    if _postgres_pool is None:
        return None
    return await _postgres_pool.health_check()


async def reset_dependencies() -> None:
    """Drain background work, close connections and forget every instance."""
    global _postgres_pool, _redis_client, _postgres_failed
    global _sink, _blob_store, _embedding_provider, _sandbox_runner, _bundler
    global _identity_verifier, _gateway

    if _sink is not None:
        await _sink.drain(timeout=5.0)
        _sink = None

    for closable in (_sandbox_runner, _bundler):
        if closable is not None:
            await closable.close()
    _sandbox_runner = None
    _bundler = None

    if _postgres_pool is not None:
        await _postgres_pool.close()
        _postgres_pool = None

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None

    _postgres_failed = False
    _stores.clear()
    _blob_store = None
    _embedding_provider = None
    _identity_verifier = None
    _gateway = None
