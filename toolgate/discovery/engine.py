"""Discovery over three surfaces: desk (recent), library (owned and saved)
and app store (featured or ranked search)."""

import random
import uuid
from typing import Any

from toolgate.apps.models import App
from toolgate.apps.store import AppStore
from toolgate.audit.models import DiscoveryQueryRecord, RankedResult
from toolgate.audit.store import AuditStore
from toolgate.config.models.gateway import DiscoveryConfig
from toolgate.connections.service import ConnectionService, readiness
from toolgate.content.documents import DocumentService
from toolgate.content.library import LibraryBuilder
from toolgate.content.pages import page_url
from toolgate.content.store import ContentStore
from toolgate.discovery.models import DiscoveryCandidate
from toolgate.discovery.ranking import (
    community_signal,
    final_score,
    luck_shuffle,
    native_boost,
    rank,
)
from toolgate.gateway.errors import ErrorCode, ToolError, invalid_params
from toolgate.gateway.sink import BestEffortSink
from toolgate.observability.logging import get_logger
from toolgate.observability.metrics import DISCOVERY_CANDIDATES
from toolgate.providers.embedding.base import EmbeddingProvider

logger = get_logger(__name__)

DESK_SIZE = 3


def _round(value: float) -> float:
    return round(value, 4)


class DiscoveryEngine:
    """Finds apps and pages for a caller."""

    def __init__(
        self,
        apps: AppStore,
        contents: ContentStore,
        connections: ConnectionService,
        audit: AuditStore,
        library: LibraryBuilder,
        documents: DocumentService,
        sink: BestEffortSink,
        config: DiscoveryConfig,
        embedder: EmbeddingProvider | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._apps = apps
        self._contents = contents
        self._connections = connections
        self._audit = audit
        self._library = library
        self._documents = documents
        self._sink = sink
        self._config = config
        self._embedder = embedder
        self._rng = rng or random.Random()

    @property
    def _weights(self) -> tuple[float, float, float]:
        return (
            self._config.similarity_weight,
            self._config.native_weight,
            self._config.community_weight,
        )

    async def desk(self, user_id: str) -> dict[str, Any]:
        """The last few distinct apps the caller used, newest first."""
        recent = await self._audit.recent_app_ids(user_id, limit=DESK_SIZE)
        if not recent:
            return {"desk": [], "total": 0}
        apps = {a.id: a for a in await self._apps.get_many([app_id for app_id, _ in recent])}
        desk = [
            {
                "id": app.id,
                "name": app.name,
                "slug": app.slug,
                "description": app.description,
                "is_owner": app.owner_id == user_id,
                "mcp_endpoint": f"/mcp/{app.id}",
                "last_used": last_used.isoformat(),
            }
            for app_id, last_used in recent
            if (app := apps.get(app_id)) is not None
        ]
        return {"desk": desk, "total": len(desk)}

    async def library(self, user_id: str, query: str | None = None) -> dict[str, Any]:
        """The caller's own and saved apps, whole or searched."""
        saved = await self._saved_apps(user_id)
        if not query:
            return await self._library_listing(user_id, saved)

        if self._embedder is None:
            owned = await self._apps.list_by_owner(user_id)
            pool = owned + [a for a in saved if a.owner_id != user_id]
            needle = query.lower()
            matches = [
                a
                for a in pool
                if needle in a.name.lower() or needle in (a.description or "").lower()
            ]
            return {
                "query": query,
                "results": [self._library_row(a, user_id) for a in matches],
            }

        embedding = await self._embedder.embed_single(query)
        owned_ids = [a.id for a in await self._apps.list_by_owner(user_id)]
        hits = await self._apps.search_by_embedding(
            embedding,
            self._config.library_search_limit,
            self._config.library_min_similarity,
            public_only=False,
            app_ids=owned_ids + [a.id for a in saved],
        )
        DISCOVERY_CANDIDATES.labels(mode="library").observe(len(hits))
        return {
            "query": query,
            "results": [
                {**self._library_row(h.app, user_id), "similarity": _round(h.similarity)}
                for h in hits
            ],
        }

    async def appstore(
        self,
        user_id: str,
        query: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Featured apps without a query, ranked search with one."""
        limit = limit or self._config.appstore_default_limit
        if not isinstance(limit, int) or limit < 1:
            raise invalid_params("limit must be a positive integer")
        blocked = set(await self._apps.list_blocked(user_id))
        if not query:
            return await self._featured(user_id, limit, blocked)
        return await self._search(user_id, query, limit, blocked)

    async def _featured(self, user_id: str, limit: int, blocked: set[str]) -> dict[str, Any]:
        fetched = await self._apps.list_featured(
            limit + len(blocked) + self._config.featured_padding
        )
        apps = [a for a in fetched if a.id not in blocked][:limit]
        connected = await self._connected_keys(user_id, [a.id for a in apps])
        DISCOVERY_CANDIDATES.labels(mode="featured").observe(len(apps))

        results = [
            {
                "id": app.id,
                "name": app.name,
                "slug": app.slug,
                "description": app.description,
                "is_owner": app.owner_id == user_id,
                "mcp_endpoint": f"/mcp/{app.id}",
                "likes": app.likes,
                "dislikes": app.dislikes,
                **readiness(app, connected.get(app.id, [])),
            }
            for app in apps
        ]
        return {"mode": "featured", "results": results, "total": len(results)}

    async def _search(
        self,
        user_id: str,
        query: str,
        limit: int,
        blocked: set[str],
    ) -> dict[str, Any]:
        if self._embedder is None:
            raise ToolError(ErrorCode.INTERNAL_ERROR, "Embedding service not available")
        embedding = await self._embedder.embed_single(query)

        hits = await self._apps.search_by_embedding(
            embedding,
            limit * self._config.search_overfetch,
            self._config.min_similarity,
            public_only=True,
        )
        hits = [h for h in hits if h.app.id not in blocked]
        connected = await self._connected_keys(user_id, [h.app.id for h in hits])

        candidates = [
            self._app_candidate(h.app, h.similarity, user_id, connected.get(h.app.id, []))
            for h in hits
        ]
        if self._config.include_pages:
            candidates += await self._page_candidates(
                embedding, limit * self._config.search_overfetch, user_id
            )
        DISCOVERY_CANDIDATES.labels(mode="search").observe(len(candidates))

        ranked = luck_shuffle(rank(candidates), self._rng, window=self._config.shuffle_window)
        final = ranked[:limit]

        query_id = str(uuid.uuid4())
        self._sink.submit(
            "discovery_query_log",
            self._audit.record_query(
                DiscoveryQueryRecord(
                    id=query_id,
                    user_id=user_id,
                    query=query,
                    top_similarity=_round(final[0].similarity) if final else None,
                    top_final_score=_round(final[0].final_score) if final else None,
                    result_count=len(final),
                    results=[
                        RankedResult(
                            id=c.id,
                            kind=c.kind,
                            position=i + 1,
                            final_score=_round(c.final_score),
                            similarity=_round(c.similarity),
                        )
                        for i, c in enumerate(final)
                    ],
                )
            ),
        )

        return {
            "mode": "search",
            "query": query,
            "query_id": query_id,
            "results": [
                {
                    "id": c.id,
                    "type": c.kind,
                    **c.metadata,
                    "similarity": _round(c.similarity),
                    "final_score": _round(c.final_score),
                }
                for c in final
            ],
            "total": len(final),
        }

    def _app_candidate(
        self,
        app: App,
        similarity: float,
        user_id: str,
        connected_keys: list[str],
    ) -> DiscoveryCandidate:
        native = native_boost(app.env_schema, connected_keys)
        community = community_signal(app.weighted_likes, app.weighted_dislikes)
        return DiscoveryCandidate(
            id=app.id,
            kind="app",
            similarity=similarity,
            native_boost=native,
            community_signal=community,
            final_score=final_score(similarity, native, community, self._weights),
            metadata={
                "name": app.name,
                "slug": app.slug,
                "description": app.description,
                "is_owner": app.owner_id == user_id,
                "mcp_endpoint": f"/mcp/{app.id}",
                "likes": app.likes,
                "dislikes": app.dislikes,
                **readiness(app, connected_keys),
            },
        )

    async def _page_candidates(
        self,
        embedding: list[float],
        limit: int,
        user_id: str,
    ) -> list[DiscoveryCandidate]:
        try:
            hits = await self._contents.search_pages(
                embedding, limit, self._config.min_similarity
            )
        except Exception as e:
            logger.warning("page_search_failed", error=str(e))
            return []
        native = self._config.page_native_boost
        return [
            DiscoveryCandidate(
                id=h.content.id,
                kind="page",
                similarity=h.similarity,
                native_boost=native,
                community_signal=0.0,
                final_score=final_score(h.similarity, native, 0.0, self._weights),
                metadata={
                    "name": h.content.title or h.content.slug,
                    "slug": h.content.slug,
                    "is_owner": h.content.owner_id == user_id,
                    "url": page_url(h.content.owner_id, h.content.slug),
                },
            )
            for h in hits
        ]

    async def _library_listing(self, user_id: str, saved: list[App]) -> dict[str, Any]:
        body = await self._documents.read_library(user_id)
        if not body:
            body = await self._library.rebuild(user_id)
        memory = await self._documents.read_memory(user_id)

        if not body:
            owned = await self._apps.list_by_owner(user_id)
            return {
                "library": [
                    {
                        **self._library_row(a, user_id),
                        "visibility": a.visibility.value,
                        "version": a.current_version,
                    }
                    for a in owned + saved
                ],
                "memory": memory,
            }

        section = await self._library.saved_section(user_id)
        if section:
            body = f"{body.rstrip()}\n\n{section}"
        return {"library": body, "memory": memory}

    async def _saved_apps(self, user_id: str) -> list[App]:
        saved_ids = await self._apps.list_library(user_id)
        return await self._apps.get_many(saved_ids) if saved_ids else []

    async def _connected_keys(self, user_id: str, app_ids: list[str]) -> dict[str, list[str]]:
        if not app_ids:
            return {}
        try:
            return await self._connections.connected_keys(user_id, app_ids)
        except Exception as e:
            logger.warning("connection_lookup_failed", user_id=user_id, error=str(e))
            return {}

    @staticmethod
    def _library_row(app: App, user_id: str) -> dict[str, Any]:
        return {
            "id": app.id,
            "name": app.name,
            "slug": app.slug,
            "description": app.description,
            "source": "owned" if app.owner_id == user_id else "saved",
            "mcp_endpoint": f"/mcp/{app.id}",
        }
