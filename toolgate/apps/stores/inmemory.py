"""In-memory implementation of AppStore."""

import asyncio
from typing import Any

from toolgate.apps.models import App, AppSearchHit, utc_now
from toolgate.apps.store import AppStore, Rating
from toolgate.db.vectors import cosine_similarity


class InMemoryAppStore(AppStore):
    """In-memory implementation of AppStore for testing and development."""

    def __init__(self) -> None:
        self._apps: dict[str, App] = {}
        self._ratings: dict[tuple[str, str], tuple[Rating, bool]] = {}
        self._library: dict[str, list[str]] = {}
        self._blocks: dict[str, list[str]] = {}
        self._lock = asyncio.Lock()

    async def get(self, app_id: str) -> App | None:
        return self._apps.get(app_id)

    async def get_by_slug(self, slug: str, owner_id: str | None = None) -> App | None:
        for app in self._apps.values():
            if app.slug == slug and (owner_id is None or app.owner_id == owner_id):
                return app
        return None

    async def get_many(self, app_ids: list[str]) -> list[App]:
        return [self._apps[a] for a in app_ids if a in self._apps]

    async def list_by_owner(self, owner_id: str) -> list[App]:
        apps = [a for a in self._apps.values() if a.owner_id == owner_id]
        return sorted(apps, key=lambda a: a.created_at, reverse=True)

    async def create(self, app: App) -> App:
        self._apps[app.id] = app
        return app

    async def append_version(self, app_id: str, version: str) -> App | None:
        async with self._lock:
            app = self._apps.get(app_id)
            if app is None or version in app.versions:
                return None
            updated = app.model_copy(
                update={"versions": [*app.versions, version], "updated_at": utc_now()}
            )
            self._apps[app_id] = updated
            return updated

    async def set_live_version(
        self,
        app_id: str,
        version: str,
        exports: list[str],
    ) -> App | None:
        async with self._lock:
            app = self._apps.get(app_id)
            if app is None or version not in app.versions:
                return None
            updated = app.model_copy(
                update={
                    "current_version": version,
                    "exports": list(exports),
                    "updated_at": utc_now(),
                }
            )
            self._apps[app_id] = updated
            return updated

    async def update_fields(self, app_id: str, fields: dict[str, Any]) -> App | None:
        async with self._lock:
            app = self._apps.get(app_id)
            if app is None:
                return None
            updated = app.model_validate(
                {**app.model_dump(), **fields, "updated_at": utc_now()}
            )
            self._apps[app_id] = updated
            return updated

    async def list_featured(self, limit: int) -> list[App]:
        apps = [
            a
            for a in self._apps.values()
            if a.is_public and not a.hosting_suspended
        ]
        apps.sort(key=lambda a: (a.weighted_likes, a.likes, a.runs_30d), reverse=True)
        return apps[:limit]

    async def search_by_embedding(
        self,
        embedding: list[float],
        limit: int,
        min_similarity: float,
        *,
        public_only: bool = True,
        app_ids: list[str] | None = None,
    ) -> list[AppSearchHit]:
        hits = []
        for app in self._apps.values():
            if app.embedding is None or app.hosting_suspended:
                continue
            if public_only and not app.is_public:
                continue
            if app_ids is not None and app.id not in app_ids:
                continue
            similarity = cosine_similarity(embedding, app.embedding)
            if similarity >= min_similarity:
                hits.append(AppSearchHit(app=app, similarity=similarity))
        hits.sort(key=lambda h: h.similarity, reverse=True)
        return hits[:limit]

    async def get_rating(self, app_id: str, user_id: str) -> Rating | None:
        entry = self._ratings.get((app_id, user_id))
        return entry[0] if entry else None

    async def set_rating(
        self,
        app_id: str,
        user_id: str,
        rating: Rating | None,
        weighted: bool,
    ) -> App | None:
        async with self._lock:
            app = self._apps.get(app_id)
            if app is None:
                return None
            counts = {
                "likes": app.likes,
                "dislikes": app.dislikes,
                "weighted_likes": app.weighted_likes,
                "weighted_dislikes": app.weighted_dislikes,
            }

            previous = self._ratings.pop((app_id, user_id), None)
            if previous is not None:
                self._count(counts, previous[0], previous[1], -1)
            if rating is not None:
                self._ratings[(app_id, user_id)] = (rating, weighted)
                self._count(counts, rating, weighted, 1)

            updated = app.model_copy(update=counts)
            self._apps[app_id] = updated
            return updated

    @staticmethod
    def _count(counts: dict[str, int], rating: Rating, weighted: bool, delta: int) -> None:
        column = "likes" if rating == "like" else "dislikes"
        counts[column] = max(0, counts[column] + delta)
        if weighted:
            counts[f"weighted_{column}"] = max(0, counts[f"weighted_{column}"] + delta)

    async def save_to_library(self, user_id: str, app_id: str) -> None:
        saved = self._library.setdefault(user_id, [])
        if app_id not in saved:
            saved.append(app_id)

    async def remove_from_library(self, user_id: str, app_id: str) -> None:
        saved = self._library.get(user_id, [])
        if app_id in saved:
            saved.remove(app_id)

    async def list_library(self, user_id: str) -> list[str]:
        return list(self._library.get(user_id, []))

    async def block(self, user_id: str, app_id: str) -> None:
        blocked = self._blocks.setdefault(user_id, [])
        if app_id not in blocked:
            blocked.append(app_id)

    async def unblock(self, user_id: str, app_id: str) -> None:
        blocked = self._blocks.get(user_id, [])
        if app_id in blocked:
            blocked.remove(app_id)

    async def list_blocked(self, user_id: str) -> list[str]:
        return list(self._blocks.get(user_id, []))
