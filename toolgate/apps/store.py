"""AppStore abstract interface."""

from abc import ABC, abstractmethod
from typing import Any, Literal

from toolgate.apps.models import App, AppSearchHit

Rating = Literal["like", "dislike"]


class AppStore(ABC):
    """Abstract interface for apps and per-user engagement rows.

    Version and pointer moves are single conditional writes so the
    live-pointer invariant holds under concurrent publishes.
    """

    # Apps

    @abstractmethod
    async def get(self, app_id: str) -> App | None:
        """Get an app by id."""
        pass

    @abstractmethod
    async def get_by_slug(self, slug: str, owner_id: str | None = None) -> App | None:
        """Get an app by slug, optionally scoped to an owner."""
        pass

    @abstractmethod
    async def get_many(self, app_ids: list[str]) -> list[App]:
        """Get every app whose id is in app_ids."""
        pass

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> list[App]:
        """List an owner's apps, newest first."""
        pass

    @abstractmethod
    async def create(self, app: App) -> App:
        """Insert a new app."""
        pass

    @abstractmethod
    async def append_version(self, app_id: str, version: str) -> App | None:
        """Add a version to the set without touching the live pointer.

        Returns None when the version already exists.
        """
        pass

    @abstractmethod
    async def set_live_version(
        self,
        app_id: str,
        version: str,
        exports: list[str],
    ) -> App | None:
        """Move the live pointer. Returns None when version is not in the set."""
        pass

    @abstractmethod
    async def update_fields(self, app_id: str, fields: dict[str, Any]) -> App | None:
        """Overwrite the given columns of an app."""
        pass

    @abstractmethod
    async def list_featured(self, limit: int) -> list[App]:
        """Public, non-suspended apps by weighted likes, likes, then runs."""
        pass

    @abstractmethod
    async def search_by_embedding(
        self,
        embedding: list[float],
        limit: int,
        min_similarity: float,
        *,
        public_only: bool = True,
        app_ids: list[str] | None = None,
    ) -> list[AppSearchHit]:
        """Vector search over apps with an embedding, best match first."""
        pass

    # Ratings

    @abstractmethod
    async def get_rating(self, app_id: str, user_id: str) -> Rating | None:
        """The caller's current rating of an app."""
        pass

    @abstractmethod
    async def set_rating(
        self,
        app_id: str,
        user_id: str,
        rating: Rating | None,
        weighted: bool,
    ) -> App | None:
        """Replace (or clear, with None) a rating and adjust the app counters."""
        pass

    # Library and blocks

    @abstractmethod
    async def save_to_library(self, user_id: str, app_id: str) -> None:
        pass

    @abstractmethod
    async def remove_from_library(self, user_id: str, app_id: str) -> None:
        pass

    @abstractmethod
    async def list_library(self, user_id: str) -> list[str]:
        """Ids of apps saved to a user's library."""
        pass

    @abstractmethod
    async def block(self, user_id: str, app_id: str) -> None:
        pass

    @abstractmethod
    async def unblock(self, user_id: str, app_id: str) -> None:
        pass

    @abstractmethod
    async def list_blocked(self, user_id: str) -> list[str]:
        """Ids of apps a user has hidden from the app store."""
        pass
