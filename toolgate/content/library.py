"""Compiled library.md: one entry per app the user owns."""

from toolgate.apps.artifacts import ArtifactStore, fallback_library_entry
from toolgate.apps.store import AppStore
from toolgate.content.documents import DocumentService
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)

LIBRARY_HEADER = "# Library\n\nAll your apps and their capabilities.\n\n"
LIBRARY_PLACEHOLDER = (
    "# Library\n\nNo apps yet. Publish an app with the `publish` capability "
    "and it will appear here."
)


class LibraryBuilder:
    """Rebuilds and serves a user's library.md."""

    def __init__(
        self,
        apps: AppStore,
        artifacts: ArtifactStore,
        documents: DocumentService,
    ) -> None:
        self._apps = apps
        self._artifacts = artifacts
        self._documents = documents

    async def rebuild(self, owner_id: str) -> str | None:
        """Compile library.md from the live version of every owned app.

        Returns None (and stores nothing) when the user owns no apps.
        """
        apps = await self._apps.list_by_owner(owner_id)
        if not apps:
            return None

        parts = []
        for app in apps:
            loaded = await self._artifacts.load(app.id, app.current_version)
            parts.append(loaded.library_entry or fallback_library_entry(app))
            parts.append("")

        body = LIBRARY_HEADER + "\n".join(parts)
        await self._documents.write_library(owner_id, body)
        logger.info("library_rebuilt", owner_id=owner_id, apps=len(apps))
        return body

    async def compiled(self, owner_id: str) -> str:
        """Stored library.md, rebuilding once if absent, else a placeholder."""
        body = await self._documents.read_library(owner_id)
        if body:
            return body
        rebuilt = await self.rebuild(owner_id)
        return rebuilt or LIBRARY_PLACEHOLDER

    async def saved_section(self, user_id: str) -> str | None:
        """Markdown section listing apps the user saved from the app store."""
        saved_ids = await self._apps.list_library(user_id)
        if not saved_ids:
            return None
        apps = await self._apps.get_many(saved_ids)
        lines = ["## Saved Apps", ""]
        for app in apps:
            lines.append(fallback_library_entry(app))
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"
