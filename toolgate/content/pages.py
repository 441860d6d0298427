"""Markdown pages published by users."""

import re
from typing import Any

from toolgate.content.models import Content, ContentVisibility
from toolgate.content.store import ContentStore
from toolgate.gateway.errors import invalid_params
from toolgate.observability.logging import get_logger
from toolgate.providers.embedding.base import EmbeddingProvider, document_text

logger = get_logger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9\-/]*[a-z0-9]$")
SINGLE_CHAR_SLUG = re.compile(r"^[a-z0-9]$")
H1_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def is_valid_slug(slug: str) -> bool:
    return bool(SLUG_PATTERN.match(slug) or SINGLE_CHAR_SLUG.match(slug))


def page_title(body: str, slug: str, explicit: str | None = None) -> str:
    """Explicit title, else the first H1, else the slug."""
    if explicit:
        return explicit
    match = H1_PATTERN.search(body)
    return match.group(1).strip() if match else slug


def page_url(owner_id: str, slug: str) -> str:
    return f"/p/{owner_id}/{slug}"


class PageService:
    """Publishes and lists a user's markdown pages."""

    def __init__(
        self,
        contents: ContentStore,
        embedder: EmbeddingProvider | None,
        max_bytes: int = 100 * 1024,
    ) -> None:
        self._contents = contents
        self._embedder = embedder
        self._max_bytes = max_bytes

    async def publish(
        self,
        owner_id: str,
        slug: str | None,
        body: str | None,
        title: str | None = None,
        visibility: ContentVisibility | None = None,
        published: bool | None = None,
    ) -> dict[str, Any]:
        if not body:
            raise invalid_params("content is required")
        if not slug:
            raise invalid_params("slug is required")
        if not is_valid_slug(slug):
            raise invalid_params(
                'slug must be lowercase alphanumeric with hyphens (e.g. "weekly-report")'
            )
        if visibility is not None and visibility not in ("private", "public"):
            raise invalid_params('visibility must be "private" or "public"')

        size = len(body.encode("utf-8"))
        if size > self._max_bytes:
            raise invalid_params(
                f"Page exceeds {self._max_bytes // 1024}KB limit ({size / 1024:.1f}KB)"
            )

        existing = await self._contents.get(owner_id, "page", slug)
        resolved_title = page_title(body, slug, title)
        page = Content(
            owner_id=owner_id,
            type="page",
            slug=slug,
            title=resolved_title,
            body=body,
            size=size,
            visibility=visibility or (existing.visibility if existing else "private"),
            published=published if published is not None else (
                existing.published if existing else True
            ),
        )
        if page.visibility == "public":
            page.embedding = await self._embed(resolved_title, body)

        stored = await self._contents.upsert(page)
        logger.info("page_published", owner_id=owner_id, slug=slug, size=size)
        return {
            "success": True,
            "slug": slug,
            "title": resolved_title,
            "url": page_url(owner_id, slug),
            "size": size,
            "visibility": stored.visibility,
            "created_at": stored.created_at.isoformat(),
            "updated_at": stored.updated_at.isoformat(),
        }

    async def list_pages(self, owner_id: str) -> dict[str, Any]:
        pages = await self._contents.list_by_owner(owner_id, "page")
        return {
            "pages": [
                {
                    "slug": p.slug,
                    "title": p.title,
                    "size": p.size,
                    "visibility": p.visibility,
                    "published": p.published,
                    "url": page_url(owner_id, p.slug),
                    "created_at": p.created_at.isoformat(),
                    "updated_at": p.updated_at.isoformat(),
                }
                for p in pages
            ],
            "total": len(pages),
        }

    async def _embed(self, title: str, body: str) -> list[float] | None:
        if self._embedder is None:
            return None
        try:
            return await self._embedder.embed_single(document_text(title, body))
        except Exception as e:
            logger.warning("page_embedding_failed", error=str(e))
            return None
