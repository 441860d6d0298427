"""One grant/revoke/list verb set over documents and key/value memory.

Documents (pages, memory.md, library.md) are shared one by one and get an
access token for link-based reads. Key/value memory is shared by key
pattern within a scope.
"""

import secrets
from datetime import datetime
from typing import Any

from toolgate.content.documents import MEMORY_HEADER, DocumentService
from toolgate.content.library import LibraryBuilder
from toolgate.content.models import Content
from toolgate.content.store import ContentStore
from toolgate.gateway.errors import invalid_params, not_found
from toolgate.observability.logging import get_logger
from toolgate.sharing.models import (
    DOCUMENT_KINDS,
    AccessLevel,
    ContentShare,
    KeyShare,
    utc_now,
)
from toolgate.sharing.patterns import any_match
from toolgate.sharing.store import ShareStore
from toolgate.users.models import User
from toolgate.users.store import UserStore

logger = get_logger(__name__)


def new_access_token() -> str:
    return secrets.token_urlsafe(24)


class SharingService:
    """Shares a user's content with other people by email."""

    def __init__(
        self,
        store: ShareStore,
        contents: ContentStore,
        documents: DocumentService,
        library: LibraryBuilder,
        users: UserStore,
    ) -> None:
        self._store = store
        self._contents = contents
        self._documents = documents
        self._library = library
        self._users = users

    async def grant(
        self,
        owner: User,
        kind: str,
        email: str | None,
        access_level: str = "read",
        slug: str | None = None,
        scope: str | None = None,
        key_pattern: str | None = None,
        expires_at: datetime | None = None,
    ) -> dict[str, Any]:
        email = self._normalize_email(owner, email)
        level = self._access_level(access_level)
        grantee = await self._users.get_by_email(email)
        grantee_id = grantee.id if grantee else None
        status = "active" if grantee else "pending"

        if kind == "memory_kv":
            if not key_pattern:
                raise invalid_params("key_pattern is required for memory_kv shares")
            share = await self._store.upsert_key_share(
                KeyShare(
                    owner_id=owner.id,
                    scope=scope or "user",
                    key_pattern=key_pattern,
                    shared_with_email=email,
                    shared_with_user_id=grantee_id,
                    access_level=level,
                )
            )
            logger.info("key_share_granted", owner_id=owner.id, scope=share.scope, status=status)
            return {
                "kind": kind,
                "scope": share.scope,
                "key_pattern": share.key_pattern,
                "email": email,
                "access_level": share.access_level,
                "status": status,
            }

        document = await self._shareable_document(owner.id, kind, slug, create=True)
        fields: dict[str, Any] = {}
        if document.visibility != "public":
            fields["visibility"] = "shared"
        if not document.access_token:
            fields["access_token"] = new_access_token()
        if fields:
            document = await self._contents.update_fields(document.id, fields) or document

        share = await self._store.upsert_content_share(
            ContentShare(
                content_id=document.id,
                owner_id=owner.id,
                shared_with_email=email,
                shared_with_user_id=grantee_id,
                access_level=level,
                expires_at=expires_at,
            )
        )
        logger.info("content_share_granted", owner_id=owner.id, kind=kind, status=status)
        return {
            "kind": kind,
            "slug": document.slug,
            "email": email,
            "access_level": share.access_level,
            "access_token": document.access_token,
            "expires_at": share.expires_at.isoformat() if share.expires_at else None,
            "status": status,
        }

    async def revoke(
        self,
        owner: User,
        kind: str,
        email: str | None = None,
        slug: str | None = None,
        scope: str | None = None,
        key_pattern: str | None = None,
    ) -> dict[str, Any]:
        normalized = email.strip().lower() if email else None

        if kind == "memory_kv":
            if not key_pattern:
                raise invalid_params("key_pattern is required for memory_kv shares")
            if not normalized:
                raise invalid_params("email is required to revoke a memory_kv share")
            removed = await self._store.delete_key_shares(
                owner.id, scope or "user", key_pattern, normalized
            )
            return {
                "kind": kind,
                "scope": scope or "user",
                "key_pattern": key_pattern,
                "email": normalized,
                "revoked": removed,
            }

        document = await self._shareable_document(owner.id, kind, slug, create=False)
        removed = await self._store.delete_content_shares(document.id, normalized)
        logger.info("content_share_revoked", owner_id=owner.id, kind=kind, revoked=removed)
        return {"kind": kind, "slug": document.slug, "email": normalized, "revoked": removed}

    async def regenerate_token(
        self,
        owner: User,
        kind: str,
        slug: str | None = None,
    ) -> dict[str, Any]:
        if kind == "memory_kv":
            raise invalid_params("memory_kv shares have no access token")
        document = await self._shareable_document(owner.id, kind, slug, create=False)
        token = new_access_token()
        await self._contents.update_fields(document.id, {"access_token": token})
        logger.info("access_token_regenerated", owner_id=owner.id, kind=kind)
        return {"kind": kind, "slug": document.slug, "access_token": token}

    async def list_outgoing(self, owner: User) -> dict[str, Any]:
        grouped: dict[str, list[dict[str, Any]]] = {k: [] for k in (*DOCUMENT_KINDS, "memory_kv")}

        shares = await self._store.list_content_shares(owner_id=owner.id)
        documents = {
            c.id: c for c in await self._contents.get_many(sorted({s.content_id for s in shares}))
        }
        for share in shares:
            document = documents.get(share.content_id)
            if document is None:
                continue
            grouped[document.type].append(
                {
                    "slug": document.slug,
                    "title": document.title,
                    "email": share.shared_with_email,
                    "access_level": share.access_level,
                    "status": "active" if share.shared_with_user_id else "pending",
                    "expires_at": share.expires_at.isoformat() if share.expires_at else None,
                }
            )

        for key_share in await self._store.list_key_shares(owner.id):
            grouped["memory_kv"].append(
                {
                    "scope": key_share.scope,
                    "key_pattern": key_share.key_pattern,
                    "email": key_share.shared_with_email,
                    "access_level": key_share.access_level,
                    "status": "active" if key_share.shared_with_user_id else "pending",
                }
            )
        return {"direction": "outgoing", **_plural(grouped)}

    async def list_incoming(self, user: User) -> dict[str, Any]:
        grouped: dict[str, list[dict[str, Any]]] = {k: [] for k in (*DOCUMENT_KINDS, "memory_kv")}
        now = utc_now()

        shares = [
            s
            for s in await self._store.list_incoming_content_shares(user.id, user.email)
            if not s.is_expired(now)
        ]
        key_shares = await self._store.list_incoming_key_shares(user.id, user.email)
        owner_ids = sorted({s.owner_id for s in shares} | {k.owner_id for k in key_shares})
        owners = {u.id: u.email for u in await self._users.get_many(owner_ids)} if owner_ids else {}
        documents = {
            c.id: c for c in await self._contents.get_many(sorted({s.content_id for s in shares}))
        }

        for share in shares:
            document = documents.get(share.content_id)
            if document is None:
                continue
            grouped[document.type].append(
                {
                    "slug": document.slug,
                    "title": document.title,
                    "owner_email": owners.get(share.owner_id),
                    "access_level": share.access_level,
                    "access_token": document.access_token,
                    "expires_at": share.expires_at.isoformat() if share.expires_at else None,
                }
            )
        for key_share in key_shares:
            grouped["memory_kv"].append(
                {
                    "scope": key_share.scope,
                    "key_pattern": key_share.key_pattern,
                    "owner_email": owners.get(key_share.owner_id),
                    "access_level": key_share.access_level,
                }
            )
        return {"direction": "incoming", **_plural(grouped)}

    async def key_patterns_for(self, owner_id: str, reader: User, scope: str) -> list[str]:
        """Patterns of the owner's keys in a scope that the reader may read."""
        shares = await self._store.list_incoming_key_shares(reader.id, reader.email)
        return [s.key_pattern for s in shares if s.owner_id == owner_id and s.scope == scope]

    async def can_read_key(self, owner_id: str, reader: User, scope: str, key: str) -> bool:
        return any_match(await self.key_patterns_for(owner_id, reader, scope), key)

    async def convert_pending(self, user: User) -> int:
        """Attach shares addressed to the user's email. Errors are logged only."""
        try:
            claimed = await self._store.claim_pending(user.id, user.email)
        except Exception as e:
            logger.warning("pending_share_conversion_failed", user_id=user.id, error=str(e))
            return 0
        if claimed:
            logger.info("pending_shares_converted", user_id=user.id, count=claimed)
        return claimed

    async def _shareable_document(
        self,
        owner_id: str,
        kind: str,
        slug: str | None,
        create: bool,
    ) -> Content:
        if kind == "page":
            if not slug:
                raise invalid_params("slug is required for page shares")
            page = await self._contents.get(owner_id, "page", slug)
            if page is None:
                raise not_found(f"Page not found: {slug}")
            return page
        if kind == "memory_md":
            if create:
                return await self._documents.ensure(owner_id, "memory_md", MEMORY_HEADER)
            doc = await self._documents.get(owner_id, "memory_md")
        elif kind == "library_md":
            if create:
                body = await self._library.compiled(owner_id)
                return await self._documents.ensure(owner_id, "library_md", body)
            doc = await self._documents.get(owner_id, "library_md")
        else:
            raise invalid_params(
                'kind must be one of "page", "memory_md", "library_md", "memory_kv"'
            )
        if doc is None:
            raise not_found(f"{kind} has not been created yet")
        return doc

    @staticmethod
    def _normalize_email(owner: User, email: str | None) -> str:
        if not email or not isinstance(email, str) or "@" not in email:
            raise invalid_params("email is required")
        normalized = email.strip().lower()
        if normalized == owner.email.lower():
            raise invalid_params("Cannot share with yourself")
        return normalized

    @staticmethod
    def _access_level(value: str | None) -> AccessLevel:
        if value in (None, "read"):
            return "read"
        if value == "readwrite":
            return "readwrite"
        raise invalid_params('access_level must be "read" or "readwrite"')


def _plural(grouped: dict[str, list[dict[str, Any]]]) -> dict[str, list[dict[str, Any]]]:
    return {
        "pages": grouped["page"],
        "memory_md": grouped["memory_md"],
        "library_md": grouped["library_md"],
        "memory_kv": grouped["memory_kv"],
    }
