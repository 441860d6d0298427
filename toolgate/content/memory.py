"""memory.* operations: memory.md plus key/value entries, own or shared."""

from typing import Any

from toolgate.content.documents import DocumentService
from toolgate.content.store import MemoryStore
from toolgate.gateway.errors import forbidden, invalid_params, not_found
from toolgate.gateway.params import clamp_limit
from toolgate.observability.logging import get_logger
from toolgate.sharing.patterns import any_match
from toolgate.sharing.service import SharingService
from toolgate.users.models import User
from toolgate.users.store import UserStore

logger = get_logger(__name__)

DEFAULT_SCOPE = "user"
QUERY_DEFAULT_LIMIT = 100
QUERY_MAX_LIMIT = 1000


class MemoryService:
    """Reads and writes a caller's memory, and memory others shared with them."""

    def __init__(
        self,
        store: MemoryStore,
        documents: DocumentService,
        sharing: SharingService,
        users: UserStore,
    ) -> None:
        self._store = store
        self._documents = documents
        self._sharing = sharing
        self._users = users

    async def read(
        self,
        user: User,
        key: str | None = None,
        scope: str | None = None,
        owner_email: str | None = None,
    ) -> dict[str, Any]:
        scope = scope or DEFAULT_SCOPE
        owner = await self._owner(user, owner_email)

        if key is None:
            if owner.id != user.id:
                raise invalid_params("key is required when reading another user's memory")
            body = await self._documents.read_memory(user.id)
            return {"memory": body, "exists": body is not None}

        if owner.id != user.id and not await self._sharing.can_read_key(
            owner.id, user, scope, key
        ):
            raise forbidden(f"No share grants access to {scope}/{key}")

        entry = await self._store.get_entry(owner.id, scope, key)
        result: dict[str, Any] = {
            "key": key,
            "scope": scope,
            "value": entry.value if entry else None,
            "exists": entry is not None,
        }
        if owner.id != user.id:
            result["owner_email"] = owner.email
        return result

    async def write(
        self,
        user: User,
        content: str | None = None,
        append: bool = False,
        key: str | None = None,
        value: Any = None,
        scope: str | None = None,
    ) -> dict[str, Any]:
        if key is not None:
            scope = scope or DEFAULT_SCOPE
            await self._store.set_entry(user.id, scope, key, value)
            return {"success": True, "key": key, "scope": scope}

        if not isinstance(content, str):
            raise invalid_params("content or key is required")
        if append:
            doc = await self._documents.append_memory(user.id, content)
        else:
            doc = await self._documents.write_memory(user.id, content)
        logger.info("memory_written", user_id=user.id, append=append, size=doc.size)
        return {"success": True, "length": len(doc.body)}

    async def query(
        self,
        user: User,
        scope: str | None = None,
        prefix: str | None = None,
        limit: Any = None,
        owner_email: str | None = None,
    ) -> dict[str, Any]:
        scope = scope or DEFAULT_SCOPE
        limit = clamp_limit(limit, QUERY_DEFAULT_LIMIT, QUERY_MAX_LIMIT)
        owner = await self._owner(user, owner_email)

        if owner.id == user.id:
            entries = await self._store.query(user.id, scope, prefix, limit)
        else:
            patterns = await self._sharing.key_patterns_for(owner.id, user, scope)
            if not patterns:
                raise forbidden(f"{owner.email} has not shared any keys in scope {scope}")
            candidates = await self._store.query(owner.id, scope, prefix, QUERY_MAX_LIMIT)
            entries = [e for e in candidates if any_match(patterns, e.key)][:limit]

        return {
            "entries": [
                {"key": e.key, "value": e.value, "updated_at": e.updated_at.isoformat()}
                for e in entries
            ],
            "total": len(entries),
            "scope": scope,
        }

    async def forget(self, user: User, key: str, scope: str | None = None) -> dict[str, Any]:
        scope = scope or DEFAULT_SCOPE
        deleted = await self._store.delete_entry(user.id, scope, key)
        return {"success": deleted, "key": key, "scope": scope}

    async def _owner(self, user: User, owner_email: str | None) -> User:
        if not owner_email or owner_email.strip().lower() == user.email.lower():
            return user
        owner = await self._users.get_by_email(owner_email.strip().lower())
        if owner is None:
            raise not_found(f"User not found: {owner_email}")
        return owner
