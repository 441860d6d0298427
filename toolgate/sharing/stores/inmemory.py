"""In-memory implementation of ShareStore."""

import asyncio

from toolgate.sharing.models import ContentShare, KeyShare
from toolgate.sharing.store import ShareStore


def _addressed_to(share: ContentShare | KeyShare, user_id: str, email: str) -> bool:
    return share.shared_with_user_id == user_id or share.shared_with_email == email.lower()


class InMemoryShareStore(ShareStore):
    """In-memory implementation of ShareStore for testing and development."""

    def __init__(self) -> None:
        self._content: dict[tuple[str, str], ContentShare] = {}
        self._keys: dict[tuple[str, str, str, str], KeyShare] = {}
        self._lock = asyncio.Lock()

    async def upsert_content_share(self, share: ContentShare) -> ContentShare:
        async with self._lock:
            key = (share.content_id, share.shared_with_email)
            existing = self._content.get(key)
            if existing is not None:
                share = share.model_copy(
                    update={"id": existing.id, "created_at": existing.created_at}
                )
            self._content[key] = share
            return share

    async def delete_content_shares(self, content_id: str, email: str | None = None) -> int:
        async with self._lock:
            doomed = [
                k for k in self._content if k[0] == content_id and (email is None or k[1] == email)
            ]
            for k in doomed:
                del self._content[k]
            return len(doomed)

    async def list_content_shares(
        self,
        owner_id: str | None = None,
        content_id: str | None = None,
    ) -> list[ContentShare]:
        return [
            s
            for s in self._content.values()
            if (owner_id is None or s.owner_id == owner_id)
            and (content_id is None or s.content_id == content_id)
        ]

    async def list_incoming_content_shares(self, user_id: str, email: str) -> list[ContentShare]:
        return [s for s in self._content.values() if _addressed_to(s, user_id, email)]

    async def upsert_key_share(self, share: KeyShare) -> KeyShare:
        async with self._lock:
            key = (share.owner_id, share.scope, share.key_pattern, share.shared_with_email)
            existing = self._keys.get(key)
            if existing is not None:
                share = share.model_copy(
                    update={"id": existing.id, "created_at": existing.created_at}
                )
            self._keys[key] = share
            return share

    async def delete_key_shares(
        self,
        owner_id: str,
        scope: str,
        key_pattern: str,
        email: str,
    ) -> int:
        async with self._lock:
            removed = self._keys.pop((owner_id, scope, key_pattern, email), None)
            return 0 if removed is None else 1

    async def list_key_shares(self, owner_id: str, scope: str | None = None) -> list[KeyShare]:
        return [
            s
            for s in self._keys.values()
            if s.owner_id == owner_id and (scope is None or s.scope == scope)
        ]

    async def list_incoming_key_shares(self, user_id: str, email: str) -> list[KeyShare]:
        return [s for s in self._keys.values() if _addressed_to(s, user_id, email)]

    async def claim_pending(self, user_id: str, email: str) -> int:
        email = email.lower()
        claimed = 0
        async with self._lock:
            for k, s in self._content.items():
                if s.shared_with_user_id is None and s.shared_with_email == email:
                    self._content[k] = s.model_copy(update={"shared_with_user_id": user_id})
                    claimed += 1
            for k, ks in self._keys.items():
                if ks.shared_with_user_id is None and ks.shared_with_email == email:
                    self._keys[k] = ks.model_copy(update={"shared_with_user_id": user_id})
                    claimed += 1
        return claimed
