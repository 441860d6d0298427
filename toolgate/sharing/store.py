"""ShareStore abstract interface."""

from abc import ABC, abstractmethod

from toolgate.sharing.models import ContentShare, KeyShare


class ShareStore(ABC):
    """Abstract interface for document and key-pattern shares."""

    # Document shares

    @abstractmethod
    async def upsert_content_share(self, share: ContentShare) -> ContentShare:
        """Insert or update the share for (content, email)."""
        pass

    @abstractmethod
    async def delete_content_shares(self, content_id: str, email: str | None = None) -> int:
        """Delete one email's share, or every share of the document."""
        pass

    @abstractmethod
    async def list_content_shares(
        self,
        owner_id: str | None = None,
        content_id: str | None = None,
    ) -> list[ContentShare]:
        pass

    @abstractmethod
    async def list_incoming_content_shares(self, user_id: str, email: str) -> list[ContentShare]:
        """Shares addressed to the user id or, while unclaimed, to the email."""
        pass

    # Key-pattern shares

    @abstractmethod
    async def upsert_key_share(self, share: KeyShare) -> KeyShare:
        pass

    @abstractmethod
    async def delete_key_shares(
        self,
        owner_id: str,
        scope: str,
        key_pattern: str,
        email: str,
    ) -> int:
        """Delete the row matching the exact (owner, scope, pattern, email) tuple."""
        pass

    @abstractmethod
    async def list_key_shares(self, owner_id: str, scope: str | None = None) -> list[KeyShare]:
        pass

    @abstractmethod
    async def list_incoming_key_shares(self, user_id: str, email: str) -> list[KeyShare]:
        pass

    @abstractmethod
    async def claim_pending(self, user_id: str, email: str) -> int:
        """Fill in the user id of shares addressed to an unregistered email."""
        pass
