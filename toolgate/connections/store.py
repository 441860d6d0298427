"""SecretStore abstract interface."""

from abc import ABC, abstractmethod

from toolgate.connections.models import Secret


class SecretStore(ABC):
    """Abstract interface for per-caller encrypted secrets."""

    @abstractmethod
    async def upsert(self, secret: Secret) -> Secret:
        pass

    @abstractmethod
    async def delete(self, user_id: str, app_id: str, key: str) -> bool:
        pass

    @abstractmethod
    async def list_for_app(self, user_id: str, app_id: str) -> list[Secret]:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str, app_ids: list[str] | None = None) -> list[Secret]:
        """All of a user's secrets, optionally limited to some apps."""
        pass
