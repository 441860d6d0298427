"""UserStore abstract interface."""

from abc import ABC, abstractmethod

from toolgate.users.models import User


class UserStore(ABC):
    """Abstract interface for the user directory."""

    @abstractmethod
    async def get(self, user_id: str) -> User | None:
        """Get a user by id."""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> User | None:
        """Get a user by email (case-insensitive)."""
        pass

    @abstractmethod
    async def get_many(self, user_ids: list[str]) -> list[User]:
        """Get all users whose id is in user_ids."""
        pass

    @abstractmethod
    async def upsert(self, user: User) -> tuple[User, bool]:
        """Insert or refresh a user.

        Returns:
            The stored user and True if the row was created by this call
        """
        pass
