"""In-memory implementation of UserStore."""

from toolgate.users.models import User
from toolgate.users.store import UserStore


class InMemoryUserStore(UserStore):
    """In-memory implementation of UserStore for testing and development."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}

    async def get(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        email = email.lower()
        for user in self._users.values():
            if user.email.lower() == email:
                return user
        return None

    async def get_many(self, user_ids: list[str]) -> list[User]:
        return [self._users[uid] for uid in user_ids if uid in self._users]

    async def upsert(self, user: User) -> tuple[User, bool]:
        existing = self._users.get(user.id)
        if existing is None:
            stored = user.model_copy(update={"email": user.email.lower()})
            self._users[user.id] = stored
            return stored, True

        # Balance and creation time are owned by the directory, not the token.
        stored = existing.model_copy(
            update={
                "email": user.email.lower(),
                "display_name": user.display_name or existing.display_name,
                "tier": user.tier,
            }
        )
        self._users[user.id] = stored
        return stored, False
