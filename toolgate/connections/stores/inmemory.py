"""In-memory implementation of SecretStore."""

from toolgate.connections.models import Secret
from toolgate.connections.store import SecretStore


class InMemorySecretStore(SecretStore):
    """In-memory implementation of SecretStore for testing and development."""

    def __init__(self) -> None:
        self._secrets: dict[tuple[str, str, str], Secret] = {}

    async def upsert(self, secret: Secret) -> Secret:
        self._secrets[(secret.user_id, secret.app_id, secret.key)] = secret
        return secret

    async def delete(self, user_id: str, app_id: str, key: str) -> bool:
        return self._secrets.pop((user_id, app_id, key), None) is not None

    async def list_for_app(self, user_id: str, app_id: str) -> list[Secret]:
        return [
            s for (u, a, _), s in self._secrets.items() if u == user_id and a == app_id
        ]

    async def list_for_user(self, user_id: str, app_ids: list[str] | None = None) -> list[Secret]:
        return [
            s
            for (u, a, _), s in self._secrets.items()
            if u == user_id and (app_ids is None or a in app_ids)
        ]
