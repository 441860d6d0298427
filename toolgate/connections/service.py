"""Per-caller secrets for apps that read credentials from their environment."""

from typing import Any

from toolgate.apps.models import App
from toolgate.connections.crypto import SecretCipher
from toolgate.connections.models import Secret
from toolgate.connections.store import SecretStore
from toolgate.gateway.errors import invalid_params
from toolgate.observability.logging import get_logger

logger = get_logger(__name__)


def readiness(app: App, connected_keys: list[str]) -> dict[str, Any]:
    """Connection readiness of one app for a caller."""
    schema = {k: e for k, e in app.env_schema.items() if e.scope == "per_user"}
    required_secrets = [
        {"key": key, "description": entry.description, "required": entry.required}
        for key, entry in schema.items()
    ]
    missing = [k for k in app.required_secrets() if k not in connected_keys]
    return {
        "required_secrets": required_secrets or None,
        "connected": bool(connected_keys),
        "fully_connected": not required_secrets or not missing,
    }


class ConnectionService:
    """Stores caller secrets encrypted and reports connection status."""

    def __init__(self, store: SecretStore, cipher: SecretCipher) -> None:
        self._store = store
        self._cipher = cipher

    async def connect(
        self,
        user_id: str,
        app: App,
        secrets: Any,
    ) -> dict[str, Any]:
        """Set or remove (value None) secrets for one app."""
        if not isinstance(secrets, dict):
            raise invalid_params("secrets must be an object")

        per_user = app.per_user_secrets()
        if per_user:
            for key in secrets:
                if key not in per_user:
                    raise invalid_params(
                        f'Key "{key}" is not a declared per-user secret. '
                        f"Available: {', '.join(per_user)}"
                    )

        keys_set: list[str] = []
        keys_removed: list[str] = []
        for key, value in secrets.items():
            if value is None:
                await self._store.delete(user_id, app.id, key)
                keys_removed.append(key)
                continue
            if not isinstance(value, str):
                raise invalid_params(f'Value for "{key}" must be a string or null')
            await self._store.upsert(
                Secret(
                    user_id=user_id,
                    app_id=app.id,
                    key=key,
                    value_encrypted=self._cipher.encrypt(value),
                )
            )
            keys_set.append(key)

        connected = [s.key for s in await self._store.list_for_app(user_id, app.id)]
        missing = [k for k in app.required_secrets() if k not in connected]
        logger.info(
            "secrets_updated",
            app_id=app.id,
            keys_set=len(keys_set),
            keys_removed=len(keys_removed),
        )
        return {
            "app_id": app.id,
            "app_name": app.name,
            "keys_set": keys_set,
            "keys_removed": keys_removed,
            "connected_keys": connected,
            "missing_required": missing,
            "fully_connected": not missing and bool(connected),
        }

    async def connections(self, user_id: str, apps: list[App]) -> dict[str, Any]:
        """Summary across every app in ``apps`` the user holds secrets for."""
        by_app = await self.connected_keys(user_id)
        rows = []
        for app in apps:
            keys = by_app.get(app.id, [])
            missing = [k for k in app.required_secrets() if k not in keys]
            rows.append(
                {
                    "app_id": app.id,
                    "app_name": app.name,
                    "app_slug": app.slug,
                    "connected_keys": keys,
                    "missing_required": missing,
                    "fully_connected": not missing,
                    "mcp_endpoint": f"/mcp/{app.id}",
                }
            )
        return {"connections": rows, "total": len(rows)}

    async def app_status(self, user_id: str, app: App) -> dict[str, Any]:
        """Per-key status for one app.

        A value that no longer decrypts still counts as connected; it is
        reported with ``readable: false``.
        """
        stored = {s.key: s for s in await self._store.list_for_app(user_id, app.id)}
        schema = [
            {"key": key, "description": entry.description, "required": entry.required}
            for key, entry in app.env_schema.items()
            if entry.scope == "per_user"
        ]

        status = []
        for entry in schema + [
            {"key": k, "description": None, "required": False}
            for k in stored
            if k not in app.env_schema
        ]:
            secret = stored.get(entry["key"])
            row = {
                **entry,
                "connected": secret is not None,
                "updated_at": secret.updated_at.isoformat() if secret else None,
            }
            if secret is not None and self._cipher.decrypt(secret.value_encrypted) is None:
                logger.warning("secret_decrypt_failed", app_id=app.id, key=entry["key"])
                row["readable"] = False
            status.append(row)

        connected = list(stored)
        missing = [k for k in app.required_secrets() if k not in connected]
        return {
            "app_id": app.id,
            "app_name": app.name,
            "app_slug": app.slug,
            "mcp_endpoint": f"/mcp/{app.id}",
            "required_secrets": schema,
            "secret_status": status,
            "connected_keys": connected,
            "missing_required": missing,
            "fully_connected": not missing and (bool(connected) or not schema),
        }

    async def connected_keys(
        self,
        user_id: str,
        app_ids: list[str] | None = None,
    ) -> dict[str, list[str]]:
        """Map app_id to the keys the user has supplied."""
        grouped: dict[str, list[str]] = {}
        for secret in await self._store.list_for_user(user_id, app_ids):
            grouped.setdefault(secret.app_id, []).append(secret.key)
        return grouped

    async def resolve_env(self, user_id: str, app_id: str) -> dict[str, str]:
        """Decrypted secrets for a sandbox run; unreadable values are skipped."""
        env: dict[str, str] = {}
        for secret in await self._store.list_for_app(user_id, app_id):
            value = self._cipher.decrypt(secret.value_encrypted)
            if value is None:
                logger.warning("secret_decrypt_failed", app_id=app_id, key=secret.key)
                continue
            env[secret.key] = value
        return env
