"""Tests for secret encryption and the connection service."""

from collections.abc import Callable

import pytest

from toolgate.apps.models import App, EnvSchemaEntry
from toolgate.connections.crypto import SecretCipher
from toolgate.connections.models import Secret
from toolgate.connections.service import ConnectionService, readiness
from toolgate.connections.stores.inmemory import InMemorySecretStore
from toolgate.gateway.errors import ErrorCode, ToolError
from toolgate.users.models import User


@pytest.fixture
def cipher() -> SecretCipher:
    return SecretCipher("unit-test-key")


@pytest.fixture
def store() -> InMemorySecretStore:
    return InMemorySecretStore()


@pytest.fixture
def service(store: InMemorySecretStore, cipher: SecretCipher) -> ConnectionService:
    return ConnectionService(store, cipher)


@pytest.fixture
def app(app_factory: Callable[..., App]) -> App:
    return app_factory(
        env_schema={
            "API_TOKEN": EnvSchemaEntry(scope="per_user", required=True, description="Token"),
            "REGION": EnvSchemaEntry(scope="per_user"),
            "SHARED": EnvSchemaEntry(scope="universal", required=True),
        }
    )


class TestSecretCipher:
    def test_round_trip(self, cipher: SecretCipher) -> None:
        sealed = cipher.encrypt("s3cret")
        assert sealed.startswith("v1:")
        assert sealed.count(":") == 3
        assert cipher.decrypt(sealed) == "s3cret"

    def test_fresh_iv_per_encryption(self, cipher: SecretCipher) -> None:
        assert cipher.encrypt("same") != cipher.encrypt("same")

    def test_foreign_key_yields_none(self, cipher: SecretCipher) -> None:
        assert SecretCipher("other-key").decrypt(cipher.encrypt("s3cret")) is None

    @pytest.mark.parametrize("garbage", ["", "plain", "v2:a:b:c", "v1:!!:!!:!!"])
    def test_malformed_yields_none(self, cipher: SecretCipher, garbage: str) -> None:
        assert cipher.decrypt(garbage) is None

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            SecretCipher("")


class TestConnect:
    @pytest.mark.asyncio
    async def test_stores_encrypted(
        self, service: ConnectionService, store: InMemorySecretStore, app: App, guest: User
    ) -> None:
        result = await service.connect(guest.id, app, {"API_TOKEN": "abc"})

        assert result["keys_set"] == ["API_TOKEN"]
        assert result["missing_required"] == []
        assert result["fully_connected"] is True
        [secret] = await store.list_for_app(guest.id, app.id)
        assert secret.value_encrypted != "abc"

    @pytest.mark.asyncio
    async def test_null_removes(
        self, service: ConnectionService, app: App, guest: User
    ) -> None:
        await service.connect(guest.id, app, {"API_TOKEN": "abc"})
        result = await service.connect(guest.id, app, {"API_TOKEN": None})

        assert result["keys_removed"] == ["API_TOKEN"]
        assert result["missing_required"] == ["API_TOKEN"]
        assert result["fully_connected"] is False

    @pytest.mark.asyncio
    async def test_undeclared_key_rejected(
        self, service: ConnectionService, app: App, guest: User
    ) -> None:
        with pytest.raises(ToolError) as exc_info:
            await service.connect(guest.id, app, {"SHARED": "x"})
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS
        assert "API_TOKEN, REGION" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_string_value_rejected(
        self, service: ConnectionService, app: App, guest: User
    ) -> None:
        with pytest.raises(ToolError):
            await service.connect(guest.id, app, {"API_TOKEN": 42})


class TestStatus:
    @pytest.mark.asyncio
    async def test_unreadable_secret_still_connected(
        self, service: ConnectionService, store: InMemorySecretStore, app: App, guest: User
    ) -> None:
        await store.upsert(
            Secret(user_id=guest.id, app_id=app.id, key="API_TOKEN", value_encrypted="v1:x:y:z")
        )

        status = await service.app_status(guest.id, app)

        token = next(s for s in status["secret_status"] if s["key"] == "API_TOKEN")
        assert token["connected"] is True
        assert token["readable"] is False
        assert status["fully_connected"] is True

    @pytest.mark.asyncio
    async def test_resolve_env_skips_unreadable(
        self,
        service: ConnectionService,
        store: InMemorySecretStore,
        app: App,
        guest: User,
    ) -> None:
        await service.connect(guest.id, app, {"REGION": "eu"})
        await store.upsert(
            Secret(user_id=guest.id, app_id=app.id, key="API_TOKEN", value_encrypted="broken")
        )

        assert await service.resolve_env(guest.id, app.id) == {"REGION": "eu"}

    def test_readiness(self, app: App) -> None:
        assert readiness(app, [])["fully_connected"] is False
        ready = readiness(app, ["API_TOKEN"])
        assert ready["connected"] is True
        assert ready["fully_connected"] is True
        assert [s["key"] for s in ready["required_secrets"]] == ["API_TOKEN", "REGION"]
