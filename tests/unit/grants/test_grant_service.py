"""Tests for GrantService: additive grants, revoke matrix, pending conversion."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from toolgate.apps.models import App
from toolgate.gateway.errors import ErrorCode, ToolError
from toolgate.grants.cache import InMemoryGrantCache
from toolgate.grants.service import PENDING_NOTE, GrantService
from toolgate.grants.stores.inmemory import InMemoryGrantStore
from toolgate.users.models import User
from toolgate.users.stores.inmemory import InMemoryUserStore


@pytest.fixture
def grant_store() -> InMemoryGrantStore:
    return InMemoryGrantStore()


@pytest.fixture
async def users(owner: User, guest: User) -> InMemoryUserStore:
    store = InMemoryUserStore()
    await store.upsert(owner)
    await store.upsert(guest)
    return store


@pytest.fixture
def service(grant_store: InMemoryGrantStore, users: InMemoryUserStore) -> GrantService:
    return GrantService(grant_store, users, InMemoryGrantCache())


@pytest.fixture
def app(app_factory: Callable[..., App]) -> App:
    return app_factory()


class TestGrant:
    @pytest.mark.asyncio
    async def test_grant_defaults_to_all_exports(
        self, service: GrantService, grant_store: InMemoryGrantStore, app: App, guest: User
    ) -> None:
        result = await service.grant(app, "Guest@Example.com")

        assert result["user_id"] == guest.id
        assert result["functions_granted"] == ["forecast", "current", "alerts"]
        grants = await grant_store.list_grants(app.id, [guest.id])
        assert {g.function_name for g in grants} == {"forecast", "current", "alerts"}

    @pytest.mark.asyncio
    async def test_grants_are_additive(
        self, service: GrantService, grant_store: InMemoryGrantStore, app: App, guest: User
    ) -> None:
        await service.grant(app, guest.email, ["forecast"])
        await service.grant(app, guest.email, ["alerts"])

        grants = await grant_store.list_grants(app.id, [guest.id])
        assert sorted(g.function_name for g in grants) == ["alerts", "forecast"]

    @pytest.mark.asyncio
    async def test_regrant_merges_constraints(
        self, service: GrantService, grant_store: InMemoryGrantStore, app: App, guest: User
    ) -> None:
        await service.grant(
            app, guest.email, ["forecast"], {"allowed_ips": ["10.0.0.0/8"], "budget_limit": 5}
        )
        await service.grant(app, guest.email, ["forecast"], {"budget_limit": 10})

        [grant] = await grant_store.list_grants(app.id, [guest.id])
        assert grant.constraints.allowed_ips == ["10.0.0.0/8"]
        assert grant.constraints.budget_limit == 10
        assert grant.constraints.budget_used == 0

    @pytest.mark.asyncio
    async def test_constraints_applied_reported(
        self, service: GrantService, app: App, guest: User
    ) -> None:
        result = await service.grant(app, guest.email, ["forecast"], {"budget_limit": 3})
        assert result["constraints_applied"] == ["usage_budget"]

    @pytest.mark.asyncio
    async def test_unknown_function_rejected(
        self, service: GrantService, app: App, guest: User
    ) -> None:
        with pytest.raises(ToolError) as exc_info:
            await service.grant(app, guest.email, ["nope"])
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        assert "nope" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_owner_cannot_grant_to_self(
        self, service: GrantService, app: App, owner: User
    ) -> None:
        with pytest.raises(ToolError) as exc_info:
            await service.grant(app, owner.email)
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_missing_email_rejected(self, service: GrantService, app: App) -> None:
        with pytest.raises(ToolError) as exc_info:
            await service.grant(app, None)
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_bad_constraints_rejected(
        self, service: GrantService, app: App, guest: User
    ) -> None:
        with pytest.raises(ToolError) as exc_info:
            await service.grant(app, guest.email, None, {"budget_limit": -1})
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS


class TestPendingGrants:
    @pytest.mark.asyncio
    async def test_unregistered_email_creates_pending(
        self, service: GrantService, grant_store: InMemoryGrantStore, app: App
    ) -> None:
        result = await service.grant(app, "new@example.com", ["forecast"])

        assert result["status"] == "pending"
        assert result["note"] == PENDING_NOTE
        pending = await grant_store.list_pending(app_id=app.id)
        assert [p.invited_email for p in pending] == ["new@example.com"]

    @pytest.mark.asyncio
    async def test_convert_pending_on_signup(
        self,
        service: GrantService,
        grant_store: InMemoryGrantStore,
        users: InMemoryUserStore,
        app: App,
    ) -> None:
        await service.grant(app, "new@example.com", ["forecast", "alerts"], {"budget_limit": 2})
        newcomer, _ = await users.upsert(User(id="user-new", email="new@example.com"))

        converted = await service.convert_pending(newcomer)

        assert converted == 2
        grants = await grant_store.list_grants(app.id, [newcomer.id])
        assert sorted(g.function_name for g in grants) == ["alerts", "forecast"]
        assert all(g.constraints.budget_limit == 2 for g in grants)
        assert await grant_store.list_pending(email="new@example.com") == []

    @pytest.mark.asyncio
    async def test_convert_pending_is_idempotent(
        self, service: GrantService, users: InMemoryUserStore, app: App
    ) -> None:
        await service.grant(app, "new@example.com", ["forecast"])
        newcomer, _ = await users.upsert(User(id="user-new", email="new@example.com"))

        assert await service.convert_pending(newcomer) == 1
        assert await service.convert_pending(newcomer) == 0

    @pytest.mark.asyncio
    async def test_invite_added_during_conversion_survives(
        self, users: InMemoryUserStore, app: App, owner: User
    ) -> None:
        class InviteDuringConversion(InMemoryGrantStore):
            async def upsert_grants(self, *args: Any, **kwargs: Any) -> Any:
                result = await super().upsert_grants(*args, **kwargs)
                await self.upsert_pending(app.id, "new@example.com", owner.id, ["alerts"])
                return result

        store = InviteDuringConversion()
        service = GrantService(store, users, InMemoryGrantCache())
        await service.grant(app, "new@example.com", ["forecast"])
        newcomer, _ = await users.upsert(User(id="user-new", email="new@example.com"))

        assert await service.convert_pending(newcomer) == 1

        remaining = await store.list_pending(email="new@example.com")
        assert [p.function_name for p in remaining] == ["alerts"]

    @pytest.mark.asyncio
    async def test_listing_after_signup_drops_pending_flag(
        self, service: GrantService, users: InMemoryUserStore, app: App
    ) -> None:
        await service.grant(app, "new@example.com", ["forecast"])
        newcomer, _ = await users.upsert(User(id="user-new", email="new@example.com"))
        await service.convert_pending(newcomer)

        [entry] = (await service.list_grants(app))["users"]

        assert entry["email"] == "new@example.com"
        assert [f["name"] for f in entry["functions"]] == ["forecast"]
        assert "status" not in entry

    @pytest.mark.asyncio
    async def test_listing_shows_pending_last(
        self, service: GrantService, app: App, guest: User
    ) -> None:
        await service.grant(app, "new@example.com", ["forecast"])
        await service.grant(app, guest.email, ["current"])

        listing = await service.list_grants(app)

        assert [u["email"] for u in listing["users"]] == [guest.email, "new@example.com"]
        assert listing["users"][1]["status"] == "pending"


class TestRevoke:
    @pytest.fixture
    async def granted(self, service: GrantService, app: App, guest: User) -> None:
        await service.grant(app, guest.email)
        await service.grant(app, "new@example.com", ["forecast"])

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("granted")
    async def test_revoke_user_functions(
        self, service: GrantService, grant_store: InMemoryGrantStore, app: App, guest: User
    ) -> None:
        result = await service.revoke(app, guest.email, ["forecast"])

        assert result["functions_revoked"] == ["forecast"]
        grants = await grant_store.list_grants(app.id, [guest.id])
        assert sorted(g.function_name for g in grants) == ["alerts", "current"]

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("granted")
    async def test_revoke_user_everything(
        self, service: GrantService, grant_store: InMemoryGrantStore, app: App, guest: User
    ) -> None:
        result = await service.revoke(app, guest.email)

        assert result["all_access_revoked"] is True
        assert await grant_store.list_grants(app.id, [guest.id]) == []

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("granted")
    async def test_revoke_function_for_everyone(
        self, service: GrantService, grant_store: InMemoryGrantStore, app: App
    ) -> None:
        result = await service.revoke(app, None, ["forecast"])

        assert result == {"app_id": app.id, "all_users": True, "functions_revoked": ["forecast"]}
        grants = await grant_store.list_grants(app.id)
        assert "forecast" not in {g.function_name for g in grants}
        assert await grant_store.list_pending(app_id=app.id) == []

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("granted")
    async def test_revoke_everything(
        self, service: GrantService, grant_store: InMemoryGrantStore, app: App
    ) -> None:
        result = await service.revoke(app)

        assert result["all_access_revoked"] is True
        assert await grant_store.list_grants(app.id) == []
        assert await grant_store.list_pending(app_id=app.id) == []

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("granted")
    async def test_revoke_pending_invite(
        self, service: GrantService, grant_store: InMemoryGrantStore, app: App
    ) -> None:
        result = await service.revoke(app, "new@example.com")

        assert result["pending_invite_revoked"] is True
        assert await grant_store.list_pending(app_id=app.id) == []


class TestCheckAccess:
    @pytest.mark.asyncio
    async def test_owner_always_allowed(
        self, service: GrantService, app: App, owner: User
    ) -> None:
        result = await service.check_access(app, owner.id, "forecast")
        assert result.allowed

    @pytest.mark.asyncio
    async def test_no_grant_denied(self, service: GrantService, app: App, guest: User) -> None:
        result = await service.check_access(app, guest.id, "forecast")
        assert not result.allowed
        assert "forecast" in result.reason

    @pytest.mark.asyncio
    async def test_revoke_takes_effect_through_cache(
        self, service: GrantService, app: App, guest: User
    ) -> None:
        await service.grant(app, guest.email, ["forecast"])
        assert (await service.check_access(app, guest.id, "forecast")).allowed

        await service.revoke(app, guest.email, ["forecast"])

        assert not (await service.check_access(app, guest.id, "forecast")).allowed

    @pytest.mark.asyncio
    async def test_budget_counts_down(self, service: GrantService, app: App, guest: User) -> None:
        await service.grant(app, guest.email, ["forecast"], {"budget_limit": 2})

        assert (await service.check_access(app, guest.id, "forecast")).allowed
        assert (await service.check_access(app, guest.id, "forecast")).allowed
        third = await service.check_access(app, guest.id, "forecast")

        assert not third.allowed
        assert "budget" in third.reason.lower()

    @pytest.mark.asyncio
    async def test_expired_grant_denied(
        self, service: GrantService, app: App, guest: User
    ) -> None:
        past = datetime.now(UTC) - timedelta(hours=1)
        await service.grant(app, guest.email, ["forecast"], {"expires_at": past.isoformat()})

        result = await service.check_access(app, guest.id, "forecast")

        assert not result.allowed
        assert "expired" in result.reason
