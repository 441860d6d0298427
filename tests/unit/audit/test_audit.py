"""Tests for audit payload truncation, call logs and export."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from toolgate.apps.models import App
from toolgate.audit.models import CallRecord, truncate_payload
from toolgate.audit.service import AuditService
from toolgate.audit.stores.inmemory import InMemoryAuditStore
from toolgate.gateway.errors import ErrorCode, ToolError
from toolgate.grants.stores.inmemory import InMemoryGrantStore
from toolgate.users.models import User
from toolgate.users.stores.inmemory import InMemoryUserStore

START = datetime(2026, 3, 11, 9, 0, tzinfo=UTC)


class TestTruncatePayload:
    def test_small_values_kept(self) -> None:
        assert truncate_payload({"a": 1}) == {"a": 1}
        assert truncate_payload(None) is None

    def test_large_values_replaced_by_preview(self) -> None:
        value = {"blob": "x" * 50}

        truncated = truncate_payload(value, max_size=20, preview_chars=10)

        assert truncated["_truncated"] is True
        assert truncated["_original_size"] > 20
        assert truncated["_preview"] == '{"blob": "'


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def grant_store() -> InMemoryGrantStore:
    return InMemoryGrantStore()


@pytest.fixture
async def service(
    audit_store: InMemoryAuditStore,
    grant_store: InMemoryGrantStore,
    owner: User,
    guest: User,
) -> AuditService:
    users = InMemoryUserStore()
    await users.upsert(owner)
    await users.upsert(guest)
    return AuditService(audit_store, users, grant_store)


@pytest.fixture
async def app(
    app_factory: Callable[..., App],
    audit_store: InMemoryAuditStore,
    owner: User,
    guest: User,
) -> App:
    app = app_factory()
    calls = [
        (owner.id, "forecast", True),
        (guest.id, "forecast", True),
        (guest.id, "alerts", False),
    ]
    for minutes, (user_id, fn, success) in enumerate(calls):
        await audit_store.record_call(
            CallRecord(
                user_id=user_id,
                app_id=app.id,
                function_name=fn,
                method="tools/call",
                success=success,
                error_message=None if success else "boom",
                created_at=START + timedelta(minutes=minutes),
            )
        )
    return app


class TestLogs:
    @pytest.mark.asyncio
    async def test_free_tier_sees_own_calls(
        self, service: AuditService, app: App, owner: User
    ) -> None:
        result = await service.logs(app, owner.id, "free")

        assert result["scope"] == "own_calls_only"
        assert result["total"] == 1
        assert result["logs"][0]["caller_email"] == owner.email

    @pytest.mark.asyncio
    async def test_pro_tier_sees_grantees(
        self,
        service: AuditService,
        grant_store: InMemoryGrantStore,
        app: App,
        owner: User,
        guest: User,
    ) -> None:
        await grant_store.upsert_grants(app.id, guest.id, owner.id, ["forecast"])

        result = await service.logs(app, owner.id, "pro")

        assert result["scope"] == "granted_users"
        assert result["total"] == 3
        assert result["logs"][0]["function_name"] == "alerts"

    @pytest.mark.asyncio
    async def test_filter_by_email_and_function(
        self,
        service: AuditService,
        grant_store: InMemoryGrantStore,
        app: App,
        owner: User,
        guest: User,
    ) -> None:
        await grant_store.upsert_grants(app.id, guest.id, owner.id, ["forecast"])

        result = await service.logs(
            app, owner.id, "pro", emails=[guest.email.upper()], functions=["forecast"]
        )

        assert [log["caller_email"] for log in result["logs"]] == [guest.email]

    @pytest.mark.asyncio
    async def test_unknown_email_outside_scope(
        self, service: AuditService, app: App, owner: User
    ) -> None:
        result = await service.logs(app, owner.id, "free", emails=["nobody@example.com"])

        assert result["logs"] == []
        assert "No matching users" in result["message"]


class TestExport:
    @pytest.mark.asyncio
    async def test_requires_pro(self, service: AuditService, app: App) -> None:
        with pytest.raises(ToolError) as exc_info:
            await service.export(app, "free")
        assert exc_info.value.code == ErrorCode.FORBIDDEN

    @pytest.mark.asyncio
    async def test_json_export(self, service: AuditService, app: App) -> None:
        result = await service.export(app, "pro")

        assert result["format"] == "json"
        assert result["total"] == 3

    @pytest.mark.asyncio
    async def test_csv_export(self, service: AuditService, app: App) -> None:
        result = await service.export(app, "pro", format="csv")

        lines = result["data"].split("\n")
        assert lines[0].startswith("user_id,caller_email,function_name")
        assert len(lines) == 4

    @pytest.mark.asyncio
    async def test_bad_format(self, service: AuditService, app: App) -> None:
        with pytest.raises(ToolError) as exc_info:
            await service.export(app, "pro", format="xml")
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS
