"""Tests for shortcoming reports and gap browsing."""

from collections.abc import AsyncIterator

import pytest

from toolgate.feedback.models import Gap
from toolgate.feedback.service import FeedbackService
from toolgate.feedback.stores.inmemory import InMemoryFeedbackStore
from toolgate.gateway.errors import ErrorCode, ToolError
from toolgate.gateway.sink import BestEffortSink


@pytest.fixture
def store() -> InMemoryFeedbackStore:
    return InMemoryFeedbackStore()


@pytest.fixture
async def sink() -> AsyncIterator[BestEffortSink]:
    sink = BestEffortSink()
    yield sink
    await sink.drain()


@pytest.fixture
def service(store: InMemoryFeedbackStore, sink: BestEffortSink) -> FeedbackService:
    return FeedbackService(store, sink)


class TestReport:
    @pytest.mark.asyncio
    async def test_report_recorded_in_background(
        self, service: FeedbackService, store: InMemoryFeedbackStore, sink: BestEffortSink
    ) -> None:
        ack = service.report(
            "user-1", "tool_failure", "forecast timed out", {"app": "weather"}, "sess-1"
        )
        await sink.drain()

        assert ack == {"received": True}
        [shortcoming] = store.shortcomings
        assert shortcoming.session_id == "sess-1"
        assert shortcoming.context == {"app": "weather"}

    @pytest.mark.asyncio
    async def test_invalid_report_still_acknowledged(
        self, service: FeedbackService, store: InMemoryFeedbackStore, sink: BestEffortSink
    ) -> None:
        assert service.report("user-1", "rant", "meh") == {"received": True}
        assert service.report("user-1", "tool_failure", "") == {"received": True}
        await sink.drain()

        assert store.shortcomings == []

    @pytest.mark.asyncio
    async def test_summary_truncated(
        self, service: FeedbackService, store: InMemoryFeedbackStore, sink: BestEffortSink
    ) -> None:
        service.report("user-1", "quality_issue", "x" * 5000)
        await sink.drain()

        assert len(store.shortcomings[0].summary) == 2000


class TestBrowse:
    @pytest.mark.asyncio
    async def test_open_gaps_by_points(
        self, service: FeedbackService, store: InMemoryFeedbackStore
    ) -> None:
        await store.save_gap(Gap(title="Calendar sync", points_value=50))
        await store.save_gap(Gap(title="PDF export", points_value=300, severity="high"))
        await store.save_gap(Gap(title="Done already", status="fulfilled"))

        result = await service.browse()

        assert [g["title"] for g in result["gaps"]] == ["PDF export", "Calendar sync"]

    @pytest.mark.asyncio
    async def test_filter_by_severity(
        self, service: FeedbackService, store: InMemoryFeedbackStore
    ) -> None:
        await store.save_gap(Gap(title="Calendar sync"))
        await store.save_gap(Gap(title="PDF export", severity="high"))

        result = await service.browse(severity="high")

        assert [g["title"] for g in result["gaps"]] == ["PDF export"]

    @pytest.mark.asyncio
    async def test_invalid_status(self, service: FeedbackService) -> None:
        with pytest.raises(ToolError) as exc_info:
            await service.browse(status="archived")
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS
