"""Tests for the best-effort background sink."""

import asyncio

import pytest

from toolgate.gateway.sink import BestEffortSink


class TestBestEffortSink:
    @pytest.mark.asyncio
    async def test_runs_submitted_work(self) -> None:
        sink = BestEffortSink()
        done: list[str] = []

        async def work() -> None:
            done.append("ran")

        assert sink.submit("work", work()) is True
        await sink.drain()

        assert done == ["ran"]
        assert sink.pending == 0

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self) -> None:
        sink = BestEffortSink()

        async def boom() -> None:
            raise RuntimeError("store down")

        sink.submit("boom", boom())
        await sink.drain()

        assert sink.pending == 0

    @pytest.mark.asyncio
    async def test_full_sink_drops_work(self) -> None:
        sink = BestEffortSink(max_pending=1)
        release = asyncio.Event()

        async def blocked() -> None:
            await release.wait()

        assert sink.submit("first", blocked()) is True
        assert sink.submit("second", blocked()) is False
        assert sink.pending == 1

        release.set()
        await sink.drain()
        assert sink.pending == 0

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self) -> None:
        await BestEffortSink().drain()
