"""Unit tests for StatusEventBroadcaster - per-user listener fan-out."""

from __future__ import annotations

import pytest

from fileready.models.events import FileEvent, RetryScheduledEvent
from fileready.models.file import PipelineStage
from fileready.pipeline.status_broadcaster import StatusEventBroadcaster


def _event(attempt: int = 1) -> RetryScheduledEvent:
    return RetryScheduledEvent(
        file_id="f1",
        stage=PipelineStage.EMBEDDING,
        attempt=attempt,
        max_retries=3,
        delay_ms=5000,
    )


class TestStatusEventBroadcaster:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners_receive_events(self) -> None:
        broadcaster = StatusEventBroadcaster()
        seen: list[tuple[str, str]] = []

        def on_sync(user_id: str, event: FileEvent) -> None:
            seen.append(("sync", event.type))

        async def on_async(user_id: str, event: FileEvent) -> None:
            seen.append(("async", event.type))

        broadcaster.register_listener("u1", on_sync)
        broadcaster.register_listener("u1", on_async)

        await broadcaster.emit("u1", _event())

        assert seen == [("sync", "file:retry_scheduled"), ("async", "file:retry_scheduled")]

    @pytest.mark.asyncio
    async def test_users_are_isolated(self) -> None:
        broadcaster = StatusEventBroadcaster()
        seen: list[str] = []
        broadcaster.register_listener("u1", lambda user_id, event: seen.append(user_id))

        await broadcaster.emit("u2", _event())

        assert seen == []
        assert broadcaster.recent_events("u1") == []
        assert len(broadcaster.recent_events("u2")) == 1

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self) -> None:
        broadcaster = StatusEventBroadcaster()
        seen: list[int] = []

        def broken(user_id: str, event: FileEvent) -> None:
            raise RuntimeError("socket closed")

        broadcaster.register_listener("u1", broken)
        broadcaster.register_listener("u1", lambda user_id, event: seen.append(event.attempt))

        await broadcaster.emit("u1", _event(attempt=2))

        assert seen == [2]

    @pytest.mark.asyncio
    async def test_register_is_idempotent_and_unregister_stops_delivery(self) -> None:
        broadcaster = StatusEventBroadcaster()
        seen: list[int] = []

        def listener(user_id: str, event: FileEvent) -> None:
            seen.append(1)

        broadcaster.register_listener("u1", listener)
        broadcaster.register_listener("u1", listener)
        await broadcaster.emit("u1", _event())
        assert seen == [1]

        broadcaster.unregister_listener("u1", listener)
        broadcaster.unregister_listener("u1", listener)
        await broadcaster.emit("u1", _event())
        assert seen == [1]

    @pytest.mark.asyncio
    async def test_history_is_bounded(self) -> None:
        broadcaster = StatusEventBroadcaster(history_size=3)

        for attempt in range(1, 6):
            await broadcaster.emit("u1", _event(attempt))

        assert [e.attempt for e in broadcaster.recent_events("u1")] == [3, 4, 5]

    @pytest.mark.asyncio
    async def test_emit_without_listeners_is_noop(self) -> None:
        broadcaster = StatusEventBroadcaster()
        await broadcaster.emit("u1", _event())

    def test_event_payload_is_json_ready(self) -> None:
        payload = _event().to_payload()

        assert payload["type"] == "file:retry_scheduled"
        assert payload["stage"] == "embedding"
        assert isinstance(payload["timestamp"], str)
