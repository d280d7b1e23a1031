"""Tests for the stream registry and live notification push."""

from __future__ import annotations

import pytest

from social_mcp.core.models import NotificationType
from social_mcp.database.services import NotificationService
from social_mcp.infra.event_pusher import (
    NotificationPusher,
    SessionStreamRegistry,
    log_message,
)


class TestLogMessage:
    def test_shape(self):
        message = log_message({"type": "new_match"})
        assert message["method"] == "notifications/message"
        assert message["params"]["logger"] == "social-mcp"
        assert message["params"]["data"] == {"type": "new_match"}
        assert "id" not in message


class TestSessionStreamRegistry:
    @pytest.mark.asyncio
    async def test_register_and_send(self):
        registry = SessionStreamRegistry()
        queue = await registry.register("s-1")
        assert registry.send("s-1", {"n": 1})
        assert queue.get_nowait() == {"n": 1}
        assert registry.stream_count == 1

    @pytest.mark.asyncio
    async def test_send_to_missing_session(self):
        assert SessionStreamRegistry().send("nobody", {}) is False

    @pytest.mark.asyncio
    async def test_reregister_closes_previous(self):
        registry = SessionStreamRegistry()
        old = await registry.register("s-1")
        new = await registry.register("s-1")
        assert old.get_nowait() is None
        assert registry.send("s-1", "x")
        assert new.get_nowait() == "x"

    @pytest.mark.asyncio
    async def test_stale_unregister_keeps_replacement(self):
        registry = SessionStreamRegistry()
        old = await registry.register("s-1")
        await registry.register("s-1")
        assert await registry.unregister("s-1", old) is False
        assert registry.has_stream("s-1")

    @pytest.mark.asyncio
    async def test_full_queue_drops(self):
        registry = SessionStreamRegistry(max_queue=1)
        await registry.register("s-1")
        assert registry.send("s-1", 1)
        assert registry.send("s-1", 2) is False

    @pytest.mark.asyncio
    async def test_profile_fan_out(self):
        registry = SessionStreamRegistry()
        first = await registry.register("s-1")
        second = await registry.register("s-2")
        await registry.bind_profile("s-1", "p-1")
        await registry.bind_profile("s-2", "p-1")

        assert registry.send_to_profile("p-1", "hello") == 2
        assert first.get_nowait() == second.get_nowait() == "hello"

    @pytest.mark.asyncio
    async def test_close_sends_sentinel(self):
        registry = SessionStreamRegistry()
        queue = await registry.register("s-1")
        await registry.bind_profile("s-1", "p-1")
        assert await registry.close("s-1")
        assert queue.get_nowait() is None
        assert registry.send_to_profile("p-1", "x") == 0

    @pytest.mark.asyncio
    async def test_bind_without_stream_is_noop(self):
        registry = SessionStreamRegistry()
        await registry.bind_profile("s-1", "p-1")
        await registry.register("s-1")
        assert registry.send_to_profile("p-1", "x") == 0


class TestNotificationPusher:
    @pytest.fixture
    async def alex(self, factory):
        return await factory.profile("Alex")

    async def _notify(self, database, profile_id):
        async with database.session() as session:
            return await NotificationService(session).create(
                profile_id, NotificationType.NEW_MATCH, {"match_id": "m-1"}
            )

    @pytest.mark.asyncio
    async def test_pushed_notification_marked_delivered(self, database, alex):
        registry = SessionStreamRegistry()
        queue = await registry.register("s-1")
        await registry.bind_profile("s-1", alex.id)
        notification = await self._notify(database, alex.id)

        pushed = await NotificationPusher(registry, database).flush([notification])

        assert pushed == 1
        event = queue.get_nowait()
        assert event["method"] == "notifications/message"
        assert event["params"]["data"]["id"] == notification.id
        async with database.session() as session:
            assert await NotificationService(session).list_undelivered(alex.id) == []

    @pytest.mark.asyncio
    async def test_without_stream_stays_pollable(self, database, alex):
        notification = await self._notify(database, alex.id)
        pushed = await NotificationPusher(SessionStreamRegistry(), database).flush([notification])

        assert pushed == 0
        async with database.session() as session:
            assert len(await NotificationService(session).list_undelivered(alex.id)) == 1
