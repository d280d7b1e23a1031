"""
Live push delivery for legacy SSE sessions.

SessionStreamRegistry keeps the only process-local transport state: one
outbound queue per open legacy stream, keyed by session id, plus which
profile each stream has authenticated as. Identity itself lives in the
persisted session binding; a restart only drops the open streams.

NotificationPusher publishes stored notifications to a profile's open
streams as MCP ``notifications/message`` events and marks the ones that
went out as delivered. Profiles with no open stream keep theirs for
``social_get_notifications``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence, Set

from social_mcp.database.services import NotificationService

if TYPE_CHECKING:
    from social_mcp.database.connection import Database
    from social_mcp.database.models import Notification

logger = logging.getLogger(__name__)

LOGGER_NAME = "social-mcp"


def log_message(data: Dict[str, Any], level: str = "info") -> Dict[str, Any]:
    """Wrap an event as a JSON-RPC ``notifications/message``."""
    return {
        "jsonrpc": "2.0",
        "method": "notifications/message",
        "params": {"level": level, "logger": LOGGER_NAME, "data": data},
    }


@dataclass
class StreamSink:
    session_id: str
    queue: asyncio.Queue
    profile_id: Optional[str] = None
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionStreamRegistry:
    """Registry of open legacy SSE streams."""

    def __init__(self, max_queue: int = 100):
        self._max_queue = max_queue
        # session_id -> StreamSink
        self._sinks: Dict[str, StreamSink] = {}
        # profile_id -> {session_id}
        self._profile_sessions: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    async def register(self, session_id: str) -> asyncio.Queue:
        """Open a sink for ``session_id``, closing any previous one for it."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue)
        async with self._lock:
            previous = self._sinks.pop(session_id, None)
            if previous is not None:
                self._unlink_profile(previous)
                self._close_queue(previous.queue)
            self._sinks[session_id] = StreamSink(session_id=session_id, queue=queue)
        logger.info("Stream opened: session %s", session_id)
        return queue

    async def unregister(self, session_id: str, queue: Optional[asyncio.Queue] = None) -> bool:
        """Remove the sink for ``session_id``.

        If ``queue`` is given, only that exact sink is removed, so a stale
        stream tearing down cannot remove its replacement.
        """
        async with self._lock:
            sink = self._sinks.get(session_id)
            if sink is None or (queue is not None and sink.queue is not queue):
                return False
            del self._sinks[session_id]
            self._unlink_profile(sink)
        logger.info("Stream closed: session %s", session_id)
        return True

    async def close(self, session_id: str) -> bool:
        """Remove the sink and tell its stream generator to finish."""
        async with self._lock:
            sink = self._sinks.pop(session_id, None)
            if sink is None:
                return False
            self._unlink_profile(sink)
            self._close_queue(sink.queue)
        logger.info("Stream terminated: session %s", session_id)
        return True

    async def bind_profile(self, session_id: str, profile_id: str) -> None:
        """Record which profile an open stream belongs to. No-op without a stream."""
        async with self._lock:
            sink = self._sinks.get(session_id)
            if sink is None or sink.profile_id == profile_id:
                return
            self._unlink_profile(sink)
            sink.profile_id = profile_id
            self._profile_sessions.setdefault(profile_id, set()).add(session_id)

    def has_stream(self, session_id: str) -> bool:
        return session_id in self._sinks

    @property
    def stream_count(self) -> int:
        return len(self._sinks)

    def send(self, session_id: str, message: Any) -> bool:
        """Queue a message on one session's stream. False if absent or full."""
        sink = self._sinks.get(session_id)
        if sink is None:
            return False
        try:
            sink.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Stream queue full for session %s, dropping message", session_id)
            return False
        return True

    def send_to_profile(self, profile_id: str, message: Any) -> int:
        """Queue a message on every stream of a profile. Returns streams reached."""
        sessions = list(self._profile_sessions.get(profile_id, ()))
        return sum(1 for session_id in sessions if self.send(session_id, message))

    async def close_all(self) -> None:
        async with self._lock:
            for sink in self._sinks.values():
                self._close_queue(sink.queue)
            self._sinks.clear()
            self._profile_sessions.clear()

    def _unlink_profile(self, sink: StreamSink) -> None:
        if sink.profile_id is None:
            return
        sessions = self._profile_sessions.get(sink.profile_id)
        if sessions is not None:
            sessions.discard(sink.session_id)
            if not sessions:
                del self._profile_sessions[sink.profile_id]

    @staticmethod
    def _close_queue(queue: asyncio.Queue) -> None:
        # None tells the stream generator to stop; make room if the queue is full
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(None)


class NotificationPusher:
    """Pushes stored notifications over open streams (best effort, at most once)."""

    def __init__(self, registry: SessionStreamRegistry, database: Database):
        self._registry = registry
        self._database = database

    async def publish(self, profile_id: str, event: Dict[str, Any]) -> bool:
        reached = self._registry.send_to_profile(profile_id, log_message(event))
        return reached > 0

    async def flush(self, notifications: Sequence[Notification]) -> int:
        """Push each notification; mark the ones that reached a stream delivered.

        Call after the transaction that created them has committed.

        Returns:
            Number of notifications delivered by push.
        """
        delivered = [
            n.id for n in notifications
            if await self.publish(n.profile_id, n.to_event())
        ]
        if not delivered:
            return 0

        async with self._database.session() as session:
            await NotificationService(session).mark_delivered(delivered)
        logger.debug("Pushed %d notification(s)", len(delivered))
        return len(delivered)
