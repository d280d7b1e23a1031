"""
Response delivery channels.

The gateway hands every JSON-RPC response to a Delivery and does not
know which transport is active:

- DirectDelivery keeps it for the HTTP response body (stateless mode)
- StreamDelivery queues it on the session's open SSE stream (legacy mode)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from social_mcp.infra.event_pusher import SessionStreamRegistry

logger = logging.getLogger(__name__)


class DirectDelivery:
    def __init__(self) -> None:
        self.payload: Optional[Any] = None

    async def deliver(self, message: Any) -> None:
        self.payload = message


class StreamDelivery:
    def __init__(self, registry: SessionStreamRegistry, session_id: str):
        self._registry = registry
        self._session_id = session_id

    async def deliver(self, message: Any) -> None:
        if not self._registry.send(self._session_id, message):
            logger.warning("Stream for session %s is gone, response dropped", self._session_id)
