"""
HTTP transport for the MCP gateway.

One endpoint, two transport generations:

- Legacy SSE: ``GET /mcp`` opens an event stream whose first event is
  ``endpoint`` (where to POST, carrying ``?session_id=``). POSTs to that
  URL are answered 202 and the JSON-RPC response is pushed over the
  stream, along with live notifications.
- Streamable HTTP (stateless): ``POST /mcp`` returns the JSON-RPC
  response in the body. The session id travels in ``Mcp-Session-Id``.

``DELETE /mcp`` ends a session; ``GET /health`` reports liveness.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from mcp.types import PARSE_ERROR

from social_mcp.database.services import SessionBindingService
from social_mcp.infra.event_pusher import SessionStreamRegistry
from social_mcp.tools.catalog import TOOL_SPECS

from .delivery import DirectDelivery, StreamDelivery
from .gateway import (
    DEFAULT_PROTOCOL_VERSION,
    SERVER_NAME,
    SERVER_VERSION,
    RequestContext,
    error_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SESSION_HEADER = "Mcp-Session-Id"
API_KEY_HEADER = "X-MCP-API-Key"
SESSION_QUERY_PARAM = "session_id"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(data: str, event: Optional[str] = None) -> str:
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {data}\n\n"


def extract_api_key(request: Request) -> Optional[str]:
    api_key = request.headers.get(API_KEY_HEADER)
    if api_key:
        return api_key.strip()
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def _session_from(request: Request) -> Optional[str]:
    return request.headers.get(SESSION_HEADER) or request.query_params.get(SESSION_QUERY_PARAM)


async def stream_events(
    request: Request,
    registry: SessionStreamRegistry,
    session_id: str,
    queue: asyncio.Queue,
    endpoint_url: str,
    keepalive_seconds: float,
) -> AsyncGenerator[str, None]:
    """
    Legacy SSE generator.

    Emits the endpoint event, then every queued message until the client
    disconnects or the session is closed (a None on the queue). The sink
    is always removed on exit.
    """
    sent = 0
    try:
        yield format_sse(endpoint_url, event="endpoint")

        while True:
            if await request.is_disconnected():
                logger.info("[SSE] Client disconnected: session=%s, messages_sent=%d", session_id, sent)
                break

            try:
                message = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue

            if message is None:
                logger.info("[SSE] Session closed: session=%s", session_id)
                break

            sent += 1
            yield format_sse(json.dumps(message), event="message")
    finally:
        await registry.unregister(session_id, queue)


@router.get("/mcp")
async def open_stream(request: Request):
    state = request.app.state
    config = state.config
    session_id = _session_from(request) or str(uuid.uuid4())
    endpoint_url = str(request.url.include_query_params(**{SESSION_QUERY_PARAM: session_id}))
    headers = {SESSION_HEADER: session_id}

    if not config.legacy_streams_enabled:
        # Stateless deployments only hand back the endpoint pointer
        return Response(
            content=format_sse(endpoint_url, event="endpoint"),
            media_type="text/event-stream",
            headers={**SSE_HEADERS, **headers},
        )

    registry: SessionStreamRegistry = state.stream_registry
    queue = await registry.register(session_id)
    return StreamingResponse(
        stream_events(request, registry, session_id, queue, endpoint_url, config.stream_keepalive_seconds),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, **headers},
    )


@router.post("/mcp")
async def handle_rpc(request: Request):
    state = request.app.state
    query_session = request.query_params.get(SESSION_QUERY_PARAM)
    session_id = request.headers.get(SESSION_HEADER) or query_session or str(uuid.uuid4())
    headers = {SESSION_HEADER: session_id}

    body = await request.body()
    try:
        payload = json.loads(body)
    except ValueError:
        return JSONResponse(
            error_response(None, PARSE_ERROR, "Parse error: body is not valid JSON"),
            status_code=400,
            headers=headers,
        )

    ctx = RequestContext(session_id=session_id, api_key=extract_api_key(request))
    registry: SessionStreamRegistry = state.stream_registry

    if query_session is not None and registry.has_stream(session_id):
        # Legacy client: acknowledge now, answer over the stream
        task = asyncio.create_task(
            state.gateway.handle(payload, ctx, StreamDelivery(registry, session_id))
        )
        state.rpc_tasks.add(task)
        task.add_done_callback(state.rpc_tasks.discard)
        return Response(status_code=202, headers=headers)

    delivery = DirectDelivery()
    if not await state.gateway.handle(payload, ctx, delivery):
        return Response(status_code=202, headers=headers)
    return JSONResponse(delivery.payload, headers=headers)


@router.delete("/mcp")
async def end_session(request: Request):
    session_id = _session_from(request)
    if not session_id:
        return JSONResponse({"error": f"Missing {SESSION_HEADER} header"}, status_code=400)

    state = request.app.state
    await state.stream_registry.close(session_id)
    async with state.database.session() as session:
        removed = await SessionBindingService(session).delete(session_id)
    logger.info("Session %s ended (binding removed: %s)", session_id, removed)
    return Response(status_code=204)


@router.get("/health")
async def health(request: Request):
    registry: SessionStreamRegistry = request.app.state.stream_registry
    return {
        "status": "ok",
        "server": SERVER_NAME,
        "version": SERVER_VERSION,
        "protocol": DEFAULT_PROTOCOL_VERSION,
        "tools": len(TOOL_SPECS),
        "streams": registry.stream_count,
    }
