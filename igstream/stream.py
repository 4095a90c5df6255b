"""SSE endpoint relaying streaming session events to HTTP clients."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from .events import StreamEvent
from .session import ConnectionState, StreamingSession

logger = logging.getLogger(__name__)


def create_stream_router(session: StreamingSession, interval: float = 0.1) -> APIRouter:
    """Create the SSE streaming router with a reference to the streaming session.

    The session must already be connected with its subscriptions started.
    """
    router = APIRouter(prefix="/api/stream", tags=["streaming"])

    @router.get("/updates")
    async def stream_updates(request: Request) -> StreamingResponse:
        """SSE endpoint for live streaming updates.

        Each queued event is sent as one frame, named after its variant:

            event: snapshot
            data: {"type": "snapshot", "kind": "market", "data": {...}, "snapshot": {...}}
        """
        return StreamingResponse(
            _generate_events(session, request, interval),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    return router


def format_event(event: StreamEvent) -> str:
    """Render one event as an SSE frame."""
    body = event.to_dict()
    return f"event: {body['type']}\ndata: {json.dumps(body)}\n\n"


async def _generate_events(
    session: StreamingSession,
    request: Request,
    interval: float = 0.1,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE frames for queued events.

    Only pops when data is available, so the event loop never blocks on the
    queue. Stops when the client disconnects or the session has ended and
    its queue is drained.
    """
    yield "retry: 1000\n\n"

    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            while session.has_data_available():
                event = session.pop_data()
                if event is None:
                    break
                yield format_event(event)

            if session.state is ConnectionState.DISCONNECTED and not session.has_data_available():
                logger.info("Streaming session ended; closing SSE stream for %s", client_ip)
                break

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
