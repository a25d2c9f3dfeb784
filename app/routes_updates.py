# routes_updates.py
"""
Real-time update delivery.

- GET /events?userId=            server-sent events, one live stream per user
- GET /polling-updates?userId=&since=   events newer than a client watermark

Both only carry "something changed" hints; clients refetch the resources.
"""

import asyncio
import json
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from app.log import get_logger
from app.responses import fail
from app.services.notifier import CONNECTED, PushChannel, UpdateNotifier, get_notifier, now_ms
from config import SSE_DISCONNECT_CHECK_SECONDS, STREAMS_REQUIRE_AUTH

logger = get_logger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _parse_user_id(raw: Optional[str]) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _identity_mismatch(user_id: int, x_user_id: Optional[str]) -> bool:
    if not STREAMS_REQUIRE_AUTH:
        return False
    return _parse_user_id(x_user_id) != user_id


async def event_stream(
    user_id: int,
    notifier: UpdateNotifier,
    is_disconnected: Callable[[], Awaitable[bool]],
    check_seconds: float = SSE_DISCONNECT_CHECK_SECONDS,
) -> AsyncIterator[str]:
    """
    Body of one event stream.

    Registers a push channel for the user (replacing any older stream),
    acknowledges the connection, then forwards events until the channel is
    closed or the client goes away. The channel is always unregistered on
    exit, including when the response task is cancelled.
    """
    channel = PushChannel(asyncio.get_running_loop())
    notifier.register_push_channel(user_id, channel)
    try:
        yield _sse({"type": CONNECTED, "message": "Connected to real-time updates", "timestamp": now_ms()})

        while True:
            try:
                event = await asyncio.wait_for(channel.get(), timeout=check_seconds)
            except asyncio.TimeoutError:
                if await is_disconnected():
                    break
                yield ": keep-alive\n\n"
                continue

            if event is None:
                # closed, usually because a newer stream replaced this one
                break
            yield _sse(event.to_dict())
    finally:
        notifier.unregister_push_channel(user_id, channel)
        channel.close()
        logger.info("event_stream_closed", user_id=user_id)


@router.get("/events")
async def events(
    request: Request,
    user_id_raw: Optional[str] = Query(None, alias="userId"),
    x_user_id: Optional[str] = Header(default=None),
    notifier: UpdateNotifier = Depends(get_notifier),
):
    if not user_id_raw:
        return PlainTextResponse("User ID required", status_code=400)
    user_id = _parse_user_id(user_id_raw)
    if user_id is None:
        return PlainTextResponse("Invalid user ID", status_code=400)
    if _identity_mismatch(user_id, x_user_id):
        return PlainTextResponse("Unauthorized", status_code=401)

    logger.info("event_stream_opened", user_id=user_id)
    return StreamingResponse(
        event_stream(user_id, notifier, request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/polling-updates")
def polling_updates(
    user_id_raw: Optional[str] = Query(None, alias="userId"),
    since: Optional[str] = Query(None),
    x_user_id: Optional[str] = Header(default=None),
    notifier: UpdateNotifier = Depends(get_notifier),
):
    if not user_id_raw:
        return JSONResponse({"error": "User ID required"}, status_code=400)
    user_id = _parse_user_id(user_id_raw)
    if user_id is None:
        return JSONResponse({"error": "Invalid user ID"}, status_code=400)
    if _identity_mismatch(user_id, x_user_id):
        return fail("Authentication required", 401)

    watermark = 0
    if since:
        try:
            watermark = int(since)
        except ValueError:
            return fail("since must be an integer timestamp in milliseconds", 400, details={"since": since})

    updates = notifier.drain_since(user_id, watermark)
    logger.debug("polling_updates", user_id=user_id, since=watermark, count=len(updates))
    return JSONResponse([event.to_dict() for event in updates], headers={"Cache-Control": "no-store"})
