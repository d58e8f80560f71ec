"""Live-update WebSocket.

Admission is decided once, at open, from the session cookie. After that the
socket only receives; the broadcast loop does all the sending.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, status
from starlette.concurrency import run_in_threadpool

from ..deps.ui_auth import current_session
from ..models.web_session import WebSession

logger = logging.getLogger(__name__)

router = APIRouter()


def _admit(websocket: WebSocket) -> WebSession | None:
    with websocket.app.state.session_factory() as db:
        return current_session(websocket, db)


@router.websocket("/ws")
async def live_updates(websocket: WebSocket):
    session = await run_in_threadpool(_admit, websocket)
    # Accept first so the client sees the close code instead of a bare 403.
    await websocket.accept()
    if session is None:
        logger.info("Unauthorized WebSocket connection")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unauthorized")
        return

    registry = websocket.app.state.channels
    channel = registry.add(websocket, session.user_id, session.username)
    logger.info(
        "WebSocket connected",
        extra={"extra_data": {"channel": channel.id, "principal": f"user:{session.user_id}"}},
    )
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            payload = message.get("text")
            if payload is None:
                payload = message.get("bytes")
            logger.debug("Received message on %s => %r", channel.id, payload)
    finally:
        registry.discard(channel.id)
        logger.info("WebSocket disconnected", extra={"extra_data": {"channel": channel.id}})
