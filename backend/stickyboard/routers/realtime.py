import asyncio
import logging
from fastapi import APIRouter, Query, WebSocket, status
from stickyboard.auth import Scope, verify_token
from stickyboard.realtime.hub import Connection, hub

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def push_channel(
    websocket: WebSocket,
    access_token: str = Query(default=""),
    user: str = Query(default=""),
):
    """
    Live-update channel. The user access token rides in the query string and
    is checked before the handshake completes, so a bad or expired token
    never gets an open socket.
    """
    result = verify_token(access_token, Scope.USER_ACCESS)
    if not result.ok:
        logger.info("Rejected push channel for %r: token %s", user, result.status.value)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    principal = result.principal
    if user and user != principal.username:
        logger.warning("Push channel user %r does not match token user %r", user, principal.username)

    await websocket.accept()
    conn = Connection(websocket, principal.user_id, principal.username)
    writer = asyncio.create_task(conn.run_writer())
    hub.connect(conn)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")
            hub.dispatch(conn, raw)
    finally:
        hub.disconnect(conn)
        conn.close()
        writer.cancel()


@router.get("/api/realtime/stats")
async def realtime_stats():
    return hub.snapshot()
