"""WebSocket routes for live views of committed changes"""

import asyncio
import json
import logging
from typing import List, Optional, Set

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from clubportal.api.dependencies import authenticate_token, get_change_feed, get_redis_service
from clubportal.database import get_session_factory
from clubportal.exceptions import NotAuthenticated
from clubportal.models import User
from clubportal.services.change_feed import ChangeFeed, Subscription
from clubportal.services.redis_service import RedisService
from clubportal.services.scoring_service import ScoringService
from clubportal.services.snapshots import SNAPSHOT_SCHEMAS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/ws", tags=["websocket"])

COLLECTIONS = set(SNAPSHOT_SCHEMAS)


def parse_collections(raw: Optional[str]) -> Set[str]:
    """Comma separated collection names, unknown names dropped"""
    if not raw:
        return set(COLLECTIONS)
    return {name.strip() for name in raw.split(",") if name.strip() in COLLECTIONS}


async def authorize_websocket(
    websocket: WebSocket,
    token: Optional[str],
    session_factory: async_sessionmaker,
    redis_service: RedisService,
) -> Optional[User]:
    """Resolve the ``token`` query parameter, closing the socket on failure"""
    try:
        if not token:
            raise NotAuthenticated("Missing token")
        return await authenticate_token(token, session_factory, redis_service)
    except NotAuthenticated as e:
        logger.info(f"Rejected websocket connection: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None


async def forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    """Send every event on ``subscription`` to the client until cancelled"""
    async for event in subscription:
        await websocket.send_json(event.to_message())


@router.websocket("/feed")
async def websocket_feed(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    collections: Optional[str] = Query(None),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    redis_service: RedisService = Depends(get_redis_service),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Stream committed changes.

    Events may repeat; clients merge them by ``document_id`` and keep the
    highest ``version``. Clients can send ``subscribe``/``unsubscribe``
    messages with a ``collections`` list, and ``ping``.
    """
    user = await authorize_websocket(websocket, token, session_factory, redis_service)
    if user is None:
        return

    await websocket.accept()
    subscription = feed.subscribe(parse_collections(collections))
    sender = asyncio.create_task(forward_events(websocket, subscription))

    try:
        await websocket.send_json(
            {
                "type": "connected",
                "user_id": user.id,
                "collections": sorted(
                    COLLECTIONS if subscription.collections is None else subscription.collections
                ),
            }
        )

        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "detail": "Invalid JSON"})
                continue

            message_type = message.get("type")
            requested: List[str] = [
                name for name in message.get("collections", []) if name in COLLECTIONS
            ]

            if message_type == "subscribe":
                subscription.add_collections(requested)
                await websocket.send_json({"type": "subscribed", "collections": requested})
            elif message_type == "unsubscribe":
                subscription.remove_collections(requested)
                await websocket.send_json({"type": "unsubscribed", "collections": requested})
            elif message_type == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        logger.debug(f"Feed websocket closed for user {user.id}")
    finally:
        subscription.cancel()
        sender.cancel()


@router.websocket("/leaderboard")
async def websocket_leaderboard(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    redis_service: RedisService = Depends(get_redis_service),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Live leaderboard.

    Sends the full ranking on connect and again after every committed user
    change. Bursts of changes collapse into one update.
    """
    user = await authorize_websocket(websocket, token, session_factory, redis_service)
    if user is None:
        return

    await websocket.accept()
    scoring = ScoringService(session_factory)
    subscription = feed.subscribe(["users"])

    async def push_leaderboard() -> None:
        entries = await scoring.get_leaderboard(limit=limit)
        await websocket.send_json(
            {
                "type": "leaderboard",
                "entries": [entry.model_dump(mode="json") for entry in entries],
            }
        )

    async def pump() -> None:
        await push_leaderboard()
        async for _event in subscription:
            while subscription.pending():
                if await subscription.get() is None:
                    return
            await push_leaderboard()

    pusher = asyncio.create_task(pump())

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping" or data == '{"type": "ping"}':
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.debug(f"Leaderboard websocket closed for user {user.id}")
    finally:
        subscription.cancel()
        pusher.cancel()
