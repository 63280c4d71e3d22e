from __future__ import annotations

import asyncio

import logging
from typing import Dict, Optional, Set
from uuid import UUID

from starlette.websockets import WebSocket, WebSocketState

from arreglame_api.schemas.realtime import WsEnvelope

logger = logging.getLogger(__name__)


class BroadcastManager:
    """
    Simple in-process pub-sub manager for WebSocket topics.

    Topics:
      - notifications:{user_id}
    """

    def __init__(self) -> None:
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _topic_lock(self, topic: str) -> asyncio.Lock:
        if topic not in self._locks:
            self._locks[topic] = asyncio.Lock()
        return self._locks[topic]

    def _prune(self, topic: str) -> None:
        # topics are per user; forget them once the last socket leaves
        if not self._topics.get(topic):
            self._topics.pop(topic, None)
            self._locks.pop(topic, None)

    # PUBLIC_INTERFACE
    def notifications_topic(self, user_id: UUID | str) -> str:
        """Return the notifications topic name for a user."""
        return f"notifications:{user_id}"

    # PUBLIC_INTERFACE
    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    # PUBLIC_INTERFACE
    async def connect(self, topic: str, websocket: WebSocket) -> None:
        """Add an accepted websocket to the topic subscribers."""
        async with self._topic_lock(topic):
            self._topics.setdefault(topic, set()).add(websocket)
            logger.info("WebSocket connected to topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def disconnect(self, topic: str, websocket: WebSocket) -> None:
        """Remove websocket from topic subscribers."""
        if topic not in self._topics:
            return
        async with self._topic_lock(topic):
            subscribers = self._topics.get(topic, set())
            subscribers.discard(websocket)
            logger.info("WebSocket disconnected from topic=%s; subscribers=%d", topic, len(subscribers))
            self._prune(topic)

    # PUBLIC_INTERFACE
    async def broadcast(self, topic: str, message: dict, exclude: Optional[WebSocket] = None) -> None:
        """Send a dict message to all subscribers in the topic; dead sockets are dropped."""
        if not self._topics.get(topic):
            return
        async with self._topic_lock(topic):
            to_drop: list[WebSocket] = []
            for ws in list(self._topics.get(topic, ())):
                if exclude is not None and ws is exclude:
                    continue
                try:
                    if ws.application_state == WebSocketState.DISCONNECTED or ws.client_state == WebSocketState.DISCONNECTED:
                        to_drop.append(ws)
                        continue
                    await ws.send_json(message)
                except Exception:
                    logger.exception("Failed to send message to websocket; scheduling drop")
                    to_drop.append(ws)
            for ws in to_drop:
                self._topics.get(topic, set()).discard(ws)
            self._prune(topic)

    # PUBLIC_INTERFACE
    async def publish_notification(self, user_id: UUID | str, notification: dict) -> None:
        """Publish a created notification to the user's topic."""
        env = WsEnvelope(type="notification.received", payload=notification, user_id=user_id)
        await self.broadcast(self.notifications_topic(user_id), env.model_dump(mode="json"))


# Singleton instance
broadcast_manager = BroadcastManager()
