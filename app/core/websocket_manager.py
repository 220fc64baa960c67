import json
from typing import Dict, Set, Any, Optional
from fastapi import WebSocket
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def attendance_topic(activity_schedule_id: int) -> str:
    return f"attendance/{activity_schedule_id}"


class ConnectionManager:
    def __init__(self):
        # Store active connections: {connection_id: websocket}
        self.active_connections: Dict[str, WebSocket] = {}
        # Store topic subscriptions: {topic: {connection_id}}
        self.topic_subscribers: Dict[str, Set[str]] = {}
        # Connection metadata: {connection_id: {user_id, topics, connected_at}}
        self.connection_metadata: Dict[str, Dict[str, Any]] = {}

    async def connect(self, websocket: WebSocket, user_id: int, connection_id: str):
        """Accept a new WebSocket connection"""
        await websocket.accept()
        self.active_connections[connection_id] = websocket
        self.connection_metadata[connection_id] = {
            "user_id": user_id,
            "topics": set(),
            "connected_at": datetime.now(timezone.utc),
        }
        logger.info(f"User {user_id} connected with connection {connection_id}")

    async def disconnect(self, connection_id: str):
        """Remove a WebSocket connection and all of its subscriptions"""
        self.active_connections.pop(connection_id, None)
        metadata = self.connection_metadata.pop(connection_id, None)
        if metadata:
            for topic in list(metadata["topics"]):
                self._remove_subscriber(topic, connection_id)
            logger.info(f"User {metadata['user_id']} disconnected connection {connection_id}")

    def _remove_subscriber(self, topic: str, connection_id: str):
        subscribers = self.topic_subscribers.get(topic)
        if subscribers is not None:
            subscribers.discard(connection_id)
            if not subscribers:
                del self.topic_subscribers[topic]

    def subscribe(self, connection_id: str, topic: str):
        if connection_id not in self.connection_metadata:
            return
        self.topic_subscribers.setdefault(topic, set()).add(connection_id)
        self.connection_metadata[connection_id]["topics"].add(topic)
        logger.debug(f"Connection {connection_id} subscribed to {topic}")

    def unsubscribe(self, connection_id: str, topic: str):
        self._remove_subscriber(topic, connection_id)
        if connection_id in self.connection_metadata:
            self.connection_metadata[connection_id]["topics"].discard(topic)

    async def send_to_connection(self, connection_id: str, message: Dict[str, Any]) -> bool:
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_text(json.dumps(message, default=str))
            return True
        except Exception as e:
            logger.error(f"Error sending message to connection {connection_id}: {e}")
            await self.disconnect(connection_id)
            return False

    async def broadcast(self, topic: str, message: Dict[str, Any]) -> int:
        """Send to every subscriber of a topic; returns how many connections received it"""
        delivered = 0
        for connection_id in list(self.topic_subscribers.get(topic, ())):
            if await self.send_to_connection(connection_id, message):
                delivered += 1
        return delivered

    def get_subscriber_count(self, topic: str) -> int:
        return len(self.topic_subscribers.get(topic, ()))

    async def handle_message(self, websocket: WebSocket, connection_id: str, message_data: Dict[str, Any]):
        """Handle incoming WebSocket messages"""
        message_type = message_data.get("type")
        data = message_data.get("data") or {}
        schedule_id: Optional[int] = data.get("activity_schedule_id")

        if message_type in ("subscribe", "unsubscribe"):
            if not isinstance(schedule_id, int):
                await websocket.send_text(json.dumps({
                    "type": "error",
                    "data": {"message": "activity_schedule_id is required"}
                }))
                return
            topic = attendance_topic(schedule_id)
            if message_type == "subscribe":
                self.subscribe(connection_id, topic)
            else:
                self.unsubscribe(connection_id, topic)
            await websocket.send_text(json.dumps({
                "type": f"{message_type}d",
                "data": {"topic": topic}
            }))

        elif message_type == "ping":
            await websocket.send_text(json.dumps({
                "type": "pong",
                "timestamp": datetime.now(timezone.utc).isoformat()
            }))

        else:
            logger.warning(f"Unknown message type: {message_type}")
            await websocket.send_text(json.dumps({
                "type": "error",
                "data": {"message": f"Unknown message type: {message_type}"}
            }))


# Global connection manager instance
connection_manager = ConnectionManager()
