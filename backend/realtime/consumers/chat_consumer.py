"""Chat WebSocket consumer: room subscription and live message relay."""

import logging
from typing import Dict, Any

from channels.db import database_sync_to_async

from common.exceptions import ServiceError
from services.messaging import (
    broadcast_message_async,
    build_message_payload,
    chat_group_name,
    get_room_for_participant,
    send_message,
)
from .base import BaseConsumer

logger = logging.getLogger(__name__)


def _parse_chat_id(data: Dict[str, Any]):
    try:
        return int(data.get("chat_id"))
    except (TypeError, ValueError):
        return None


class ChatConsumer(BaseConsumer):
    """
    WebSocket consumer for chat rooms.

    Client messages:
        {"type": "join_chat", "chat_id": 7}
        {"type": "leave_chat", "chat_id": 7}
        {"type": "send_message", "chat_id": 7, "content": "hello"}

    A connection may subscribe to several rooms. Only participants of a room
    can subscribe to it or post in it; the sender is always the
    authenticated user.
    """

    async def on_connect(self):
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "message": "Chat connection established",
        })

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Handle chat messages."""

        if msg_type == "join_chat":
            await self._handle_join_chat(data)
        elif msg_type == "leave_chat":
            await self._handle_leave_chat(data)
        elif msg_type == "send_message":
            await self._handle_send_message(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Message Handlers ----------------------

    async def _handle_join_chat(self, data: Dict[str, Any]):
        """Subscribe this connection to chat_<chat_id>."""
        chat_id = _parse_chat_id(data)

        if chat_id is None:
            await self.send_error("join_chat requires an integer chat_id")
            return

        try:
            await self._check_participant(chat_id)
        except ServiceError as e:
            await self.send_error(e.message, error=e.error_code, chat_id=chat_id)
            return

        await self._join_group(chat_group_name(chat_id))
        await self.send_success("chat_joined", chat_id=chat_id)

    async def _handle_leave_chat(self, data: Dict[str, Any]):
        chat_id = _parse_chat_id(data)

        if chat_id is None:
            return

        await self._leave_group(chat_group_name(chat_id))
        await self.send_success("chat_left", chat_id=chat_id)

    async def _handle_send_message(self, data: Dict[str, Any]):
        """
        Persist first, then broadcast to the room group. If the write fails
        nothing is broadcast and only the sender gets an error.
        """
        chat_id = _parse_chat_id(data)
        content = data.get("content", data.get("message"))

        if chat_id is None:
            await self.send_error("send_message requires an integer chat_id")
            return

        try:
            payload = await self._store_message(chat_id, content)
        except ServiceError as e:
            await self.send_error(e.message, error=e.error_code, chat_id=chat_id)
            return
        except Exception:
            logger.exception("Failed to store message in chat %s from user %s", chat_id, self.user_id)
            await self.send_error("Message could not be sent", error="upstream_unavailable", chat_id=chat_id)
            return

        await broadcast_message_async(self.channel_layer, payload)

        # A sender that never joined the room still needs its own copy.
        if chat_group_name(chat_id) not in self.joined_groups:
            await self.send_json({"type": "new_message", "message": payload})

    # ---------------------- Event Handlers (from group_send) ----------------------

    async def chat_message(self, event):
        """Forward a stored message to this connection."""
        await self.send_json({
            "type": "new_message",
            "message": event.get("message"),
        })

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _check_participant(self, chat_id):
        get_room_for_participant(chat_id, self.user)

    @database_sync_to_async
    def _store_message(self, chat_id, content) -> Dict[str, Any]:
        message = send_message(chat_id, self.user, content)
        return build_message_payload(message)
