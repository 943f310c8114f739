"""
Messaging relay: persist a chat message, then fan it out live.

Every send writes the Message row first; only a committed message is
broadcast to the room's channel group (chat_<id>). Live delivery is
best-effort and at-most-once. A client that missed a broadcast sees the
message on its next history fetch.

Live payloads and history entries are built by the same function, so a
message looks identical on both paths.
"""

import logging
from typing import Any, Dict, List

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.db import transaction

from chats.models import ChatRoom, Message
from common.utils import retry_on_db_error
from .chat_rooms import get_room_for_participant
from .exceptions import MessageValidationError

logger = logging.getLogger(__name__)

# Consumer handler name for group_send events
CHAT_MESSAGE_EVENT = "chat_message"


def chat_group_name(chat_id: int) -> str:
    return f"chat_{chat_id}"


def build_message_payload(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "chat_id": message.chat_id,
        "sender_id": message.sender_id,
        "sender_name": message.sender.display_name,
        "content": message.content,
        "created_at": message.created_at.isoformat(),
    }


def _clean_content(content) -> str:
    if not isinstance(content, str):
        raise MessageValidationError("Message content must be text")
    text = content.strip()
    if not text:
        raise MessageValidationError("Message cannot be empty")
    max_length = getattr(settings, "CHAT_MESSAGE_MAX_LENGTH", 2000)
    if len(text) > max_length:
        raise MessageValidationError(f"Message is longer than {max_length} characters")
    return text


@transaction.atomic
def send_message(chat_id: int, sender, content) -> Message:
    """
    Persist a message from `sender` and bump the room's updated_at.

    Raises:
        ChatNotFoundError, ChatForbiddenError, MessageValidationError
    """
    room = get_room_for_participant(chat_id, sender)
    text = _clean_content(content)

    message = Message.objects.create(chat=room, sender=sender, content=text)
    ChatRoom.objects.filter(id=room.id).update(updated_at=message.created_at)

    logger.debug("Message %s stored in chat %s by user %s", message.id, room.id, sender.id)
    return message


def broadcast_message(payload: Dict[str, Any]) -> bool:
    """
    Push a stored message to every connection subscribed to its room.

    Returns:
        True if handed to the channel layer, False otherwise
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer available for chat broadcast")
        return False

    try:
        async_to_sync(channel_layer.group_send)(
            chat_group_name(payload["chat_id"]),
            {"type": CHAT_MESSAGE_EVENT, "message": payload},
        )
    except Exception:
        logger.exception("Failed to broadcast message %s", payload.get("id"))
        return False
    return True


async def broadcast_message_async(channel_layer, payload: Dict[str, Any]) -> bool:
    """Async twin of broadcast_message for use inside consumers."""
    try:
        await channel_layer.group_send(
            chat_group_name(payload["chat_id"]),
            {"type": CHAT_MESSAGE_EVENT, "message": payload},
        )
    except Exception:
        logger.exception("Failed to broadcast message %s", payload.get("id"))
        return False
    return True


def deliver_message(chat_id: int, sender, content) -> Dict[str, Any]:
    """Send over HTTP: durable write, then live fan-out."""
    message = send_message(chat_id, sender, content)
    payload = build_message_payload(message)
    broadcast_message(payload)
    return payload


@retry_on_db_error
def fetch_history(chat_id: int, user) -> List[Dict[str, Any]]:
    """All messages of a room, oldest first. Participants only."""
    room = get_room_for_participant(chat_id, user)
    messages = room.messages.select_related('sender').order_by('created_at', 'id')

    history = []
    for message in messages:
        payload = build_message_payload(message)
        payload["is_current_user"] = message.sender_id == user.id
        history.append(payload)
    return history
