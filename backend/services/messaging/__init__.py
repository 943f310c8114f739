"""
Messaging service - chat room registry and message relay.

This module handles:
    - Finding or creating the single room shared by two users
    - Listing a user's rooms
    - Persisting messages and broadcasting them to room subscribers
    - Loading message history
"""

from .chat_rooms import (
    normalize_pair,
    get_or_create_room,
    get_room_for_participant,
    list_rooms_for_user,
)

from .relay import (
    chat_group_name,
    build_message_payload,
    send_message,
    broadcast_message,
    broadcast_message_async,
    deliver_message,
    fetch_history,
)

from .exceptions import (
    ChatNotFoundError,
    ChatForbiddenError,
    ChatValidationError,
    UserNotFoundError,
    MessageValidationError,
)

__all__ = [
    # Registry
    "normalize_pair",
    "get_or_create_room",
    "get_room_for_participant",
    "list_rooms_for_user",
    # Relay
    "chat_group_name",
    "build_message_payload",
    "send_message",
    "broadcast_message",
    "broadcast_message_async",
    "deliver_message",
    "fetch_history",
    # Exceptions
    "ChatNotFoundError",
    "ChatForbiddenError",
    "ChatValidationError",
    "UserNotFoundError",
    "MessageValidationError",
]
