"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .chat_consumer import ChatConsumer

__all__ = [
    "BaseConsumer",
    "ChatConsumer",
]
