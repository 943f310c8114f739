"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.chat_consumer import ChatConsumer

websocket_urlpatterns = [
    # Chat + personal notifications
    # URL: ws://localhost:8000/ws/chat/?token=<access>
    re_path(
        r"ws/chat/$",
        ChatConsumer.as_asgi(),
        name="chat-ws"
    ),
]
