"""
Realtime app for WebSocket chat and ride notifications.

This app provides:
- The chat WebSocket consumer (join room / send message / live fan-out)
- Per-user notification groups for ride events
- JWT/Cookie authentication middleware for WebSocket connections

Key Components:
    - consumers/: WebSocket consumers (base, chat)
    - notifications.py: Ride event notification helpers
    - middleware.py: WebSocket authentication

Usage:
    from realtime.consumers import ChatConsumer
    from realtime.notifications import notify_user_event
"""
