"""
Notification helpers for sending ride events to connected clients.

Every WebSocket connection joins its user's personal group (user_<id>), so
an event sent there reaches all of that user's open sessions.
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


def user_group_name(user_id: int) -> str:
    return f"user_{user_id}"


def notify_user_event(
    event_type: str,
    user_id: int | None,
    ride,
    message: str = "",
    extra: Dict[str, Any] = None,
) -> bool:
    """
    Send a ride-related event to one user through: user_<user_id>

    Args:
        event_type: Handler name in consumer (passenger_joined, ride_completed)
        user_id: Target user's ID
        ride: Ride model instance
        message: Optional message to include
        extra: Additional payload data

    Returns:
        True if sent successfully, False otherwise
    """
    if not user_id:
        return False

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False

    from rides.serializers import RideSerializer

    payload = {
        "type": event_type,
        "ride_id": ride.id,
        "ride_data": RideSerializer(ride).data,
        **(extra or {}),
    }

    if message:
        payload["message"] = message

    logger.debug("WS -> user_%s: %s", user_id, payload)
    async_to_sync(channel_layer.group_send)(user_group_name(user_id), payload)

    return True
