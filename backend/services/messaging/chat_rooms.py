"""
Chat room registry: one room per unordered pair of users.

Rooms are looked up by the ordered (lower id, higher id) pair, which is also
the unique key in the database, so two users always share a single room no
matter who writes first or which ride brought them together.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from django.contrib.auth import get_user_model
from django.db.models import Q

from chats.models import ChatRoom
from common.utils import retry_on_db_error
from rides.models import Ride
from services.ride_management.exceptions import RideNotFoundError
from .exceptions import (
    ChatNotFoundError,
    ChatForbiddenError,
    ChatValidationError,
    UserNotFoundError,
)

User = get_user_model()
logger = logging.getLogger(__name__)


def normalize_pair(user_a_id: int, user_b_id: int) -> Tuple[int, int]:
    """Return the pair in storage order: lower id first."""
    return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


def get_or_create_room(user, other_user_id, ride_id: Optional[int] = None) -> Tuple[ChatRoom, bool]:
    """
    Find the room shared by `user` and `other_user_id`, creating it if needed.

    The ride is only recorded when the room is created; later calls that
    reference a different ride get the existing room unchanged.

    Concurrent creators race on the unique pair constraint. get_or_create
    inserts inside a savepoint and re-reads on IntegrityError, so the loser
    returns the winner's row.

    Returns:
        (room, created)
    """
    if other_user_id in (None, ""):
        raise ChatValidationError("Other participant ID is required")
    try:
        other_user_id = int(other_user_id)
    except (TypeError, ValueError):
        raise ChatValidationError("Other participant ID must be an integer")

    if other_user_id == user.id:
        raise ChatValidationError("You cannot start a chat with yourself")

    if not User.objects.filter(id=other_user_id).exists():
        raise UserNotFoundError()

    ride = None
    if ride_id not in (None, ""):
        ride = Ride.objects.filter(id=ride_id).first()
        if ride is None:
            raise RideNotFoundError()

    participant_a_id, participant_b_id = normalize_pair(user.id, other_user_id)

    room, created = ChatRoom.objects.get_or_create(
        participant_a_id=participant_a_id,
        participant_b_id=participant_b_id,
        defaults={"ride": ride},
    )

    if created:
        logger.info("Chat %s created between %s and %s (ride %s)",
                    room.id, participant_a_id, participant_b_id, ride_id)
    return room, created


def get_room_for_participant(chat_id: int, user) -> ChatRoom:
    room = ChatRoom.objects.select_related('participant_a', 'participant_b').filter(id=chat_id).first()
    if room is None:
        raise ChatNotFoundError()
    if not room.has_participant(user.id):
        raise ChatForbiddenError()
    return room


@retry_on_db_error
def list_rooms_for_user(user) -> List[Dict[str, Any]]:
    """Rooms the user takes part in, most recently active first."""
    rooms = (
        ChatRoom.objects.filter(Q(participant_a=user) | Q(participant_b=user))
        .select_related('participant_a', 'participant_b')
        .order_by('-updated_at', '-id')
    )

    results = []
    for room in rooms:
        other = room.other_participant(user.id)
        results.append({
            "id": room.id,
            "other_participant": {
                "id": other.id,
                "name": other.display_name,
            },
            "ride_id": room.ride_id,
            "created_at": room.created_at,
            "updated_at": room.updated_at,
        })
    return results
