"""
Ride management service - Core ride lifecycle operations.

This module handles:
    - Posting rides
    - Joining rides (seat accounting)
    - Completing rides
    - Rating completed rides
    - Querying rides and rating aggregates
"""

from .ride_lifecycle import (
    RideResult,
    create_ride,
    join_ride,
    complete_ride,
    submit_rating,
)

from .ride_queries import (
    list_available_rides,
    get_ride,
    has_joined,
    list_ride_ratings,
    get_ride_rating_summary,
    get_driver_rating_summary,
    list_rides_for_user,
    get_user_profile_summary,
)

from .exceptions import (
    RideNotFoundError,
    RideForbiddenError,
    RideValidationError,
    RatingValidationError,
    RideAlreadyCompletedError,
    NoSeatsAvailableError,
    AlreadyJoinedError,
    RideNotCompletedError,
    DuplicateRatingError,
)

__all__ = [
    # Lifecycle operations
    "RideResult",
    "create_ride",
    "join_ride",
    "complete_ride",
    "submit_rating",
    # Queries
    "list_available_rides",
    "get_ride",
    "has_joined",
    "list_ride_ratings",
    "get_ride_rating_summary",
    "get_driver_rating_summary",
    "list_rides_for_user",
    "get_user_profile_summary",
    # Exceptions
    "RideNotFoundError",
    "RideForbiddenError",
    "RideValidationError",
    "RatingValidationError",
    "RideAlreadyCompletedError",
    "NoSeatsAvailableError",
    "AlreadyJoinedError",
    "RideNotCompletedError",
    "DuplicateRatingError",
]
