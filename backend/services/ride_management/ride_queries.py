"""
Read-side ride queries: browsing, per-user ride lists and rating aggregates.

Aggregates are computed on read; nothing keeps a running average. Every
function here is idempotent and retried on transient database errors.
"""

import logging
from typing import Optional, Dict, Any, List

from django.db.models import Avg, Count, Exists, OuterRef, Q

from common.utils import retry_on_db_error
from rides.models import Ride, RidePassenger, Rating
from .exceptions import RideNotFoundError

logger = logging.getLogger(__name__)


def _round_average(value) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), 1)


@retry_on_db_error
def list_available_rides(
    category: Optional[str] = None,
    search: Optional[str] = None,
    include_completed: bool = False,
    include_full: bool = False,
) -> List[Ride]:
    """Rides for the browse page, soonest first."""
    qs = Ride.objects.select_related('driver')

    if not include_completed:
        qs = qs.filter(is_completed=False)
    if not include_full:
        qs = qs.filter(seats_left__gt=0)
    if category:
        qs = qs.filter(category=category)
    if search:
        qs = qs.filter(Q(destination__icontains=search) | Q(starting_location__icontains=search))

    return list(qs.order_by('scheduled_at', 'id'))


@retry_on_db_error
def get_ride(ride_id: int) -> Ride:
    ride = Ride.objects.select_related('driver').filter(id=ride_id).first()
    if ride is None:
        raise RideNotFoundError()
    return ride


@retry_on_db_error
def has_joined(ride: Ride, user) -> bool:
    return RidePassenger.objects.filter(ride=ride, passenger=user).exists()


@retry_on_db_error
def list_ride_ratings(ride: Ride) -> List[Rating]:
    return list(ride.ratings.select_related('rater'))


@retry_on_db_error
def get_ride_rating_summary(ride: Ride) -> Dict[str, Any]:
    """Average score and count for one ride."""
    agg = Rating.objects.filter(ride=ride).aggregate(average=Avg('score'), count=Count('id'))
    return {
        "average": _round_average(agg["average"]),
        "count": agg["count"],
    }


def _driver_rating_summary(user) -> Dict[str, Any]:
    agg = Rating.objects.filter(driver=user).aggregate(average=Avg('score'), count=Count('id'))
    return {
        "average": _round_average(agg["average"]),
        "count": agg["count"],
    }


@retry_on_db_error
def get_driver_rating_summary(user) -> Dict[str, Any]:
    """Average score and count across every ride the user drove."""
    return _driver_rating_summary(user)


@retry_on_db_error
def list_rides_for_user(user) -> Dict[str, List[Ride]]:
    """
    Split the user's rides into disjoint lists:

        driving            - user drives, not completed
        driving_completed  - user drove, completed
        joined             - user is a passenger, not completed
        to_rate            - user was a passenger, completed, no rating yet
        rated              - user was a passenger, completed, already rated
    """
    driven = Ride.objects.filter(driver=user)
    joined_ids = RidePassenger.objects.filter(passenger=user).values('ride_id')
    joined = Ride.objects.filter(id__in=joined_ids).select_related('driver')

    completed_joined = joined.filter(is_completed=True).annotate(
        has_rated=Exists(Rating.objects.filter(ride=OuterRef('pk'), rater=user))
    )

    to_rate, rated = [], []
    for ride in completed_joined:
        (rated if ride.has_rated else to_rate).append(ride)

    return {
        "driving": list(driven.filter(is_completed=False)),
        "driving_completed": list(driven.filter(is_completed=True).order_by('-completed_at', '-id')),
        "joined": list(joined.filter(is_completed=False)),
        "to_rate": to_rate,
        "rated": rated,
    }


@retry_on_db_error
def get_user_profile_summary(user) -> Dict[str, Any]:
    """Profile page data: driver rating, completed driven rides and reviews written."""
    driven = (
        Ride.objects.filter(driver=user, is_completed=True)
        .annotate(average_rating=Avg('ratings__score'), rating_count=Count('ratings'))
        .order_by('-completed_at', '-id')
    )

    reviews = (
        Rating.objects.filter(rater=user)
        .select_related('ride', 'driver')
        .order_by('-created_at', '-id')
    )

    return {
        "driver_rating": _driver_rating_summary(user),
        "completed_driven_rides": [
            {
                "id": ride.id,
                "destination": ride.destination,
                "scheduled_at": ride.scheduled_at,
                "average_rating": _round_average(ride.average_rating),
                "rating_count": ride.rating_count,
            }
            for ride in driven
        ],
        "reviews_written": [
            {
                "id": rating.id,
                "ride_id": rating.ride_id,
                "destination": rating.ride.destination,
                "driver_id": rating.driver_id,
                "driver_name": rating.driver.display_name,
                "score": rating.score,
                "comment": rating.comment,
                "created_at": rating.created_at,
            }
            for rating in reviews
        ],
    }
