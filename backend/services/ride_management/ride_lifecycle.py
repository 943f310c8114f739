"""
Core ride lifecycle operations.

A ride moves Open (seats_left > 0) -> Full (seats_left == 0) -> Completed.
Open and Full rides can be joined (Open only) and completed by the driver;
only Completed rides can be rated. Nothing leaves Completed.

Seat accounting relies on the database, not on pre-checks: the ride row is
locked, the passenger link is guarded by a unique constraint and the seat
decrement is a conditional UPDATE, all inside one transaction.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from rides.models import Ride, RidePassenger, Rating
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

User = get_user_model()
logger = logging.getLogger(__name__)

RIDE_CATEGORIES = {choice for choice, _ in Ride.CATEGORY_CHOICES}


@dataclass
class RideResult:
    """Result object for ride operations."""
    success: bool
    ride: Optional[Ride] = None
    message: str = ""
    error_code: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


# ===================== Driver Operations =====================

@transaction.atomic
def create_ride(
    driver,
    destination: str,
    scheduled_at: datetime,
    seats: int,
    starting_location: str = "",
    destination_address: str = "",
    category: str = "other",
    description: str = "",
) -> RideResult:
    """
    Post a new ride.

    Args:
        driver: User model instance offering the ride
        destination: Short destination label shown on ride cards
        scheduled_at: Departure time
        seats: Number of seats offered (at least 1)
        starting_location: Where the ride leaves from
        destination_address: Full destination address
        category: One of Ride.CATEGORY_CHOICES
        description: Free-text notes

    Returns:
        RideResult with the created ride

    Raises:
        RideValidationError: If a required field is missing or malformed
    """
    destination = (destination or "").strip()
    if not destination:
        raise RideValidationError("Destination is required")
    if scheduled_at is None:
        raise RideValidationError("Date and time are required")
    if isinstance(seats, bool) or not isinstance(seats, int) or seats < 1:
        raise RideValidationError("At least one seat must be offered")
    if category not in RIDE_CATEGORIES:
        raise RideValidationError(f"Unknown category: {category}")

    ride = Ride.objects.create(
        driver=driver,
        destination=destination,
        scheduled_at=scheduled_at,
        seats_left=seats,
        starting_location=(starting_location or "").strip(),
        destination_address=destination_address or "",
        category=category,
        description=description or "",
        is_completed=False,
    )

    logger.info("Ride %s created by user %s with %d seats", ride.id, driver.id, seats)

    return RideResult(
        success=True,
        ride=ride,
        message="Ride posted successfully"
    )


@transaction.atomic
def complete_ride(ride_id: int, driver) -> RideResult:
    """
    Mark a ride as completed. One-way: a second call raises
    RideAlreadyCompletedError instead of applying twice.

    Args:
        ride_id: ID of the ride to complete
        driver: User model instance; must be the ride's driver

    Returns:
        RideResult with the completed ride
    """
    ride = Ride.objects.filter(id=ride_id).first()
    if ride is None:
        raise RideNotFoundError()

    if ride.driver_id != driver.id:
        raise RideForbiddenError("Only the driver can mark this ride as completed")

    if ride.is_completed:
        raise RideAlreadyCompletedError()

    # Conditional update so concurrent completions apply exactly once
    completed = Ride.objects.filter(id=ride.id, is_completed=False).update(
        is_completed=True,
        completed_at=timezone.now(),
    )
    if not completed:
        raise RideAlreadyCompletedError()

    passenger_ids = list(ride.passenger_links.values_list('passenger_id', flat=True))
    User.objects.filter(id__in=[ride.driver_id, *passenger_ids]).update(
        completed_rides=F('completed_rides') + 1
    )

    ride.refresh_from_db()
    logger.info("Ride %s completed by driver %s (%d passengers)", ride.id, driver.id, len(passenger_ids))

    transaction.on_commit(lambda: _dispatch_completion_notifications(ride.id))

    return RideResult(
        success=True,
        ride=ride,
        message="Ride completed successfully",
        extra={"passenger_count": len(passenger_ids)}
    )


# ===================== Passenger Operations =====================

def _get_ride_for_update(ride_id: int) -> Ride:
    """Lock the ride row for the rest of the transaction."""
    ride = Ride.objects.select_for_update().filter(id=ride_id).first()
    if ride is None:
        raise RideNotFoundError()
    return ride


@transaction.atomic
def join_ride(ride_id: int, user) -> RideResult:
    """
    Take one seat on a ride.

    Args:
        ride_id: ID of the ride to join
        user: User model instance joining as passenger

    Returns:
        RideResult with the refreshed ride; extra["ride_full"] tells the
        caller that no further joins are possible.

    Raises:
        RideNotFoundError, RideAlreadyCompletedError, NoSeatsAvailableError,
        RideForbiddenError (driver joining own ride), AlreadyJoinedError
    """
    ride = _get_ride_for_update(ride_id)

    if ride.is_completed:
        raise RideAlreadyCompletedError()

    if ride.seats_left <= 0:
        raise NoSeatsAvailableError()

    if ride.driver_id == user.id:
        raise RideForbiddenError("You cannot join your own ride")

    try:
        with transaction.atomic():
            RidePassenger.objects.create(ride=ride, passenger=user)
    except IntegrityError:
        raise AlreadyJoinedError()

    taken = Ride.objects.filter(id=ride.id, seats_left__gt=0, is_completed=False).update(
        seats_left=F('seats_left') - 1
    )
    if not taken:
        # Another join took the last seat; the passenger link rolls back with us.
        logger.info("User %s lost the seat race on ride %s", user.id, ride.id)
        raise NoSeatsAvailableError()

    ride.refresh_from_db(fields=['seats_left', 'is_completed'])
    ride_full = ride.seats_left == 0

    logger.info("User %s joined ride %s (%d seats left)", user.id, ride.id, ride.seats_left)

    transaction.on_commit(lambda: _notify_driver_of_join(ride, user))

    return RideResult(
        success=True,
        ride=ride,
        message="You joined this ride" + (" - it is now full." if ride_full else "."),
        extra={"ride_full": ride_full}
    )


def _validate_score(score) -> int:
    if isinstance(score, bool):
        raise RatingValidationError("Score must be a whole number from 1 to 5")
    try:
        value = int(score)
    except (TypeError, ValueError):
        raise RatingValidationError("Score must be a whole number from 1 to 5")
    if value != score and str(value) != str(score).strip():
        raise RatingValidationError("Score must be a whole number from 1 to 5")
    if not 1 <= value <= 5:
        raise RatingValidationError("Score must be between 1 and 5")
    return value


@transaction.atomic
def submit_rating(ride_id: int, rater, score, comment: str = "") -> Rating:
    """
    Rate a completed ride's driver. One rating per (ride, rater).

    Args:
        ride_id: ID of the completed ride
        rater: User model instance; must have been a passenger
        score: Whole number 1-5
        comment: Optional free text

    Returns:
        The created Rating
    """
    ride = Ride.objects.filter(id=ride_id).first()
    if ride is None:
        raise RideNotFoundError()

    if not ride.is_completed:
        raise RideNotCompletedError()

    if ride.driver_id == rater.id:
        raise RideForbiddenError("Drivers cannot rate their own ride")

    if not ride.passenger_links.filter(passenger=rater).exists():
        raise RideForbiddenError("Only passengers of this ride can rate it")

    value = _validate_score(score)

    try:
        with transaction.atomic():
            rating = Rating.objects.create(
                ride=ride,
                driver_id=ride.driver_id,
                rater=rater,
                score=value,
                comment=(comment or "").strip(),
            )
    except IntegrityError:
        raise DuplicateRatingError()

    logger.info("User %s rated ride %s with %d", rater.id, ride.id, value)
    return rating


# ===================== Helper Functions =====================

def _notify_driver_of_join(ride: Ride, passenger):
    """Tell the driver's open sessions that a seat was taken."""
    from realtime.notifications import notify_user_event

    try:
        notify_user_event(
            'passenger_joined',
            ride.driver_id,
            ride,
            f"{passenger.display_name} joined your ride to {ride.destination}.",
            extra={"passenger_id": passenger.id},
        )
    except Exception:
        logger.exception("Failed to notify driver of join on ride %s", ride.id)


def _dispatch_completion_notifications(ride_id: int):
    """Queue the rate-your-ride prompts for every passenger."""
    from rides.tasks import notify_ride_completed_task

    try:
        notify_ride_completed_task.delay(ride_id)
    except Exception:
        logger.exception("Failed to queue completion notifications for ride %s", ride_id)
