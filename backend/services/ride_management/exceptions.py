"""Custom exceptions for ride management."""

from common.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)


class RideNotFoundError(NotFoundError):
    """Raised when a ride cannot be found."""
    default_message = "Ride not found"


class RideForbiddenError(ForbiddenError):
    """Raised when the user may not perform this action on the ride."""
    pass


class RideValidationError(ValidationFailedError):
    """Raised when ride fields are missing or malformed."""
    pass


class RatingValidationError(ValidationFailedError):
    """Raised when a rating score or comment is malformed."""
    pass


class RideAlreadyCompletedError(ConflictError):
    """Raised when a completed ride is joined or completed again."""
    error_code = "already_completed"
    default_message = "This ride has already been completed"


class NoSeatsAvailableError(ConflictError):
    """Raised when a ride has no seats left, including a lost seat race."""
    error_code = "no_seats_available"
    default_message = "No seats left on this ride"


class AlreadyJoinedError(ConflictError):
    """Raised when user already has a seat on this ride."""
    error_code = "already_joined"
    default_message = "You have already joined this ride"


class RideNotCompletedError(ConflictError):
    """Raised when a ride is rated before the driver completed it."""
    error_code = "not_completed"
    default_message = "This ride has not been completed yet"


class DuplicateRatingError(ConflictError):
    """Raised when the rater already rated this ride."""
    error_code = "duplicate_rating"
    default_message = "You have already rated this ride"
