"""Celery tasks for ride-related background processing."""

import logging

from celery import shared_task
from django.db import OperationalError

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def notify_ride_completed_task(self, ride_id: int) -> int:
    """
    Tell every passenger of a completed ride that it is time to rate the driver.

    Scheduled by complete_ride once the completion has committed. Only
    loading the ride is retried; once prompts start going out a failed
    send is logged and skipped so nobody is prompted twice. Returns the
    number of passengers notified.
    """
    from rides.models import Ride
    from realtime.notifications import notify_user_event

    try:
        ride = Ride.objects.select_related('driver').filter(id=ride_id).first()
        passenger_ids = list(ride.passenger_links.values_list('passenger_id', flat=True)) if ride else []
    except OperationalError as exc:
        raise self.retry(exc=exc, countdown=2 ** self.request.retries)

    if ride is None:
        logger.warning("Ride %s not found for completion notifications", ride_id)
        return 0

    if not ride.is_completed:
        logger.warning("Ride %s is not completed; skipping notifications", ride_id)
        return 0

    notified = 0
    for passenger_id in passenger_ids:
        try:
            sent = notify_user_event(
                'ride_completed',
                passenger_id,
                ride,
                f"Your ride to {ride.destination} is complete. Rate {ride.driver.display_name}!",
                extra={"needs_rating": True},
            )
        except Exception:
            logger.exception("Failed to send rating prompt for ride %s to user %s", ride_id, passenger_id)
            continue
        if sent:
            notified += 1

    logger.info("Sent completion notifications for ride %s to %d passengers", ride_id, notified)
    return notified
