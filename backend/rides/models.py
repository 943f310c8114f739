from django.db import models
from django.conf import settings


class Ride(models.Model):
    """A trip posted by a driver with a number of seats still open."""

    CATEGORY_CHOICES = [
        ('airport', 'Airport'),
        ('outdoor_activity', 'Outdoor Activity'),
        ('event', 'Event'),
        ('other', 'Other'),
    ]

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='driven_rides'
    )

    # Route
    starting_location = models.CharField(max_length=255, blank=True)
    destination = models.CharField(max_length=255)
    destination_address = models.TextField(blank=True)

    scheduled_at = models.DateTimeField()
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='other')
    description = models.TextField(blank=True)

    # Only the remaining capacity is tracked; every join takes one seat.
    seats_left = models.PositiveIntegerField()
    is_completed = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    passengers = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='RidePassenger',
        related_name='joined_rides',
        blank=True,
    )

    class Meta:
        db_table = 'rides'
        ordering = ['scheduled_at', 'id']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(seats_left__gte=0),
                name='ride_seats_left_non_negative'
            )
        ]

    @property
    def is_full(self):
        return self.seats_left <= 0

    @property
    def state(self):
        if self.is_completed:
            return 'completed'
        return 'full' if self.is_full else 'open'

    def __str__(self):
        return f"Ride #{self.id} - {self.destination} ({self.state})"


class RidePassenger(models.Model):
    """One occupied seat: a user joined a ride. Never updated or removed."""

    ride = models.ForeignKey(
        Ride,
        on_delete=models.CASCADE,
        related_name='passenger_links'
    )

    passenger = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ride_links'
    )

    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ride_passengers'
        ordering = ['joined_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['ride', 'passenger'],
                name='unique_ride_passenger'
            )
        ]

    def __str__(self):
        return f"{self.passenger} on ride {self.ride_id}"


class Rating(models.Model):
    """A passenger's 1-5 score for a completed ride's driver."""

    ride = models.ForeignKey(
        Ride,
        on_delete=models.CASCADE,
        related_name='ratings'
    )

    # Copied from ride.driver so per-driver averages need no join
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ratings_received'
    )

    rater = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ratings_given'
    )

    score = models.PositiveSmallIntegerField()
    comment = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ratings'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['ride', 'rater'],
                name='unique_ride_rater'
            ),
            models.CheckConstraint(
                condition=models.Q(score__gte=1) & models.Q(score__lte=5),
                name='rating_score_between_1_and_5'
            ),
        ]

    def __str__(self):
        return f"Rating #{self.id} - ride {self.ride_id} by {self.rater}: {self.score}"
