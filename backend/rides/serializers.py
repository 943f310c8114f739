from rest_framework import serializers

from accounts.serializers import PublicUserSerializer
from .models import Ride, Rating


class RideSerializer(serializers.ModelSerializer):
    """Serializer for rides"""
    driver = PublicUserSerializer(read_only=True)
    state = serializers.CharField(read_only=True)

    class Meta:
        model = Ride
        fields = ['id', 'driver', 'starting_location', 'destination', 'destination_address',
                  'scheduled_at', 'category', 'description', 'seats_left', 'is_completed',
                  'state', 'created_at', 'completed_at']
        read_only_fields = fields


class RideCreateSerializer(serializers.Serializer):
    """Serializer for posting a ride"""
    destination = serializers.CharField(max_length=255)
    scheduled_at = serializers.DateTimeField()
    seats = serializers.IntegerField(min_value=1)
    starting_location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    destination_address = serializers.CharField(required=False, allow_blank=True, default="")
    category = serializers.ChoiceField(choices=Ride.CATEGORY_CHOICES, default='other')
    description = serializers.CharField(required=False, allow_blank=True, default="")


class RatingSerializer(serializers.ModelSerializer):
    rater = PublicUserSerializer(read_only=True)

    class Meta:
        model = Rating
        fields = ['id', 'ride_id', 'driver_id', 'rater', 'score', 'comment', 'created_at']
        read_only_fields = fields


class RatingCreateSerializer(serializers.Serializer):
    """Serializer for rating a completed ride"""
    score = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default="")
