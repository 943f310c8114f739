"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import Ride, RidePassenger, Rating


class RidePassengerInline(admin.TabularInline):
    model = RidePassenger
    extra = 0
    readonly_fields = ['passenger', 'joined_at']
    can_delete = False


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    """Ride admin"""
    list_display = ['id', 'driver', 'destination', 'category', 'scheduled_at', 'seats_left', 'is_completed']
    list_filter = ['category', 'is_completed', 'scheduled_at']
    search_fields = ['driver__username', 'destination', 'starting_location']
    readonly_fields = ['created_at', 'completed_at']
    date_hierarchy = 'scheduled_at'
    inlines = [RidePassengerInline]


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    list_display = ("ride", "driver", "rater", "score", "created_at")
    list_filter = ("score",)
    search_fields = ("ride__id", "driver__username", "rater__username")
