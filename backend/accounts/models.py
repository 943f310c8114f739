from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Campus user; any user can post rides as a driver or join them as a passenger."""

    email = models.EmailField(unique=True)
    name = models.CharField(max_length=150, blank=True)
    phone_number = models.CharField(max_length=15, blank=True)
    profile_picture = models.ImageField(upload_to='profile_pictures/', null=True, blank=True)
    completed_rides = models.IntegerField(default=0)

    class Meta:
        db_table = 'users'

    @property
    def display_name(self):
        return self.name or self.username

    def __str__(self):
        return f"{self.username} ({self.display_name})"
