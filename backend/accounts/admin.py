from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for custom User model"""

    list_display = [
        "username",
        "email",
        "name",
        "phone_number",
        "completed_rides",
        "is_active",
        "is_staff",
    ]

    list_filter = [
        "is_active",
        "is_staff",
        "date_joined",
    ]

    search_fields = [
        "username",
        "email",
        "name",
    ]

    ordering = ("username",)

    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "Rideshare Profile",
            {
                "fields": (
                    "name",
                    "phone_number",
                    "profile_picture",
                    "completed_rides",
                )
            },
        ),
    )

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (
            "Rideshare Profile",
            {
                "fields": (
                    "email",
                    "name",
                    "phone_number",
                )
            },
        ),
    )
