"""Tells what to show in the Django admin interface for chats app"""

from django.contrib import admin
from .models import ChatRoom, Message


@admin.register(ChatRoom)
class ChatRoomAdmin(admin.ModelAdmin):
    """Chat room admin"""
    list_display = ['id', 'participant_a', 'participant_b', 'ride', 'created_at', 'updated_at']
    search_fields = ['participant_a__username', 'participant_b__username']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "chat", "sender", "created_at")
    search_fields = ("chat__id", "sender__username", "content")
    readonly_fields = ("created_at",)
