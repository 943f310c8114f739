from rest_framework import serializers


class ChatCreateSerializer(serializers.Serializer):
    """Open (or find) the chat with another user, optionally about a ride"""
    other_user_id = serializers.IntegerField()
    ride_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class MessageCreateSerializer(serializers.Serializer):
    # Trimming and length checks happen in the relay so WS and HTTP agree
    content = serializers.CharField(trim_whitespace=False, allow_blank=True)
