from django.db import models
from django.conf import settings


class ChatRoom(models.Model):
    """
    Conversation between exactly two users.

    The pair is stored ordered (participant_a has the lower id) so one
    unique constraint covers both lookup directions.
    """

    participant_a = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='chat_rooms_as_a'
    )

    participant_b = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='chat_rooms_as_b'
    )

    # Ride that introduced the two users; set on first contact only
    ride = models.ForeignKey(
        'rides.Ride',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='chat_rooms'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'chats'
        ordering = ['-updated_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['participant_a', 'participant_b'],
                name='unique_chat_participant_pair'
            ),
            models.CheckConstraint(
                condition=models.Q(participant_a__lt=models.F('participant_b')),
                name='chat_participants_ordered'
            ),
        ]

    @property
    def group_name(self):
        return f"chat_{self.id}"

    def has_participant(self, user_id) -> bool:
        return user_id in (self.participant_a_id, self.participant_b_id)

    def other_participant(self, user_id):
        return self.participant_b if user_id == self.participant_a_id else self.participant_a

    def __str__(self):
        return f"Chat #{self.id} - {self.participant_a_id} & {self.participant_b_id}"


class Message(models.Model):
    """Append-only chat message."""

    chat = models.ForeignKey(
        ChatRoom,
        on_delete=models.CASCADE,
        related_name='messages'
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='chat_messages'
    )

    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'messages'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Message #{self.id} in chat {self.chat_id} from {self.sender_id}"
