from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .serializers import ChatCreateSerializer, MessageCreateSerializer

from services.messaging import (
    get_or_create_room,
    list_rooms_for_user,
    deliver_message,
    fetch_history,
)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def chats_collection(request):
    """
    GET: the caller's chat rooms, most recently active first.
    POST: get or create the room shared with other_user_id. Answers 201
    when the room is new and 200 when it already existed.
    """
    if request.method == 'GET':
        rooms = list_rooms_for_user(request.user)
        return Response({'chats': rooms, 'count': len(rooms)})

    serializer = ChatCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    room, created = get_or_create_room(
        request.user,
        serializer.validated_data['other_user_id'],
        ride_id=serializer.validated_data['ride_id'],
    )

    return Response({
        'id': room.id,
        'exists': not created,
        'ride_id': room.ride_id,
        'other_participant_id': room.other_participant(request.user.id).id,
    }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def chat_messages(request, chat_id):
    """GET: message history, oldest first. POST: send a message to the room."""
    if request.method == 'GET':
        messages = fetch_history(chat_id, request.user)
        return Response({'chat_id': chat_id, 'messages': messages})

    serializer = MessageCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    payload = deliver_message(chat_id, request.user, serializer.validated_data['content'])

    return Response({
        'success': True,
        'message': payload,
    }, status=status.HTTP_201_CREATED)
