from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .serializers import (
    RideSerializer,
    RideCreateSerializer,
    RatingSerializer,
    RatingCreateSerializer,
)

# Import from services layer
from services.ride_management import (
    create_ride,
    join_ride as join_ride_service,
    complete_ride as complete_ride_service,
    submit_rating,
    list_available_rides,
    get_ride,
    has_joined,
    list_ride_ratings,
    get_ride_rating_summary,
    list_rides_for_user,
)


def _flag(request, name):
    return request.query_params.get(name, '').lower() in ('1', 'true', 'yes')


def _rides_data(rides):
    return RideSerializer(rides, many=True).data


# ==================== Browse / Post ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def rides_collection(request):
    """GET: browse open rides. POST: offer a new ride as its driver."""
    if request.method == 'GET':
        rides = list_available_rides(
            category=request.query_params.get('category') or None,
            search=request.query_params.get('search') or None,
            include_completed=_flag(request, 'include_completed'),
            include_full=_flag(request, 'include_full'),
        )
        return Response({'rides': _rides_data(rides), 'count': len(rides)})

    serializer = RideCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    result = create_ride(request.user, **serializer.validated_data)

    return Response({
        'success': True,
        'message': result.message,
        'ride': RideSerializer(result.ride).data
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ride_detail(request, ride_id):
    """Ride page: the ride, the caller's relation to it and, once completed, its ratings"""
    ride = get_ride(ride_id)

    data = {
        'ride': RideSerializer(ride).data,
        'is_driver': ride.driver_id == request.user.id,
        'has_joined': has_joined(ride, request.user),
    }

    if ride.is_completed:
        data['rating_summary'] = get_ride_rating_summary(ride)
        data['ratings'] = RatingSerializer(list_ride_ratings(ride), many=True).data

    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_rides(request):
    """The caller's rides, split into driving / joined / to-rate / rated lists"""
    buckets = list_rides_for_user(request.user)
    return Response({name: _rides_data(rides) for name, rides in buckets.items()})


# ==================== Ride Actions ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def join_ride(request, ride_id):
    """Take one seat on a ride"""
    result = join_ride_service(ride_id, request.user)

    return Response({
        'success': True,
        'message': result.message,
        'ride_full': result.extra['ride_full'],
        'ride': RideSerializer(result.ride).data
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def complete_ride(request, ride_id):
    """Driver marks the ride as completed"""
    result = complete_ride_service(ride_id, request.user)

    return Response({
        'success': True,
        'message': result.message,
        'ride': RideSerializer(result.ride).data
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def rate_ride(request, ride_id):
    """Passenger rates the driver of a completed ride"""
    serializer = RatingCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    rating = submit_rating(
        ride_id,
        request.user,
        serializer.validated_data['score'],
        serializer.validated_data['comment'],
    )

    return Response({
        'success': True,
        'message': 'Thanks for rating your ride',
        'rating': RatingSerializer(rating).data,
        'rating_summary': get_ride_rating_summary(rating.ride),
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ride_ratings(request, ride_id):
    ride = get_ride(ride_id)
    ratings = list_ride_ratings(ride)

    return Response({
        'ride_id': ride.id,
        'rating_summary': get_ride_rating_summary(ride),
        'ratings': RatingSerializer(ratings, many=True).data,
    })
