from django.urls import path
from . import views

app_name = 'rides'

urlpatterns = [
    # Browse / post
    path('', views.rides_collection, name='rides'),
    path('mine/', views.my_rides, name='my-rides'),

    # Single ride
    path('<int:ride_id>/', views.ride_detail, name='ride-detail'),
    path('<int:ride_id>/join/', views.join_ride, name='join-ride'),
    path('<int:ride_id>/complete/', views.complete_ride, name='complete-ride'),
    path('<int:ride_id>/rate/', views.rate_ride, name='rate-ride'),
    path('<int:ride_id>/ratings/', views.ride_ratings, name='ride-ratings'),
]
