from datetime import timedelta
from unittest.mock import ANY, patch

from celery.exceptions import Retry
from django.db import OperationalError
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from common.exceptions import UpstreamUnavailableError
from services.ride_management import (
	create_ride,
	join_ride as join_ride_service,
	complete_ride as complete_ride_service,
	submit_rating,
	get_ride_rating_summary,
	get_driver_rating_summary,
	list_rides_for_user,
	get_user_profile_summary,
	AlreadyJoinedError,
	DuplicateRatingError,
	NoSeatsAvailableError,
	RatingValidationError,
	RideAlreadyCompletedError,
	RideForbiddenError,
	RideNotCompletedError,
	RideNotFoundError,
	RideValidationError,
)
from .models import Ride, RidePassenger, Rating
from .tasks import notify_ride_completed_task
from .views import (
	complete_ride,
	join_ride,
	rate_ride,
	ride_detail,
	rides_collection,
	my_rides,
)


def make_user(username):
	return User.objects.create_user(
		username=username,
		password='rideshare-pass',
		email='%s@campus.edu' % username,
		name=username.title()
	)


class RideTestMixin:
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = make_user('driver')
		self.passenger_one = make_user('passenger_one')
		self.passenger_two = make_user('passenger_two')
		self.tomorrow = timezone.now() + timedelta(days=1)

	def post_ride(self, seats=2, **kwargs):
		return create_ride(self.driver, kwargs.pop('destination', 'Airport'), self.tomorrow, seats, **kwargs).ride


class CreateRideTests(RideTestMixin, TestCase):
	def test_create_ride_starts_open(self):
		ride = self.post_ride(seats=3, category='airport', starting_location='North Gate')

		self.assertEqual(ride.seats_left, 3)
		self.assertFalse(ride.is_completed)
		self.assertEqual(ride.state, 'open')
		self.assertEqual(ride.driver, self.driver)
		self.assertEqual(ride.passenger_links.count(), 0)

	def test_create_ride_rejects_bad_input(self):
		with self.assertRaises(RideValidationError):
			create_ride(self.driver, '   ', self.tomorrow, 2)
		with self.assertRaises(RideValidationError):
			create_ride(self.driver, 'Airport', None, 2)
		with self.assertRaises(RideValidationError):
			create_ride(self.driver, 'Airport', self.tomorrow, 0)
		with self.assertRaises(RideValidationError):
			create_ride(self.driver, 'Airport', self.tomorrow, 2, category='space')

		self.assertFalse(Ride.objects.exists())

	def test_post_ride_endpoint(self):
		request = self.factory.post('/api/rides/', {
			'destination': 'Trailhead',
			'scheduled_at': self.tomorrow.isoformat(),
			'seats': 2,
			'category': 'outdoor_activity',
		}, format='json')
		force_authenticate(request, user=self.driver)
		response = rides_collection(request)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['ride']['seats_left'], 2)
		self.assertEqual(response.data['ride']['driver']['id'], self.driver.id)
		self.assertEqual(response.data['ride']['state'], 'open')

	def test_post_ride_endpoint_requires_a_seat(self):
		request = self.factory.post('/api/rides/', {
			'destination': 'Trailhead',
			'scheduled_at': self.tomorrow.isoformat(),
			'seats': 0,
		}, format='json')
		force_authenticate(request, user=self.driver)
		response = rides_collection(request)

		self.assertEqual(response.status_code, 400)
		self.assertIn('seats', response.data)


class JoinRideTests(RideTestMixin, TestCase):
	def test_join_takes_one_seat(self):
		ride = self.post_ride(seats=2)

		result = join_ride_service(ride.id, self.passenger_one)

		self.assertEqual(result.ride.seats_left, 1)
		self.assertFalse(result.extra['ride_full'])
		self.assertTrue(RidePassenger.objects.filter(ride=ride, passenger=self.passenger_one).exists())

	def test_joining_twice_is_rejected(self):
		ride = self.post_ride(seats=3)
		join_ride_service(ride.id, self.passenger_one)

		with self.assertRaises(AlreadyJoinedError):
			join_ride_service(ride.id, self.passenger_one)

		ride.refresh_from_db()
		self.assertEqual(ride.seats_left, 2)
		self.assertEqual(ride.passenger_links.count(), 1)

	def test_last_seat_goes_to_one_passenger(self):
		ride = self.post_ride(seats=1)

		result = join_ride_service(ride.id, self.passenger_one)
		self.assertTrue(result.extra['ride_full'])

		with self.assertRaises(NoSeatsAvailableError):
			join_ride_service(ride.id, self.passenger_two)

		ride.refresh_from_db()
		self.assertEqual(ride.seats_left, 0)
		self.assertEqual(ride.state, 'full')
		self.assertEqual(list(ride.passenger_links.values_list('passenger_id', flat=True)), [self.passenger_one.id])

	def test_seat_race_loser_leaves_no_passenger_link(self):
		ride = self.post_ride(seats=1)
		# Row as a concurrent joiner saw it before the last seat went
		stale = Ride.objects.get(id=ride.id)
		join_ride_service(ride.id, self.passenger_one)

		with patch('services.ride_management.ride_lifecycle._get_ride_for_update', return_value=stale):
			with self.assertRaises(NoSeatsAvailableError):
				join_ride_service(ride.id, self.passenger_two)

		ride.refresh_from_db()
		self.assertEqual(ride.seats_left, 0)
		self.assertFalse(RidePassenger.objects.filter(ride=ride, passenger=self.passenger_two).exists())

	def test_cannot_join_completed_ride(self):
		ride = self.post_ride(seats=2)
		complete_ride_service(ride.id, self.driver)

		with self.assertRaises(RideAlreadyCompletedError):
			join_ride_service(ride.id, self.passenger_one)

	def test_driver_cannot_join_own_ride(self):
		ride = self.post_ride(seats=2)

		with self.assertRaises(RideForbiddenError):
			join_ride_service(ride.id, self.driver)

	def test_join_unknown_ride(self):
		with self.assertRaises(RideNotFoundError):
			join_ride_service(999, self.passenger_one)

	def test_join_notifies_driver_after_commit(self):
		ride = self.post_ride(seats=2)

		with patch('realtime.notifications.notify_user_event', return_value=True) as mock_notify:
			with self.captureOnCommitCallbacks(execute=True):
				join_ride_service(ride.id, self.passenger_one)

		mock_notify.assert_called_once_with(
			'passenger_joined', self.driver.id, ANY, ANY, extra={'passenger_id': self.passenger_one.id}
		)

	def test_join_endpoint_status_codes(self):
		ride = self.post_ride(seats=1)

		request = self.factory.post('/api/rides/%d/join/' % ride.id)
		force_authenticate(request, user=self.passenger_one)
		response = join_ride(request, ride_id=ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['ride_full'])
		self.assertEqual(response.data['ride']['seats_left'], 0)

		request = self.factory.post('/api/rides/%d/join/' % ride.id)
		force_authenticate(request, user=self.passenger_one)
		response = join_ride(request, ride_id=ride.id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'no_seats_available')
		self.assertFalse(response.data['success'])

		request = self.factory.post('/api/rides/999/join/')
		force_authenticate(request, user=self.passenger_two)
		response = join_ride(request, ride_id=999)

		self.assertEqual(response.status_code, 404)


class CompleteRideTests(RideTestMixin, TestCase):
	def test_complete_ride_once(self):
		ride = self.post_ride(seats=2)
		join_ride_service(ride.id, self.passenger_one)

		result = complete_ride_service(ride.id, self.driver)

		self.assertTrue(result.ride.is_completed)
		self.assertIsNotNone(result.ride.completed_at)
		self.assertEqual(result.ride.state, 'completed')

		self.driver.refresh_from_db()
		self.passenger_one.refresh_from_db()
		self.assertEqual(self.driver.completed_rides, 1)
		self.assertEqual(self.passenger_one.completed_rides, 1)

		with self.assertRaises(RideAlreadyCompletedError):
			complete_ride_service(ride.id, self.driver)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.completed_rides, 1)

	def test_only_driver_can_complete(self):
		ride = self.post_ride(seats=2)
		join_ride_service(ride.id, self.passenger_one)

		request = self.factory.post('/api/rides/%d/complete/' % ride.id)
		force_authenticate(request, user=self.passenger_one)
		response = complete_ride(request, ride_id=ride.id)

		self.assertEqual(response.status_code, 403)
		ride.refresh_from_db()
		self.assertFalse(ride.is_completed)

	def test_completing_full_ride(self):
		ride = self.post_ride(seats=1)
		join_ride_service(ride.id, self.passenger_one)

		request = self.factory.post('/api/rides/%d/complete/' % ride.id)
		force_authenticate(request, user=self.driver)
		response = complete_ride(request, ride_id=ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['ride']['is_completed'])

		request = self.factory.post('/api/rides/%d/complete/' % ride.id)
		force_authenticate(request, user=self.driver)
		response = complete_ride(request, ride_id=ride.id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'already_completed')

	def test_completion_prompts_passengers_to_rate(self):
		ride = self.post_ride(seats=2)
		join_ride_service(ride.id, self.passenger_one)
		join_ride_service(ride.id, self.passenger_two)

		with patch('realtime.notifications.notify_user_event', return_value=True) as mock_notify:
			with self.captureOnCommitCallbacks(execute=True):
				complete_ride_service(ride.id, self.driver)

		notified = {call.args[1] for call in mock_notify.call_args_list if call.args[0] == 'ride_completed'}
		self.assertEqual(notified, {self.passenger_one.id, self.passenger_two.id})
		for call in mock_notify.call_args_list:
			self.assertEqual(call.kwargs['extra'], {'needs_rating': True})

	def test_completion_task_skips_open_ride(self):
		ride = self.post_ride(seats=2)
		join_ride_service(ride.id, self.passenger_one)

		with patch('realtime.notifications.notify_user_event') as mock_notify:
			self.assertEqual(notify_ride_completed_task(ride.id), 0)
			self.assertEqual(notify_ride_completed_task(999), 0)

		mock_notify.assert_not_called()

	def test_failed_prompt_does_not_resend_to_others(self):
		ride = self.post_ride(seats=2)
		join_ride_service(ride.id, self.passenger_one)
		join_ride_service(ride.id, self.passenger_two)
		complete_ride_service(ride.id, self.driver)

		with patch('realtime.notifications.notify_user_event', side_effect=[OperationalError('layer down'), True]) as mock_notify:
			with patch.object(notify_ride_completed_task, 'retry') as mock_retry:
				self.assertEqual(notify_ride_completed_task(ride.id), 1)

		self.assertEqual(mock_notify.call_count, 2)
		self.assertEqual({call.args[1] for call in mock_notify.call_args_list}, {self.passenger_one.id, self.passenger_two.id})
		mock_retry.assert_not_called()

	def test_ride_lookup_failure_is_retried(self):
		ride = self.post_ride(seats=2)
		complete_ride_service(ride.id, self.driver)

		with patch.object(Ride.objects, 'select_related', side_effect=OperationalError('server closed the connection')):
			with patch.object(notify_ride_completed_task, 'retry', return_value=Retry()) as mock_retry:
				with patch('realtime.notifications.notify_user_event') as mock_notify:
					with self.assertRaises(Retry):
						notify_ride_completed_task(ride.id)

		mock_retry.assert_called_once()
		mock_notify.assert_not_called()


class RatingTests(RideTestMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.ride = self.post_ride(seats=2)
		join_ride_service(self.ride.id, self.passenger_one)

	def test_cannot_rate_before_completion(self):
		with self.assertRaises(RideNotCompletedError):
			submit_rating(self.ride.id, self.passenger_one, 5)

	def test_rating_a_completed_ride(self):
		complete_ride_service(self.ride.id, self.driver)

		rating = submit_rating(self.ride.id, self.passenger_one, 4, 'Smooth ride')

		self.assertEqual(rating.driver, self.driver)
		self.assertEqual(get_ride_rating_summary(self.ride), {'average': 4.0, 'count': 1})
		self.assertEqual(get_driver_rating_summary(self.driver), {'average': 4.0, 'count': 1})

		with self.assertRaises(DuplicateRatingError):
			submit_rating(self.ride.id, self.passenger_one, 2)

		self.assertEqual(Rating.objects.filter(ride=self.ride).count(), 1)

	def test_only_passengers_rate(self):
		complete_ride_service(self.ride.id, self.driver)

		with self.assertRaises(RideForbiddenError):
			submit_rating(self.ride.id, self.driver, 5)
		with self.assertRaises(RideForbiddenError):
			submit_rating(self.ride.id, self.passenger_two, 5)

	def test_score_must_be_whole_number_in_range(self):
		complete_ride_service(self.ride.id, self.driver)

		for score in (0, 6, 3.5, 'great', None, True):
			with self.assertRaises(RatingValidationError):
				submit_rating(self.ride.id, self.passenger_one, score)

		self.assertFalse(Rating.objects.exists())

	def test_average_is_rounded(self):
		self.ride.seats_left = 3
		self.ride.save(update_fields=['seats_left'])
		passenger_three = make_user('passenger_three')
		join_ride_service(self.ride.id, self.passenger_two)
		join_ride_service(self.ride.id, passenger_three)
		complete_ride_service(self.ride.id, self.driver)

		submit_rating(self.ride.id, self.passenger_one, 5)
		submit_rating(self.ride.id, self.passenger_two, 4)
		submit_rating(self.ride.id, passenger_three, 4)

		self.assertEqual(get_ride_rating_summary(self.ride), {'average': 4.3, 'count': 3})

	def test_rate_endpoint(self):
		complete_ride_service(self.ride.id, self.driver)

		request = self.factory.post('/api/rides/%d/rate/' % self.ride.id, {'score': 5}, format='json')
		force_authenticate(request, user=self.passenger_one)
		response = rate_ride(request, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['rating']['score'], 5)
		self.assertEqual(response.data['rating_summary'], {'average': 5.0, 'count': 1})

		request = self.factory.post('/api/rides/%d/rate/' % self.ride.id, {'score': 3}, format='json')
		force_authenticate(request, user=self.passenger_one)
		response = rate_ride(request, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'duplicate_rating')

	def test_ride_detail_shows_ratings_once_completed(self):
		request = self.factory.get('/api/rides/%d/' % self.ride.id)
		force_authenticate(request, user=self.passenger_one)
		response = ride_detail(request, ride_id=self.ride.id)

		self.assertTrue(response.data['has_joined'])
		self.assertFalse(response.data['is_driver'])
		self.assertNotIn('ratings', response.data)

		complete_ride_service(self.ride.id, self.driver)
		submit_rating(self.ride.id, self.passenger_one, 3)

		request = self.factory.get('/api/rides/%d/' % self.ride.id)
		force_authenticate(request, user=self.driver)
		response = ride_detail(request, ride_id=self.ride.id)

		self.assertTrue(response.data['is_driver'])
		self.assertEqual(response.data['rating_summary'], {'average': 3.0, 'count': 1})
		self.assertEqual(len(response.data['ratings']), 1)


class RideListTests(RideTestMixin, TestCase):
	def test_user_ride_lists_are_disjoint(self):
		open_ride = self.post_ride(seats=2, destination='Stadium')
		to_rate_ride = self.post_ride(seats=2, destination='Airport')
		rated_ride = self.post_ride(seats=2, destination='Beach')
		for ride in (open_ride, to_rate_ride, rated_ride):
			join_ride_service(ride.id, self.passenger_one)
		complete_ride_service(to_rate_ride.id, self.driver)
		complete_ride_service(rated_ride.id, self.driver)
		submit_rating(rated_ride.id, self.passenger_one, 5)

		passenger_lists = list_rides_for_user(self.passenger_one)
		self.assertEqual([r.id for r in passenger_lists['joined']], [open_ride.id])
		self.assertEqual([r.id for r in passenger_lists['to_rate']], [to_rate_ride.id])
		self.assertEqual([r.id for r in passenger_lists['rated']], [rated_ride.id])
		self.assertEqual(passenger_lists['driving'], [])

		driver_lists = list_rides_for_user(self.driver)
		self.assertEqual([r.id for r in driver_lists['driving']], [open_ride.id])
		self.assertEqual({r.id for r in driver_lists['driving_completed']}, {to_rate_ride.id, rated_ride.id})
		self.assertEqual(driver_lists['joined'], [])

	def test_my_rides_endpoint(self):
		ride = self.post_ride(seats=2)
		join_ride_service(ride.id, self.passenger_one)

		request = self.factory.get('/api/rides/mine/')
		force_authenticate(request, user=self.passenger_one)
		response = my_rides(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual([r['id'] for r in response.data['joined']], [ride.id])
		self.assertEqual(set(response.data), {'driving', 'driving_completed', 'joined', 'to_rate', 'rated'})

	def test_browse_hides_full_and_completed_rides(self):
		open_ride = self.post_ride(seats=2, destination='Airport', category='airport')
		full_ride = self.post_ride(seats=1, destination='Concert', category='event')
		done_ride = self.post_ride(seats=2, destination='Lake', category='outdoor_activity')
		join_ride_service(full_ride.id, self.passenger_one)
		complete_ride_service(done_ride.id, self.driver)

		request = self.factory.get('/api/rides/')
		force_authenticate(request, user=self.passenger_two)
		response = rides_collection(request)
		self.assertEqual([r['id'] for r in response.data['rides']], [open_ride.id])

		request = self.factory.get('/api/rides/', {'include_full': 'true', 'category': 'event'})
		force_authenticate(request, user=self.passenger_two)
		response = rides_collection(request)
		self.assertEqual([r['id'] for r in response.data['rides']], [full_ride.id])

		request = self.factory.get('/api/rides/', {'include_completed': '1', 'search': 'lake'})
		force_authenticate(request, user=self.passenger_two)
		response = rides_collection(request)
		self.assertEqual([r['id'] for r in response.data['rides']], [done_ride.id])

	def test_browse_returns_503_when_database_stays_down(self):
		with patch.object(Ride.objects, 'select_related', side_effect=OperationalError('server closed the connection')) as mock_query:
			request = self.factory.get('/api/rides/')
			force_authenticate(request, user=self.passenger_one)
			response = rides_collection(request)

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['error'], 'upstream_unavailable')
		self.assertEqual(mock_query.call_count, 3)

	def test_profile_summary_retries_driver_rating_once_per_attempt(self):
		real_filter = Rating.objects.filter

		def driver_lookup_fails(*args, **kwargs):
			if 'driver' in kwargs:
				raise OperationalError('server closed the connection')
			return real_filter(*args, **kwargs)

		with patch.object(Rating.objects, 'filter', side_effect=driver_lookup_fails) as mock_filter:
			with self.assertRaises(UpstreamUnavailableError):
				get_user_profile_summary(self.driver)

		driver_lookups = [call for call in mock_filter.call_args_list if 'driver' in call.kwargs]
		self.assertEqual(len(driver_lookups), 3)
