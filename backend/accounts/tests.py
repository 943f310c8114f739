from datetime import timedelta

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from services.ride_management import create_ride, join_ride, complete_ride, submit_rating
from .models import User


class AuthFlowTests(TestCase):
	def setUp(self):
		self.client = APIClient()

	def register(self, username='jane', email='jane@campus.edu', **extra):
		return self.client.post('/api/auth/register/', {
			'username': username,
			'email': email,
			'password': 'long-enough-pass',
			**extra,
		}, format='json')

	def test_register_returns_tokens(self):
		response = self.register(name='Jane Doe')

		self.assertEqual(response.status_code, 201)
		self.assertIn('access', response.data['tokens'])
		self.assertEqual(response.data['user']['display_name'], 'Jane Doe')
		self.assertEqual(User.objects.get(username='jane').completed_rides, 0)

	def test_register_rejects_duplicate_email(self):
		self.register()
		response = self.register(username='jane2', email='JANE@campus.edu')

		self.assertEqual(response.status_code, 400)
		self.assertIn('email', response.data)

	@override_settings(ALLOWED_EMAIL_DOMAINS=['campus.edu'])
	def test_register_requires_university_email(self):
		response = self.register(email='jane@gmail.com')

		self.assertEqual(response.status_code, 400)
		self.assertFalse(User.objects.filter(username='jane').exists())

	def test_login_refresh_logout(self):
		self.register()

		response = self.client.post('/api/auth/login/', {'email': 'jane@campus.edu', 'password': 'long-enough-pass'}, format='json')
		self.assertEqual(response.status_code, 200)
		tokens = response.data['tokens']

		response = self.client.post('/api/auth/refresh/', {'refresh': tokens['refresh']}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertIn('access', response.data)

		self.client.credentials(HTTP_AUTHORIZATION='Bearer %s' % tokens['access'])
		response = self.client.post('/api/auth/logout/', {'refresh': tokens['refresh']}, format='json')
		self.assertEqual(response.status_code, 205)

		response = self.client.post('/api/auth/refresh/', {'refresh': tokens['refresh']}, format='json')
		self.assertEqual(response.status_code, 401)

	def test_login_with_wrong_password(self):
		self.register()

		response = self.client.post('/api/auth/login/', {'email': 'jane@campus.edu', 'password': 'wrong-password'}, format='json')

		self.assertEqual(response.status_code, 400)

	def test_me_requires_authentication(self):
		response = self.client.get('/api/auth/me/')

		self.assertEqual(response.status_code, 401)

	def test_update_own_profile(self):
		self.register()
		user = User.objects.get(username='jane')
		self.client.force_authenticate(user=user)

		response = self.client.patch('/api/auth/me/', {'name': 'Jane D.', 'completed_rides': 50}, format='json')

		self.assertEqual(response.status_code, 200)
		user.refresh_from_db()
		self.assertEqual(user.name, 'Jane D.')
		self.assertEqual(user.completed_rides, 0)

	def test_login_with_email_ignores_case(self):
		User.objects.create_user(username='jdoe', email='jane@campus.edu', password='long-enough-pass')

		response = self.client.post('/api/auth/login/', {'email': 'Jane@Campus.edu', 'password': 'long-enough-pass'}, format='json')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['username'], 'jdoe')
		self.assertIn('access', response.data['tokens'])

	def test_register_without_username_uses_mailbox_name(self):
		User.objects.create_user(username='jane', email='jane@other.edu', password='long-enough-pass')

		response = self.client.post('/api/auth/register/', {
			'email': 'jane@campus.edu',
			'password': 'long-enough-pass',
		}, format='json')

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['user']['username'], 'jane2')

	def test_change_email(self):
		self.register()
		self.register(username='john', email='john@campus.edu')
		user = User.objects.get(username='jane')
		self.client.force_authenticate(user=user)

		response = self.client.patch('/api/auth/me/', {'email': 'John@campus.edu'}, format='json')
		self.assertEqual(response.status_code, 400)
		self.assertIn('email', response.data)

		response = self.client.patch('/api/auth/me/', {'email': 'Jane.Doe@campus.edu'}, format='json')
		self.assertEqual(response.status_code, 200)
		user.refresh_from_db()
		self.assertEqual(user.email, 'jane.doe@campus.edu')

	@override_settings(ALLOWED_EMAIL_DOMAINS=['campus.edu'])
	def test_change_email_requires_university_domain(self):
		self.register()
		user = User.objects.get(username='jane')
		self.client.force_authenticate(user=user)

		response = self.client.patch('/api/auth/me/', {'email': 'jane@gmail.com'}, format='json')

		self.assertEqual(response.status_code, 400)
		user.refresh_from_db()
		self.assertEqual(user.email, 'jane@campus.edu')

	def test_change_password(self):
		self.register()
		user = User.objects.get(username='jane')
		self.client.force_authenticate(user=user)

		response = self.client.post('/api/auth/me/password/', {
			'new_password': 'another-long-pass',
			'confirm_password': 'another-long-pass',
		}, format='json')

		self.assertEqual(response.status_code, 200)
		user.refresh_from_db()
		self.assertTrue(user.check_password('another-long-pass'))

		self.client.force_authenticate(user=None)
		response = self.client.post('/api/auth/login/', {'email': 'jane@campus.edu', 'password': 'another-long-pass'}, format='json')
		self.assertEqual(response.status_code, 200)

	def test_change_password_rejects_mismatch_and_weak_passwords(self):
		self.register()
		user = User.objects.get(username='jane')
		self.client.force_authenticate(user=user)

		response = self.client.post('/api/auth/me/password/', {
			'new_password': 'another-long-pass',
			'confirm_password': 'another-long-pazz',
		}, format='json')
		self.assertEqual(response.status_code, 400)
		self.assertIn('confirm_password', response.data)

		response = self.client.post('/api/auth/me/password/', {
			'new_password': 'short',
			'confirm_password': 'short',
		}, format='json')
		self.assertEqual(response.status_code, 400)

		user.refresh_from_db()
		self.assertTrue(user.check_password('long-enough-pass'))


class UserProfileTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		self.driver = User.objects.create_user(username='driver', password='rideshare-pass', email='driver@campus.edu')
		self.rider = User.objects.create_user(username='rider', password='rideshare-pass', email='rider@campus.edu')
		ride = create_ride(self.driver, 'Airport', timezone.now() + timedelta(hours=3), 2).ride
		join_ride(ride.id, self.rider)
		complete_ride(ride.id, self.driver)
		submit_rating(ride.id, self.rider, 4, 'On time')
		self.ride = ride

	def test_profile_shows_driver_rating_and_reviews(self):
		self.client.force_authenticate(user=self.rider)

		response = self.client.get('/api/auth/users/%d/' % self.driver.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['user']['completed_rides'], 1)
		self.assertNotIn('email', response.data['user'])
		self.assertEqual(response.data['driver_rating'], {'average': 4.0, 'count': 1})
		self.assertEqual(response.data['completed_driven_rides'][0]['id'], self.ride.id)

		response = self.client.get('/api/auth/users/%d/' % self.rider.id)
		self.assertEqual(response.data['reviews_written'][0]['comment'], 'On time')
		self.assertEqual(response.data['driver_rating'], {'average': None, 'count': 0})

	def test_unknown_user(self):
		self.client.force_authenticate(user=self.rider)

		response = self.client.get('/api/auth/users/999/')

		self.assertEqual(response.status_code, 404)
