from datetime import timedelta
from unittest.mock import patch

from django.db import OperationalError
from django.db.models.query import QuerySet
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from rides.models import Ride
from services.messaging import (
	ChatForbiddenError,
	ChatNotFoundError,
	ChatValidationError,
	MessageValidationError,
	UserNotFoundError,
	fetch_history,
	get_or_create_room,
	list_rooms_for_user,
	normalize_pair,
	send_message,
)
from services.ride_management import RideNotFoundError
from .models import ChatRoom, Message
from .views import chat_messages, chats_collection


def make_user(username):
	return User.objects.create_user(
		username=username,
		password='rideshare-pass',
		email='%s@campus.edu' % username,
		name=username.title()
	)


class ChatRoomRegistryTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.alice = make_user('alice')
		self.bob = make_user('bob')
		self.carol = make_user('carol')
		tomorrow = timezone.now() + timedelta(days=1)
		self.airport_ride = Ride.objects.create(driver=self.alice, destination='Airport', scheduled_at=tomorrow, seats_left=2)
		self.concert_ride = Ride.objects.create(driver=self.bob, destination='Concert', scheduled_at=tomorrow, seats_left=2)

	def test_normalize_pair(self):
		self.assertEqual(normalize_pair(7, 3), (3, 7))
		self.assertEqual(normalize_pair(3, 7), (3, 7))

	def test_first_contact_ride_is_kept(self):
		room, created = get_or_create_room(self.alice, self.bob.id, ride_id=self.airport_ride.id)
		self.assertTrue(created)

		again, created = get_or_create_room(self.bob, self.alice.id, ride_id=self.concert_ride.id)

		self.assertFalse(created)
		self.assertEqual(again.id, room.id)
		self.assertEqual(again.ride_id, self.airport_ride.id)
		self.assertEqual(ChatRoom.objects.count(), 1)

	def test_racing_creators_share_one_room(self):
		room, created = get_or_create_room(self.alice, self.bob.id, ride_id=self.airport_ride.id)
		self.assertTrue(created)

		real_get = QuerySet.get
		stale_lookups = []

		# The second creator's first lookup ran before the first creator's insert committed
		def lookup_before_insert(queryset, *args, **kwargs):
			if queryset.model is ChatRoom and not stale_lookups:
				stale_lookups.append(kwargs)
				raise ChatRoom.DoesNotExist()
			return real_get(queryset, *args, **kwargs)

		with patch.object(QuerySet, 'get', autospec=True, side_effect=lookup_before_insert):
			again, created = get_or_create_room(self.bob, self.alice.id, ride_id=self.concert_ride.id)

		self.assertEqual(len(stale_lookups), 1)
		self.assertFalse(created)
		self.assertEqual(again.id, room.id)
		self.assertEqual(again.ride_id, self.airport_ride.id)
		self.assertEqual(ChatRoom.objects.count(), 1)

	def test_pair_is_stored_in_order(self):
		room, _ = get_or_create_room(self.carol, self.alice.id)

		self.assertEqual((room.participant_a_id, room.participant_b_id), normalize_pair(self.alice.id, self.carol.id))
		self.assertIsNone(room.ride_id)

	def test_invalid_partners_are_rejected(self):
		with self.assertRaises(ChatValidationError):
			get_or_create_room(self.alice, self.alice.id)
		with self.assertRaises(ChatValidationError):
			get_or_create_room(self.alice, None)
		with self.assertRaises(ChatValidationError):
			get_or_create_room(self.alice, 'bob')
		with self.assertRaises(UserNotFoundError):
			get_or_create_room(self.alice, 999)
		with self.assertRaises(RideNotFoundError):
			get_or_create_room(self.alice, self.bob.id, ride_id=999)

		self.assertFalse(ChatRoom.objects.exists())

	def test_rooms_listed_by_latest_activity(self):
		with_bob, _ = get_or_create_room(self.alice, self.bob.id)
		with_carol, _ = get_or_create_room(self.alice, self.carol.id)

		self.assertEqual([r['id'] for r in list_rooms_for_user(self.alice)], [with_carol.id, with_bob.id])

		send_message(with_bob.id, self.bob, 'Are you still driving?')

		rooms = list_rooms_for_user(self.alice)
		self.assertEqual([r['id'] for r in rooms], [with_bob.id, with_carol.id])
		self.assertEqual(rooms[0]['other_participant'], {'id': self.bob.id, 'name': 'Bob'})
		self.assertEqual(list_rooms_for_user(self.carol)[0]['other_participant']['id'], self.alice.id)

	def test_create_endpoint_reports_existing_room(self):
		request = self.factory.post('/api/chats/', {'other_user_id': self.bob.id, 'ride_id': self.airport_ride.id}, format='json')
		force_authenticate(request, user=self.alice)
		response = chats_collection(request)

		self.assertEqual(response.status_code, 201)
		self.assertFalse(response.data['exists'])
		room_id = response.data['id']

		request = self.factory.post('/api/chats/', {'other_user_id': self.alice.id}, format='json')
		force_authenticate(request, user=self.bob)
		response = chats_collection(request)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['exists'])
		self.assertEqual(response.data['id'], room_id)
		self.assertEqual(response.data['ride_id'], self.airport_ride.id)

	def test_create_endpoint_errors(self):
		request = self.factory.post('/api/chats/', {'other_user_id': self.alice.id}, format='json')
		force_authenticate(request, user=self.alice)
		response = chats_collection(request)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation_failed')

		request = self.factory.post('/api/chats/', {'other_user_id': 999}, format='json')
		force_authenticate(request, user=self.alice)
		response = chats_collection(request)

		self.assertEqual(response.status_code, 404)


class MessageRelayTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.alice = make_user('alice')
		self.bob = make_user('bob')
		self.mallory = make_user('mallory')
		self.room, _ = get_or_create_room(self.alice, self.bob.id)

	def test_history_is_oldest_first(self):
		send_message(self.room.id, self.alice, 'hello')
		send_message(self.room.id, self.bob, '  hi there  ')
		send_message(self.room.id, self.alice, 'see you at 5')

		history = fetch_history(self.room.id, self.bob)

		self.assertEqual([m['content'] for m in history], ['hello', 'hi there', 'see you at 5'])
		self.assertEqual([m['is_current_user'] for m in history], [False, True, False])
		self.assertEqual(history[0]['sender_id'], self.alice.id)
		self.assertEqual(history[0]['sender_name'], 'Alice')

	def test_outsiders_cannot_read_or_write(self):
		with self.assertRaises(ChatForbiddenError):
			fetch_history(self.room.id, self.mallory)
		with self.assertRaises(ChatForbiddenError):
			send_message(self.room.id, self.mallory, 'let me in')
		with self.assertRaises(ChatNotFoundError):
			fetch_history(999, self.alice)

		self.assertFalse(Message.objects.exists())

	def test_message_content_is_checked(self):
		with self.assertRaises(MessageValidationError):
			send_message(self.room.id, self.alice, '   ')
		with self.assertRaises(MessageValidationError):
			send_message(self.room.id, self.alice, None)
		with self.assertRaises(MessageValidationError):
			send_message(self.room.id, self.alice, 'x' * 2001)

	@patch('services.messaging.relay.broadcast_message', return_value=True)
	def test_send_endpoint_persists_then_broadcasts(self, mock_broadcast):
		request = self.factory.post('/api/chats/%d/messages/' % self.room.id, {'content': 'hello'}, format='json')
		force_authenticate(request, user=self.alice)
		response = chat_messages(request, chat_id=self.room.id)

		self.assertEqual(response.status_code, 201)
		stored = Message.objects.get()
		self.assertEqual(stored.sender, self.alice)
		self.assertEqual(response.data['message']['id'], stored.id)

		mock_broadcast.assert_called_once_with(response.data['message'])
		self.assertEqual(fetch_history(self.room.id, self.bob)[0]['id'], stored.id)

	@patch('services.messaging.relay.broadcast_message', return_value=True)
	def test_failed_write_is_not_broadcast(self, mock_broadcast):
		with patch.object(Message.objects, 'create', side_effect=OperationalError('disk I/O error')):
			request = self.factory.post('/api/chats/%d/messages/' % self.room.id, {'content': 'hello'}, format='json')
			force_authenticate(request, user=self.alice)
			response = chat_messages(request, chat_id=self.room.id)

		self.assertEqual(response.status_code, 503)
		mock_broadcast.assert_not_called()
		self.assertFalse(Message.objects.exists())

	def test_history_endpoint_forbidden_for_outsider(self):
		request = self.factory.get('/api/chats/%d/messages/' % self.room.id)
		force_authenticate(request, user=self.mallory)
		response = chat_messages(request, chat_id=self.room.id)

		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.data['message'], 'Not authorized to view this chat')
