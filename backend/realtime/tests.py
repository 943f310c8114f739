from datetime import timedelta
from unittest.mock import patch

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.db import OperationalError
from django.test import TransactionTestCase
from django.utils import timezone
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User
from chats.models import Message
from rides.models import Ride
from services.messaging import chat_group_name, fetch_history, get_or_create_room
from .middleware import JWTOrCookieAuthMiddleware
from .notifications import notify_user_event
from .routing import websocket_urlpatterns


def make_user(username):
	return User.objects.create_user(
		username=username,
		password='rideshare-pass',
		email='%s@campus.edu' % username,
		name=username.title()
	)


class ChatConsumerTests(TransactionTestCase):
	def setUp(self):
		async_to_sync(get_channel_layer().flush)()
		self.application = URLRouter(websocket_urlpatterns)
		self.alice = make_user('alice')
		self.bob = make_user('bob')
		self.mallory = make_user('mallory')
		self.room, _ = get_or_create_room(self.alice, self.bob.id)

	async def connect(self, user):
		communicator = WebsocketCommunicator(self.application, '/ws/chat/')
		communicator.scope['user'] = user
		connected, _ = await communicator.connect()
		self.assertTrue(connected)
		welcome = await communicator.receive_json_from()
		self.assertEqual(welcome['type'], 'connection_established')
		self.assertEqual(welcome['user_id'], user.id)
		return communicator

	async def join(self, communicator):
		await communicator.send_json_to({'type': 'join_chat', 'chat_id': self.room.id})
		return await communicator.receive_json_from()

	async def test_anonymous_connection_is_closed(self):
		communicator = WebsocketCommunicator(self.application, '/ws/chat/')
		communicator.scope['user'] = AnonymousUser()
		connected, _ = await communicator.connect()

		self.assertFalse(connected)

	async def test_outsider_cannot_join_room(self):
		mallory = await self.connect(self.mallory)

		response = await self.join(mallory)

		self.assertEqual(response['type'], 'error')
		self.assertEqual(response['error'], 'forbidden')
		self.assertEqual(response['chat_id'], self.room.id)
		await mallory.disconnect()

	async def test_message_reaches_other_participant(self):
		alice = await self.connect(self.alice)
		bob = await self.connect(self.bob)
		self.assertEqual((await self.join(alice))['type'], 'chat_joined')
		self.assertEqual((await self.join(bob))['type'], 'chat_joined')

		await alice.send_json_to({'type': 'send_message', 'chat_id': self.room.id, 'content': 'hello'})

		received = await bob.receive_json_from()
		self.assertEqual(received['type'], 'new_message')
		self.assertEqual(received['message']['content'], 'hello')
		self.assertEqual(received['message']['sender_id'], self.alice.id)

		echoed = await alice.receive_json_from()
		self.assertEqual(echoed['message'], received['message'])

		history = await database_sync_to_async(fetch_history)(self.room.id, self.bob)
		stored = dict(history[0])
		stored.pop('is_current_user')
		self.assertEqual(stored, received['message'])

		await alice.disconnect()
		await bob.disconnect()

	async def test_senders_other_sessions_receive_message(self):
		phone = await self.connect(self.alice)
		laptop = await self.connect(self.alice)
		await self.join(phone)
		await self.join(laptop)

		await phone.send_json_to({'type': 'send_message', 'chat_id': self.room.id, 'content': 'on my way'})

		self.assertEqual((await laptop.receive_json_from())['message']['content'], 'on my way')
		self.assertEqual((await phone.receive_json_from())['message']['content'], 'on my way')
		await phone.disconnect()
		await laptop.disconnect()

	async def test_sender_outside_room_still_gets_own_copy(self):
		alice = await self.connect(self.alice)

		await alice.send_json_to({'type': 'send_message', 'chat_id': self.room.id, 'content': 'ping'})

		response = await alice.receive_json_from()
		self.assertEqual(response['type'], 'new_message')
		self.assertEqual(response['message']['content'], 'ping')
		self.assertTrue(await alice.receive_nothing())
		await alice.disconnect()

	async def test_failed_write_is_not_broadcast(self):
		alice = await self.connect(self.alice)
		bob = await self.connect(self.bob)
		await self.join(alice)
		await self.join(bob)

		with patch('realtime.consumers.chat_consumer.send_message', side_effect=OperationalError('database is locked')):
			await alice.send_json_to({'type': 'send_message', 'chat_id': self.room.id, 'content': 'lost'})
			response = await alice.receive_json_from()

		self.assertEqual(response['type'], 'error')
		self.assertEqual(response['error'], 'upstream_unavailable')
		self.assertTrue(await bob.receive_nothing())
		self.assertFalse(await database_sync_to_async(Message.objects.exists)())
		await alice.disconnect()
		await bob.disconnect()

	async def test_invalid_messages_get_errors(self):
		alice = await self.connect(self.alice)

		await alice.send_json_to({'type': 'send_message', 'chat_id': self.room.id, 'content': '   '})
		self.assertEqual((await alice.receive_json_from())['error'], 'validation_failed')

		await alice.send_json_to({'type': 'join_chat', 'chat_id': 'abc'})
		self.assertEqual((await alice.receive_json_from())['type'], 'error')

		await alice.send_json_to({'type': 'dance'})
		self.assertEqual((await alice.receive_json_from())['message'], 'Unknown message type: dance')
		await alice.disconnect()

	async def test_disconnect_leaves_groups(self):
		alice = await self.connect(self.alice)
		await self.join(alice)
		layer = get_channel_layer()
		self.assertTrue(layer.groups.get(chat_group_name(self.room.id)))

		await alice.disconnect()

		self.assertFalse(layer.groups.get(chat_group_name(self.room.id)))
		self.assertFalse(layer.groups.get('user_%d' % self.alice.id))

	async def test_ride_events_reach_personal_group(self):
		ride = await database_sync_to_async(Ride.objects.create)(
			driver=self.alice,
			destination='Airport',
			scheduled_at=timezone.now() + timedelta(days=1),
			seats_left=1,
			is_completed=True,
		)
		bob = await self.connect(self.bob)

		sent = await database_sync_to_async(notify_user_event)(
			'ride_completed', self.bob.id, ride, 'Rate your driver', extra={'needs_rating': True}
		)

		self.assertTrue(sent)
		event = await bob.receive_json_from()
		self.assertEqual(event['type'], 'ride_completed')
		self.assertEqual(event['ride_id'], ride.id)
		self.assertTrue(event['needs_rating'])
		self.assertEqual(event['ride']['destination'], 'Airport')
		await bob.disconnect()


class JWTAuthMiddlewareTests(TransactionTestCase):
	def setUp(self):
		self.application = JWTOrCookieAuthMiddleware(URLRouter(websocket_urlpatterns))
		self.alice = make_user('alice')

	async def test_access_token_in_query_string(self):
		token = str(AccessToken.for_user(self.alice))
		communicator = WebsocketCommunicator(self.application, '/ws/chat/?token=%s' % token)
		connected, _ = await communicator.connect()

		self.assertTrue(connected)
		welcome = await communicator.receive_json_from()
		self.assertEqual(welcome['user_id'], self.alice.id)
		await communicator.disconnect()

	async def test_bad_token_is_rejected(self):
		communicator = WebsocketCommunicator(self.application, '/ws/chat/?token=not-a-jwt')
		connected, _ = await communicator.connect()

		self.assertFalse(connected)
