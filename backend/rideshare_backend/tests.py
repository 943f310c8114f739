import importlib
from unittest.mock import patch

import redis
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient


class HealthCheckTests(TestCase):
	def setUp(self):
		self.client = APIClient()

	@patch('rideshare_backend.views.redis.Redis.from_url')
	def test_healthy_when_backing_services_answer(self, mock_from_url):
		mock_from_url.return_value.ping.return_value = True

		response = self.client.get('/health/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'healthy')
		self.assertEqual(set(response.data['services']), {'database', 'redis', 'channels', 'celery'})

	@patch('rideshare_backend.views.redis.Redis.from_url')
	def test_unhealthy_when_redis_is_down(self, mock_from_url):
		mock_from_url.return_value.ping.side_effect = redis.ConnectionError('refused')

		response = self.client.get('/health/')

		self.assertEqual(response.status_code, 503)
		self.assertTrue(response.data['services']['redis'].startswith('unhealthy'))
		self.assertEqual(response.data['services']['database'], 'healthy')


class ProductionSettingsTests(SimpleTestCase):
	def test_redis_clients_have_socket_timeouts(self):
		prod = importlib.import_module('rideshare_backend.settings.prod')

		host = prod.CHANNEL_LAYERS['default']['CONFIG']['hosts'][0]
		self.assertEqual(host['socket_timeout'], prod.REDIS_SOCKET_TIMEOUT)
		self.assertEqual(host['socket_connect_timeout'], prod.REDIS_SOCKET_TIMEOUT)
		self.assertEqual(prod.CELERY_BROKER_TRANSPORT_OPTIONS['socket_timeout'], prod.REDIS_SOCKET_TIMEOUT)
		self.assertEqual(prod.CELERY_REDIS_SOCKET_TIMEOUT, prod.REDIS_SOCKET_TIMEOUT)
		self.assertGreater(prod.REDIS_SOCKET_TIMEOUT, 0)

	def test_postgres_statement_timeout(self):
		prod = importlib.import_module('rideshare_backend.settings.prod')

		self.assertIn('statement_timeout=', prod.DATABASES['default']['OPTIONS']['options'])
