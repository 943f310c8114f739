from unittest.mock import Mock, patch

from django.db import InterfaceError, OperationalError
from django.test import SimpleTestCase
from rest_framework.exceptions import NotAuthenticated

from .exceptions import (
	ConflictError,
	NotFoundError,
	UpstreamUnavailableError,
	service_exception_handler,
)
from .utils import retry_on_db_error


class ExceptionHandlerTests(SimpleTestCase):
	def test_service_error_rendered_with_its_status(self):
		response = service_exception_handler(ConflictError('Seat already taken', error_code='no_seats_available'), {})

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data, {
			'success': False,
			'error': 'no_seats_available',
			'message': 'Seat already taken',
		})

	def test_default_message_used_when_none_given(self):
		response = service_exception_handler(NotFoundError(), {})

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['message'], 'Not found')

	def test_database_outage_becomes_503(self):
		response = service_exception_handler(OperationalError('could not connect'), {'view': None})

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['error'], 'upstream_unavailable')

	def test_drf_errors_fall_through(self):
		response = service_exception_handler(NotAuthenticated(), {})

		self.assertEqual(response.status_code, 401)


@patch('common.utils.retry.close_old_connections')
@patch('common.utils.retry.time.sleep')
class RetryOnDbErrorTests(SimpleTestCase):
	def test_returns_after_transient_failure(self, mock_sleep, mock_close):
		fn = Mock(side_effect=[OperationalError('gone away'), 'rides'])
		fn.__name__ = 'list_rides'

		wrapped = retry_on_db_error(attempts=3, backoff=0.5)(fn)

		self.assertEqual(wrapped(), 'rides')
		self.assertEqual(fn.call_count, 2)
		mock_sleep.assert_called_once_with(0.5)
		mock_close.assert_called_once_with()

	def test_gives_up_with_upstream_unavailable(self, mock_sleep, mock_close):
		fn = Mock(side_effect=InterfaceError('connection already closed'))
		fn.__name__ = 'list_rides'

		wrapped = retry_on_db_error(attempts=3, backoff=0.5)(fn)

		with self.assertRaises(UpstreamUnavailableError):
			wrapped()
		self.assertEqual(fn.call_count, 3)
		self.assertEqual([c.args[0] for c in mock_sleep.call_args_list], [0.5, 1.0])

	def test_other_errors_are_not_retried(self, mock_sleep, mock_close):
		fn = Mock(side_effect=ValueError('bad input'))
		fn.__name__ = 'list_rides'

		with self.assertRaises(ValueError):
			retry_on_db_error(fn)()
		self.assertEqual(fn.call_count, 1)
		mock_sleep.assert_not_called()
