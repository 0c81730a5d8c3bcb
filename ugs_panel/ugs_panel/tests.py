"""
Tests for project-level helpers: повтор операций с БД.
"""
from unittest.mock import MagicMock, patch

from django.db import OperationalError
from django.test import SimpleTestCase

from .db import db_retry, with_db_retry


@patch('ugs_panel.db.close_old_connections')
@patch('ugs_panel.db.time.sleep')
class DbRetryTests(SimpleTestCase):

    def test_returns_after_transient_error(self, sleep, close_connections):
        func = MagicMock(side_effect=[OperationalError('server closed the connection'), 'ok'])

        result = with_db_retry(func, 1, key='value', delay=0.5)

        self.assertEqual(result, 'ok')
        self.assertEqual(func.call_count, 2)
        func.assert_called_with(1, key='value')
        sleep.assert_called_once_with(0.5)
        close_connections.assert_called_once()

    def test_reraises_after_last_attempt(self, sleep, close_connections):
        func = MagicMock(side_effect=OperationalError('down'))

        with self.assertRaises(OperationalError):
            with_db_retry(func, retries=3, delay=1)

        self.assertEqual(func.call_count, 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1, 2])

    def test_other_errors_are_not_retried(self, sleep, close_connections):
        func = MagicMock(side_effect=ValueError('bad input'))

        with self.assertRaises(ValueError):
            with_db_retry(func)

        func.assert_called_once()
        sleep.assert_not_called()

    def test_decorator(self, sleep, close_connections):
        calls = []

        @db_retry(retries=2, delay=0)
        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError('gone away')
            return len(calls)

        self.assertEqual(flaky(), 2)
        self.assertEqual(flaky.__name__, 'flaky')
