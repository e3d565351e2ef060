from unittest.mock import Mock

import requests
from django.test import SimpleTestCase
from urllib3.exceptions import ReadTimeoutError

from payments.integrations.http import (
    HttpClient,
    NetworkRequestFailed,
    RequestTimedOut,
    is_timeout,
)


class HttpClientTests(SimpleTestCase):
    def test_post_stream_retries_on_network_errors_then_succeeds(self):
        session = Mock()
        response = Mock()
        response.status_code = 200

        session.request.side_effect = [
            requests.Timeout("first timeout"),
            requests.ConnectionError("network down"),
            response,
        ]

        client = HttpClient(
            session=session,
            connect_timeout=0.5,
            read_timeout=2.0,
            max_attempts=3,
            retry_base_delay=0,
            retry_max_delay=0,
        )

        result = client.post_stream("http://ai.local/", json={"stream": True})

        self.assertIs(result, response)
        self.assertEqual(session.request.call_count, 3)
        args, kwargs = session.request.call_args
        self.assertEqual(args, ("POST", "http://ai.local/"))
        self.assertEqual(kwargs["json"], {"stream": True})
        self.assertEqual(kwargs["timeout"], (0.5, 2.0))
        self.assertTrue(kwargs["stream"])
        response.iter_content.assert_not_called()

    def test_timeout_after_retry_exhaustion(self):
        session = Mock()
        session.request.side_effect = requests.Timeout("always timeout")

        client = HttpClient(session=session, max_attempts=2)

        with self.assertRaises(RequestTimedOut):
            client.post_stream("http://ai.local/", json={})
        self.assertEqual(session.request.call_count, 2)

    def test_connection_error_is_not_a_timeout(self):
        session = Mock()
        session.request.side_effect = requests.ConnectionError("refused")

        client = HttpClient(session=session)

        with self.assertRaises(NetworkRequestFailed) as ctx:
            client.post_stream("http://ai.local/")
        self.assertNotIsInstance(ctx.exception, RequestTimedOut)
        self.assertEqual(session.request.call_count, 1)

    def test_wrapped_read_timeout_counts_as_timeout(self):
        wrapped = requests.ConnectionError(ReadTimeoutError(None, "/", "read timed out"))

        self.assertTrue(is_timeout(wrapped))
        self.assertTrue(is_timeout(requests.ReadTimeout("slow")))
        self.assertFalse(is_timeout(requests.ConnectionError("refused")))
