import requests
from urllib3.exceptions import ReadTimeoutError

from payments.integrations.retry import RetryPolicy

_NETWORK_ERRORS = (requests.Timeout, requests.ConnectionError)


class NetworkRequestFailed(Exception):
    """Raised when network retries are exhausted."""


class RequestTimedOut(NetworkRequestFailed):
    """Raised when the upstream did not answer within the configured timeout."""


def is_timeout(exc):
    # requests wraps mid-body read timeouts in ConnectionError.
    if isinstance(exc, requests.Timeout):
        return True
    return any(isinstance(arg, ReadTimeoutError) for arg in getattr(exc, "args", ()))


def build_session(*, pool_size=10):
    session = requests.Session()
    adapter = requests.adapters.HTTPAdapter(
        pool_connections=pool_size,
        pool_maxsize=pool_size,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class HttpClient:
    def __init__(
        self,
        *,
        session=None,
        connect_timeout=1.0,
        read_timeout=3.0,
        max_attempts=1,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
    ):
        self.session = session or build_session()
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.retry_policy = RetryPolicy(
            max_attempts=max_attempts,
            base_delay=retry_base_delay,
            max_delay=retry_max_delay,
        )

    def post_stream(self, url, *, json=None, headers=None):
        """POST and return the response without reading the body.

        Only connecting and waiting for the response head is retried; once a
        response exists its body belongs to the caller.
        """

        def send_once():
            return self.session.request(
                "POST",
                url,
                json=json,
                headers=headers,
                timeout=(self.connect_timeout, self.read_timeout),
                stream=True,
            )

        try:
            return self.retry_policy.run(send_once, retry_exceptions=_NETWORK_ERRORS)
        except _NETWORK_ERRORS as exc:
            if is_timeout(exc):
                raise RequestTimedOut("request timed out after retries") from exc
            raise NetworkRequestFailed("network request failed after retries") from exc
