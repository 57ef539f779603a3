import json
import logging
import re
import time
from collections import namedtuple

from requests.exceptions import ConnectionError, Timeout

from desk_scripts.ZendeskApiWrapper import APIError

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 10

PolicyResult = namedtuple('PolicyResult', ['outcome', 'result', 'exception'])


def is_transient(exc):
    """Throttling (429), server side failures (5xx) and transport errors are worth another try."""
    if isinstance(exc, (ConnectionError, Timeout)):
        return True
    if isinstance(exc, APIError):
        status_code = exc.response.status_code
        return status_code == 429 or status_code >= 500
    return False


def never(exc):
    return False


def backoff(attempt):
    """Seconds to wait after failed attempt number `attempt` (1-indexed): 20, 40, 80, ..."""
    return 10 * 2 ** attempt


class RetryPolicy:
    """
    Calls a function, retrying it while it fails with an exception accepted by `retry_if`.

    The function is called at most `attempts` times. Between attempts the policy sleeps for
    `backoff(attempt)` seconds and reports the delay through the log and the optional
    `on_retry(exception, delay, attempt)` hook. Exceptions rejected by `retry_if` propagate
    straight away, and the last failure propagates once the attempts are used up.
    """

    def __init__(self, retry_if, attempts=DEFAULT_ATTEMPTS, on_retry=None, sleep=None):
        self.retry_if = retry_if
        self.attempts = attempts
        self.on_retry = on_retry
        self.sleep = sleep or time.sleep

    def execute(self, fn, *args, **kwargs):
        attempt = 1
        while True:
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                if attempt >= self.attempts or not self.retry_if(e):
                    raise
                delay = backoff(attempt)
                logger.warning(
                    f'Server is throttling our requests. Automatically delaying for {delay * 1000}ms'
                )
                if self.on_retry is not None:
                    self.on_retry(e, delay, attempt)
                self.sleep(delay)
                attempt += 1

    def execute_and_capture(self, fn, *args, **kwargs):
        """Like `execute`, but the final failure is returned in a `PolicyResult` instead of raised."""
        try:
            return PolicyResult('successful', self.execute(fn, *args, **kwargs), None)
        except Exception as e:
            return PolicyResult('failure', None, e)


def _find_values(node, key):
    if isinstance(node, dict):
        for k, v in node.items():
            if k == key:
                yield v
            yield from _find_values(v, key)
    elif isinstance(node, list):
        for item in node:
            yield from _find_values(item, key)


def describe_error(exc):
    """
    Best-effort human readable message for a failed call.

    Zendesk error bodies are JSON documents with `description` fields, possibly nested
    (`{"error": "RecordInvalid", "details": {"phone": [{"description": "..."}]}}`). The JSON part
    of the exception message is parsed and the last `description` found wins. Anything else
    falls back to the plain exception message.
    """
    message = str(exc)
    match = re.search(r'{.*}', message, re.DOTALL)
    if match is None:
        return message
    try:
        descriptions = list(_find_values(json.loads(match.group()), 'description'))
    except ValueError:
        return message
    if not descriptions:
        return message
    return str(descriptions[-1])
