import asyncio
import errno
import socket

import httpx
import pytest
from openai import APIConnectionError, APITimeoutError, APIStatusError

from reviewlens.core.errors import GenerationSchemaError
from reviewlens.services.retry import is_transport_error, with_transport_retry

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def status_error(status: int) -> APIStatusError:
    return APIStatusError(f"status {status}", response=httpx.Response(status, request=REQUEST), body=None)


class Flaky:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.mark.parametrize(
    "exc",
    [
        status_error(500),
        status_error(503),
        APIConnectionError(request=REQUEST),
        APITimeoutError(request=REQUEST),
        TimeoutError("read timed out"),
        ConnectionResetError("reset by peer"),
        socket.gaierror(socket.EAI_AGAIN, "temporary failure in name resolution"),
        OSError(errno.ETIMEDOUT, "timed out"),
    ],
)
def test_transient_errors(exc):
    assert is_transport_error(exc)


@pytest.mark.parametrize(
    "exc",
    [
        status_error(400),
        status_error(404),
        status_error(429),
        ValueError("bad"),
        GenerationSchemaError("schema"),
        socket.gaierror(socket.EAI_NONAME, "unknown host"),
    ],
)
def test_non_transient_errors(exc):
    assert not is_transport_error(exc)


def test_retries_transient_failure_then_succeeds():
    fn = Flaky(status_error(502), "ok")
    assert asyncio.run(with_transport_retry(fn, max_attempts=2, backoff_seconds=0)) == "ok"
    assert fn.calls == 2


def test_gives_up_after_max_attempts():
    fn = Flaky(status_error(503), status_error(503), "never")
    with pytest.raises(APIStatusError):
        asyncio.run(with_transport_retry(fn, max_attempts=2, backoff_seconds=0))
    assert fn.calls == 2


def test_client_errors_are_not_retried():
    fn = Flaky(status_error(429), "never")
    with pytest.raises(APIStatusError):
        asyncio.run(with_transport_retry(fn, max_attempts=3, backoff_seconds=0))
    assert fn.calls == 1


def test_fixed_delay_between_attempts(monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("reviewlens.services.retry.asyncio.sleep", fake_sleep)
    fn = Flaky(TimeoutError(), TimeoutError(), "ok")
    assert asyncio.run(with_transport_retry(fn, max_attempts=3, backoff_seconds=0.3)) == "ok"
    assert delays == [0.3, 0.3]
