import asyncio
import errno
import logging
import socket
from typing import Awaitable, Callable, Optional, TypeVar

from openai import APIConnectionError, APIStatusError, APITimeoutError

from reviewlens.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_ERRNOS = {
    errno.ETIMEDOUT,
    errno.ECONNRESET,
    errno.ECONNREFUSED,
    errno.ECONNABORTED,
    errno.EPIPE,
}


def _status_code(exc: BaseException) -> Optional[int]:
    if isinstance(exc, APIStatusError):
        return exc.status_code
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_transport_error(exc: BaseException) -> bool:
    """Only network faults and 5xx responses are transient; 4xx and content errors are not."""

    status = _status_code(exc)
    if status is not None:
        return status >= 500
    if isinstance(exc, (APIConnectionError, APITimeoutError)):
        return True
    if isinstance(exc, socket.gaierror):
        return exc.errno == socket.EAI_AGAIN
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, OSError):
        return exc.errno in _TRANSIENT_ERRNOS
    return False


async def with_transport_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
) -> T:
    """Await ``fn()``, retrying transient failures with a fixed delay and no jitter."""

    attempts = max(1, max_attempts if max_attempts is not None else settings.RETRY_MAX_ATTEMPTS)
    delay = settings.RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds

    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as exc:
            if attempt >= attempts or not is_transport_error(exc):
                raise
            logger.warning(
                "Transient provider failure on attempt %s/%s (%s). Retrying in %.2fs",
                attempt,
                attempts,
                exc.__class__.__name__,
                delay,
            )
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover
