import json
import logging
from functools import lru_cache
from typing import Optional

from redis import Redis

from reviewlens.core.config import settings

logger = logging.getLogger(__name__)
CHANNEL = "ingest_events"


@lru_cache(maxsize=1)
def _client() -> Optional[Redis]:
    if not settings.REDIS_URL:
        return None
    return Redis.from_url(settings.REDIS_URL)


def publish_event_sync(message: dict) -> None:
    """Publish a progress event; a missing or unreachable Redis only logs."""

    client = _client()
    if client is None:
        logger.debug("REDIS_URL not set; dropping %s event", message.get("type"))
        return
    try:
        client.publish(CHANNEL, json.dumps(message, default=str))
    except Exception:  # pragma: no cover
        logger.exception("Failed to publish realtime event")
