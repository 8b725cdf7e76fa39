"""Realtime progress events for ingestion runs."""

from .pubsub import CHANNEL, publish_event_sync

__all__ = ["CHANNEL", "publish_event_sync"]
