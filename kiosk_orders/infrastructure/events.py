"""
Order event fan-out.

Events are published after the originating transaction has committed and
are best effort: a publisher never lets a delivery failure escape.
"""

from functools import lru_cache
from typing import Any, Dict
import json
import redis

from kiosk_orders.core import get_logger
from kiosk_orders.core_settings import get_settings

log = get_logger(__name__)

ORDER_CREATED = "orderCreated"
ORDER_UPDATED = "orderUpdated"
PAYMENT_STATUS_UPDATED = "paymentStatusUpdated"


class EventPublisher:
    """Publisher that only logs; used when no Redis is configured."""

    def publish(self, event: str, data: Dict[str, Any]) -> None:
        log.debug(f"Event {event} for order {data.get('id') or data.get('orderId')}")


class RedisEventPublisher(EventPublisher):
    """Publish order events on a Redis pub/sub channel."""

    def __init__(self, client: redis.Redis, channel: str):
        self.client = client
        self.channel = channel

    def publish(self, event: str, data: Dict[str, Any]) -> None:
        message = json.dumps({"event": event, "data": data}, default=str)
        try:
            receivers = self.client.publish(self.channel, message)
        except redis.RedisError as e:
            log.warning(f"Failed to publish {event} on {self.channel}: {e}")
            return
        log.debug(f"Broadcasted {event} to {receivers} subscriber(s)")


@lru_cache
def get_event_publisher() -> EventPublisher:
    settings = get_settings()
    if not settings.REDIS_URL:
        return EventPublisher()
    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return RedisEventPublisher(client, settings.ORDER_EVENTS_CHANNEL)
