# storefront/services/live_relay.py
import json
from typing import Any

import redis
from fastapi.encoders import jsonable_encoder

from storefront.utils.retry import redis_retry
from storefront.utils.settings import LIVE_RELAY_CHANNEL, REDIS_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class LiveRelay:
    """
    publish() dla procesow bez petli LiveHub (worker celery).
    Event leci na kanal redis pub/sub, LiveHub w procesie API subskrybuje
    ten kanal i rozsyla event do swoich socketow.
    Tak jak LiveHub.publish: best-effort, nigdy nie rzuca.
    """

    def __init__(self, url: str | None = None, channel: str = LIVE_RELAY_CHANNEL, client: redis.Redis | None = None):
        self.channel = channel
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    def publish(self, event: str, data: Any) -> bool:
        message = json.dumps(jsonable_encoder({"event": event, "data": data}))
        try:
            receivers = self._publish(message)
        except redis.RedisError as e:
            logger.warning(f"Relay eventu {event} nieudany: {e}")
            return False
        logger.info(f"Event {event} wyslany na {self.channel} ({receivers} subskrybentow)")
        return True

    @redis_retry()
    def _publish(self, message: str) -> int:
        return self.redis.publish(self.channel, message)
