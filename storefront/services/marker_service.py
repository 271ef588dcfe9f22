# storefront/services/marker_service.py
import redis

from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class MarkerService:
    """
    Krotko zyjace znaczniki w redisie, tlumia powtarzane powiadomienia
    (low stock per produkt, przypomnienie o koszyku per user).
    -mark: SET NX EX, atomowo "ustaw jesli nie ma"
    -znacznik sam wygasa po ttl, nie trzeba go recznie czyscic
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def low_stock_key(product_id: int) -> str:
        return f"low_stock_alert:{product_id}"

    @staticmethod
    def abandoned_cart_key(user_id: int) -> str:
        return f"abandoned_cart:{user_id}"

    @redis_retry()
    def mark(self, key: str, ttl: int) -> bool:
        """True gdy znacznik zostal wlasnie ustawiony, False gdy juz byl (powiadomienie pominac)."""
        created = self.redis.set(name=key, value="1", nx=True, ex=ttl)
        logger.info(f"Marker {key}: {'ustawiony' if created else 'juz istnieje'}")
        return bool(created)

    @redis_retry()
    def clear(self, key: str) -> bool:
        return bool(self.redis.delete(key))
