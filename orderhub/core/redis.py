import redis.asyncio as redis
from orderhub.core.config import settings
import logging

logger = logging.getLogger(__name__)

class RedisClient:
    def __init__(self, url: str = None):
        self.url = url or settings.REDIS_URL
        self.redis = None

    async def connect(self):
        """Connect to Redis"""
        try:
            self.redis = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True
            )
            await self.redis.ping()
            logger.info("Redis connected successfully")
        except Exception as e:
            logger.error(f"Redis connection failed: {str(e)}")
            raise

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis disconnected")

    async def _connection(self):
        if not self.redis:
            await self.connect()
        return self.redis

    async def push_capped(self, key: str, value: str, max_length: int, ttl_seconds: int):
        """Prepend to a list, keep only the newest ``max_length`` entries and refresh its TTL"""
        conn = await self._connection()
        async with conn.pipeline(transaction=True) as pipe:
            pipe.lpush(key, value)
            pipe.ltrim(key, 0, max_length - 1)
            pipe.expire(key, ttl_seconds)
            results = await pipe.execute()
        return results[0]

    async def read_list(self, key: str, limit: int):
        """Newest ``limit`` entries of a list"""
        conn = await self._connection()
        return await conn.lrange(key, 0, limit - 1)

# Global Redis client instance
redis_client = RedisClient()
