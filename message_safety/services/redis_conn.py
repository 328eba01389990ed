from redis.asyncio import Redis
import logging

logger = logging.getLogger(__name__)


def create_redis(url: str) -> Redis:
    """Создаёт асинхронный клиент Redis (строки вместо bytes)."""
    return Redis.from_url(url, decode_responses=True)


async def test_connection(redis: Redis) -> bool:
    try:
        await redis.ping()
        logger.info("✅ Соединение с Redis установлено")
        return True
    except Exception as e:
        logger.error(f"❌ Ошибка подключения к Redis: {e}")
        return False
