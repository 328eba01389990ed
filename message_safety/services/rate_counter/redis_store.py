# ============================================================
# RATE COUNTER STORE - СЧЁТЧИКИ СООБЩЕНИЙ В REDIS
# ============================================================
# Вариант хранилища для нескольких воркеров: счётчик общий,
# инкремент атомарный (INCR), поэтому два параллельных
# запроса одного пользователя не получат одно и то же значение.
#
# Redis ключи:
# - ms:msgcount:{user_id}:{YYYY-MM-DD} - счётчик за день
#
# Ключ живёт RATE_COUNTER_KEY_TTL секунд (по умолчанию 2 суток),
# так что вчерашние счётчики исчезают сами даже без reset_daily().
# ============================================================

import logging
from datetime import date
from typing import Callable, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from message_safety.services.rate_counter.memory_store import utc_today, check_user_id

logger = logging.getLogger(__name__)


class RedisRateCounterStore:
    """
    Счётчики сообщений в Redis.

    При ошибке Redis сообщение не блокируется: get_count()
    возвращает 0, increment() возвращает 0 и пишет ошибку в лог.

    Пример использования:
        store = RedisRateCounterStore(redis_client)
        count = await store.increment("user-1")
    """

    # Префикс для Redis ключей
    REDIS_PREFIX = "ms:msgcount"

    def __init__(
        self,
        redis: Redis,
        key_ttl: int = 172800,
        today: Callable[[], date] = utc_today,
    ):
        """
        Args:
            redis: Клиент Redis (decode_responses=True)
            key_ttl: Время жизни ключа счётчика в секундах
            today: Источник текущей даты (подменяется в тестах)
        """
        self._redis = redis
        self._key_ttl = key_ttl
        self._today = today

    def _get_key(self, user_id: str, day: date) -> str:
        return f"{self.REDIS_PREFIX}:{user_id}:{day.isoformat()}"

    async def get_count(self, user_id: str) -> int:
        """Количество сообщений пользователя за сегодня."""
        check_user_id(user_id)
        key = self._get_key(user_id, self._today())
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            logger.error(f"[RateCounter] Ошибка Redis при чтении: {e}, user={user_id}")
            return 0
        return int(raw) if raw else 0

    async def increment(self, user_id: str) -> int:
        """
        Атомарно увеличивает счётчик за сегодня.

        Returns:
            Новое значение (0 при ошибке Redis)
        """
        check_user_id(user_id)
        key = self._get_key(user_id, self._today())
        try:
            # INCR и EXPIRE одной транзакцией
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, self._key_ttl)
                new_count, _ = await pipe.execute()
        except RedisError as e:
            logger.error(f"[RateCounter] Ошибка Redis при инкременте: {e}, user={user_id}")
            return 0
        return int(new_count)

    async def reset_daily(self, today: Optional[date] = None) -> int:
        """
        Удаляет счётчики всех дней, кроме сегодняшнего.

        Returns:
            Количество удалённых ключей
        """
        suffix = (today or self._today()).isoformat()
        pattern = f"{self.REDIS_PREFIX}:*"

        try:
            # Собираем устаревшие ключи
            stale = []
            async for key in self._redis.scan_iter(match=pattern, count=500):
                key_str = key.decode() if isinstance(key, bytes) else key
                if not key_str.endswith(suffix):
                    stale.append(key_str)

            if stale:
                await self._redis.delete(*stale)
        except RedisError as e:
            logger.error(f"[RateCounter] Ошибка Redis при сбросе счётчиков: {e}")
            return 0

        logger.info(f"[RateCounter] Сброс дневных счётчиков в Redis: удалено={len(stale)}")
        return len(stale)
