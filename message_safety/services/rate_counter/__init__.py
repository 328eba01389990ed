# ============================================================
# МОДУЛЬ RATE COUNTER - СЧЁТЧИКИ СООБЩЕНИЙ ЗА ДЕНЬ
# ============================================================
# - memory_store: счётчики в памяти процесса
# - redis_store: общие счётчики в Redis (несколько воркеров)
# - daily_reset: планировщик полуночной очистки
# ============================================================

from typing import Optional

from redis.asyncio import Redis

from message_safety.services.rate_counter.memory_store import MemoryRateCounterStore, utc_today
from message_safety.services.rate_counter.redis_store import RedisRateCounterStore
from message_safety.services.rate_counter.daily_reset import DailyResetScheduler, seconds_until_midnight


def create_rate_counter_store(backend: str = "memory", redis: Optional[Redis] = None, key_ttl: int = 172800):
    """
    Создаёт хранилище счётчиков по имени бэкенда.

    Args:
        backend: memory или redis
        redis: Клиент Redis (обязателен для backend=redis)
        key_ttl: Время жизни ключей в Redis

    Returns:
        MemoryRateCounterStore или RedisRateCounterStore
    """
    if backend == "memory":
        return MemoryRateCounterStore()
    if backend == "redis":
        if redis is None:
            raise ValueError("Для backend=redis нужен клиент Redis")
        return RedisRateCounterStore(redis, key_ttl=key_ttl)
    raise ValueError(f"Неизвестный backend счётчиков: {backend}")


__all__ = [
    'MemoryRateCounterStore',
    'RedisRateCounterStore',
    'DailyResetScheduler',
    'create_rate_counter_store',
    'seconds_until_midnight',
    'utc_today',
]
