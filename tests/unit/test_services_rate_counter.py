# ============================================================
# Unit-тесты для хранилищ дневных счётчиков
# ============================================================
# - MemoryRateCounterStore: подсчёт и сброс в памяти
# - RedisRateCounterStore: то же самое поверх fakeredis
# ============================================================

from datetime import date, timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from message_safety.services.rate_counter import (
    MemoryRateCounterStore,
    RedisRateCounterStore,
    create_rate_counter_store,
)


class TestMemoryRateCounterStore:
    """Счётчики в памяти процесса."""

    @pytest.mark.asyncio
    async def test_missing_counter_is_zero(self, counter_store):
        assert await counter_store.get_count("userA") == 0

    @pytest.mark.asyncio
    async def test_increment_returns_new_count(self, counter_store):
        assert await counter_store.increment("userA") == 1
        assert await counter_store.increment("userA") == 2
        assert await counter_store.get_count("userA") == 2
        # Другой пользователь не затронут
        assert await counter_store.get_count("userB") == 0

    @pytest.mark.asyncio
    async def test_new_day_starts_from_zero(self, counter_store, today):
        await counter_store.increment("userA")
        today.day = today.day + timedelta(days=1)
        assert await counter_store.get_count("userA") == 0

    @pytest.mark.asyncio
    async def test_reset_daily_removes_only_past_days(self, counter_store, today):
        # Счётчики за вчера (D-1) и сегодня (D)
        day_d = today.day
        counter_store.set_count("userA", 7, day=day_d - timedelta(days=1))
        counter_store.set_count("userA", 3, day=day_d)

        removed = await counter_store.reset_daily(today=day_d)

        assert removed == 1
        assert len(counter_store) == 1
        assert await counter_store.get_count("userA") == 3

    @pytest.mark.asyncio
    async def test_reset_daily_defaults_to_current_day(self, counter_store, today):
        await counter_store.increment("userA")
        today.day = today.day + timedelta(days=1)
        await counter_store.increment("userA")

        assert await counter_store.reset_daily() == 1
        assert await counter_store.get_count("userA") == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_user_id", ["", None, 42])
    async def test_invalid_user_id_raises(self, counter_store, bad_user_id):
        with pytest.raises(ValueError):
            await counter_store.increment(bad_user_id)

    def test_set_count_rejects_negative(self, counter_store):
        with pytest.raises(ValueError):
            counter_store.set_count("userA", -1)


class TestRedisRateCounterStore:
    """Счётчики в Redis (fakeredis)."""

    @pytest.mark.asyncio
    async def test_increment_and_get(self, fake_redis, today):
        store = RedisRateCounterStore(fake_redis, key_ttl=100, today=today)
        assert await store.get_count("userA") == 0
        assert await store.increment("userA") == 1
        assert await store.increment("userA") == 2
        assert await store.get_count("userA") == 2

    @pytest.mark.asyncio
    async def test_key_has_expiry(self, fake_redis, today):
        store = RedisRateCounterStore(fake_redis, key_ttl=100, today=today)
        await store.increment("userA")
        key = f"ms:msgcount:userA:{today.day.isoformat()}"
        ttl = await fake_redis.ttl(key)
        assert 0 < ttl <= 100

    @pytest.mark.asyncio
    async def test_reset_daily_removes_past_days(self, fake_redis, today):
        store = RedisRateCounterStore(fake_redis, today=today)
        yesterday = (today.day - timedelta(days=1)).isoformat()
        await fake_redis.set(f"ms:msgcount:userA:{yesterday}", 9)
        await store.increment("userA")
        # Посторонние ключи не трогаем
        await fake_redis.set("other:key", 1)

        removed = await store.reset_daily()

        assert removed == 1
        assert await store.get_count("userA") == 1
        assert await fake_redis.get("other:key") == "1"

    @pytest.mark.asyncio
    async def test_redis_errors_do_not_block(self, today):
        class BrokenRedis:
            async def get(self, key):
                raise RedisConnectionError("down")

            def pipeline(self, transaction=True):
                raise RedisConnectionError("down")

        store = RedisRateCounterStore(BrokenRedis(), today=today)
        assert await store.get_count("userA") == 0
        assert await store.increment("userA") == 0


class TestCreateRateCounterStore:

    def test_memory_backend(self):
        assert isinstance(create_rate_counter_store("memory"), MemoryRateCounterStore)

    def test_redis_backend_requires_client(self):
        with pytest.raises(ValueError):
            create_rate_counter_store("redis")

    @pytest.mark.asyncio
    async def test_redis_backend(self, fake_redis):
        assert isinstance(create_rate_counter_store("redis", redis=fake_redis), RedisRateCounterStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_rate_counter_store("memcached")


# ============================================================
# Подключение к Redis
# ============================================================

@pytest.mark.asyncio
async def test_redis_connection_check(fake_redis):
    from message_safety.services import redis_conn

    assert await redis_conn.test_connection(fake_redis) is True


def test_create_redis_decodes_responses():
    from message_safety.services import redis_conn

    client = redis_conn.create_redis("redis://localhost:6379/0")
    assert client.connection_pool.connection_kwargs["decode_responses"] is True
