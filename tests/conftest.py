import os
import sys
from datetime import date
from pathlib import Path

import pytest
from fakeredis import aioredis as fakeredis_aioredis

# Конфиг читает окружение при импорте: тесты не должны ходить в сеть
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ["OPENAI_API_KEY"] = ""
os.environ["MODERATION_LOG_WEBHOOK_URL"] = ""

# Гарантируем, что пакет message_safety доступен для импортов из тестов
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from message_safety.services.message_safety_service import MessageSafetyService
from message_safety.services.moderation import ModerationGateway, ModelModerationResult
from message_safety.services.rate_counter import MemoryRateCounterStore
from message_safety.services.ttl_cache import TTLCache


class FakeClock:
    """Управляемые часы для TTL-кэша."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeToday:
    """Управляемая текущая дата для счётчиков."""

    def __init__(self, day: date):
        self.day = day

    def __call__(self) -> date:
        return self.day


class CountingModerationClient:
    """Подмена клиента модели: считает вызовы и возвращает заданный ответ."""

    def __init__(self, result: ModelModerationResult = None, error: Exception = None):
        self.result = result or ModelModerationResult(flagged=False, categories={}, category_scores={})
        self.error = error
        self.calls = []

    async def classify(self, text: str) -> ModelModerationResult:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def today():
    return FakeToday(date(2026, 3, 14))


@pytest.fixture
def cache(clock):
    return TTLCache(clock=clock)


@pytest.fixture
def counter_store(today):
    return MemoryRateCounterStore(today=today)


@pytest.fixture
def moderation_client():
    return CountingModerationClient()


@pytest.fixture
def gateway(moderation_client, cache):
    return ModerationGateway(moderation_client, cache, cache_ttl=3600, timeout=1.0)


@pytest.fixture
def service(cache, counter_store, gateway):
    return MessageSafetyService(cache, counter_store, gateway)


@pytest.fixture
async def fake_redis():
    """fakeredis вместо настоящего Redis для unit-тестов."""
    client = fakeredis_aioredis.FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.fixture
def client_factory():
    """Фабрика подменных клиентов модели (для тестов с особым ответом или ошибкой)."""
    return CountingModerationClient
