#!/usr/bin/env python3
"""
Сборка сервиса проверки сообщений из конфига и запуск фоновых задач.

Встраивание в приложение:
    runtime = SafetyRuntime()
    await runtime.start()
    decision = await runtime.service.evaluate_send(...)
    ...
    await runtime.stop()

Проверка текста из консоли:
    python -m message_safety.main --user u1 --age 3 "hello there"
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from message_safety import config
from message_safety.services.message_safety_service import MessageSafetyService
from message_safety.services.moderation import ModerationGateway, OpenAIModerationClient
from message_safety.services.rate_counter import DailyResetScheduler, create_rate_counter_store
from message_safety.services.redis_conn import create_redis, test_connection
from message_safety.services.ttl_cache import TTLCache
from message_safety.utils.logger import drain_logs, setup_logging

logger = logging.getLogger(__name__)


class SafetyRuntime:
    """Владеет сервисом и его ресурсами: HTTP-сессией, Redis, планировщиком сброса."""

    def __init__(self):
        self.service: Optional[MessageSafetyService] = None
        self.scheduler: Optional[DailyResetScheduler] = None
        self._client: Optional[OpenAIModerationClient] = None
        self._redis = None

    async def start(self) -> MessageSafetyService:
        if self.service is not None:
            return self.service

        if config.RATE_COUNTER_BACKEND == "redis":
            self._redis = create_redis(config.REDIS_URL)
            if not await test_connection(self._redis):
                logger.warning("⚠️ Redis недоступен, счётчики будут возвращать 0 до восстановления связи")

        counter_store = create_rate_counter_store(
            config.RATE_COUNTER_BACKEND,
            redis=self._redis,
            key_ttl=config.RATE_COUNTER_KEY_TTL,
        )
        cache = TTLCache(max_entries=config.CACHE_MAX_ENTRIES)
        self._client = OpenAIModerationClient(
            api_key=config.OPENAI_API_KEY,
            base_url=config.OPENAI_BASE_URL,
            model=config.MODERATION_MODEL,
            request_timeout=config.MODERATION_REQUEST_TIMEOUT_SECONDS,
            max_retries=config.MODERATION_MAX_RETRIES,
        )
        gateway = ModerationGateway(
            self._client,
            cache,
            cache_ttl=config.MODERATION_CACHE_TTL,
            timeout=config.MODERATION_TIMEOUT_SECONDS,
        )
        self.service = MessageSafetyService(cache, counter_store, gateway)

        self.scheduler = DailyResetScheduler(counter_store)
        self.scheduler.start()

        if not config.OPENAI_API_KEY:
            logger.warning("⚠️ OPENAI_API_KEY не задан: внешняя модерация отключена, работает только пре-фильтр")
        logger.info(f"🛡 Сервис проверки сообщений запущен (счётчики: {config.RATE_COUNTER_BACKEND})")
        return self.service

    async def stop(self) -> None:
        if self.service is not None:
            await self.service.drain()
        # Фоновая модерация тоже пишет в журнал: ждём его после неё
        await drain_logs()
        if self.scheduler is not None:
            await self.scheduler.stop()
        if self._client is not None:
            await self._client.close()
        if self._redis is not None:
            await self._redis.aclose()
        self.service = None
        self.scheduler = None
        self._client = None
        self._redis = None
        logger.info("🛑 Сервис проверки сообщений остановлен")


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Проверка сообщения перед отправкой")
    parser.add_argument("text", help="Текст сообщения")
    parser.add_argument("--user", default="cli-user", help="ID отправителя")
    parser.add_argument("--age", type=int, default=0, help="Возраст аккаунта в днях")
    parser.add_argument("--verified", action="store_true", help="Пользователь верифицирован")
    args = parser.parse_args(argv)

    setup_logging(config.LOG_LEVEL)
    runtime = SafetyRuntime()
    service = await runtime.start()
    try:
        decision = await service.evaluate_send(args.user, args.text, args.age, args.verified)
    finally:
        await runtime.stop()

    if decision.allowed:
        print("✅ allowed")
        return 0
    print(f"🚫 blocked [{decision.stage}]: {decision.reason}")
    return 1


def cli() -> int:
    """Точка входа консольной команды message-safety-check."""
    return asyncio.run(main())


if __name__ == "__main__":
    sys.exit(cli())
