# ============================================================
# DAILY RESET - ПЛАНИРОВЩИК ПОЛУНОЧНОЙ ОЧИСТКИ СЧЁТЧИКОВ
# ============================================================
# Алгоритм:
# 1. Сразу при старте чистим счётчики (могли остаться с прошлого запуска)
# 2. Считаем секунды до ближайшей полуночи UTC
# 3. Спим до полуночи, чистим, повторяем
#
# Время до полуночи пересчитывается на каждом круге, поэтому
# сдвиг часов или долгий сброс не накапливают ошибку. Пропущенный
# запуск только откладывает очистку памяти: подсчёт сообщений
# от этого не ломается (дата зашита в ключ).
# ============================================================

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def seconds_until_midnight(now: datetime) -> float:
    """
    Секунды до ближайшей полуночи в часовом поясе now.

    Args:
        now: Текущее время (aware datetime)

    Returns:
        Количество секунд (> 0)
    """
    next_midnight = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return (next_midnight - now).total_seconds()


class DailyResetScheduler:
    """
    Фоновая задача, которая раз в сутки вызывает store.reset_daily().

    Пример использования:
        scheduler = DailyResetScheduler(store)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        store,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            store: Хранилище счётчиков с методом async reset_daily()
            clock: Источник текущего времени (aware datetime)
            sleep: Функция ожидания (подменяется в тестах)
        """
        self._store = store
        self._clock = clock
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        # Сколько раз сброс отработал (для наблюдаемости и тестов)
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Запускает фоновую задачу (повторный вызов возвращает текущую)."""
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._run(), name="daily-counter-reset")
        logger.info("[DailyReset] Планировщик сброса счётчиков запущен")
        return self._task

    async def stop(self) -> None:
        """Останавливает фоновую задачу и дожидается её завершения."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        # gather не глотает отмену самого вызывающего
        await asyncio.gather(task, return_exceptions=True)
        logger.info("[DailyReset] Планировщик сброса счётчиков остановлен")

    async def run_once(self) -> None:
        """Один проход очистки. Ошибки логируются и не останавливают планировщик."""
        try:
            await self._store.reset_daily()
        except Exception as e:
            logger.error(f"[DailyReset] Ошибка сброса счётчиков: {e}")
        self.runs += 1

    async def _run(self) -> None:
        # Очистка сразу при старте процесса
        await self.run_once()
        while True:
            delay = seconds_until_midnight(self._clock())
            logger.debug(f"[DailyReset] Следующий сброс через {delay:.0f}с")
            await self._sleep(delay)
            await self.run_once()
