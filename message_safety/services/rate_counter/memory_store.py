# ============================================================
# RATE COUNTER STORE - СЧЁТЧИКИ СООБЩЕНИЙ ЗА ДЕНЬ (В ПАМЯТИ)
# ============================================================
# Счётчик сообщений пользователя за текущие сутки.
#
# Ключ: msg_count:{user_id}:{YYYY-MM-DD}
# Дата берётся из UTC-часов процесса, часовой пояс пользователя
# не учитывается.
#
# Корректность подсчёта зависит только от даты в ключе:
# вчерашние ключи просто перестают читаться, а reset_daily()
# лишь освобождает память.
# ============================================================

import logging
from datetime import date, datetime, timezone
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Префикс ключей счётчиков
KEY_PREFIX = "msg_count"


def utc_today() -> date:
    """Текущая дата по UTC."""
    return datetime.now(timezone.utc).date()


def counter_key(user_id: str, day: date) -> str:
    """Формирует ключ счётчика пользователя за день."""
    return f"{KEY_PREFIX}:{user_id}:{day.isoformat()}"


def check_user_id(user_id: str) -> None:
    # Пустой user_id - ошибка интеграции, а не пользовательский ввод
    if not isinstance(user_id, str) or not user_id:
        raise ValueError(f"user_id должен быть непустой строкой, получено: {user_id!r}")


class MemoryRateCounterStore:
    """
    Счётчики сообщений в памяти процесса.

    Методы объявлены async, чтобы совпадать по интерфейсу
    с RedisRateCounterStore; внутри они не уступают управление.

    Пример использования:
        store = MemoryRateCounterStore()
        await store.increment("user-1")   # 1
        await store.get_count("user-1")   # 1
    """

    def __init__(self, today: Callable[[], date] = utc_today):
        """
        Args:
            today: Источник текущей даты (подменяется в тестах)
        """
        self._today = today
        self._counters: Dict[str, int] = {}

    async def get_count(self, user_id: str) -> int:
        """Количество сообщений пользователя за сегодня (0 если не писал)."""
        check_user_id(user_id)
        return self._counters.get(counter_key(user_id, self._today()), 0)

    async def increment(self, user_id: str) -> int:
        """
        Увеличивает счётчик пользователя за сегодня.

        Returns:
            Новое значение счётчика
        """
        check_user_id(user_id)
        key = counter_key(user_id, self._today())
        new_count = self._counters.get(key, 0) + 1
        self._counters[key] = new_count
        return new_count

    async def reset_daily(self, today: Optional[date] = None) -> int:
        """
        Удаляет счётчики всех дней, кроме сегодняшнего.

        Args:
            today: Дата, которую считать сегодняшней (по умолчанию - текущая)

        Returns:
            Количество удалённых счётчиков
        """
        suffix = (today or self._today()).isoformat()
        stale = [key for key in self._counters if not key.endswith(suffix)]
        for key in stale:
            del self._counters[key]

        logger.info(
            f"[RateCounter] Сброс дневных счётчиков: удалено={len(stale)}, "
            f"активных={len(self._counters)}"
        )
        return len(stale)

    def set_count(self, user_id: str, count: int, day: Optional[date] = None) -> None:
        """Явно выставляет счётчик (для тестов и восстановления состояния)."""
        check_user_id(user_id)
        if count < 0:
            raise ValueError("count не может быть отрицательным")
        self._counters[counter_key(user_id, day or self._today())] = count

    def __len__(self) -> int:
        return len(self._counters)
