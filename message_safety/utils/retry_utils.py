# ============================================================
# RETRY UTILS - ПОВТОРНЫЕ ПОПЫТКИ ПРИ СЕТЕВЫХ ОШИБКАХ
# ============================================================
# Используется клиентом модели модерации: сетевые сбои,
# 429 и 5xx повторяются с экспоненциальной задержкой,
# остальные ошибки пробрасываются сразу.
# ============================================================

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import aiohttp

logger = logging.getLogger(__name__)

# Тип для возвращаемого значения
T = TypeVar('T')


class RetryableError(Exception):
    """Ошибка, после которой имеет смысл повторить запрос (429, 5xx)."""
    pass


# Ошибки, которые повторяем
RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    aiohttp.ClientConnectionError,
    aiohttp.ServerTimeoutError,
    # Общий таймаут запроса (aiohttp.ClientTimeout total)
    asyncio.TimeoutError,
    RetryableError,
)


async def retry_on_network_error(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    delay: float = 0.5,
    backoff: float = 2.0,
) -> T:
    """
    Вызывает func() с повторами при сетевых ошибках.

    func вызывается заново на каждой попытке (корутину нельзя
    ожидать дважды, поэтому передаётся фабрика).

    Args:
        func: Функция без аргументов, возвращающая корутину
        max_retries: Максимальное количество повторных попыток
        delay: Начальная задержка между попытками (секунды)
        backoff: Множитель задержки для каждой следующей попытки

    Returns:
        Результат func()

    Raises:
        Последнее исключение если все попытки неудачны

    Example:
        data = await retry_on_network_error(lambda: client.fetch(text), max_retries=2)
    """
    current_delay = delay

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except RETRYABLE_EXCEPTIONS as e:
            if attempt >= max_retries:
                logger.error(
                    f"[Retry] Все {max_retries + 1} попыток исчерпаны. "
                    f"Последняя ошибка: {e}"
                )
                raise
            logger.warning(
                f"[Retry] Сетевая ошибка (попытка {attempt + 1}/{max_retries + 1}): {e}. "
                f"Повтор через {current_delay:.1f}с..."
            )
            await asyncio.sleep(current_delay)
            current_delay *= backoff

    # Сюда не доходим: последняя попытка либо вернула результат, либо подняла ошибку
    raise RuntimeError("retry_on_network_error: неожиданный выход из цикла")
