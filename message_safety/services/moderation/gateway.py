# ============================================================
# MODERATION GATEWAY - ШЛЮЗ К ВНЕШНЕЙ МОДЕЛИ МОДЕРАЦИИ
# ============================================================
# Алгоритм moderate(text):
# 1. Ключ кэша = 64-битный хэш текста; попадание - сразу ответ
# 2. Промах - вызываем внешнюю модель
# 3. Категории модели сводим к категориям приложения по приоритету:
#    sexual > harassment > violence > hate > inappropriate_content
#    score = максимум уверенности по категориям * 100
# 4. Вердикт (с нарушением или чистый) кладём в кэш на час
# 5. Любая ошибка модели - сообщение ПРОПУСКАЕМ (fail open),
#    причина только в details и в логе
#
# moderate_async() - фоновая проверка уже отправленного сообщения:
# при нарушении вызывается on_flagged(message_id, verdict).
# ============================================================

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set, Tuple, Union

from message_safety.services.moderation.models import (
    ModerationCategory,
    ModerationVerdict,
    clean_verdict,
    flagged_verdict,
)
from message_safety.services.moderation.openai_client import ModelModerationResult
from message_safety.services.ttl_cache import TTLCache, moderation_cache_key
from message_safety.utils.logger import log_message_retracted, preview

logger = logging.getLogger(__name__)

# Время жизни вердикта в кэше по умолчанию (1 час)
DEFAULT_CACHE_TTL = 3600

# Приоритет категорий: первая сработавшая группа определяет категорию
CATEGORY_PRIORITY: Tuple[Tuple[Tuple[str, ...], ModerationCategory], ...] = (
    (("sexual", "sexual/minors"), ModerationCategory.SEXUAL_CONTENT),
    (("harassment", "harassment/threatening"), ModerationCategory.HARASSMENT),
    (("violence", "violence/graphic"), ModerationCategory.VIOLENCE),
    (("hate", "hate/threatening"), ModerationCategory.HATE_SPEECH),
)

# Колбэк позднего отклонения: может быть обычной функцией или корутиной
OnFlagged = Callable[[Any, ModerationVerdict], Union[None, Awaitable[None]]]


def map_model_result(result: ModelModerationResult) -> ModerationVerdict:
    """
    Переводит ответ модели в вердикт приложения.

    Args:
        result: Сырой ответ модели

    Returns:
        ModerationVerdict
    """
    if not result.flagged:
        return clean_verdict()

    category = ModerationCategory.INAPPROPRIATE_CONTENT
    for names, mapped in CATEGORY_PRIORITY:
        if any(result.categories.get(name) for name in names):
            category = mapped
            break

    max_score = max(result.category_scores.values(), default=0.0)
    return flagged_verdict(
        category,
        round(max_score * 100, 2),
        details=f"Flagged for: {category.value}",
    )


class ModerationGateway:
    """
    Кэш + внешняя модель + fail open.

    Пример использования:
        gateway = ModerationGateway(client, TTLCache())
        verdict = await gateway.moderate("hello")
    """

    def __init__(
        self,
        client,
        cache: TTLCache,
        cache_ttl: int = DEFAULT_CACHE_TTL,
        timeout: Optional[float] = 5.0,
    ):
        """
        Args:
            client: Клиент модели с методом async classify(text) -> ModelModerationResult
            cache: Кэш вердиктов
            cache_ttl: Время жизни вердикта в кэше, секунды
            timeout: Общий таймаут вызова модели (None - без таймаута)
        """
        self._client = client
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        # Сильные ссылки на фоновые задачи, иначе их может собрать GC
        self._background_tasks: Set[asyncio.Task] = set()

    async def moderate(self, text: str) -> ModerationVerdict:
        """
        Проверяет текст внешней моделью (с кэшем).

        Args:
            text: Текст сообщения

        Returns:
            ModerationVerdict; при сбое модели - чистый вердикт
        """
        if not isinstance(text, str):
            raise TypeError(f"text должен быть str, получено: {type(text).__name__}")

        # ─────────────────────────────────────────────────────────
        # ШАГ 1: Кэш
        # ─────────────────────────────────────────────────────────
        cache_key = moderation_cache_key(text)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug(f"[ModerationGateway] Попадание в кэш: {cache_key}")
            return cached

        # ─────────────────────────────────────────────────────────
        # ШАГ 2: Внешняя модель
        # ─────────────────────────────────────────────────────────
        try:
            if self._timeout is not None:
                result = await asyncio.wait_for(self._client.classify(text), timeout=self._timeout)
            else:
                result = await self._client.classify(text)
        except asyncio.TimeoutError:
            logger.error(f"[ModerationGateway] Таймаут модели ({self._timeout}с), сообщение пропущено")
            return clean_verdict(details=f"Moderation check failed: timeout after {self._timeout}s")
        except Exception as e:
            # Сбой инфраструктуры не должен блокировать переписку
            logger.error(f"[ModerationGateway] Ошибка модели: {e}, сообщение пропущено")
            return clean_verdict(details=f"Moderation check failed: {e}")

        # ─────────────────────────────────────────────────────────
        # ШАГ 3-4: Категория, score и кэш
        # ─────────────────────────────────────────────────────────
        verdict = map_model_result(result)
        self._cache.set(cache_key, verdict, self._cache_ttl)

        if verdict.flagged:
            logger.info(
                f"[ModerationGateway] Нарушение: category={verdict.category.value}, "
                f"score={verdict.score}, text={preview(text)!r}"
            )
        return verdict

    def moderate_async(self, message_id: Any, text: str, on_flagged: OnFlagged) -> asyncio.Task:
        """
        Запускает фоновую модерацию уже отправленного сообщения.

        Колбэк может вызваться, когда собеседник уже увидел сообщение,
        поэтому он должен быть безопасен при повторном/позднем вызове.

        Args:
            message_id: ID сообщения в хранилище приложения
            text: Текст сообщения
            on_flagged: Вызывается как on_flagged(message_id, verdict) при нарушении

        Returns:
            asyncio.Task фоновой проверки
        """
        if not callable(on_flagged):
            raise TypeError("on_flagged должен быть вызываемым")
        if not isinstance(text, str):
            raise TypeError(f"text должен быть str, получено: {type(text).__name__}")

        task = asyncio.create_task(
            self._moderate_and_report(message_id, text, on_flagged),
            name=f"moderation-{message_id}",
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _moderate_and_report(
        self,
        message_id: Any,
        text: str,
        on_flagged: OnFlagged,
    ) -> ModerationVerdict:
        verdict = await self.moderate(text)
        if not verdict.flagged:
            return verdict

        log_message_retracted(message_id, verdict)
        try:
            outcome = on_flagged(message_id, verdict)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"[ModerationGateway] Ошибка колбэка on_flagged для message={message_id}: {e}")
        return verdict

    @property
    def pending(self) -> int:
        """Количество незавершённых фоновых проверок."""
        return len(self._background_tasks)

    async def drain(self) -> None:
        """Дожидается всех фоновых проверок (для корректной остановки)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
