# ============================================================
# MESSAGE SAFETY SERVICE - ПРОВЕРКА СООБЩЕНИЯ ПЕРЕД ОТПРАВКОЙ
# ============================================================
# Этот модуль координирует все проверки исходящего сообщения:
# 1. Дневной лимит (RateLimitPolicy + счётчик)   - stage "rate_limit"
# 2. Форма сообщения (MessageValidator)          - stage "validation"
# 3. Паттерны (PreFilter)                        - stage "pre_filter"
# 4. Внешняя модель (ModerationGateway)          - stage "moderation"
#
# Лимит проверяется первым: если он превышен, контентные
# проверки не вызываются вовсе. Счётчик увеличивается только
# для одобренного сообщения.
#
# Проверка одного пользователя выполняется под asyncio.Lock,
# чтобы два параллельных запроса не прочитали одно и то же
# значение счётчика и не прошли лимит оба.
# ============================================================

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, NamedTuple, Optional


from message_safety.services.content_filter import MessageValidator, PreFilter, get_pre_filter
from message_safety.services.moderation.gateway import ModerationGateway, OnFlagged
from message_safety.services.moderation.models import ModerationVerdict
from message_safety.services.rate_counter.memory_store import check_user_id
from message_safety.services.rate_limit_policy import evaluate
from message_safety.services.ttl_cache import TTLCache
from message_safety.utils.logger import log_message_blocked, preview

logger = logging.getLogger(__name__)

# Этапы, на которых сообщение может быть отклонено
STAGE_RATE_LIMIT = "rate_limit"
STAGE_VALIDATION = "validation"
STAGE_PRE_FILTER = "pre_filter"
STAGE_MODERATION = "moderation"


class SendDecision(NamedTuple):
    """
    Итог проверки сообщения.

    Attributes:
        allowed: True если сообщение можно сохранить и доставить
        reason: Текст для пользователя (только при отказе)
        stage: Этап, на котором сообщение отклонено
        verdict: Вердикт контентной проверки (если она была)
    """
    allowed: bool
    reason: Optional[str] = None
    stage: Optional[str] = None
    verdict: Optional[ModerationVerdict] = None


class MessageSafetyService:
    """
    Точка входа для обработчика отправки сообщения.

    Пример использования:
        decision = await service.evaluate_send("user-1", "hi!", account_age_days=3, is_verified=False)
        if not decision.allowed:
            return 400, decision.reason
        message = save_message(sanitize_message(text), ...)

    Режим "отправить сейчас, отозвать потом":
        decision = await service.evaluate_send(..., defer_moderation=True)
        message = save_message(...)
        service.moderate_async(message.id, text, on_flagged=soft_delete)
    """

    def __init__(
        self,
        cache: TTLCache,
        counter_store,
        gateway: ModerationGateway,
        pre_filter: Optional[PreFilter] = None,
        validator: Optional[MessageValidator] = None,
    ):
        """
        Args:
            cache: Кэш (общий со шлюзом модерации)
            counter_store: Хранилище дневных счётчиков
            gateway: Шлюз к внешней модели
            pre_filter: Фильтр паттернов (по умолчанию - общий экземпляр)
            validator: Проверка формы сообщения
        """
        self._cache = cache
        self._counters = counter_store
        self._gateway = gateway
        self._pre_filter = pre_filter or get_pre_filter()
        self._validator = validator or MessageValidator()
        # Блокировки по пользователям и количество их владельцев/ожидающих
        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _user_lock(self, user_id: str):
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = self._user_locks[user_id] = asyncio.Lock()
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            # Неиспользуемые блокировки удаляем, чтобы словарь не рос
            if self._lock_users[user_id] == 0:
                del self._lock_users[user_id]
                del self._user_locks[user_id]

    async def evaluate_send(
        self,
        user_id: str,
        text: str,
        account_age_days: int,
        is_verified: bool,
        defer_moderation: bool = False,
    ) -> SendDecision:
        """
        Решает, можно ли отправить сообщение.

        Args:
            user_id: ID отправителя
            text: Текст сообщения
            account_age_days: Полных дней с регистрации
            is_verified: Прошёл ли пользователь верификацию
            defer_moderation: Не ждать внешнюю модель (её запустит moderate_async)

        Returns:
            SendDecision
        """
        check_user_id(user_id)
        if not isinstance(text, str):
            raise TypeError(f"text должен быть str, получено: {type(text).__name__}")

        async with self._user_lock(user_id):
            # ─────────────────────────────────────────────────────────
            # ШАГ 1: Дневной лимит (считаем с учётом текущего сообщения)
            # ─────────────────────────────────────────────────────────
            count = await self._counters.get_count(user_id)
            decision = evaluate(count + 1, account_age_days, is_verified)
            if decision.limited:
                log_message_blocked(user_id, STAGE_RATE_LIMIT, decision.reason)
                return SendDecision(allowed=False, reason=decision.reason, stage=STAGE_RATE_LIMIT)

            # ─────────────────────────────────────────────────────────
            # ШАГ 2-3: Форма сообщения и паттерны
            # ─────────────────────────────────────────────────────────
            for stage, check in (
                (STAGE_VALIDATION, self._validator.validate),
                (STAGE_PRE_FILTER, self._pre_filter.classify),
            ):
                verdict = check(text)
                if verdict is not None and verdict.flagged:
                    log_message_blocked(user_id, stage, verdict.details or verdict.message, verdict.category)
                    return SendDecision(allowed=False, reason=verdict.message, stage=stage, verdict=verdict)

            # ─────────────────────────────────────────────────────────
            # ШАГ 4: Внешняя модель (кроме отложенного режима)
            # ─────────────────────────────────────────────────────────
            verdict = None
            if not defer_moderation:
                verdict = await self._gateway.moderate(text)
                if verdict.flagged:
                    log_message_blocked(user_id, STAGE_MODERATION, verdict.details or verdict.message, verdict.category)
                    return SendDecision(allowed=False, reason=verdict.message, stage=STAGE_MODERATION, verdict=verdict)

            # ─────────────────────────────────────────────────────────
            # ШАГ 5: Учитываем одобренное сообщение
            # ─────────────────────────────────────────────────────────
            new_count = await self._counters.increment(user_id)
            logger.debug(f"[MessageSafety] Одобрено: user={user_id}, count={new_count}, text={preview(text)!r}")
            return SendDecision(allowed=True, verdict=verdict)

    def moderate_async(self, message_id: Any, text: str, on_flagged: OnFlagged) -> asyncio.Task:
        """Фоновая модерация уже отправленного сообщения (см. ModerationGateway.moderate_async)."""
        return self._gateway.moderate_async(message_id, text, on_flagged)

    async def drain(self) -> None:
        """Дожидается фоновых проверок."""
        await self._gateway.drain()

    # ==== Примитивы кэша и счётчиков (для тестов и наблюдаемости) ====

    def get_cached(self, key: str) -> Optional[Any]:
        return self._cache.get(key)

    def set_cached(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._cache.set(key, value, ttl_seconds)

    def delete_cached(self, key: str) -> bool:
        return self._cache.delete(key)

    async def get_message_count(self, user_id: str) -> int:
        return await self._counters.get_count(user_id)

    async def increment_message_count(self, user_id: str) -> int:
        return await self._counters.increment(user_id)

    async def reset_daily(self) -> int:
        return await self._counters.reset_daily()
