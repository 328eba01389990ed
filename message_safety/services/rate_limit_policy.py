# ============================================================
# RATE LIMIT POLICY - ДНЕВНЫЕ ЛИМИТЫ СООБЩЕНИЙ
# ============================================================
# Чистая функция: (сообщений сегодня, возраст аккаунта,
# верификация) -> решение. Состояние не меняет.
#
# | Верифицирован | Возраст аккаунта | Лимит в день |
# |---------------|------------------|--------------|
# | да            | любой            | 100          |
# | нет           | < 1 дня          | 5            |
# | нет           | 1-6 дней         | 20           |
# | нет           | >= 7 дней        | 50           |
#
# Лимит - последнее разрешённое значение счётчика:
# limited = message_count_today > limit.
# ============================================================

import logging
from datetime import datetime, timezone
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)


class RateLimitTier(NamedTuple):
    """Ступень лимита: сколько сообщений разрешено и что сказать пользователю."""
    name: str
    daily_limit: int
    reason: str


VERIFIED_TIER = RateLimitTier(
    name="verified",
    daily_limit=100,
    reason="Daily message limit reached. Please try again tomorrow.",
)
NEW_ACCOUNT_TIER = RateLimitTier(
    name="new_account",
    daily_limit=5,
    reason="New accounts are limited to 5 messages per day. "
           "Please verify your account to send more messages.",
)
YOUNG_ACCOUNT_TIER = RateLimitTier(
    name="young_account",
    daily_limit=20,
    reason="Unverified accounts are limited to 20 messages per day. "
           "Please verify your account to send more messages.",
)
UNVERIFIED_TIER = RateLimitTier(
    name="unverified",
    daily_limit=50,
    reason="Unverified accounts are limited to 50 messages per day. "
           "Please verify your account to increase your limit.",
)

# Граница "молодого" аккаунта в днях
YOUNG_ACCOUNT_DAYS = 7


class RateLimitDecision(NamedTuple):
    """
    Решение по лимиту.

    Attributes:
        limited: True если сообщение отправлять нельзя
        reason: Текст для пользователя (пустой если не ограничен)
    """
    limited: bool
    reason: str = ""


def select_tier(account_age_days: int, is_verified: bool) -> RateLimitTier:
    """Выбирает ступень лимита для пользователя."""
    if is_verified:
        return VERIFIED_TIER
    if account_age_days < 1:
        return NEW_ACCOUNT_TIER
    if account_age_days < YOUNG_ACCOUNT_DAYS:
        return YOUNG_ACCOUNT_TIER
    return UNVERIFIED_TIER


def evaluate(message_count_today: int, account_age_days: int, is_verified: bool) -> RateLimitDecision:
    """
    Проверяет, не превышен ли дневной лимит.

    Счётчик нужно прочитать из хранилища непосредственно перед вызовом.

    Args:
        message_count_today: Сколько сообщений уже учтено сегодня
        account_age_days: Полных дней с регистрации
        is_verified: Прошёл ли пользователь верификацию лица

    Returns:
        RateLimitDecision
    """
    if message_count_today < 0:
        raise ValueError(f"message_count_today не может быть отрицательным: {message_count_today}")
    if account_age_days < 0:
        raise ValueError(f"account_age_days не может быть отрицательным: {account_age_days}")

    tier = select_tier(account_age_days, bool(is_verified))
    if message_count_today > tier.daily_limit:
        logger.debug(
            f"[RateLimit] Лимит: tier={tier.name}, count={message_count_today} > {tier.daily_limit}"
        )
        return RateLimitDecision(limited=True, reason=tier.reason)
    return RateLimitDecision(limited=False, reason="")


def account_age_days(created_at: Optional[datetime], now: Optional[datetime] = None) -> int:
    """
    Возраст аккаунта в полных днях.

    Args:
        created_at: Дата регистрации (naive считается UTC); None - аккаунт новый
        now: Текущее время (по умолчанию - сейчас, UTC)

    Returns:
        Количество полных дней (не меньше 0)
    """
    if created_at is None:
        return 0
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0, (now - created_at).days)
