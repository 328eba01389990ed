# ============================================================
# МОДЕЛИ МОДЕРАЦИИ - ВЕРДИКТ И КАТЕГОРИИ
# ============================================================
# ModerationVerdict - неизменяемый результат проверки текста.
# Его возвращают валидатор, пре-фильтр и шлюз модерации,
# он же лежит в кэше вердиктов.
# ============================================================

from enum import Enum
from typing import NamedTuple, Optional


class ModerationCategory(str, Enum):
    """Категории нарушений (значения совпадают со строками API приложения)."""

    SCAM_ATTEMPT = "scam_attempt"
    SEXUAL_CONTENT = "sexual_content"
    SPAM = "spam"
    HARASSMENT = "harassment"
    VIOLENCE = "violence"
    HATE_SPEECH = "hate_speech"
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    INVALID_MESSAGE = "invalid_message"


# Тексты для пользователя по категориям
CATEGORY_MESSAGES = {
    ModerationCategory.SCAM_ATTEMPT: "This message contains suspicious content that may be a scam.",
    ModerationCategory.SEXUAL_CONTENT: "This message contains explicit sexual content and cannot be sent.",
    ModerationCategory.SPAM: "This message appears to be spam.",
    ModerationCategory.HARASSMENT: "This message contains inappropriate content and cannot be sent.",
    ModerationCategory.VIOLENCE: "This message contains inappropriate content and cannot be sent.",
    ModerationCategory.HATE_SPEECH: "This message contains inappropriate content and cannot be sent.",
    ModerationCategory.INAPPROPRIATE_CONTENT: "This message contains inappropriate content and cannot be sent.",
    ModerationCategory.INVALID_MESSAGE: "This message cannot be sent.",
}

APPROVED_MESSAGE = "Message approved"


class ModerationVerdict(NamedTuple):
    """
    Результат модерации текста.

    Attributes:
        flagged: True если сообщение нарушает правила
        category: Категория нарушения (None для чистого текста)
        score: Уверенность 0-100
        message: Текст для пользователя
        details: Диагностика (для логов), может быть None
    """
    flagged: bool
    category: Optional[ModerationCategory]
    score: float
    message: str
    details: Optional[str] = None


def clean_verdict(details: Optional[str] = None) -> ModerationVerdict:
    """Вердикт 'нарушений нет' (и для чистого текста, и для fail open)."""
    return ModerationVerdict(
        flagged=False,
        category=None,
        score=0,
        message=APPROVED_MESSAGE,
        details=details,
    )


def flagged_verdict(
    category: ModerationCategory,
    score: float,
    details: Optional[str] = None,
    message: Optional[str] = None,
) -> ModerationVerdict:
    """Вердикт с нарушением; текст для пользователя берётся из CATEGORY_MESSAGES."""
    return ModerationVerdict(
        flagged=True,
        category=category,
        score=score,
        message=message or CATEGORY_MESSAGES[category],
        details=details,
    )
