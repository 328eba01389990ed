# ============================================================
# MESSAGE VALIDATOR - ПРОВЕРКА ФОРМЫ СООБЩЕНИЯ
# ============================================================
# Дешёвые проверки, которые не смотрят на смысл текста:
# - пустое сообщение
# - слишком длинное сообщение
# - один символ повторён 10+ раз подряд
# - почти весь текст капсом
# - больше двух ссылок
# ============================================================

import logging
import re
from typing import Optional

from message_safety.services.moderation.models import (
    ModerationCategory,
    ModerationVerdict,
    flagged_verdict,
)

logger = logging.getLogger(__name__)

# Ограничения формы
MAX_MESSAGE_LENGTH = 1000
MAX_LINKS = 2
# Доля заглавных букв, выше которой текст считается "криком"
MAX_CAPS_RATIO = 0.7
CAPS_MIN_LENGTH = 10
VALIDATION_SCORE = 70

REPEATED_CHAR_PATTERN = re.compile(r'(.)\1{9,}')
CAPS_PATTERN = re.compile(r'[A-Z]')
LINK_PATTERN = re.compile(r'https?://')
WHITESPACE_PATTERN = re.compile(r'\s+')


def sanitize_message(text: str) -> str:
    """
    Обрезает пробелы по краям, схлопывает пробелы и ограничивает длину.

    Для вызывающего кода: нормализует текст уже одобренного сообщения
    перед сохранением. evaluate_send его не применяет, чтобы проверки
    формы видели исходный текст (иначе длинное сообщение молча
    обрезалось бы вместо отказа).
    """
    return WHITESPACE_PATTERN.sub(' ', text.strip())[:MAX_MESSAGE_LENGTH]


class MessageValidator:
    """
    Проверка формы сообщения до контентных фильтров.

    Пример использования:
        verdict = MessageValidator().validate("AAAAAAAAAAAAAAA")
        if verdict is not None:
            print(verdict.message)
    """

    def validate(self, text: str) -> Optional[ModerationVerdict]:
        """
        Args:
            text: Текст сообщения

        Returns:
            ModerationVerdict с нарушением или None если форма в порядке
        """
        if not isinstance(text, str):
            raise TypeError(f"text должен быть str, получено: {type(text).__name__}")

        if not text.strip():
            return self._reject(ModerationCategory.INVALID_MESSAGE, "Message cannot be empty")

        if len(text) > MAX_MESSAGE_LENGTH:
            return self._reject(
                ModerationCategory.INVALID_MESSAGE,
                f"Message is too long (max {MAX_MESSAGE_LENGTH} characters)",
            )

        if REPEATED_CHAR_PATTERN.search(text):
            return self._reject(ModerationCategory.SPAM, "Message contains too many repeated characters")

        caps_count = len(CAPS_PATTERN.findall(text))
        if len(text) > CAPS_MIN_LENGTH and caps_count > len(text) * MAX_CAPS_RATIO:
            return self._reject(ModerationCategory.SPAM, "Please don't use excessive capitalization")

        if len(LINK_PATTERN.findall(text)) > MAX_LINKS:
            return self._reject(ModerationCategory.SPAM, "Too many links in message")

        return None

    @staticmethod
    def _reject(category: ModerationCategory, reason: str) -> ModerationVerdict:
        logger.debug(f"[MessageValidator] Отклонено: {reason}")
        return flagged_verdict(category, VALIDATION_SCORE, details=reason, message=reason)
