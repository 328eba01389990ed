# ============================================================
# PRE-FILTER - МГНОВЕННЫЙ ФИЛЬТР ПО РЕГУЛЯРНЫМ ВЫРАЖЕНИЯМ
# ============================================================
# Синхронная проверка без сетевых вызовов. Отсекает явный
# скам, откровенный сексуальный контент и копипаст-спам до
# обращения к внешней модели.
#
# Порядок проверки важен, возвращается ПЕРВОЕ совпадение:
# 1. Скам (score 95) - раньше откровенного контента, потому что
#    скам часто содержит сексуальную приманку, а категория
#    скама точнее и серьёзнее
# 2. Откровенный сексуальный контент (score 90)
# 3. Спам: длина > 50 и подстрока от 10 символов повторена
#    3+ раза подряд (score 80)
#
# None означает "не ясно, передать в шлюз модерации",
# а НЕ "сообщение одобрено".
# ============================================================

import logging
import re
from typing import Dict, List, Optional, Tuple

from message_safety.services.moderation.models import (
    ModerationCategory,
    ModerationVerdict,
    flagged_verdict,
)

logger = logging.getLogger(__name__)

# Баллы по категориям
SCAM_SCORE = 95
EXPLICIT_SCORE = 90
SPAM_SCORE = 80

# Минимальная длина сообщения для проверки на повторы
SPAM_MIN_LENGTH = 50

# ============================================================
# ПАТТЕРНЫ СКАМА
# ============================================================
# Каждый паттерн содержит:
# - pattern: регулярное выражение
# - description: описание для details и логов
SCAM_PATTERNS: Dict[str, Dict[str, str]] = {
    # Просьбы перевести деньги
    'money_transfer': {
        'pattern': r'\b(send\s+money|wire\s+transfer|western\s+union|moneygram|gift\s+card)',
        'description': 'money transfer request',
    },
    # Увод общения с платформы
    'off_platform_contact': {
        'pattern': r'\b(whatsapp|telegram|kik|snapchat)\s*(me|at|number)',
        'description': 'off-platform contact',
    },
    # Содержанки и финансовое доминирование
    'sugar_findom': {
        'pattern': r'\b(sugar\s+daddy|sugar\s+baby|findom|financial\s+domination)',
        'description': 'sugar/financial domination',
    },
    # Крипта и "инвестиции"
    'crypto_investment': {
        'pattern': r'\b(bitcoin|crypto|investment\s+opportunity)',
        'description': 'crypto/investment pitch',
    },
    # Фишинг платёжных данных под видом проверки
    'card_phishing': {
        'pattern': r'\b(verify\s+age|verify\s+card|credit\s+card\s+info)',
        'description': 'payment details phishing',
    },
    # Срочная помощь деньгами
    'urgent_money': {
        'pattern': r'\b(emergency|sick\s+relative|need\s+urgent|hospital\s+bills)',
        'description': 'urgent money request',
    },
}

# ============================================================
# ПАТТЕРНЫ ОТКРОВЕННОГО КОНТЕНТА
# ============================================================
EXPLICIT_PATTERNS: Dict[str, Dict[str, str]] = {
    'explicit_terms': {
        'pattern': r'\b(sex|fuck|hookup|nudes|naked|dick\s+pic|send\s+pic)',
        'description': 'explicit terms',
    },
    'sexual_solicitation': {
        'pattern': r'\b(horny|dtf|down\s+to\s+fuck|wanna\s+fuck)',
        'description': 'sexual solicitation',
    },
    'adult_content_selling': {
        'pattern': r'\b(onlyfans|premium\s+snap|selling\s+content)',
        'description': 'adult content selling',
    },
}

# Подстрока от 10 символов, повторённая минимум 3 раза подряд
REPEATED_CHUNK_PATTERN = r'(.{10,})\1{2,}'


class PreFilter:
    """
    Классификатор по паттернам. Чистая функция: одинаковый текст
    всегда даёт одинаковый результат.

    Пример использования:
        pre_filter = PreFilter()
        verdict = pre_filter.classify("please wire money via western union now")
        if verdict is not None and verdict.flagged:
            print(verdict.category)  # scam_attempt
    """

    def __init__(self):
        # Компилируем регулярные выражения заранее, сохраняя порядок
        self._scam: List[Tuple[str, re.Pattern]] = [
            (data['description'], re.compile(data['pattern'], re.IGNORECASE))
            for data in SCAM_PATTERNS.values()
        ]
        self._explicit: List[Tuple[str, re.Pattern]] = [
            (data['description'], re.compile(data['pattern'], re.IGNORECASE))
            for data in EXPLICIT_PATTERNS.values()
        ]
        self._repeated_chunk = re.compile(REPEATED_CHUNK_PATTERN)

    def classify(self, text: str) -> Optional[ModerationVerdict]:
        """
        Проверяет текст по всем категориям паттернов.

        Args:
            text: Текст сообщения

        Returns:
            ModerationVerdict при совпадении или None (результат не ясен)
        """
        if not isinstance(text, str):
            raise TypeError(f"text должен быть str, получено: {type(text).__name__}")

        # ─────────────────────────────────────────────────────────
        # ШАГ 1: Скам
        # ─────────────────────────────────────────────────────────
        for description, pattern in self._scam:
            if pattern.search(text):
                logger.info(f"[PreFilter] Скам: {description}")
                return flagged_verdict(
                    ModerationCategory.SCAM_ATTEMPT,
                    SCAM_SCORE,
                    details=f"Message flagged for potential scam indicators: {description}",
                )

        # ─────────────────────────────────────────────────────────
        # ШАГ 2: Откровенный контент
        # ─────────────────────────────────────────────────────────
        for description, pattern in self._explicit:
            if pattern.search(text):
                logger.info(f"[PreFilter] Откровенный контент: {description}")
                return flagged_verdict(
                    ModerationCategory.SEXUAL_CONTENT,
                    EXPLICIT_SCORE,
                    details=f"Message flagged for explicit content: {description}",
                )

        # ─────────────────────────────────────────────────────────
        # ШАГ 3: Копипаст-спам
        # ─────────────────────────────────────────────────────────
        if len(text) > SPAM_MIN_LENGTH and self._repeated_chunk.search(text):
            logger.info("[PreFilter] Спам: повторяющийся фрагмент")
            return flagged_verdict(
                ModerationCategory.SPAM,
                SPAM_SCORE,
                details="Message flagged for repetitive content",
            )

        return None


# Глобальный экземпляр (паттерны компилируются один раз)
_pre_filter: Optional[PreFilter] = None


def get_pre_filter() -> PreFilter:
    """Возвращает общий экземпляр PreFilter."""
    global _pre_filter
    if _pre_filter is None:
        _pre_filter = PreFilter()
    return _pre_filter
