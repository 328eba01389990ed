# ============================================================
# МОДУЛЬ CONTENT FILTER - СИНХРОННЫЕ ПРОВЕРКИ ТЕКСТА
# ============================================================
# - message_validator: форма сообщения (длина, капс, ссылки)
# - pre_filter: паттерны скама, откровенного контента и спама
# ============================================================

from message_safety.services.content_filter.message_validator import (
    MessageValidator,
    sanitize_message,
)
from message_safety.services.content_filter.pre_filter import PreFilter, get_pre_filter

__all__ = [
    'MessageValidator',
    'sanitize_message',
    'PreFilter',
    'get_pre_filter',
]
