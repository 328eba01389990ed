import asyncio
import logging
from typing import Any, Optional, Set

import aiohttp

from message_safety.config import MODERATION_LOG_WEBHOOK_URL

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
# Сколько символов пользовательского текста можно показать в журнале
PREVIEW_LENGTH = 50


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Настраивает корневой логгер: консольный обработчик с общим форматом."""
    root = logging.getLogger()
    root.setLevel(level)

    # Повторный вызов не должен дублировать вывод
    for handler in root.handlers:
        if getattr(handler, "_message_safety_console", False):
            return root

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler._message_safety_console = True
    root.addHandler(console_handler)

    # aiohttp пишет слишком много на INFO
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    return root


def preview(text: Optional[str]) -> str:
    """Обрезает пользовательский текст для логов."""
    if not text:
        return ""
    return text if len(text) <= PREVIEW_LENGTH else text[:PREVIEW_LENGTH] + "…"


# ==== ЖУРНАЛ ИНЦИДЕНТОВ МОДЕРАЦИИ ====

async def send_formatted_log(message: str) -> None:
    """Отправляет строку журнала инцидентов в канал логов (webhook)"""
    if not MODERATION_LOG_WEBHOOK_URL:
        return

    payload = {"text": message}

    async with aiohttp.ClientSession() as session:
        try:
            resp = await session.post(MODERATION_LOG_WEBHOOK_URL, json=payload)
            if resp.status >= 300:
                text = await resp.text()
                logger.warning(f"❌ Ошибка канала логов: {resp.status} — {text[:200]}")
        except Exception as e:
            logger.warning(f"❌ Ошибка при отправке лога в канал: {e}")


# Незавершённые отправки в канал логов (сильные ссылки до завершения)
_pending_logs: Set[asyncio.Task] = set()


def _dispatch(message: str) -> None:
    # Без запущенного event loop пишем только в консоль
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    task = loop.create_task(send_formatted_log(message))
    _pending_logs.add(task)
    task.add_done_callback(_pending_logs.discard)


async def drain_logs() -> None:
    """Дожидается отправки всех строк журнала (вызывать при остановке)."""
    loop = asyncio.get_running_loop()
    pending = [task for task in _pending_logs if task.get_loop() is loop]
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


def log_message_blocked(user_id: str, stage: str, reason: str, category: Any = None) -> None:
    """Логирует отклонённое сообщение с хэштегами"""
    category_value = getattr(category, "value", category)
    msg = (
        f"🚫 #СООБЩЕНИЕ_ОТКЛОНЕНО 🔴\n"
        f"• Кто: {user_id}\n"
        f"• Этап: {stage}\n"
        f"• Категория: {category_value or '-'}\n"
        f"• Причина: {reason}\n"
        f"#user{user_id} #{stage}"
    )
    logger.info(f"[MessageSafety] Отклонено: user={user_id}, stage={stage}, category={category_value}")
    _dispatch(msg)


def log_message_retracted(message_id: Any, verdict) -> None:
    """Логирует сообщение, отозванное фоновой модерацией"""
    category_value = getattr(verdict.category, "value", verdict.category)
    msg = (
        f"🗑 #СООБЩЕНИЕ_ОТОЗВАНО 🟠\n"
        f"• Сообщение: {message_id}\n"
        f"• Категория: {category_value}\n"
        f"• Score: {verdict.score}\n"
        f"#msg{message_id} #фоновая_модерация"
    )
    logger.warning(f"[MessageSafety] Фоновая модерация отозвала message={message_id}: {category_value}")
    _dispatch(msg)
