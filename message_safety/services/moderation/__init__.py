# ============================================================
# МОДУЛЬ MODERATION - ВНЕШНЯЯ МОДЕЛЬ МОДЕРАЦИИ
# ============================================================
# - models: вердикт и категории
# - openai_client: HTTP-клиент модели
# - gateway: кэш + модель + fail open + фоновая проверка
# ============================================================

from message_safety.services.moderation.models import (
    ModerationCategory,
    ModerationVerdict,
    clean_verdict,
    flagged_verdict,
)
from message_safety.services.moderation.openai_client import (
    ModerationAPIError,
    ModelModerationResult,
    OpenAIModerationClient,
)
from message_safety.services.moderation.gateway import ModerationGateway, map_model_result

__all__ = [
    'ModerationCategory',
    'ModerationVerdict',
    'clean_verdict',
    'flagged_verdict',
    'ModerationAPIError',
    'ModelModerationResult',
    'OpenAIModerationClient',
    'ModerationGateway',
    'map_model_result',
]
