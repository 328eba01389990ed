import os
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Всегда ищем .env относительно корня проекта
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Определяем окружение
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Получаем путь до .env файла в зависимости от окружения
if ENVIRONMENT == "production":
    env_file = ".env.prod"
elif ENVIRONMENT == "testing":
    env_file = ".env.test"
else:
    env_file = ".env.dev"

# Проверяем, есть ли переменная ENV_PATH (для Docker)
env_path = os.getenv("ENV_PATH")
if not env_path:
    env_path = os.path.join(BASE_DIR, env_file)

# Загружаем .env файл (отсутствие файла не ошибка - берём переменные окружения)
load_dotenv(dotenv_path=env_path)

# ============================================================
# ВНЕШНЯЯ МОДЕЛЬ МОДЕРАЦИИ
# ============================================================
# Пустой ключ означает, что каждый вызов модели завершится ошибкой
# и шлюз модерации пропустит сообщение (fail open)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/")
MODERATION_MODEL = os.getenv("MODERATION_MODEL", "omni-moderation-latest")
MODERATION_TIMEOUT_SECONDS = float(os.getenv("MODERATION_TIMEOUT_SECONDS", "5"))
MODERATION_MAX_RETRIES = int(os.getenv("MODERATION_MAX_RETRIES", "1"))
# Таймаут одного HTTP-запроса: общий бюджет делится на все попытки,
# иначе одна зависшая попытка съедает весь бюджет и повторов не будет
MODERATION_REQUEST_TIMEOUT_SECONDS = float(
    os.getenv("MODERATION_REQUEST_TIMEOUT_SECONDS")
    or MODERATION_TIMEOUT_SECONDS / (max(MODERATION_MAX_RETRIES, 0) + 1)
)

# ============================================================
# КЭШ ВЕРДИКТОВ
# ============================================================
MODERATION_CACHE_TTL = int(os.getenv("MODERATION_CACHE_TTL", "3600"))
# 0 = без ограничения размера
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "10000"))

# ============================================================
# СЧЁТЧИКИ СООБЩЕНИЙ
# ============================================================
# memory - счётчики в памяти процесса, redis - общие для всех воркеров
RATE_COUNTER_BACKEND = os.getenv("RATE_COUNTER_BACKEND", "memory").lower()
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
# Ключи счётчиков в Redis живут 2 суток, дальше удаляются сами
RATE_COUNTER_KEY_TTL = int(os.getenv("RATE_COUNTER_KEY_TTL", "172800"))

# Настройки логирования
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
# Канал для журнала инцидентов модерации (POST JSON), пусто - только консоль
MODERATION_LOG_WEBHOOK_URL = os.getenv("MODERATION_LOG_WEBHOOK_URL", "")

# Валидация параметров
if RATE_COUNTER_BACKEND not in ("memory", "redis"):
    raise ValueError(f"RATE_COUNTER_BACKEND должен быть memory или redis, получено: {RATE_COUNTER_BACKEND}")
if MODERATION_MAX_RETRIES < 0:
    raise ValueError("MODERATION_MAX_RETRIES не может быть отрицательным")
if MODERATION_REQUEST_TIMEOUT_SECONDS <= 0:
    raise ValueError("MODERATION_REQUEST_TIMEOUT_SECONDS должен быть положительным")
if MODERATION_CACHE_TTL <= 0:
    raise ValueError("MODERATION_CACHE_TTL должен быть положительным")
if CACHE_MAX_ENTRIES < 0:
    raise ValueError("CACHE_MAX_ENTRIES не может быть отрицательным")

logger.debug(f"[Config] Окружение: {ENVIRONMENT}, env: {os.path.abspath(env_path)}")
logger.debug(f"[Config] OPENAI_API_KEY: {'*' * 8 + OPENAI_API_KEY[-4:] if OPENAI_API_KEY else 'NOT SET'}")
logger.debug(f"[Config] RATE_COUNTER_BACKEND: {RATE_COUNTER_BACKEND}")
