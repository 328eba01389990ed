# ============================================================
# КЛИЕНТ ВНЕШНЕЙ МОДЕЛИ МОДЕРАЦИИ (OpenAI /moderations)
# ============================================================
# Отправляет текст в модель и возвращает сырые результаты:
# флаги и уверенность по категориям (0-1).
#
# Любая проблема (сеть, таймаут, квота, неожиданный JSON)
# превращается в ModerationAPIError. Решение "пропустить
# сообщение" принимает шлюз, а не клиент.
# ============================================================

import asyncio
import logging
from typing import Dict, NamedTuple, Optional

import aiohttp

from message_safety.utils.retry_utils import RetryableError, retry_on_network_error

logger = logging.getLogger(__name__)


class ModerationAPIError(Exception):
    """Вызов модели модерации не удался."""
    pass


class ModelModerationResult(NamedTuple):
    """
    Сырой ответ модели.

    Attributes:
        flagged: Общий флаг модели
        categories: Флаги по категориям (sexual, harassment, ...)
        category_scores: Уверенность по категориям, 0-1
    """
    flagged: bool
    categories: Dict[str, bool]
    category_scores: Dict[str, float]


class OpenAIModerationClient:
    """
    Асинхронный клиент эндпоинта /moderations.

    Пример использования:
        client = OpenAIModerationClient(api_key="sk-...")
        result = await client.classify("some text")
        await client.close()
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "omni-moderation-latest",
        request_timeout: float = 5.0,
        max_retries: int = 1,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            api_key: Ключ API (пустой ключ - каждый вызов падает с ModerationAPIError)
            base_url: Базовый URL API
            model: Имя модели модерации
            request_timeout: Таймаут одного HTTP-запроса, секунды
            max_retries: Повторы при сетевых ошибках, 429 и 5xx
            session: Внешняя aiohttp-сессия (иначе создаётся своя)
        """
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/moderations"
        self._model = model
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._max_retries = max_retries
        self._session = session
        # Закрываем только сессию, которую создали сами
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Закрывает собственную HTTP-сессию."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def classify(self, text: str) -> ModelModerationResult:
        """
        Отправляет текст в модель модерации.

        Args:
            text: Текст сообщения

        Returns:
            ModelModerationResult

        Raises:
            ModerationAPIError: При любой ошибке вызова
        """
        if not self._api_key:
            raise ModerationAPIError("OPENAI_API_KEY не задан")

        try:
            data = await retry_on_network_error(
                lambda: self._post(text),
                max_retries=self._max_retries,
            )
        except ModerationAPIError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, RetryableError) as e:
            raise ModerationAPIError(f"Ошибка запроса к модели: {e}") from e

        return self._parse(data)

    async def _post(self, text: str) -> dict:
        session = await self._get_session()
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {"model": self._model, "input": text}

        async with session.post(self._url, json=payload, headers=headers, timeout=self._timeout) as resp:
            if resp.status == 429 or resp.status >= 500:
                body = await resp.text()
                raise RetryableError(f"HTTP {resp.status}: {body[:200]}")
            if resp.status != 200:
                body = await resp.text()
                raise ModerationAPIError(f"HTTP {resp.status}: {body[:200]}")
            try:
                return await resp.json()
            except (aiohttp.ContentTypeError, ValueError) as e:
                raise ModerationAPIError(f"Некорректный JSON в ответе: {e}") from e

    @staticmethod
    def _parse(data: dict) -> ModelModerationResult:
        try:
            result = data["results"][0]
            categories = {name: bool(value) for name, value in result["categories"].items()}
            scores = {name: float(value) for name, value in result["category_scores"].items()}
            flagged = bool(result["flagged"])
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise ModerationAPIError(f"Неожиданный формат ответа модели: {e}") from e

        return ModelModerationResult(flagged=flagged, categories=categories, category_scores=scores)
