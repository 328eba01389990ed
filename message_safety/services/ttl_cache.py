# ============================================================
# TTL CACHE - КЭШ В ПАМЯТИ С ВРЕМЕНЕМ ЖИЗНИ ЗАПИСЕЙ
# ============================================================
# Простое хранилище ключ -> значение. У каждой записи свой
# срок жизни (expires_at).
#
# Удаление просроченных записей:
# 1. Лениво - get() видит просроченную запись и удаляет её
# 2. Проактивно - sweep_expired() проходит по всем ключам
# 3. По размеру - при превышении max_entries сначала удаляются
#    просроченные записи в начале порядка вставки, полный проход
#    sweep_expired() не чаще раза в SWEEP_INTERVAL, иначе
#    вытесняется самая старая по времени вставки запись
#
# Кэш НЕ потокобезопасен: рассчитан на один event loop,
# где get/set выполняются без точек переключения.
# ============================================================

import hashlib
import logging
import time
from typing import Any, Callable, Dict, NamedTuple, Optional

logger = logging.getLogger(__name__)

# Префикс ключей кэша вердиктов модерации
MODERATION_KEY_PREFIX = "moderation"

# Минимальный интервал между полными проходами при вставке в полный кэш, секунды
SWEEP_INTERVAL = 60.0


class CacheEntry(NamedTuple):
    """Запись кэша: значение и абсолютное время истечения (по clock())."""
    value: Any
    expires_at: float


def moderation_cache_key(text: str) -> str:
    """
    Формирует ключ кэша вердикта по содержимому сообщения.

    Используем 64-битный blake2b: криптостойкость не нужна,
    важна низкая вероятность коллизий при небольшом ключе.

    Args:
        text: Текст сообщения

    Returns:
        Ключ вида moderation:<16 hex>
    """
    digest = hashlib.blake2b(text.encode("utf-8"), digest_size=8).hexdigest()
    return f"{MODERATION_KEY_PREFIX}:{digest}"


class TTLCache:
    """
    Кэш с TTL на каждую запись.

    Пример использования:
        cache = TTLCache(max_entries=1000)
        cache.set("key", {"a": 1}, ttl_seconds=60)
        value = cache.get("key")  # None после истечения TTL
    """

    def __init__(
        self,
        max_entries: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            max_entries: Максимум записей (0 = без ограничения)
            clock: Источник времени в секундах (подменяется в тестах)
        """
        if max_entries < 0:
            raise ValueError("max_entries не может быть отрицательным")
        self._entries: Dict[str, CacheEntry] = {}
        self._max_entries = max_entries
        self._clock = clock
        # Счётчики для наблюдаемости
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        # Время последнего полного прохода sweep_expired()
        self._last_sweep: Optional[float] = None

    def get(self, key: str) -> Optional[Any]:
        """
        Возвращает значение или None, если записи нет или она истекла.

        Просроченная запись удаляется при чтении.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._clock() > entry.expires_at:
            # Ленивое удаление просроченной записи
            del self._entries[key]
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """
        Сохраняет значение, перезаписывая существующую запись.

        Args:
            key: Ключ
            value: Значение
            ttl_seconds: Время жизни в секундах (> 0)
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds должен быть положительным, получено: {ttl_seconds}")

        # Перезапись двигает ключ в конец порядка вставки
        self._entries.pop(key, None)

        if self._max_entries and len(self._entries) >= self._max_entries:
            self._evict_for_insert()

        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)

    def delete(self, key: str) -> bool:
        """Удаляет запись. Возвращает True если она была."""
        return self._entries.pop(key, None) is not None

    def sweep_expired(self) -> int:
        """
        Удаляет все просроченные записи.

        Returns:
            Количество удалённых записей
        """
        now = self._clock()
        self._last_sweep = now
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"[TTLCache] Удалено просроченных записей: {len(expired)}")
        return len(expired)

    def _evict_for_insert(self) -> None:
        now = self._clock()

        # При одинаковом TTL записи истекают в порядке вставки:
        # проверяем только начало словаря
        freed = 0
        while self._entries:
            oldest_key = next(iter(self._entries))
            if now <= self._entries[oldest_key].expires_at:
                break
            del self._entries[oldest_key]
            freed += 1
        if freed:
            return

        # Записи с разным TTL: полный проход, но не на каждой вставке
        if self._last_sweep is None or now - self._last_sweep >= SWEEP_INTERVAL:
            if self.sweep_expired():
                return

        oldest_key = next(iter(self._entries))
        del self._entries[oldest_key]
        self._evictions += 1

    def stats(self) -> Dict[str, int]:
        """Статистика кэша: размер, попадания, промахи, вытеснения."""
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }

    def __len__(self) -> int:
        return len(self._entries)
