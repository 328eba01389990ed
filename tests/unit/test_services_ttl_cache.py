# ============================================================
# Unit-тесты для TTLCache
# ============================================================
# - get/set и истечение TTL
# - ленивое и проактивное удаление
# - ограничение размера
# - ключ кэша вердиктов
# ============================================================

import pytest

from message_safety.services.ttl_cache import TTLCache, moderation_cache_key


class TestTTLCacheBasic:
    """Базовое поведение get/set."""

    def test_get_missing_key_returns_none(self, cache):
        assert cache.get("missing") is None

    def test_value_returned_until_ttl_elapses(self, cache, clock):
        cache.set("k", {"v": 1}, ttl_seconds=10)
        # Повторные чтения до истечения TTL возвращают одно и то же значение
        for _ in range(3):
            assert cache.get("k") == {"v": 1}
            clock.advance(3)
        # 9 секунд прошло - всё ещё живо
        assert cache.get("k") == {"v": 1}

    def test_exact_expiry_moment_still_returns_value(self, cache, clock):
        # Запись удаляется только когда now > expires_at
        cache.set("k", "v", ttl_seconds=10)
        clock.advance(10)
        assert cache.get("k") == "v"

    def test_expired_entry_removed_on_read(self, cache, clock):
        cache.set("k", "v", ttl_seconds=10)
        clock.advance(10.5)
        assert cache.get("k") is None
        # После ленивого удаления ключа просто нет
        assert len(cache) == 0
        assert cache.get("k") is None

    def test_set_overwrites_value_and_ttl(self, cache, clock):
        cache.set("k", "old", ttl_seconds=5)
        clock.advance(4)
        cache.set("k", "new", ttl_seconds=5)
        clock.advance(4)
        assert cache.get("k") == "new"

    def test_delete(self, cache):
        cache.set("k", "v", ttl_seconds=5)
        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.get("k") is None

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_non_positive_ttl_rejected(self, cache, ttl):
        with pytest.raises(ValueError):
            cache.set("k", "v", ttl_seconds=ttl)


class TestTTLCacheEviction:
    """Проактивная очистка и ограничение размера."""

    def test_sweep_expired_removes_only_expired(self, cache, clock):
        cache.set("short", 1, ttl_seconds=1)
        cache.set("long", 2, ttl_seconds=100)
        clock.advance(5)
        assert cache.sweep_expired() == 1
        assert cache.get("long") == 2
        assert len(cache) == 1

    def test_max_entries_evicts_oldest_inserted(self, clock):
        cache = TTLCache(max_entries=2, clock=clock)
        cache.set("a", 1, ttl_seconds=100)
        cache.set("b", 2, ttl_seconds=100)
        cache.set("c", 3, ttl_seconds=100)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert cache.stats()["evictions"] == 1

    def test_max_entries_prefers_expired_entries(self, clock):
        cache = TTLCache(max_entries=2, clock=clock)
        cache.set("old", 1, ttl_seconds=100)
        cache.set("stale", 2, ttl_seconds=1)
        clock.advance(2)
        cache.set("new", 3, ttl_seconds=100)
        # Вытеснена просроченная запись, а не самая старая живая
        assert cache.get("old") == 1
        assert cache.get("new") == 3
        assert cache.stats()["evictions"] == 0

    def test_expired_head_is_dropped_without_full_sweep(self, clock, monkeypatch):
        cache = TTLCache(max_entries=3, clock=clock)
        for key in ("a", "b", "c"):
            cache.set(key, key, ttl_seconds=10)
        sweeps = []
        monkeypatch.setattr(cache, "sweep_expired", lambda: sweeps.append(1) or 0)

        clock.advance(11)
        cache.set("d", "d", ttl_seconds=10)

        assert sweeps == []
        assert len(cache) == 1
        assert cache.get("d") == "d"
        assert cache.stats()["evictions"] == 0

    def test_full_cache_does_not_sweep_on_every_insert(self, clock, monkeypatch):
        cache = TTLCache(max_entries=100, clock=clock)
        for i in range(100):
            cache.set(f"k{i}", i, ttl_seconds=3600)

        original_sweep = cache.sweep_expired
        sweeps = []

        def counting_sweep():
            sweeps.append(1)
            return original_sweep()

        monkeypatch.setattr(cache, "sweep_expired", counting_sweep)

        for i in range(500):
            cache.set(f"new{i}", i, ttl_seconds=3600)

        # Полный проход по словарю - один на интервал, а не на каждую вставку
        assert len(sweeps) == 1
        assert len(cache) == 100
        assert cache.stats()["evictions"] == 500

        clock.advance(61)
        cache.set("later", 0, ttl_seconds=3600)
        assert len(sweeps) == 2

    def test_overwrite_does_not_evict(self, clock):
        cache = TTLCache(max_entries=2, clock=clock)
        cache.set("a", 1, ttl_seconds=100)
        cache.set("b", 2, ttl_seconds=100)
        cache.set("a", 10, ttl_seconds=100)
        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_stats_counts_hits_and_misses(self, cache):
        cache.set("k", "v", ttl_seconds=5)
        cache.get("k")
        cache.get("nope")
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1


class TestModerationCacheKey:
    """Ключ кэша вердиктов по содержимому."""

    def test_same_text_same_key(self):
        assert moderation_cache_key("hello there") == moderation_cache_key("hello there")

    def test_different_text_different_key(self):
        assert moderation_cache_key("hello there") != moderation_cache_key("hello there!")

    def test_key_format(self):
        key = moderation_cache_key("hello")
        prefix, digest = key.split(":")
        assert prefix == "moderation"
        # 64-битный хэш = 16 hex-символов
        assert len(digest) == 16
