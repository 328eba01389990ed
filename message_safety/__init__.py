"""Проверка безопасности сообщений чата: лимиты, фильтры, модерация."""

__version__ = "0.1.0"
