"""Модели базы данных (таблицы).

Все модели должны наследоваться от Base (из db.models_base).
"""

from searchdigest.db.models.search_subscription import (
    DigestFrequency,
    SearchCategory,
    SearchSubscription,
)

__all__ = ["DigestFrequency", "SearchCategory", "SearchSubscription"]
