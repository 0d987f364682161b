"""Репозитории для работы с БД."""

from searchdigest.db.repositories.search_subscription_repo import (
    SearchSubscriptionRepository,
)

__all__ = ["SearchSubscriptionRepository"]
