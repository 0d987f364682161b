"""Хранилище подписок для планировщика дайджестов.

Планировщику нужны только три операции над подписками:
- find_due — просроченные подписки (next_run_at <= now)
- find_by_id — подписка целиком
- update_schedule — запись last_triggered_at и next_run_at

SubscriptionStore — протокол этих операций.
SqlSubscriptionStore — реализация поверх SQLAlchemy: на каждый вызов
открывается своя сессия из фабрики, запись коммитится сразу.
Ошибки SQLAlchemy оборачиваются в DatabaseOperationError.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from searchdigest.core.exceptions import DatabaseOperationError
from searchdigest.db.models.search_subscription import SearchSubscription
from searchdigest.db.repositories.search_subscription_repo import (
    SearchSubscriptionRepository,
)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class SubscriptionStore(Protocol):
    """Протокол хранилища подписок (для DI и тестирования)."""

    async def find_due(
        self, now: datetime, limit: int
    ) -> list[SearchSubscription]:
        """Найти просроченные подписки."""
        ...

    async def find_by_id(self, subscription_id: int) -> SearchSubscription | None:
        """Найти подписку по ID."""
        ...

    async def update_schedule(
        self,
        subscription_id: int,
        *,
        last_triggered_at: datetime,
        next_run_at: datetime,
    ) -> None:
        """Обновить расписание подписки."""
        ...

    async def list_for_user(
        self, user_id: int, limit: int = 50
    ) -> list[SearchSubscription]:
        """Подписки пользователя."""
        ...


class SqlSubscriptionStore:
    """Хранилище подписок поверх SQLAlchemy.

    Attributes:
        _session_factory: Фабрика сессий (async_sessionmaker или
            любой callable, возвращающий async context manager).
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        """Создать хранилище.

        Args:
            session_factory: Фабрика асинхронных сессий.
        """
        self._session_factory = session_factory

    async def find_due(
        self, now: datetime, limit: int
    ) -> list[SearchSubscription]:
        """Найти до limit подписок с next_run_at <= now."""
        try:
            async with self._session_factory() as session:
                return await SearchSubscriptionRepository(session).find_due(
                    now, limit=limit
                )
        except SQLAlchemyError as e:
            raise DatabaseOperationError("find_due", e, retryable=True) from e

    async def find_by_id(self, subscription_id: int) -> SearchSubscription | None:
        """Найти подписку по ID (None если её нет)."""
        try:
            async with self._session_factory() as session:
                return await SearchSubscriptionRepository(session).get_by_id(
                    subscription_id
                )
        except SQLAlchemyError as e:
            raise DatabaseOperationError("find_by_id", e, retryable=True) from e

    async def update_schedule(
        self,
        subscription_id: int,
        *,
        last_triggered_at: datetime,
        next_run_at: datetime,
    ) -> None:
        """Записать last_triggered_at и next_run_at и закоммитить."""
        try:
            async with self._session_factory() as session:
                await SearchSubscriptionRepository(session).update_schedule(
                    subscription_id,
                    last_triggered_at=last_triggered_at,
                    next_run_at=next_run_at,
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise DatabaseOperationError("update_schedule", e, retryable=True) from e

    async def list_for_user(
        self, user_id: int, limit: int = 50
    ) -> list[SearchSubscription]:
        """Подписки пользователя (updated_at DESC)."""
        try:
            async with self._session_factory() as session:
                return await SearchSubscriptionRepository(
                    session
                ).get_user_subscriptions(user_id, limit=limit)
        except SQLAlchemyError as e:
            raise DatabaseOperationError("list_for_user", e, retryable=False) from e
