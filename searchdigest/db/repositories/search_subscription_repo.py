"""Репозиторий для работы с подписками на сохранённые поиски.

Основные операции:
- Создание подписки (сидинг, тесты)
- Получение подписки по ID
- Выборка просроченных подписок для планировщика дайджестов
- Обновление расписания (last_triggered_at, next_run_at)
- Список подписок пользователя для сводки расписания
"""

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from searchdigest.db.models.search_subscription import (
    DigestFrequency,
    SearchCategory,
    SearchSubscription,
)
from searchdigest.utils.logging import get_logger

logger = get_logger(__name__)


class SearchSubscriptionRepository:
    """Репозиторий для работы с таблицей search_subscriptions.

    Репозиторий не делает commit — транзакцией управляет вызывающий код
    (SqlSubscriptionStore или тест).

    Attributes:
        _session: Асинхронная сессия SQLAlchemy.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Инициализация репозитория.

        Args:
            session: Асинхронная сессия SQLAlchemy.
        """
        self._session = session

    async def create(  # noqa: PLR0913
        self,
        *,
        user_id: int,
        category: str = SearchCategory.MIXED,
        query: str | None = None,
        filters: dict[str, Any] | None = None,
        frequency: str = DigestFrequency.DAILY,
        next_run_at: datetime | None = None,
        name: str | None = None,
        notify_by_email: bool = False,
        notify_in_app: bool = True,
    ) -> SearchSubscription:
        """Создать подписку на сохранённый поиск.

        Args:
            user_id: ID владельца.
            category: Категория поиска.
            query: Строка запроса.
            filters: Фильтры поиска.
            frequency: Частота дайджеста.
            next_run_at: Время первого запуска (None — вне расписания).
            name: Название для интерфейса.
            notify_by_email: Отправлять дайджест на email.
            notify_in_app: Показывать дайджест в приложении.

        Returns:
            Созданный объект SearchSubscription.
        """
        subscription = SearchSubscription(
            user_id=user_id,
            name=name,
            category=category,
            query=query,
            filters=filters,
            frequency=frequency,
            next_run_at=next_run_at,
            notify_by_email=notify_by_email,
            notify_in_app=notify_in_app,
        )
        self._session.add(subscription)
        await self._session.flush()
        await self._session.refresh(subscription)

        logger.info(
            "Создана подписка на поиск: id=%s, user_id=%s, category=%s, frequency=%s",
            subscription.id,
            user_id,
            category,
            frequency,
        )

        return subscription

    async def get_by_id(self, subscription_id: int) -> SearchSubscription | None:
        """Получить подписку по ID.

        Args:
            subscription_id: ID подписки.

        Returns:
            SearchSubscription или None если не найдена.
        """
        stmt = select(SearchSubscription).where(
            SearchSubscription.id == subscription_id
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_due(
        self,
        now: datetime,
        *,
        limit: int = 10,
    ) -> list[SearchSubscription]:
        """Найти подписки, которым пора выполниться.

        Условие: next_run_at <= now.
        Порядок: сначала самые давно просроченные (next_run_at ASC),
        при равенстве — давно не обновлявшиеся (updated_at ASC).

        Args:
            now: Текущий момент.
            limit: Максимальное количество записей.

        Returns:
            Список просроченных подписок.
        """
        stmt = (
            select(SearchSubscription)
            .where(
                SearchSubscription.next_run_at.is_not(None),
                SearchSubscription.next_run_at <= now,
            )
            .order_by(
                SearchSubscription.next_run_at.asc(),
                SearchSubscription.updated_at.asc(),
            )
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_schedule(
        self,
        subscription_id: int,
        *,
        last_triggered_at: datetime,
        next_run_at: datetime,
    ) -> bool:
        """Записать результат выполнения в расписание подписки.

        Args:
            subscription_id: ID подписки.
            last_triggered_at: Момент выполнения поиска.
            next_run_at: Следующий запуск.

        Returns:
            True если запись обновлена, False если подписки уже нет.
        """
        stmt = (
            update(SearchSubscription)
            .where(SearchSubscription.id == subscription_id)
            .values(last_triggered_at=last_triggered_at, next_run_at=next_run_at)
        )
        result = await self._session.execute(stmt)
        updated = bool(result.rowcount)

        logger.debug(
            "Расписание подписки id=%s обновлено: next_run_at=%s, updated=%s",
            subscription_id,
            next_run_at,
            updated,
        )

        return updated

    async def get_user_subscriptions(
        self,
        user_id: int,
        *,
        limit: int = 50,
    ) -> list[SearchSubscription]:
        """Получить подписки пользователя.

        Args:
            user_id: ID пользователя.
            limit: Максимальное количество записей.

        Returns:
            Подписки, отсортированные по updated_at DESC, id DESC.
        """
        stmt = (
            select(SearchSubscription)
            .where(SearchSubscription.user_id == user_id)
            .order_by(
                SearchSubscription.updated_at.desc(),
                SearchSubscription.id.desc(),
            )
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
