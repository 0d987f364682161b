"""Общие фикстуры для всех тестов.

Этот файл содержит pytest-фикстуры, которые используются во всех тестах:
- Тестовая БД SQLite в памяти (для изоляции тестов)
- Асинхронные сессии SQLAlchemy и фабрика сессий для хранилища
- Конфигурация дайджестов с короткими интервалами
- Моки Discovery Provider и приёмника метрик
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from searchdigest.config.yaml_config import DigestConfig
from searchdigest.db.models.search_subscription import (
    DigestFrequency,
    SearchCategory,
    SearchSubscription,
)
from searchdigest.db.models_base import Base
from searchdigest.db.repositories.search_subscription_repo import (
    SearchSubscriptionRepository,
)
from searchdigest.providers.discovery.base import DiscoveryProvider, DiscoveryResult
from searchdigest.services.observability import SearchMetricsRecorder


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Создать тестовый движок SQLAlchemy.

    Использует SQLite в памяти (:memory:) для полной изоляции тестов.
    Для :memory: aiosqlite-диалект использует одно соединение на engine,
    поэтому все сессии теста видят одну и ту же БД.

    Yields:
        Асинхронный движок SQLAlchemy для тестовой БД.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,  # Отключаем логи SQL в тестах
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Фабрика сессий для SqlSubscriptionStore."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Создать асинхронную сессию БД для теста.

    После завершения теста изменения откатываются.

    Yields:
        Асинхронная сессия для работы с тестовой БД.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def create_subscription(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[SearchSubscription]]:
    """Фабрика подписок: создаёт запись в отдельной сессии и коммитит.

    Пример:
        subscription = await create_subscription(next_run_at=now, category="job")
    """

    async def _create(**kwargs: Any) -> SearchSubscription:
        kwargs.setdefault("user_id", 7)
        kwargs.setdefault("category", SearchCategory.JOB)
        kwargs.setdefault("query", "python developer")
        kwargs.setdefault("frequency", DigestFrequency.DAILY)
        async with session_factory() as session:
            subscription = await SearchSubscriptionRepository(session).create(**kwargs)
            await session.commit()
            return subscription

    return _create


@pytest.fixture
def digest_config() -> DigestConfig:
    """Конфигурация дайджестов для тестов."""
    return DigestConfig(
        enabled=True,
        interval_seconds=5,
        batch_size=10,
        queue_max_size=100,
        default_priority=5,
        mixed_limit=30,
    )


@pytest.fixture
def mock_provider() -> AsyncMock:
    """Мок Discovery Provider: любой поиск возвращает 3 записи."""
    provider = AsyncMock(spec=DiscoveryProvider)
    provider.search.return_value = DiscoveryResult(
        items=[{"id": 1}, {"id": 2}, {"id": 3}],
        total=3,
        metrics={"source": "mock"},
    )
    return provider


@pytest.fixture
def mock_metrics() -> AsyncMock:
    """Мок приёмника метрик."""
    return AsyncMock(spec=SearchMetricsRecorder)


def _make_subscription(
    subscription_id: int,
    *,
    next_run_at: datetime | None,
    user_id: int = 7,
    category: str = SearchCategory.JOB,
    frequency: str = DigestFrequency.DAILY,
    query: str = "python developer",
    **kwargs: Any,
) -> SearchSubscription:
    """Создать объект подписки без БД (для моков хранилища)."""
    return SearchSubscription(
        id=subscription_id,
        user_id=user_id,
        category=category,
        frequency=frequency,
        query=query,
        filters=kwargs.pop("filters", {}),
        next_run_at=next_run_at,
        **kwargs,
    )


@pytest.fixture
def make_subscription() -> Callable[..., SearchSubscription]:
    """Фабрика объектов подписки без БД (для моков хранилища)."""
    return _make_subscription
