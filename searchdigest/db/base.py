"""Базовая конфигурация SQLAlchemy.

Этот модуль отвечает за:
- Создание подключения к базе данных (engine)
- Настройку фабрики сессий (async_sessionmaker)
- Создание таблиц для локальной разработки (init_models)

Как это работает:
1. При первом обращении создаётся engine — пул соединений с БД
2. async_sessionmaker — фабрика для создания сессий
3. Хранилище подписок открывает свою сессию на каждую операцию

URL базы данных:
- Если DATABASE__POSTGRES_URL указан — используется PostgreSQL
- Иначе — SQLite (./data/digest.db)

ВАЖНО: Для изоляции тестов engine и async_session_factory создаются лениво.
Импорт Base для моделей должен быть из searchdigest.db.models_base.
"""

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from searchdigest.config.constants import DATA_DIR
from searchdigest.db.models_base import Base

__all__ = [
    "Base",
    "get_async_session_factory",
    "get_engine",
    "init_models",
]

if TYPE_CHECKING:
    from searchdigest.config.settings import Settings

# Ленивые синглтоны для engine и session factory
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _get_settings() -> "Settings":
    """Ленивая загрузка настроек.

    Позволяет тестам импортировать модуль без загрузки настроек из .env файла.
    """
    from searchdigest.config.settings import settings

    return settings


def _get_database_url() -> str:
    """Получить URL подключения к базе данных (async).

    Логика выбора:
    1. Если DATABASE__POSTGRES_URL указан — используем PostgreSQL
    2. Иначе — SQLite из DATA_DIR/digest.db

    Returns:
        URL подключения в формате SQLAlchemy (с async-драйвером).
    """
    settings = _get_settings()
    if settings.database.postgres_url:
        return settings.database.postgres_url

    db_path = DATA_DIR / "digest.db"
    return f"sqlite+aiosqlite:///{db_path}"


def get_engine() -> AsyncEngine:
    """Получить асинхронный engine (ленивая инициализация).

    Returns:
        Асинхронный Engine для SQLAlchemy.
    """
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            _get_database_url(),
            echo=False,
            pool_pre_ping=True,
        )
    return _engine


def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """Получить фабрику асинхронных сессий (ленивая инициализация).

    expire_on_commit=False — не "протухать" объекты после commit.

    Returns:
        Фабрика асинхронных сессий SQLAlchemy.
    """
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def init_models(engine: AsyncEngine) -> None:
    """Создать недостающие таблицы.

    Схемой продакшен-БД управляет основное приложение маркетплейса,
    здесь таблицы создаются только для локальной SQLite.

    Args:
        engine: Асинхронный engine.
    """
    # Импорт регистрирует модели в Base.metadata
    from searchdigest.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

