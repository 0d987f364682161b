"""Factory для создания FastAPI приложения.

Функция create_app() создаёт и настраивает FastAPI app:
- Подключает роутеры (health)
- Подключает lifecycle manager (воркер дайджестов)
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from searchdigest import __version__
from searchdigest.api.health import router as health_router
from searchdigest.app.lifecycle import ApplicationLifecycle
from searchdigest.config.settings import settings
from searchdigest.config.yaml_config import yaml_config


def create_app() -> FastAPI:
    """Создать и настроить FastAPI приложение.

    Returns:
        Настроенное FastAPI приложение готовое к запуску
    """
    lifecycle = ApplicationLifecycle(settings, yaml_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Управление жизненным циклом приложения.

        Args:
            app: FastAPI приложение

        Yields:
            None: Приложение работает между startup и shutdown
        """
        await lifecycle.startup(app)

        yield

        await lifecycle.shutdown()

    app = FastAPI(
        title="Search Digest",
        description="Планировщик дайджестов сохранённых поисков",
        version=__version__,
        lifespan=lifespan,
    )

    # Health check API: /health
    app.include_router(health_router)

    return app
