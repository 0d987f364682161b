"""Управление жизненным циклом приложения.

Класс ApplicationLifecycle инкапсулирует логику startup и shutdown:
- Создание таблиц для локальной SQLite
- Сборка сервиса дайджестов (очередь, хранилище, провайдер, воркер)
- Запуск воркера, если digest.enabled
- Корректная остановка воркера и закрытие HTTP-клиента провайдера
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from searchdigest.db.base import get_async_session_factory, get_engine, init_models
from searchdigest.providers.discovery.http_provider import create_discovery_provider
from searchdigest.services.digest_service import create_search_digest_service
from searchdigest.utils.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI

    from searchdigest.config.settings import Settings
    from searchdigest.config.yaml_config import YamlConfig
    from searchdigest.providers.discovery.base import DiscoveryProvider
    from searchdigest.services.digest_service import SearchDigestService

logger = get_logger(__name__)


class ApplicationLifecycle:
    """Управление жизненным циклом приложения.

    Attributes:
        settings: Настройки приложения из .env
        yaml_config: Конфигурация из config.yaml
        digest_service: Сервис дайджестов (создаётся при startup)
        provider: Discovery Provider (создаётся при startup)
    """

    def __init__(self, settings: Settings, yaml_config: YamlConfig) -> None:
        """Инициализировать lifecycle manager.

        Args:
            settings: Настройки приложения из .env
            yaml_config: Конфигурация из config.yaml
        """
        self.settings = settings
        self.yaml_config = yaml_config

        self.digest_service: SearchDigestService | None = None
        self.provider: DiscoveryProvider | None = None

    async def startup(self, app: FastAPI) -> None:
        """Выполнить startup приложения.

        1. Таблицы для локальной SQLite (PostgreSQL ведёт основное приложение)
        2. Discovery Provider и сервис дайджестов
        3. Запуск воркера (если digest.enabled)

        Args:
            app: FastAPI приложение для сохранения сервиса в app.state
        """
        logger.info("Запуск приложения...")

        if not self.settings.database.postgres_url:
            await init_models(get_engine())
            logger.debug("Таблицы локальной SQLite проверены")

        self.provider = create_discovery_provider(self.settings.discovery)
        self.digest_service = create_search_digest_service(
            session_factory=get_async_session_factory(),
            provider=self.provider,
            config=self.yaml_config.digest,
        )

        # Сервис доступен из API endpoints через app.state
        app.state.digest_service = self.digest_service

        if self.yaml_config.digest.enabled:
            result = await self.digest_service.start_worker()
            logger.info(
                "✅ Воркер дайджестов запущен (interval=%d мс)", result["interval_ms"]
            )
        else:
            logger.info("Воркер дайджестов отключён (digest.enabled=false)")

        logger.info("✅ Приложение запущено успешно")

    async def shutdown(self) -> None:
        """Выполнить shutdown приложения.

        Останавливает компоненты в обратном порядке:
        1. Воркер дайджестов (текущий тик доработает)
        2. HTTP-клиент провайдера
        """
        logger.info("Остановка приложения...")

        if self.digest_service is not None:
            result = await self.digest_service.stop_worker()
            if result["stopped"]:
                logger.debug("Воркер дайджестов остановлен")

        if self.provider is not None:
            await self.provider.close()
            logger.debug("HTTP-клиент Discovery API закрыт")

        logger.info("✅ Приложение остановлено")
