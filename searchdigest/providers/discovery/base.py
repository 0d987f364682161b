"""Базовый интерфейс Discovery Provider.

Discovery Provider выполняет поиск по одной категории каталога
маркетплейса (вакансии, гиги, проекты, ...) или смешанный поиск
по всем категориям сразу.

Паттерн: Adapter (GoF) + Strategy — воркер дайджестов работает
с любым провайдером через один интерфейс.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from searchdigest.core.exceptions import DiscoveryError
from searchdigest.db.models.search_subscription import SearchCategory

# Лимит смешанного поиска по умолчанию (суммарно по всем категориям)
DEFAULT_MIXED_LIMIT = 30


@dataclass
class DiscoveryResult:
    """Результат поиска.

    Attributes:
        items: Найденные записи (формат зависит от категории).
        total: Общее количество совпадений.
        metrics: Служебные метрики провайдера (время ответа, источник).
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    metrics: dict[str, Any] = field(default_factory=dict)


SearchMethod = Callable[
    [str, dict[str, Any], int, int], Awaitable[DiscoveryResult]
]


class DiscoveryProvider(ABC):
    """Абстрактный провайдер поиска по каталогу.

    Для добавления нового провайдера:
    1. Унаследуйте DiscoveryProvider
    2. Реализуйте search_* для всех категорий и search_mixed()
    3. Опционально переопределите close()
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Название провайдера (для логов и ошибок)."""

    @abstractmethod
    async def search_jobs(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        """Поиск вакансий."""

    @abstractmethod
    async def search_gigs(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        """Поиск гигов."""

    @abstractmethod
    async def search_projects(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        """Поиск проектов."""

    @abstractmethod
    async def search_launchpads(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        """Поиск программ Launchpad."""

    @abstractmethod
    async def search_volunteering(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        """Поиск волонтёрских возможностей."""

    @abstractmethod
    async def search_people(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        """Поиск людей по справочнику (поиск по строке)."""

    @abstractmethod
    async def search_mixed(
        self,
        query: str,
        filters: dict[str, Any],
        page: int,
        page_size: int,
        *,
        limit: int = DEFAULT_MIXED_LIMIT,
    ) -> DiscoveryResult:
        """Смешанный поиск по всем категориям.

        Args:
            query: Строка поиска.
            filters: Фильтры подписки.
            page: Номер страницы (с 1).
            page_size: Размер страницы.
            limit: Суммарный лимит записей по всем категориям.
        """

    async def search(  # noqa: PLR0913
        self,
        category: SearchCategory,
        query: str,
        filters: dict[str, Any],
        page: int,
        page_size: int,
        *,
        mixed_limit: int = DEFAULT_MIXED_LIMIT,
    ) -> DiscoveryResult:
        """Выполнить поиск по категории.

        Args:
            category: Каноническая категория (см. normalize_category).
            query: Строка поиска.
            filters: Фильтры подписки.
            page: Номер страницы.
            page_size: Размер страницы.
            mixed_limit: Лимит для смешанного поиска.

        Returns:
            Результат поиска.

        Raises:
            DiscoveryError: Если категория не поддерживается провайдером
                или поиск завершился ошибкой.
        """
        if category == SearchCategory.MIXED:
            return await self.search_mixed(
                query, filters, page, page_size, limit=mixed_limit
            )

        methods: dict[SearchCategory, SearchMethod] = {
            SearchCategory.JOB: self.search_jobs,
            SearchCategory.GIG: self.search_gigs,
            SearchCategory.PROJECT: self.search_projects,
            SearchCategory.LAUNCHPAD: self.search_launchpads,
            SearchCategory.VOLUNTEERING: self.search_volunteering,
            SearchCategory.PEOPLE: self.search_people,
        }
        method = methods.get(category)
        if method is None:
            raise DiscoveryError(
                f"Категория не поддерживается: {category}",
                provider=self.provider_name,
                category=str(category),
                is_retryable=False,
            )
        return await method(query, filters, page, page_size)

    async def close(self) -> None:  # noqa: B027
        """Освободить ресурсы провайдера (HTTP-клиенты и т.д.)."""
