"""HTTP-провайдер поиска через Discovery API маркетплейса.

Каждая категория — отдельный сегмент API:
    GET {base_url}/discovery/{segment}?q=...&page=...&pageSize=...

Особые случаи:
- people — поиск по справочнику, строка передаётся в параметре term
- mixed — смешанный поиск, дополнительно передаётся limit

Ожидаемый формат ответа:
    {"items": [...], "total": 42, "metrics": {...}}

Смешанный поиск может вернуть плоский ответ (items или results)
либо ответ, сгруппированный по категориям:
    {"jobs": {"items": [...], "total": 3}, "gigs": {...}}
В этом случае записи объединяются, а total суммируется.

Документация API: см. Discovery API маркетплейса (раздел /discovery)
"""

import json
from typing import Any

import httpx
from typing_extensions import override

from searchdigest.config.models import DiscoverySettings
from searchdigest.core.exceptions import DiscoveryError
from searchdigest.providers.discovery.base import (
    DEFAULT_MIXED_LIMIT,
    DiscoveryProvider,
    DiscoveryResult,
)
from searchdigest.utils.logging import get_logger

logger = get_logger(__name__)

# Таймаут HTTP-запросов по умолчанию (секунды)
DEFAULT_TIMEOUT_SECONDS = 15.0

# HTTP-статусы, при которых запрос имеет смысл повторить
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class HttpDiscoveryProvider(DiscoveryProvider):
    """Провайдер поиска поверх Discovery API (httpx).

    Пример использования:
        provider = HttpDiscoveryProvider(
            base_url="http://localhost:4000/api",
            api_key="secret",
        )
        result = await provider.search_jobs("python", {}, 1, 10)
        await provider.close()
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Создать провайдер.

        Args:
            base_url: Базовый URL API маркетплейса.
            api_key: Сервисный токен (передаётся как Bearer).
            timeout: Таймаут HTTP-запросов в секундах.
            transport: Транспорт httpx (для тестов — httpx.MockTransport).
        """
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    @override
    def provider_name(self) -> str:
        """Название провайдера."""
        return "http_discovery"

    @override
    async def search_jobs(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        return await self._search("jobs", query, filters, page, page_size)

    @override
    async def search_gigs(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        return await self._search("gigs", query, filters, page, page_size)

    @override
    async def search_projects(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        return await self._search("projects", query, filters, page, page_size)

    @override
    async def search_launchpads(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        return await self._search("launchpads", query, filters, page, page_size)

    @override
    async def search_volunteering(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        return await self._search("volunteering", query, filters, page, page_size)

    @override
    async def search_people(
        self, query: str, filters: dict[str, Any], page: int, page_size: int
    ) -> DiscoveryResult:
        """Поиск людей: справочник ищет по параметру term, а не q."""
        params = self._build_params(query, filters, page, page_size, query_key="term")
        payload = await self._get("people", params)
        return self._parse_result(payload, segment="people")

    @override
    async def search_mixed(
        self,
        query: str,
        filters: dict[str, Any],
        page: int,
        page_size: int,
        *,
        limit: int = DEFAULT_MIXED_LIMIT,
    ) -> DiscoveryResult:
        """Смешанный поиск по всем категориям."""
        params = self._build_params(query, filters, page, page_size)
        params["limit"] = str(limit)
        payload = await self._get("mixed", params)

        if "items" in payload or "results" in payload:
            return self._parse_result(payload, segment="mixed")

        # Ответ сгруппирован по категориям
        items: list[dict[str, Any]] = []
        total = 0
        for category, section in payload.items():
            if not isinstance(section, dict):
                continue
            section_result = self._parse_result(section, segment=category)
            items.extend(
                {"category": category, **item} for item in section_result.items
            )
            total += section_result.total

        return DiscoveryResult(
            items=items[:limit],
            total=total,
            metrics={"source": self.provider_name, "segment": "mixed"},
        )

    async def _search(
        self,
        segment: str,
        query: str,
        filters: dict[str, Any],
        page: int,
        page_size: int,
    ) -> DiscoveryResult:
        params = self._build_params(query, filters, page, page_size)
        payload = await self._get(segment, params)
        return self._parse_result(payload, segment=segment)

    def _build_params(
        self,
        query: str,
        filters: dict[str, Any],
        page: int,
        page_size: int,
        *,
        query_key: str = "q",
    ) -> dict[str, str]:
        """Собрать query-параметры запроса.

        Фильтры передаются одной JSON-строкой в параметре filters.
        """
        params = {
            query_key: query or "",
            "page": str(page),
            "pageSize": str(page_size),
        }
        if filters:
            params["filters"] = json.dumps(filters, ensure_ascii=False, default=str)
        return params

    async def _get(self, segment: str, params: dict[str, str]) -> dict[str, Any]:
        """Выполнить GET-запрос к сегменту и вернуть JSON-объект.

        Raises:
            DiscoveryError: HTTP-ошибка, сетевой сбой или некорректный ответ.
        """
        try:
            response = await self._client.get(f"/discovery/{segment}", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(
                "Discovery API вернул ошибку: segment=%s, status=%d",
                segment,
                status_code,
            )
            raise DiscoveryError(
                f"Discovery API вернул {status_code} для /discovery/{segment}",
                provider=self.provider_name,
                category=segment,
                status_code=status_code,
                is_retryable=status_code in RETRYABLE_STATUS_CODES,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Сетевая ошибка Discovery API: segment=%s, error=%s", segment, e)
            raise DiscoveryError(
                f"Сетевая ошибка Discovery API: {e}",
                provider=self.provider_name,
                category=segment,
                is_retryable=True,
                original_error=e,
            ) from e
        except ValueError as e:
            raise DiscoveryError(
                f"Некорректный JSON от Discovery API: {e}",
                provider=self.provider_name,
                category=segment,
                is_retryable=False,
                original_error=e,
            ) from e

        if not isinstance(payload, dict):
            raise DiscoveryError(
                "Ответ Discovery API должен быть JSON-объектом",
                provider=self.provider_name,
                category=segment,
                is_retryable=False,
            )
        return payload

    def _parse_result(self, payload: dict[str, Any], *, segment: str) -> DiscoveryResult:
        """Преобразовать JSON-ответ в DiscoveryResult.

        Если total не пришёл — берётся количество записей.
        """
        raw_items = payload.get("items")
        if raw_items is None:
            raw_items = payload.get("results", [])
        items = [item for item in raw_items if isinstance(item, dict)]

        total = payload.get("total")
        if not isinstance(total, int) or isinstance(total, bool):
            total = len(items)

        metrics = dict(payload.get("metrics") or {})
        metrics.setdefault("source", self.provider_name)
        metrics.setdefault("segment", segment)

        return DiscoveryResult(items=items, total=total, metrics=metrics)

    @override
    async def close(self) -> None:
        """Закрыть HTTP-клиент."""
        await self._client.aclose()


def create_discovery_provider(settings: DiscoverySettings) -> HttpDiscoveryProvider:
    """Создать HTTP-провайдер из настроек DISCOVERY__*."""
    api_key = settings.api_key.get_secret_value() if settings.api_key else None
    logger.debug("Discovery API: base_url=%s, api_key=%s", settings.base_url, bool(api_key))
    return HttpDiscoveryProvider(
        base_url=settings.base_url,
        api_key=api_key,
        timeout=settings.timeout_seconds,
    )
