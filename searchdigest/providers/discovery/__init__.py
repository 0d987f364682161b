"""Discovery Provider — поиск по каталогу маркетплейса.

Планировщик дайджестов выполняет сохранённые поиски через единый
интерфейс DiscoveryProvider. Каждой категории соответствует свой метод
(search_jobs, search_gigs, ...), а search() выбирает метод по категории.

Пример использования:
    from searchdigest.providers.discovery import HttpDiscoveryProvider

    provider = HttpDiscoveryProvider(base_url="http://localhost:4000/api")
    result = await provider.search(SearchCategory.JOB, "python", {}, 1, 10)
    print(result.total)
"""

from searchdigest.core.exceptions import DiscoveryError
from searchdigest.providers.discovery.base import DiscoveryProvider, DiscoveryResult
from searchdigest.providers.discovery.http_provider import (
    HttpDiscoveryProvider,
    create_discovery_provider,
)

__all__ = [
    "DiscoveryError",
    "DiscoveryProvider",
    "DiscoveryResult",
    "HttpDiscoveryProvider",
    "create_discovery_provider",
]
