"""Метрики выполнения поисков.

Планировщик дайджестов сообщает о каждом успешном поиске через
SearchMetricsRecorder. В основном приложении маркетплейса запись уходит
в аналитику; здесь по умолчанию используется LoggingMetricsRecorder,
который пишет одну строку в лог.
"""

from collections import deque
from dataclasses import asdict, dataclass
from typing import Protocol

from searchdigest.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SearchExecution:
    """Факт выполнения поиска.

    Attributes:
        surface: Поверхность, инициировавшая поиск (subscription_digest).
        category: Категория поиска.
        duration_ms: Длительность вызова провайдера (мс).
        result_count: Количество найденных результатов (total).
        user_id: ID владельца подписки.
    """

    surface: str
    category: str
    duration_ms: float
    result_count: int
    user_id: int


class SearchMetricsRecorder(Protocol):
    """Протокол приёмника метрик поиска (для DI и тестирования)."""

    async def record_search_execution(self, execution: SearchExecution) -> None:
        """Записать факт выполнения поиска."""
        ...


class LoggingMetricsRecorder:
    """Приёмник метрик, который пишет их в лог.

    Хранит последние записи в памяти (executions) — удобно для тестов
    и для просмотра в отладочной консоли.
    """

    def __init__(self, keep_last: int = 100) -> None:
        """Создать приёмник.

        Args:
            keep_last: Сколько последних записей хранить в памяти
                (0: не хранить).
        """
        self.executions: deque[SearchExecution] = deque(maxlen=keep_last)

    async def record_search_execution(self, execution: SearchExecution) -> None:
        """Записать факт выполнения поиска в лог."""
        self.executions.append(execution)

        logger.info(
            "search_execution surface=%s category=%s duration_ms=%.1f "
            "result_count=%d user_id=%d",
            execution.surface,
            execution.category,
            execution.duration_ms,
            execution.result_count,
            execution.user_id,
        )

    def as_dicts(self) -> list[dict[str, object]]:
        """Последние записи в виде словарей."""
        return [asdict(execution) for execution in self.executions]
