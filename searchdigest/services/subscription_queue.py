"""Очередь задач дайджестов сохранённых поисков.

Ограниченная по размеру FIFO-очередь с дедупликацией по subscription_id:
- В очереди не больше одной задачи на подписку
- Повторная постановка подписки перезаписывает задачу на её месте,
  позиция в очереди не меняется (задача не уходит в конец)
- drain() выдаёт задачи строго в порядке постановки, priority не учитывается

Реализация:
OrderedDict одновременно хранит порядок и индекс "ключ → слот":
присваивание по существующему ключу не меняет позицию, а
popitem(last=False) снимает задачу с головы очереди. Переиндексация
оставшихся слотов после drain не нужна.

Все мутации защищены threading.Lock — ручная постановка из потока
обработчика может пересечься с тиком планировщика.

Пример использования:
    queue = SubscriptionQueue(max_size=100)
    queue.enqueue(42, user_id=7, reason=JobReason.MANUAL)
    jobs = queue.drain(limit=10)
"""

import threading
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from searchdigest.core.exceptions import CapacityExceededError, DigestValidationError
from searchdigest.utils.logging import get_logger
from searchdigest.utils.timezone import isoformat_or_none, utc_now

logger = get_logger(__name__)

# Ёмкость очереди по умолчанию
DEFAULT_QUEUE_MAX_SIZE = 500

# Сколько задач забирает drain() по умолчанию
DEFAULT_DRAIN_LIMIT = 10

# Приоритет задачи по умолчанию (на порядок не влияет)
DEFAULT_PRIORITY = 5


class JobReason(StrEnum):
    """Причина постановки задачи в очередь."""

    MANUAL = "manual"
    SCHEDULED_RUN = "scheduled_run"


@dataclass
class SubscriptionJob:
    """Задача на выполнение сохранённого поиска.

    Attributes:
        id: Ключ задачи: "{subscription_id}:{enqueued_at в мс}".
        subscription_id: ID подписки (ключ дедупликации).
        user_id: ID владельца подписки.
        reason: Причина постановки (manual или scheduled_run).
        priority: Приоритет. Хранится, но порядок выборки не меняет.
        payload: Произвольные данные вызывающей стороны.
        enqueued_at: Время последней постановки.
        attempts: Счётчик попыток; сбрасывается при перезаписи задачи.
    """

    id: str
    subscription_id: int
    user_id: int
    reason: JobReason
    priority: int = DEFAULT_PRIORITY
    payload: dict[str, Any] = field(default_factory=dict)
    enqueued_at: datetime = field(default_factory=utc_now)
    attempts: int = 0


@dataclass(frozen=True)
class QueueSnapshot:
    """Снимок состояния очереди.

    Attributes:
        pending: Количество задач в очереди.
        max_size: Ёмкость очереди.
        oldest_enqueued_at: enqueued_at задачи в голове очереди.
        newest_enqueued_at: enqueued_at задачи в хвосте очереди.
    """

    pending: int
    max_size: int
    oldest_enqueued_at: datetime | None
    newest_enqueued_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        """Сериализовать снимок для JSON-ответов."""
        return {
            "pending": self.pending,
            "max_size": self.max_size,
            "oldest_enqueued_at": isoformat_or_none(self.oldest_enqueued_at),
            "newest_enqueued_at": isoformat_or_none(self.newest_enqueued_at),
        }


def _is_positive_int(value: object) -> bool:
    """Проверить, что значение — положительное целое (bool не считается)."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _build_job_id(subscription_id: int, enqueued_at: datetime) -> str:
    """Сформировать ключ задачи из ID подписки и времени постановки."""
    return f"{subscription_id}:{int(enqueued_at.timestamp() * 1000)}"


class SubscriptionQueue:
    """Ограниченная FIFO-очередь задач с дедупликацией по подписке.

    Attributes:
        _jobs: Задачи в порядке постановки, ключ — subscription_id.
        _max_size: Текущая ёмкость.
        _default_max_size: Ёмкость, к которой возвращает reset().
        _lock: Блокировка для всех мутаций.
    """

    def __init__(self, max_size: int = DEFAULT_QUEUE_MAX_SIZE) -> None:
        """Создать очередь.

        Args:
            max_size: Ёмкость очереди (положительное целое).

        Raises:
            DigestValidationError: Если max_size не положительное целое.
        """
        if not _is_positive_int(max_size):
            raise DigestValidationError("max_size", max_size)

        self._jobs: OrderedDict[int, SubscriptionJob] = OrderedDict()
        self._max_size = max_size
        self._default_max_size = max_size
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        """Текущая ёмкость очереди."""
        return self._max_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, subscription_id: object) -> bool:
        with self._lock:
            return subscription_id in self._jobs

    def configure(self, size_cap: int) -> QueueSnapshot:
        """Изменить ёмкость очереди.

        Если новая ёмкость меньше текущей длины — лишние задачи
        отбрасываются с головы очереди (самые старые первыми).

        Args:
            size_cap: Новая ёмкость (положительное целое).

        Returns:
            Снимок очереди после изменения.

        Raises:
            DigestValidationError: Если size_cap не положительное целое.
        """
        if not _is_positive_int(size_cap):
            raise DigestValidationError("size_cap", size_cap)

        with self._lock:
            self._max_size = size_cap
            trimmed: list[SubscriptionJob] = []
            while len(self._jobs) > self._max_size:
                _, job = self._jobs.popitem(last=False)
                trimmed.append(job)

        if trimmed:
            logger.warning(
                "Ёмкость очереди уменьшена до %d, отброшено задач: %d (subscription_ids=%s)",
                size_cap,
                len(trimmed),
                [job.subscription_id for job in trimmed],
            )
        else:
            logger.info("Ёмкость очереди дайджестов: %d", size_cap)

        return self.snapshot()

    def enqueue(  # noqa: PLR0913
        self,
        subscription_id: int,
        user_id: int,
        reason: JobReason | str,
        priority: int = DEFAULT_PRIORITY,
        payload: dict[str, Any] | None = None,
    ) -> SubscriptionJob:
        """Поставить подписку в очередь.

        Если подписка уже в очереди — задача перезаписывается на месте:
        позиция сохраняется, attempts сбрасывается в 0, enqueued_at и
        остальные поля берутся из нового вызова.

        Args:
            subscription_id: ID подписки (положительное целое).
            user_id: ID владельца (положительное целое).
            reason: Причина постановки (manual или scheduled_run).
            priority: Приоритет (на порядок не влияет).
            payload: Произвольные данные; копируются.

        Returns:
            Задача, находящаяся в очереди после вызова.

        Raises:
            DigestValidationError: Некорректные ID или причина.
            CapacityExceededError: Очередь заполнена, а подписки в ней нет.
        """
        if not _is_positive_int(subscription_id):
            raise DigestValidationError("subscription_id", subscription_id)
        if not _is_positive_int(user_id):
            raise DigestValidationError("user_id", user_id)
        try:
            job_reason = JobReason(reason)
        except ValueError:
            raise DigestValidationError("reason", reason) from None

        enqueued_at = utc_now()
        job = SubscriptionJob(
            id=_build_job_id(subscription_id, enqueued_at),
            subscription_id=subscription_id,
            user_id=user_id,
            reason=job_reason,
            priority=priority,
            payload=dict(payload or {}),
            enqueued_at=enqueued_at,
            attempts=0,
        )

        with self._lock:
            replaced = subscription_id in self._jobs
            if not replaced and len(self._jobs) >= self._max_size:
                raise CapacityExceededError(subscription_id, self._max_size)
            # Присваивание по существующему ключу сохраняет позицию в OrderedDict
            self._jobs[subscription_id] = job

        if replaced:
            logger.debug(
                "Задача подписки id=%d перезаписана на месте (reason=%s)",
                subscription_id,
                job_reason,
            )
        else:
            logger.debug(
                "Подписка id=%d поставлена в очередь (reason=%s, user_id=%d)",
                subscription_id,
                job_reason,
                user_id,
            )

        return replace(job)

    def drain(self, limit: int = DEFAULT_DRAIN_LIMIT) -> list[SubscriptionJob]:
        """Забрать до limit задач с головы очереди.

        Порядок строго FIFO, priority не учитывается.

        Args:
            limit: Максимальное количество задач.

        Returns:
            Снятые задачи в порядке снятия.
        """
        jobs: list[SubscriptionJob] = []
        if limit <= 0:
            return jobs

        with self._lock:
            while self._jobs and len(jobs) < limit:
                _, job = self._jobs.popitem(last=False)
                jobs.append(job)

        return jobs

    def snapshot(self) -> QueueSnapshot:
        """Получить снимок состояния очереди."""
        with self._lock:
            if not self._jobs:
                return QueueSnapshot(
                    pending=0,
                    max_size=self._max_size,
                    oldest_enqueued_at=None,
                    newest_enqueued_at=None,
                )
            head = next(iter(self._jobs.values()))
            tail = next(reversed(self._jobs.values()))
            return QueueSnapshot(
                pending=len(self._jobs),
                max_size=self._max_size,
                oldest_enqueued_at=head.enqueued_at,
                newest_enqueued_at=tail.enqueued_at,
            )

    def reset(self) -> None:
        """Очистить очередь и вернуть ёмкость по умолчанию.

        Служебная операция для тестов и ручного обслуживания.
        """
        with self._lock:
            self._jobs.clear()
            self._max_size = self._default_max_size

        logger.info("Очередь дайджестов сброшена (max_size=%d)", self._max_size)
