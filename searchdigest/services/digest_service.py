"""Сервис управления дайджестами сохранённых поисков.

SearchDigestService — единая точка управления подсистемой для хост-
приложения и операторских скриптов:
- Очередь: enqueue_job, drain_jobs, queue_snapshot, configure_queue, reset_queue
- Воркер: start_worker, stop_worker, worker_status
- Оператор: run_subscription_now ("выполнить сейчас")
- Дашборд: schedule_overview — сводка расписания подписок пользователя

create_search_digest_service() собирает сервис целиком: очередь,
хранилище, провайдер, метрики и воркер. Каждый вызов создаёт новые
экземпляры, глобального состояния нет.

Пример использования:
    service = create_search_digest_service()
    await service.start_worker()
    job = await service.run_subscription_now(42)
    overview = await service.schedule_overview(user_id=7)
    await service.stop_worker()
"""

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from searchdigest.config.constants import (
    DUE_SOON_WINDOW_HOURS,
    KEYWORD_HIGHLIGHTS_LIMIT,
    KEYWORD_MIN_LENGTH,
    OVERVIEW_SUBSCRIPTIONS_LIMIT,
    UPCOMING_RUNS_LIMIT,
)
from searchdigest.config.settings import settings
from searchdigest.config.yaml_config import DigestConfig, yaml_config
from searchdigest.core.exceptions import SubscriptionNotFoundError
from searchdigest.db.base import get_async_session_factory
from searchdigest.db.models.search_subscription import DigestFrequency, SearchSubscription
from searchdigest.providers.discovery.base import DiscoveryProvider
from searchdigest.providers.discovery.http_provider import create_discovery_provider
from searchdigest.services.digest_worker import SubscriptionScheduler, WorkerStatus
from searchdigest.services.observability import (
    LoggingMetricsRecorder,
    SearchMetricsRecorder,
)
from searchdigest.services.schedule import normalize_category
from searchdigest.services.store import (
    SessionFactory,
    SqlSubscriptionStore,
    SubscriptionStore,
)
from searchdigest.services.subscription_queue import (
    DEFAULT_DRAIN_LIMIT,
    JobReason,
    QueueSnapshot,
    SubscriptionJob,
    SubscriptionQueue,
)
from searchdigest.utils.logging import get_logger
from searchdigest.utils.timezone import ensure_utc_aware, isoformat_or_none, utc_now

logger = get_logger(__name__)

# Всё, кроме букв, цифр, "_", "#", "+" и "-", вырезается из ключевого слова
KEYWORD_STRIP_RE = re.compile(r"[^\w#+\-]")


@dataclass(frozen=True)
class KeywordHighlight:
    """Частое ключевое слово в запросах сохранённых поисков."""

    keyword: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        """Сериализовать для JSON-ответов."""
        return {"keyword": self.keyword, "count": self.count}


@dataclass(frozen=True)
class UpcomingRun:
    """Ближайший запуск сохранённого поиска.

    Attributes:
        subscription_id: ID подписки.
        name: Название поиска.
        next_run_at: Время запуска.
        frequency: Частота дайджеста.
        notify_by_email: Уведомлять по email.
        notify_in_app: Уведомлять в приложении.
        status: overdue (время прошло) или scheduled.
    """

    subscription_id: int
    name: str | None
    next_run_at: datetime
    frequency: str
    notify_by_email: bool
    notify_in_app: bool
    status: str

    def to_dict(self) -> dict[str, Any]:
        """Сериализовать для JSON-ответов."""
        return {
            "subscription_id": self.subscription_id,
            "name": self.name,
            "next_run_at": isoformat_or_none(self.next_run_at),
            "frequency": self.frequency,
            "notify_by_email": self.notify_by_email,
            "notify_in_app": self.notify_in_app,
            "status": self.status,
        }


@dataclass(frozen=True)
class ScheduleOverview:
    """Сводка расписания сохранённых поисков пользователя.

    Attributes:
        total: Количество сохранённых поисков.
        with_email_alerts: Сколько из них уведомляют по email.
        with_in_app_alerts: Сколько уведомляют в приложении.
        remote_enabled: Сколько ищут только удалённую работу
            (filters.isRemote == True).
        categories: Распределение по категориям (категория -> количество),
            по убыванию количества.
        frequencies: Распределение по частоте дайджеста, по убыванию
            количества. Пустая частота считается daily.
        next_run_at: Ближайший запуск.
        last_triggered_at: Последний запуск (если запусков не было —
            последнее изменение подписки).
        overdue: Подписок, время запуска которых уже прошло.
        due_soon: Подписок, которые запустятся в ближайшие 72 часа.
        keyword_highlights: Самые частые слова запросов (не больше 6).
        upcoming: Ближайшие запуски (не больше 8), по времени.
    """

    total: int
    with_email_alerts: int
    with_in_app_alerts: int
    remote_enabled: int
    categories: dict[str, int]
    frequencies: dict[str, int]
    next_run_at: datetime | None
    last_triggered_at: datetime | None
    overdue: int
    due_soon: int
    keyword_highlights: list[KeywordHighlight] = field(default_factory=list)
    upcoming: list[UpcomingRun] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Сериализовать для JSON-ответов."""
        return {
            "total": self.total,
            "with_email_alerts": self.with_email_alerts,
            "with_in_app_alerts": self.with_in_app_alerts,
            "remote_enabled": self.remote_enabled,
            "categories": dict(self.categories),
            "frequencies": dict(self.frequencies),
            "next_run_at": isoformat_or_none(self.next_run_at),
            "last_triggered_at": isoformat_or_none(self.last_triggered_at),
            "overdue": self.overdue,
            "due_soon": self.due_soon,
            "keyword_highlights": [k.to_dict() for k in self.keyword_highlights],
            "upcoming": [run.to_dict() for run in self.upcoming],
        }


class SearchDigestService:
    """Фасад подсистемы дайджестов.

    Attributes:
        queue: Очередь задач.
        worker: Воркер (планировщик тиков).
        _store: Хранилище подписок.
        _config: Секция digest из config.yaml.
    """

    def __init__(
        self,
        queue: SubscriptionQueue,
        worker: SubscriptionScheduler,
        store: SubscriptionStore,
        config: DigestConfig,
    ) -> None:
        self.queue = queue
        self.worker = worker
        self._store = store
        self._config = config

    # =========================================================================
    # ОЧЕРЕДЬ
    # =========================================================================

    def enqueue_job(
        self,
        subscription_id: int,
        user_id: int,
        reason: JobReason | str = JobReason.MANUAL,
        priority: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> SubscriptionJob:
        """Поставить подписку в очередь (см. SubscriptionQueue.enqueue)."""
        if priority is None:
            priority = self._config.default_priority
        return self.queue.enqueue(
            subscription_id, user_id, reason, priority=priority, payload=payload
        )

    def drain_jobs(self, limit: int = DEFAULT_DRAIN_LIMIT) -> list[SubscriptionJob]:
        """Забрать задачи из очереди без выполнения."""
        return self.queue.drain(limit)

    def queue_snapshot(self) -> QueueSnapshot:
        return self.queue.snapshot()

    def configure_queue(self, size_cap: int) -> QueueSnapshot:
        return self.queue.configure(size_cap)

    def reset_queue(self) -> None:
        """Очистить очередь. Служебная операция для тестов."""
        self.queue.reset()

    # =========================================================================
    # ВОРКЕР
    # =========================================================================

    async def start_worker(self, interval_ms: int | None = None) -> dict[str, Any]:
        """Запустить воркер.

        Args:
            interval_ms: Интервал тиков в миллисекундах.
                По умолчанию — digest.interval_seconds из config.yaml.

        Returns:
            {"started": bool, "interval_ms": int} — started=False,
            если воркер уже был запущен.
        """
        interval_seconds = interval_ms / 1000 if interval_ms is not None else None
        started = await self.worker.start(interval_seconds)
        return {
            "started": started,
            "interval_ms": int(self.worker.interval_seconds * 1000),
        }

    async def stop_worker(self) -> dict[str, bool]:
        """Остановить воркер. {"stopped": False}, если он не был запущен."""
        return {"stopped": await self.worker.stop()}

    def worker_status(self) -> WorkerStatus:
        return self.worker.status()

    # =========================================================================
    # ОПЕРАТОР
    # =========================================================================

    async def run_subscription_now(self, subscription_id: int) -> SubscriptionJob:
        """Поставить подписку в очередь вне расписания (reason=manual).

        Поиск выполнится на ближайшем тике.

        Args:
            subscription_id: ID подписки.

        Returns:
            Задача в очереди.

        Raises:
            SubscriptionNotFoundError: Подписки нет в хранилище.
            CapacityExceededError: Очередь заполнена.
        """
        subscription = await self._store.find_by_id(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)

        job = self.enqueue_job(
            subscription.id, subscription.user_id, reason=JobReason.MANUAL
        )
        logger.info(
            "Подписка id=%d поставлена в очередь вручную (user_id=%d)",
            subscription.id,
            subscription.user_id,
        )
        return job

    # =========================================================================
    # СВОДКА РАСПИСАНИЯ
    # =========================================================================

    async def schedule_overview(
        self, user_id: int, now: datetime | None = None
    ) -> ScheduleOverview:
        """Сводка расписания сохранённых поисков пользователя.

        Args:
            user_id: ID пользователя.
            now: Момент расчёта. По умолчанию — текущее время UTC.

        Returns:
            ScheduleOverview.
        """
        if now is None:
            now = utc_now()
        now = ensure_utc_aware(now)

        subscriptions = await self._store.list_for_user(
            user_id, limit=OVERVIEW_SUBSCRIPTIONS_LIMIT
        )
        return build_schedule_overview(subscriptions, now)


def build_schedule_overview(
    subscriptions: list[SearchSubscription], now: datetime
) -> ScheduleOverview:
    """Посчитать сводку расписания по списку подписок."""
    due_soon_threshold = now + timedelta(hours=DUE_SOON_WINDOW_HOURS)

    categories: Counter[str] = Counter()
    frequencies: Counter[str] = Counter()
    with_email = 0
    with_in_app = 0
    remote_enabled = 0
    next_run_at: datetime | None = None
    last_triggered_at: datetime | None = None
    overdue = 0
    due_soon = 0
    upcoming: list[UpcomingRun] = []

    for subscription in subscriptions:
        category = normalize_category(subscription.category)
        category_key = str(category) if category else str(subscription.category).lower()
        categories[category_key] += 1
        frequencies[(subscription.frequency or DigestFrequency.DAILY).lower()] += 1

        if subscription.notify_by_email:
            with_email += 1
        if subscription.notify_in_app:
            with_in_app += 1
        filters = subscription.filters
        if isinstance(filters, dict) and filters.get("isRemote") is True:
            remote_enabled += 1

        # Нет запусков: берём время последнего изменения
        last_seen = subscription.last_triggered_at or subscription.updated_at
        if last_seen is not None:
            last_seen = ensure_utc_aware(last_seen)
            if last_triggered_at is None or last_seen > last_triggered_at:
                last_triggered_at = last_seen

        if subscription.next_run_at is None:
            continue

        next_run = ensure_utc_aware(subscription.next_run_at)
        if next_run_at is None or next_run < next_run_at:
            next_run_at = next_run
        if next_run < now:
            overdue += 1
        elif next_run <= due_soon_threshold:
            due_soon += 1

        upcoming.append(
            UpcomingRun(
                subscription_id=subscription.id,
                name=subscription.name,
                next_run_at=next_run,
                frequency=subscription.frequency or DigestFrequency.DAILY,
                notify_by_email=bool(subscription.notify_by_email),
                notify_in_app=bool(subscription.notify_in_app),
                status="overdue" if next_run < now else "scheduled",
            )
        )

    upcoming.sort(key=lambda run: run.next_run_at)

    return ScheduleOverview(
        total=len(subscriptions),
        with_email_alerts=with_email,
        with_in_app_alerts=with_in_app,
        remote_enabled=remote_enabled,
        categories=dict(categories.most_common()),
        frequencies=dict(frequencies.most_common()),
        next_run_at=next_run_at,
        last_triggered_at=last_triggered_at,
        overdue=overdue,
        due_soon=due_soon,
        keyword_highlights=extract_keyword_highlights(subscriptions),
        upcoming=upcoming[:UPCOMING_RUNS_LIMIT],
    )


def _is_number(token: str) -> bool:
    try:
        return math.isfinite(float(token))
    except ValueError:
        return False


def extract_keyword_highlights(
    subscriptions: list[SearchSubscription],
    limit: int = KEYWORD_HIGHLIGHTS_LIMIT,
) -> list[KeywordHighlight]:
    """Самые частые слова в запросах подписок.

    Запрос разбивается по пробелам, из слов вырезаются знаки препинания
    (кроме "#", "+" и "-"), слова приводятся к нижнему регистру.
    Слова короче 3 символов и числа не учитываются.

    Args:
        subscriptions: Подписки пользователя.
        limit: Сколько слов вернуть.

    Returns:
        Слова по убыванию частоты; при равной частоте в порядке появления.
    """
    tokens: Counter[str] = Counter()
    for subscription in subscriptions:
        if not subscription.query:
            continue
        for part in subscription.query.split():
            token = KEYWORD_STRIP_RE.sub("", part).lower()
            if len(token) >= KEYWORD_MIN_LENGTH and not _is_number(token):
                tokens[token] += 1

    return [
        KeywordHighlight(keyword=keyword, count=count)
        for keyword, count in tokens.most_common(limit)
    ]


def create_search_digest_service(
    session_factory: SessionFactory | None = None,
    provider: DiscoveryProvider | None = None,
    metrics: SearchMetricsRecorder | None = None,
    config: DigestConfig | None = None,
) -> SearchDigestService:
    """Собрать сервис дайджестов.

    Args:
        session_factory: Фабрика сессий БД. По умолчанию — из db.base.
        provider: Провайдер поиска. По умолчанию — HTTP из DISCOVERY__*.
        metrics: Приёмник метрик. По умолчанию — LoggingMetricsRecorder.
        config: Секция digest. По умолчанию — из config.yaml.

    Returns:
        Готовый к работе SearchDigestService (воркер не запущен).
    """
    if config is None:
        config = yaml_config.digest
    if session_factory is None:
        session_factory = get_async_session_factory()
    if provider is None:
        provider = create_discovery_provider(settings.discovery)
    if metrics is None:
        metrics = LoggingMetricsRecorder()

    queue = SubscriptionQueue(max_size=config.queue_max_size)
    store = SqlSubscriptionStore(session_factory)
    worker = SubscriptionScheduler(queue, store, provider, metrics, config)

    logger.debug(
        "Сервис дайджестов создан (queue_max_size=%d, interval=%d сек)",
        config.queue_max_size,
        config.interval_seconds,
    )
    return SearchDigestService(queue, worker, store, config)
