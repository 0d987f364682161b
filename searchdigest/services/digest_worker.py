"""Воркер дайджестов сохранённых поисков.

SubscriptionScheduler периодически (APScheduler, IntervalTrigger)
выполняет тик из двух фаз:

Фаза A — enqueue_due_subscriptions():
    Берёт из хранилища до batch_size просроченных подписок
    (next_run_at <= now) и ставит их в очередь с reason=scheduled_run.
    Ошибки постановки (переполнение, валидация) логируются и пропускаются.

Фаза B — process_pending_subscriptions():
    Забирает до batch_size задач из очереди и для каждой:
    1. Загружает подписку (нет в БД — пропуск без ошибки)
    2. Выполняет поиск через Discovery Provider (page=1, page_size=10)
    3. При успехе сдвигает расписание: last_triggered_at=now,
       next_run_at — по частоте дайджеста
    4. Пишет метрику выполнения поиска

Ошибка поиска не откладывает подписку явно: next_run_at не меняется,
поэтому подписка остаётся просроченной и попадёт в очередь на следующем
тике. Других повторов нет. Счётчик подряд идущих ошибок по каждой
подписке (consecutive_failures) попадает в лог и сбрасывается после
успешного запуска.

Защита от пересечения тиков:
- у задачи APScheduler max_instances=1 и coalesce=True
- флаг _busy: тик, начатый во время другого тика, сразу завершается
- множество _in_flight: подписка, которая сейчас выполняется, не
  ставится в очередь повторно и не выполняется второй раз

Использование:
    worker = SubscriptionScheduler(queue, store, provider, metrics, config)
    await worker.start()
    ...
    await worker.stop()
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from searchdigest.config.constants import (
    DIGEST_SEARCH_PAGE,
    DIGEST_SEARCH_PAGE_SIZE,
    DIGEST_SURFACE,
)
from searchdigest.config.yaml_config import DigestConfig
from searchdigest.core.exceptions import (
    DatabaseError,
    DigestError,
    DigestValidationError,
    ExecutionError,
)
from searchdigest.db.models.search_subscription import SearchSubscription
from searchdigest.providers.discovery.base import DiscoveryProvider, DiscoveryResult
from searchdigest.services.observability import SearchExecution, SearchMetricsRecorder
from searchdigest.services.schedule import compute_next_run_at, normalize_category
from searchdigest.services.store import SubscriptionStore
from searchdigest.services.subscription_queue import (
    JobReason,
    SubscriptionJob,
    SubscriptionQueue,
)
from searchdigest.utils.logging import get_logger
from searchdigest.utils.timezone import ensure_utc_aware, isoformat_or_none, utc_now

logger = get_logger(__name__)

# ID периодической задачи в APScheduler
TICK_JOB_ID = "search_digest_tick"


@dataclass
class TickReport:
    """Итоги одного тика (или одной фазы тика).

    Attributes:
        enqueued: Подписок поставлено в очередь (фаза A).
        processed: Поисков выполнено успешно (фаза B).
        failed: Задач завершилось ошибкой (фаза B).
        skipped: Пропущено: ошибка постановки или подписка уже выполняется.
        missing: Задач, подписка которых не найдена в хранилище.
        busy: Тик пропущен, потому что предыдущий ещё выполняется.
    """

    enqueued: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    missing: int = 0
    busy: bool = False

    def merge(self, other: "TickReport") -> "TickReport":
        """Сложить счётчики двух отчётов."""
        return TickReport(
            enqueued=self.enqueued + other.enqueued,
            processed=self.processed + other.processed,
            failed=self.failed + other.failed,
            skipped=self.skipped + other.skipped,
            missing=self.missing + other.missing,
            busy=self.busy or other.busy,
        )

    @property
    def is_empty(self) -> bool:
        """Тик ничего не сделал."""
        return not (
            self.enqueued or self.processed or self.failed or self.skipped or self.missing
        )


@dataclass(frozen=True)
class WorkerStatus:
    """Состояние воркера для health-check и операторских команд.

    Attributes:
        running: Запущен ли планировщик.
        pending_jobs: Задач в очереди.
        max_queue_size: Ёмкость очереди.
        oldest_job_at: enqueued_at самой старой задачи.
        newest_job_at: enqueued_at самой новой задачи.
        last_run_at: Время начала последнего тика.
    """

    running: bool
    pending_jobs: int
    max_queue_size: int
    oldest_job_at: datetime | None
    newest_job_at: datetime | None
    last_run_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        """Сериализовать состояние для JSON-ответов."""
        return {
            "running": self.running,
            "pending_jobs": self.pending_jobs,
            "max_queue_size": self.max_queue_size,
            "oldest_job_at": isoformat_or_none(self.oldest_job_at),
            "newest_job_at": isoformat_or_none(self.newest_job_at),
            "last_run_at": isoformat_or_none(self.last_run_at),
        }


class SubscriptionScheduler:
    """Периодический воркер дайджестов сохранённых поисков.

    Attributes:
        _queue: Очередь задач.
        _store: Хранилище подписок.
        _provider: Discovery Provider.
        _metrics: Приёмник метрик поиска.
        _config: Настройки дайджестов из config.yaml.
        _scheduler: APScheduler (создаётся в start()).
        _interval_seconds: Текущий интервал тиков.
        _busy: Выполняется ли сейчас тик.
        _in_flight: ID подписок, поиск по которым выполняется прямо сейчас.
        _failures: Подряд идущие ошибки поиска по subscription_id.
        _last_run_at: Время начала последнего тика.
    """

    def __init__(  # noqa: PLR0913
        self,
        queue: SubscriptionQueue,
        store: SubscriptionStore,
        provider: DiscoveryProvider,
        metrics: SearchMetricsRecorder,
        config: DigestConfig,
    ) -> None:
        """Создать воркер.

        Args:
            queue: Очередь задач дайджестов.
            store: Хранилище подписок.
            provider: Провайдер поиска.
            metrics: Приёмник метрик.
            config: Секция digest из config.yaml.
        """
        self._queue = queue
        self._store = store
        self._provider = provider
        self._metrics = metrics
        self._config = config

        self._scheduler: AsyncIOScheduler | None = None
        self._interval_seconds = float(config.interval_seconds)
        self._busy = False
        self._in_flight: set[int] = set()
        self._failures: dict[int, int] = {}
        self._last_run_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        """Запущен ли планировщик."""
        return self._scheduler is not None

    @property
    def interval_seconds(self) -> float:
        """Интервал между тиками (секунды)."""
        return self._interval_seconds

    def consecutive_failures(self, subscription_id: int) -> int:
        """Сколько запусков подписки подряд завершились ошибкой поиска."""
        return self._failures.get(subscription_id, 0)

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # =========================================================================

    async def start(self, interval_seconds: float | None = None) -> bool:
        """Запустить периодические тики.

        Первый тик выполняется через interval_seconds после запуска.

        Args:
            interval_seconds: Интервал тиков. По умолчанию — из config.yaml.

        Returns:
            True если воркер запущен, False если он уже работал.

        Raises:
            DigestValidationError: Если интервал не положительный.
        """
        if self._scheduler is not None:
            logger.warning("SubscriptionScheduler уже запущен")
            return False

        if interval_seconds is not None:
            if isinstance(interval_seconds, bool) or interval_seconds <= 0:
                raise DigestValidationError("interval_seconds", interval_seconds)
            self._interval_seconds = float(interval_seconds)

        # Планировщик создаётся внутри работающего event loop
        scheduler = AsyncIOScheduler(timezone="UTC")
        scheduler.add_job(
            self._tick_job,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=TICK_JOB_ID,
            name=f"Дайджесты сохранённых поисков (каждые {self._interval_seconds:g} сек)",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(
            "SubscriptionScheduler запущен (interval=%.1f сек, batch_size=%d)",
            self._interval_seconds,
            self._config.batch_size,
        )
        return True

    async def stop(self) -> bool:
        """Остановить периодические тики.

        Будущие тики отменяются, тик, который выполняется сейчас,
        доработает до конца.

        Returns:
            True если воркер остановлен, False если он не был запущен.
        """
        if self._scheduler is None:
            return False

        scheduler, self._scheduler = self._scheduler, None
        scheduler.shutdown(wait=False)

        logger.info("SubscriptionScheduler остановлен")
        return True

    def status(self) -> WorkerStatus:
        """Текущее состояние воркера и очереди."""
        snapshot = self._queue.snapshot()
        return WorkerStatus(
            running=self.is_running,
            pending_jobs=snapshot.pending,
            max_queue_size=snapshot.max_size,
            oldest_job_at=snapshot.oldest_enqueued_at,
            newest_job_at=snapshot.newest_enqueued_at,
            last_run_at=self._last_run_at,
        )

    # =========================================================================
    # ТИК
    # =========================================================================

    async def _tick_job(self) -> None:
        """Точка входа APScheduler: тик не должен ронять планировщик."""
        try:
            await self.run_tick()
        except Exception:
            logger.exception("Ошибка в тике SubscriptionScheduler")

    async def run_tick(self, now: datetime | None = None) -> TickReport:
        """Выполнить один тик: фаза A, затем фаза B.

        Фазы независимы: сбой одной не отменяет другую.

        Args:
            now: Момент тика. По умолчанию — текущее время UTC.

        Returns:
            Итоги тика. Если предыдущий тик ещё выполняется —
            пустой отчёт с busy=True.
        """
        if self._busy:
            logger.warning("Предыдущий тик ещё выполняется, тик пропущен")
            return TickReport(busy=True)

        self._busy = True
        tick_now = ensure_utc_aware(now) if now is not None else utc_now()
        self._last_run_at = tick_now
        report = TickReport()

        try:
            try:
                report = report.merge(await self.enqueue_due_subscriptions(tick_now))
            except Exception:
                logger.exception("Фаза A (постановка просроченных подписок) прервана")

            try:
                report = report.merge(await self.process_pending_subscriptions(tick_now))
            except Exception:
                logger.exception("Фаза B (выполнение поисков) прервана")
        finally:
            self._busy = False

        if report.is_empty:
            logger.debug("Тик дайджестов: нет работы")
        else:
            logger.info(
                "Тик дайджестов: enqueued=%d, processed=%d, failed=%d, "
                "skipped=%d, missing=%d",
                report.enqueued,
                report.processed,
                report.failed,
                report.skipped,
                report.missing,
            )
        return report

    async def enqueue_due_subscriptions(self, now: datetime) -> TickReport:
        """Фаза A: поставить просроченные подписки в очередь.

        Args:
            now: Момент тика.

        Returns:
            Отчёт с заполненными enqueued и skipped.
        """
        report = TickReport()

        try:
            due = await self._store.find_due(now, self._config.batch_size)
        except DatabaseError as e:
            logger.error("Не удалось получить просроченные подписки: %s", e)
            return report

        for subscription in due:
            if subscription.id in self._in_flight:
                logger.debug(
                    "Подписка id=%d уже выполняется, повторно не ставим", subscription.id
                )
                report.skipped += 1
                continue

            try:
                self._queue.enqueue(
                    subscription.id,
                    subscription.user_id,
                    reason=JobReason.SCHEDULED_RUN,
                    priority=self._config.default_priority,
                )
            except DigestError as e:
                logger.warning(
                    "Подписка id=%d не поставлена в очередь: %s", subscription.id, e
                )
                report.skipped += 1
                continue

            report.enqueued += 1

        return report

    async def process_pending_subscriptions(self, now: datetime) -> TickReport:
        """Фаза B: выполнить поиски по задачам из очереди.

        Задача снимается с очереди в любом случае, в том числе при ошибке.

        Args:
            now: Момент тика.

        Returns:
            Отчёт с заполненными processed, failed, skipped и missing.
        """
        report = TickReport()
        jobs = self._queue.drain(self._config.batch_size)

        for job in jobs:
            if job.subscription_id in self._in_flight:
                logger.debug(
                    "Подписка id=%d уже выполняется, задача пропущена",
                    job.subscription_id,
                )
                report.skipped += 1
                continue

            self._in_flight.add(job.subscription_id)
            try:
                report = report.merge(await self._process_job(job, now))
            finally:
                self._in_flight.discard(job.subscription_id)

        return report

    async def _process_job(self, job: SubscriptionJob, now: datetime) -> TickReport:
        """Выполнить одну задачу фазы B."""
        try:
            subscription = await self._store.find_by_id(job.subscription_id)
        except DatabaseError as e:
            logger.error(
                "Не удалось загрузить подписку id=%d: %s", job.subscription_id, e
            )
            return TickReport(failed=1)

        if subscription is None:
            self._failures.pop(job.subscription_id, None)
            logger.warning(
                "Подписка id=%d не найдена, задача %s пропущена",
                job.subscription_id,
                job.id,
            )
            return TickReport(missing=1)

        try:
            result, duration_ms = await self._execute_search(subscription)
        except ExecutionError as e:
            # Расписание не трогаем: подписка останется просроченной
            failures = self._failures.get(subscription.id, 0) + 1
            self._failures[subscription.id] = failures
            logger.warning("%s (ошибок подряд: %d)", e, failures)
            return TickReport(failed=1)

        self._failures.pop(subscription.id, None)

        next_run_at = self._resolve_next_run_at(subscription, now)
        try:
            await self._store.update_schedule(
                subscription.id,
                last_triggered_at=now,
                next_run_at=next_run_at,
            )
        except DatabaseError as e:
            logger.error(
                "Не удалось обновить расписание подписки id=%d: %s", subscription.id, e
            )
            return TickReport(failed=1)

        await self._record_metrics(subscription, result, duration_ms)

        logger.debug(
            "Подписка id=%d выполнена: total=%d, next_run_at=%s",
            subscription.id,
            result.total,
            next_run_at.isoformat(),
        )
        return TickReport(processed=1)

    async def _execute_search(
        self, subscription: SearchSubscription
    ) -> tuple[DiscoveryResult, float]:
        """Выполнить поиск подписки.

        Returns:
            Результат поиска и длительность вызова провайдера (мс).

        Raises:
            ExecutionError: Неизвестная категория или ошибка провайдера.
        """
        category = normalize_category(subscription.category)
        if category is None:
            raise ExecutionError(
                subscription.id, subscription.category, "неизвестная категория"
            )

        started = time.perf_counter()
        try:
            result = await self._provider.search(
                category,
                subscription.query or "",
                dict(subscription.filters or {}),
                DIGEST_SEARCH_PAGE,
                DIGEST_SEARCH_PAGE_SIZE,
                mixed_limit=self._config.mixed_limit,
            )
        except Exception as e:
            raise ExecutionError(subscription.id, str(category), str(e)) from e

        duration_ms = (time.perf_counter() - started) * 1000
        return result, duration_ms

    def _resolve_next_run_at(
        self, subscription: SearchSubscription, now: datetime
    ) -> datetime:
        """Рассчитать next_run_at после успешного поиска.

        Если next_run_at подписки уже в будущем (расписание успели
        сдвинуть), оно сохраняется, иначе считается по частоте.
        """
        if subscription.next_run_at is not None:
            current = ensure_utc_aware(subscription.next_run_at)
            if current > now:
                return current
        return compute_next_run_at(subscription.frequency, now)

    async def _record_metrics(
        self,
        subscription: SearchSubscription,
        result: DiscoveryResult,
        duration_ms: float,
    ) -> None:
        """Записать метрику поиска. Ошибка приёмника не прерывает тик."""
        category = normalize_category(subscription.category)
        execution = SearchExecution(
            surface=DIGEST_SURFACE,
            category=str(category),
            duration_ms=duration_ms,
            result_count=result.total,
            user_id=subscription.user_id,
        )
        try:
            await self._metrics.record_search_execution(execution)
        except Exception:
            logger.exception(
                "Не удалось записать метрику поиска подписки id=%d", subscription.id
            )
