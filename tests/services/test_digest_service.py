"""Тесты для SearchDigestService.

Модуль тестирует:
- Операции очереди через фасад (enqueue_job, drain_jobs, configure_queue, reset_queue)
- Управление воркером (start_worker, stop_worker, worker_status)
- Ручной запуск подписки (run_subscription_now)
- Сводку расписания пользователя (schedule_overview)
- Сборку сервиса (create_search_digest_service)
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from searchdigest.config.yaml_config import DigestConfig
from searchdigest.core.exceptions import SubscriptionNotFoundError
from searchdigest.db.models.search_subscription import SearchSubscription
from searchdigest.services.digest_service import (
    KeywordHighlight,
    SearchDigestService,
    create_search_digest_service,
    extract_keyword_highlights,
)
from searchdigest.services.digest_worker import SubscriptionScheduler
from searchdigest.services.store import SqlSubscriptionStore
from searchdigest.services.subscription_queue import JobReason, SubscriptionQueue

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

MakeSubscription = Callable[..., SearchSubscription]

# ==============================================================================
# ФИКСТУРЫ
# ==============================================================================


@pytest.fixture
def mock_store() -> AsyncMock:
    """Мок хранилища подписок."""
    store = AsyncMock(spec=SqlSubscriptionStore)
    store.find_due.return_value = []
    store.find_by_id.return_value = None
    store.list_for_user.return_value = []
    return store


@pytest.fixture
def service(
    mock_store: AsyncMock,
    mock_provider: AsyncMock,
    mock_metrics: AsyncMock,
    digest_config: DigestConfig,
) -> SearchDigestService:
    """Сервис с моками хранилища, провайдера и метрик."""
    queue = SubscriptionQueue(max_size=digest_config.queue_max_size)
    worker = SubscriptionScheduler(
        queue, mock_store, mock_provider, mock_metrics, digest_config
    )
    return SearchDigestService(queue, worker, mock_store, digest_config)


# ==============================================================================
# ТЕСТЫ ОЧЕРЕДИ
# ==============================================================================


def test_enqueue_job_uses_default_priority(service: SearchDigestService) -> None:
    """Тест: без priority берётся default_priority из конфига."""
    job = service.enqueue_job(1, 7)

    assert job.priority == 5
    assert job.reason == JobReason.MANUAL
    assert service.queue_snapshot().pending == 1


def test_drain_jobs(service: SearchDigestService) -> None:
    """Тест: drain_jobs снимает задачи без выполнения."""
    service.enqueue_job(1, 7, JobReason.SCHEDULED_RUN)
    service.enqueue_job(2, 7, JobReason.SCHEDULED_RUN)

    jobs = service.drain_jobs(limit=1)

    assert [job.subscription_id for job in jobs] == [1]
    assert service.queue_snapshot().pending == 1


def test_configure_and_reset_queue(service: SearchDigestService) -> None:
    """Тест: configure_queue меняет ёмкость, reset_queue возвращает исходную."""
    service.enqueue_job(1, 7)
    service.enqueue_job(2, 7)

    snapshot = service.configure_queue(1)
    assert snapshot.max_size == 1
    assert snapshot.pending == 1

    service.reset_queue()
    snapshot = service.queue_snapshot()
    assert snapshot.pending == 0
    assert snapshot.max_size == 100


# ==============================================================================
# ТЕСТЫ ВОРКЕРА
# ==============================================================================


async def test_start_and_stop_worker(service: SearchDigestService) -> None:
    """Тест: start_worker/stop_worker идемпотентны и сообщают результат."""
    try:
        assert await service.start_worker(interval_ms=15000) == {
            "started": True,
            "interval_ms": 15000,
        }
        assert await service.start_worker() == {
            "started": False,
            "interval_ms": 15000,
        }
        assert service.worker_status().running is True
    finally:
        assert await service.stop_worker() == {"stopped": True}

    assert await service.stop_worker() == {"stopped": False}
    assert service.worker_status().running is False


async def test_start_worker_default_interval(service: SearchDigestService) -> None:
    """Тест: по умолчанию интервал берётся из config.yaml."""
    try:
        result = await service.start_worker()
    finally:
        await service.stop_worker()

    assert result == {"started": True, "interval_ms": 5000}


async def test_stop_worker_before_start(service: SearchDigestService) -> None:
    """Тест: stop_worker до запуска возвращает stopped=False."""
    assert await service.stop_worker() == {"stopped": False}


# ==============================================================================
# ТЕСТЫ РУЧНОГО ЗАПУСКА
# ==============================================================================


async def test_run_subscription_now_enqueues_manual_job(
    service: SearchDigestService,
    mock_store: AsyncMock,
    make_subscription: MakeSubscription,
) -> None:
    """Тест: ручной запуск ставит подписку в очередь с reason=manual."""
    mock_store.find_by_id.return_value = make_subscription(
        15, next_run_at=NOW + timedelta(days=1), user_id=21
    )

    job = await service.run_subscription_now(15)

    assert job.subscription_id == 15
    assert job.user_id == 21
    assert job.reason == JobReason.MANUAL
    assert 15 in service.queue


async def test_run_subscription_now_not_found(
    service: SearchDigestService,
) -> None:
    """Тест: ручной запуск несуществующей подписки — SubscriptionNotFoundError."""
    with pytest.raises(SubscriptionNotFoundError) as exc_info:
        await service.run_subscription_now(404)

    assert exc_info.value.subscription_id == 404
    assert len(service.queue) == 0


async def test_manual_run_is_processed_on_next_tick(
    service: SearchDigestService,
    mock_store: AsyncMock,
    mock_provider: AsyncMock,
    make_subscription: MakeSubscription,
) -> None:
    """Тест: поставленная вручную подписка выполняется на ближайшем тике."""
    mock_store.find_by_id.return_value = make_subscription(
        16, next_run_at=NOW + timedelta(days=1)
    )
    await service.run_subscription_now(16)

    report = await service.worker.run_tick(NOW)

    assert report.processed == 1
    mock_provider.search.assert_awaited_once()


# ==============================================================================
# ТЕСТЫ СВОДКИ РАСПИСАНИЯ
# ==============================================================================


async def test_schedule_overview(
    service: SearchDigestService,
    mock_store: AsyncMock,
    make_subscription: MakeSubscription,
) -> None:
    """Тест: сводка считает ближайший запуск, просрочку и окно 72 часа."""
    mock_store.list_for_user.return_value = [
        make_subscription(
            1,
            name="overdue",
            category="jobs",
            query="Senior Python developer",
            filters={"isRemote": True},
            next_run_at=NOW - timedelta(hours=1),
            last_triggered_at=NOW - timedelta(days=1),
            notify_by_email=True,
            notify_in_app=True,
        ),
        make_subscription(
            2,
            name="soon",
            category="gig",
            query="python, django 2024",
            filters={"isRemote": "true"},
            next_run_at=NOW + timedelta(hours=10),
            notify_by_email=False,
            notify_in_app=True,
            updated_at=NOW - timedelta(hours=2),
        ),
        make_subscription(
            3,
            name="later",
            category="gig",
            frequency="weekly",
            query="UI logo design",
            filters={"isRemote": True},
            next_run_at=NOW + timedelta(days=5),
            notify_by_email=False,
            notify_in_app=False,
        ),
        make_subscription(
            4,
            name="paused",
            category="",
            frequency="",
            query="",
            next_run_at=None,
            notify_by_email=False,
            notify_in_app=False,
        ),
    ]

    overview = await service.schedule_overview(7, now=NOW)

    mock_store.list_for_user.assert_awaited_once_with(7, limit=50)
    assert overview.total == 4
    assert overview.with_email_alerts == 1
    assert overview.with_in_app_alerts == 2
    # isRemote учитывается только как булево True
    assert overview.remote_enabled == 2
    assert overview.categories == {"gig": 2, "job": 1, "mixed": 1}
    assert list(overview.categories) == ["gig", "job", "mixed"]
    assert overview.frequencies == {"daily": 3, "weekly": 1}
    assert list(overview.frequencies) == ["daily", "weekly"]
    assert overview.next_run_at == NOW - timedelta(hours=1)
    # updated_at подписки без запусков свежее last_triggered_at первой
    assert overview.last_triggered_at == NOW - timedelta(hours=2)
    assert overview.overdue == 1
    assert overview.due_soon == 1

    # Числа и слова короче 3 символов не попадают в ключевые слова
    assert [(k.keyword, k.count) for k in overview.keyword_highlights] == [
        ("python", 2),
        ("senior", 1),
        ("developer", 1),
        ("django", 1),
        ("logo", 1),
        ("design", 1),
    ]

    assert [run.subscription_id for run in overview.upcoming] == [1, 2, 3]
    assert [run.status for run in overview.upcoming] == [
        "overdue",
        "scheduled",
        "scheduled",
    ]
    assert overview.upcoming[2].frequency == "weekly"


def test_keyword_highlights_limit(make_subscription: MakeSubscription) -> None:
    """Тест: в сводке не больше 6 ключевых слов, самые частые первыми."""
    subscriptions = [
        make_subscription(1, next_run_at=None, query="alpha beta gamma delta"),
        make_subscription(2, next_run_at=None, query="epsilon zeta eta theta"),
        make_subscription(3, next_run_at=None, query="theta c++ c# 3.14"),
    ]

    highlights = extract_keyword_highlights(subscriptions)

    assert len(highlights) == 6
    assert highlights[0] == KeywordHighlight(keyword="theta", count=2)
    assert [k.keyword for k in highlights[1:]] == [
        "alpha",
        "beta",
        "gamma",
        "delta",
        "epsilon",
    ]
    assert extract_keyword_highlights(subscriptions, limit=20)[-2:] == [
        KeywordHighlight(keyword="eta", count=1),
        KeywordHighlight(keyword="c++", count=1),
    ]


async def test_schedule_overview_limits_upcoming_runs(
    service: SearchDigestService,
    mock_store: AsyncMock,
    make_subscription: MakeSubscription,
) -> None:
    """Тест: в сводке не больше 8 ближайших запусков, по возрастанию времени."""
    mock_store.list_for_user.return_value = [
        make_subscription(i, next_run_at=NOW + timedelta(hours=20 - i))
        for i in range(1, 11)
    ]

    overview = await service.schedule_overview(7, now=NOW)

    assert len(overview.upcoming) == 8
    times = [run.next_run_at for run in overview.upcoming]
    assert times == sorted(times)
    assert overview.upcoming[0].subscription_id == 10


async def test_schedule_overview_empty(service: SearchDigestService) -> None:
    """Тест: сводка пользователя без подписок."""
    overview = await service.schedule_overview(7, now=NOW)

    assert overview.to_dict() == {
        "total": 0,
        "with_email_alerts": 0,
        "with_in_app_alerts": 0,
        "remote_enabled": 0,
        "categories": {},
        "frequencies": {},
        "next_run_at": None,
        "last_triggered_at": None,
        "overdue": 0,
        "due_soon": 0,
        "keyword_highlights": [],
        "upcoming": [],
    }


# ==============================================================================
# ТЕСТЫ СБОРКИ
# ==============================================================================


async def test_create_search_digest_service(
    session_factory: async_sessionmaker[AsyncSession],
    mock_provider: AsyncMock,
    mock_metrics: AsyncMock,
    digest_config: DigestConfig,
) -> None:
    """Тест: фабрика собирает независимые экземпляры с заданной конфигурацией."""
    first = create_search_digest_service(
        session_factory=session_factory,
        provider=mock_provider,
        metrics=mock_metrics,
        config=digest_config,
    )
    second = create_search_digest_service(
        session_factory=session_factory,
        provider=mock_provider,
        metrics=mock_metrics,
        config=digest_config,
    )

    first.enqueue_job(1, 7)

    assert first.queue is not second.queue
    assert first.queue_snapshot().max_size == 100
    assert second.queue_snapshot().pending == 0
    assert first.worker.interval_seconds == 5
