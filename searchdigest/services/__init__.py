"""Бизнес-логика дайджестов сохранённых поисков.

- schedule — расчёт next_run_at и нормализация категорий
- subscription_queue — очередь задач с дедупликацией
- digest_worker — периодический воркер (фазы A и B)
- digest_service — фасад управления и сводка расписания
"""

from searchdigest.services.digest_service import (
    KeywordHighlight,
    ScheduleOverview,
    SearchDigestService,
    UpcomingRun,
    create_search_digest_service,
)
from searchdigest.services.digest_worker import (
    SubscriptionScheduler,
    TickReport,
    WorkerStatus,
)
from searchdigest.services.schedule import compute_next_run_at, normalize_category
from searchdigest.services.subscription_queue import (
    JobReason,
    QueueSnapshot,
    SubscriptionJob,
    SubscriptionQueue,
)

__all__ = [
    "JobReason",
    "KeywordHighlight",
    "QueueSnapshot",
    "ScheduleOverview",
    "SearchDigestService",
    "SubscriptionJob",
    "SubscriptionQueue",
    "SubscriptionScheduler",
    "TickReport",
    "UpcomingRun",
    "WorkerStatus",
    "compute_next_run_at",
    "create_search_digest_service",
    "normalize_category",
]
