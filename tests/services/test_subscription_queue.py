"""Тесты для очереди задач дайджестов.

Модуль тестирует:
- Постановку в очередь (enqueue) и валидацию аргументов
- Дедупликацию: повторная постановка перезаписывает задачу на месте
- Выборку задач (drain) строго в порядке FIFO
- Ограничение ёмкости (configure, CapacityExceededError)
- Снимок состояния (snapshot) и сброс (reset)

Тестируемая функциональность:
1. В очереди не больше одной задачи на подписку
2. Повторная постановка сохраняет позицию первой постановки
3. priority не влияет на порядок выборки
4. Переполнение не мешает перезаписи уже присутствующих подписок
"""

import pytest

from searchdigest.core.exceptions import CapacityExceededError, DigestValidationError
from searchdigest.services.subscription_queue import (
    DEFAULT_QUEUE_MAX_SIZE,
    JobReason,
    SubscriptionQueue,
)

# ==============================================================================
# ФИКСТУРЫ
# ==============================================================================


@pytest.fixture
def queue() -> SubscriptionQueue:
    """Создать пустую очередь ёмкостью 10."""
    return SubscriptionQueue(max_size=10)


# ==============================================================================
# ТЕСТЫ ПОСТАНОВКИ
# ==============================================================================


def test_enqueue_increases_pending(queue: SubscriptionQueue) -> None:
    """Тест: постановка новой подписки увеличивает pending на 1."""
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)
    assert queue.snapshot().pending == 1

    queue.enqueue(2, 7, JobReason.MANUAL)
    assert queue.snapshot().pending == 2


def test_enqueue_returns_job_with_defaults(queue: SubscriptionQueue) -> None:
    """Тест: задача содержит ключ, причину и значения по умолчанию."""
    job = queue.enqueue(42, 7, "manual")

    assert job.subscription_id == 42
    assert job.user_id == 7
    assert job.reason == JobReason.MANUAL
    assert job.priority == 5
    assert job.payload == {}
    assert job.attempts == 0
    assert job.id.startswith("42:")
    assert job.enqueued_at.tzinfo is not None


def test_enqueue_copies_payload(queue: SubscriptionQueue) -> None:
    """Тест: изменение исходного payload не меняет задачу в очереди."""
    payload = {"source": "dashboard"}
    queue.enqueue(1, 7, JobReason.MANUAL, payload=payload)
    payload["source"] = "changed"

    [job] = queue.drain()
    assert job.payload == {"source": "dashboard"}


@pytest.mark.parametrize("subscription_id", [0, -1, "5", 1.5, True, None])
def test_enqueue_rejects_invalid_subscription_id(
    queue: SubscriptionQueue, subscription_id: object
) -> None:
    """Тест: ID подписки должен быть положительным целым."""
    with pytest.raises(DigestValidationError) as exc_info:
        queue.enqueue(subscription_id, 7, JobReason.MANUAL)  # type: ignore[arg-type]

    assert exc_info.value.field == "subscription_id"
    assert len(queue) == 0


@pytest.mark.parametrize("user_id", [0, -3, "7", None])
def test_enqueue_rejects_invalid_user_id(
    queue: SubscriptionQueue, user_id: object
) -> None:
    """Тест: ID пользователя должен быть положительным целым."""
    with pytest.raises(DigestValidationError) as exc_info:
        queue.enqueue(1, user_id, JobReason.MANUAL)  # type: ignore[arg-type]

    assert exc_info.value.field == "user_id"


def test_enqueue_rejects_unknown_reason(queue: SubscriptionQueue) -> None:
    """Тест: причина постановки только manual или scheduled_run."""
    with pytest.raises(DigestValidationError) as exc_info:
        queue.enqueue(1, 7, "retry")

    assert exc_info.value.field == "reason"


def test_validation_error_is_value_error(queue: SubscriptionQueue) -> None:
    """Тест: ошибка валидации ловится и как ValueError."""
    with pytest.raises(ValueError):
        queue.enqueue(0, 7, JobReason.MANUAL)


# ==============================================================================
# ТЕСТЫ ДЕДУПЛИКАЦИИ
# ==============================================================================


def test_duplicate_enqueue_keeps_single_entry(queue: SubscriptionQueue) -> None:
    """Тест: повторная постановка не увеличивает pending."""
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)
    queue.enqueue(1, 7, JobReason.MANUAL)

    assert queue.snapshot().pending == 1
    assert 1 in queue


def test_duplicate_enqueue_keeps_first_position(queue: SubscriptionQueue) -> None:
    """Тест: перезаписанная задача остаётся на позиции первой постановки."""
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN, priority=1)
    queue.enqueue(2, 8, JobReason.SCHEDULED_RUN)
    queue.enqueue(3, 9, JobReason.SCHEDULED_RUN)
    queue.enqueue(1, 70, JobReason.MANUAL, priority=9, payload={"v": 2})

    jobs = queue.drain(limit=10)

    assert [job.subscription_id for job in jobs] == [1, 2, 3]
    first = jobs[0]
    # Поля взяты из второго вызова
    assert first.user_id == 70
    assert first.reason == JobReason.MANUAL
    assert first.priority == 9
    assert first.payload == {"v": 2}


def test_duplicate_enqueue_resets_attempts(queue: SubscriptionQueue) -> None:
    """Тест: перезапись задачи сбрасывает attempts в 0."""
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)
    queue._jobs[1].attempts = 3

    queue.enqueue(1, 7, JobReason.MANUAL)
    [job] = queue.drain()

    assert job.attempts == 0


def test_duplicate_enqueue_updates_enqueued_at(queue: SubscriptionQueue) -> None:
    """Тест: перезапись обновляет enqueued_at."""
    first = queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)
    second = queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)

    assert second.enqueued_at >= first.enqueued_at
    assert queue.snapshot().oldest_enqueued_at == second.enqueued_at


def test_returned_job_is_a_copy(queue: SubscriptionQueue) -> None:
    """Тест: изменение возвращённой задачи не меняет задачу в очереди."""
    job = queue.enqueue(1, 7, JobReason.MANUAL)
    job.attempts = 99

    [queued] = queue.drain()
    assert queued.attempts == 0


# ==============================================================================
# ТЕСТЫ ВЫБОРКИ
# ==============================================================================


def test_drain_is_fifo_and_ignores_priority(queue: SubscriptionQueue) -> None:
    """Тест: drain выдаёт задачи в порядке постановки, priority не влияет."""
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN, priority=1)
    queue.enqueue(2, 7, JobReason.SCHEDULED_RUN, priority=10)
    queue.enqueue(3, 7, JobReason.SCHEDULED_RUN, priority=5)

    jobs = queue.drain(limit=10)

    assert [job.subscription_id for job in jobs] == [1, 2, 3]


def test_drain_respects_limit(queue: SubscriptionQueue) -> None:
    """Тест: drain возвращает не больше limit задач и уменьшает pending."""
    for subscription_id in range(1, 6):
        queue.enqueue(subscription_id, 7, JobReason.SCHEDULED_RUN)

    jobs = queue.drain(limit=2)

    assert [job.subscription_id for job in jobs] == [1, 2]
    assert queue.snapshot().pending == 3

    rest = queue.drain(limit=10)
    assert [job.subscription_id for job in rest] == [3, 4, 5]
    assert queue.snapshot().pending == 0


def test_drain_removes_from_dedup_index(queue: SubscriptionQueue) -> None:
    """Тест: после drain подписку можно поставить снова как новую задачу."""
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)
    queue.enqueue(2, 7, JobReason.SCHEDULED_RUN)
    queue.drain(limit=1)

    assert 1 not in queue
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)

    # 1 теперь в хвосте, за 2
    assert [job.subscription_id for job in queue.drain()] == [2, 1]


def test_remaining_slots_stay_indexed_after_drain(queue: SubscriptionQueue) -> None:
    """Тест: после drain перезапись оставшихся задач работает на их местах."""
    for subscription_id in (1, 2, 3, 4):
        queue.enqueue(subscription_id, 7, JobReason.SCHEDULED_RUN)
    queue.drain(limit=2)

    queue.enqueue(4, 8, JobReason.MANUAL)
    queue.enqueue(3, 9, JobReason.MANUAL)

    jobs = queue.drain()
    assert [(job.subscription_id, job.user_id) for job in jobs] == [(3, 9), (4, 8)]


@pytest.mark.parametrize("limit", [0, -5])
def test_drain_non_positive_limit_returns_empty(
    queue: SubscriptionQueue, limit: int
) -> None:
    """Тест: drain с limit <= 0 ничего не снимает."""
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)

    assert queue.drain(limit=limit) == []
    assert len(queue) == 1


def test_drain_empty_queue(queue: SubscriptionQueue) -> None:
    """Тест: drain пустой очереди возвращает пустой список."""
    assert queue.drain() == []


# ==============================================================================
# ТЕСТЫ ЁМКОСТИ
# ==============================================================================


def test_capacity_exceeded_for_new_key() -> None:
    """Тест: при заполненной очереди новая подписка не ставится."""
    queue = SubscriptionQueue(max_size=10)
    queue.configure(3)
    for subscription_id in (1, 2, 3):
        queue.enqueue(subscription_id, 7, JobReason.SCHEDULED_RUN)

    with pytest.raises(CapacityExceededError) as exc_info:
        queue.enqueue(4, 7, JobReason.SCHEDULED_RUN)

    assert exc_info.value.subscription_id == 4
    assert exc_info.value.max_size == 3
    assert exc_info.value.retryable is True
    assert len(queue) == 3


def test_full_queue_still_accepts_existing_key() -> None:
    """Тест: перезапись уже присутствующей подписки работает при полной очереди."""
    queue = SubscriptionQueue(max_size=2)
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)
    queue.enqueue(2, 7, JobReason.SCHEDULED_RUN)

    job = queue.enqueue(1, 7, JobReason.MANUAL)

    assert job.reason == JobReason.MANUAL
    assert len(queue) == 2


def test_configure_trims_oldest_first(queue: SubscriptionQueue) -> None:
    """Тест: уменьшение ёмкости отбрасывает задачи с головы очереди."""
    for subscription_id in range(1, 6):
        queue.enqueue(subscription_id, 7, JobReason.SCHEDULED_RUN)

    snapshot = queue.configure(2)

    assert snapshot.pending == 2
    assert snapshot.max_size == 2
    assert [job.subscription_id for job in queue.drain()] == [4, 5]


def test_configure_trimmed_keys_can_be_enqueued_again(queue: SubscriptionQueue) -> None:
    """Тест: отброшенные при сжатии подписки удалены из индекса."""
    for subscription_id in (1, 2, 3):
        queue.enqueue(subscription_id, 7, JobReason.SCHEDULED_RUN)
    queue.configure(1)

    assert 1 not in queue
    assert 2 not in queue
    assert 3 in queue


@pytest.mark.parametrize("size_cap", [0, -1, "10", 2.5, False])
def test_configure_rejects_invalid_cap(
    queue: SubscriptionQueue, size_cap: object
) -> None:
    """Тест: ёмкость должна быть положительным целым."""
    with pytest.raises(DigestValidationError):
        queue.configure(size_cap)  # type: ignore[arg-type]

    assert queue.max_size == 10


def test_constructor_rejects_invalid_size() -> None:
    """Тест: нельзя создать очередь с неположительной ёмкостью."""
    with pytest.raises(DigestValidationError):
        SubscriptionQueue(max_size=0)


# ==============================================================================
# ТЕСТЫ СНИМКА И СБРОСА
# ==============================================================================


def test_snapshot_of_empty_queue(queue: SubscriptionQueue) -> None:
    """Тест: снимок пустой очереди без временных меток."""
    snapshot = queue.snapshot()

    assert snapshot.pending == 0
    assert snapshot.max_size == 10
    assert snapshot.oldest_enqueued_at is None
    assert snapshot.newest_enqueued_at is None


def test_snapshot_reports_head_and_tail(queue: SubscriptionQueue) -> None:
    """Тест: oldest — голова очереди, newest — хвост."""
    first = queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)
    queue.enqueue(2, 7, JobReason.SCHEDULED_RUN)
    last = queue.enqueue(3, 7, JobReason.SCHEDULED_RUN)

    snapshot = queue.snapshot()

    assert snapshot.oldest_enqueued_at == first.enqueued_at
    assert snapshot.newest_enqueued_at == last.enqueued_at


def test_snapshot_to_dict_serializes_timestamps(queue: SubscriptionQueue) -> None:
    """Тест: to_dict отдаёт временные метки в ISO-8601."""
    job = queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)

    data = queue.snapshot().to_dict()

    assert data == {
        "pending": 1,
        "max_size": 10,
        "oldest_enqueued_at": job.enqueued_at.isoformat(),
        "newest_enqueued_at": job.enqueued_at.isoformat(),
    }


def test_reset_clears_queue_and_restores_default_size() -> None:
    """Тест: reset очищает очередь и возвращает исходную ёмкость."""
    queue = SubscriptionQueue()
    queue.configure(3)
    queue.enqueue(1, 7, JobReason.SCHEDULED_RUN)

    queue.reset()

    assert len(queue) == 0
    assert 1 not in queue
    assert queue.max_size == DEFAULT_QUEUE_MAX_SIZE
