"""Расчёт расписания сохранённых поисков.

Чистые функции без побочных эффектов:
- compute_next_run_at() — следующий запуск по частоте дайджеста
- normalize_category() — каноническая категория поиска
"""

from datetime import datetime, timedelta

from searchdigest.db.models.search_subscription import DigestFrequency, SearchCategory
from searchdigest.utils.timezone import utc_now

# Шаг расписания для каждой частоты.
# immediate (нулевой шаг): подписка сразу снова становится due.
FREQUENCY_INTERVALS: dict[str, timedelta] = {
    DigestFrequency.IMMEDIATE: timedelta(0),
    DigestFrequency.DAILY: timedelta(hours=24),
    DigestFrequency.WEEKLY: timedelta(days=7),
}

# Синонимы категорий, встречающиеся в старых записях и в API
CATEGORY_ALIASES: dict[str, SearchCategory] = {
    "jobs": SearchCategory.JOB,
    "gigs": SearchCategory.GIG,
    "projects": SearchCategory.PROJECT,
    "launchpads": SearchCategory.LAUNCHPAD,
    "volunteer": SearchCategory.VOLUNTEERING,
    "talent": SearchCategory.PEOPLE,
}


def compute_next_run_at(
    frequency: str | None,
    now: datetime | None = None,
) -> datetime:
    """Рассчитать время следующего запуска.

    Правила:
    - immediate → now
    - daily → now + 24 часа
    - weekly → now + 7 дней
    - любое другое значение (в том числе None) → now

    Args:
        frequency: Частота дайджеста (регистр не важен).
        now: Точка отсчёта. По умолчанию — текущее время в UTC.

    Returns:
        Время следующего запуска.
    """
    if now is None:
        now = utc_now()

    key = frequency.strip().lower() if isinstance(frequency, str) else ""
    return now + FREQUENCY_INTERVALS.get(key, timedelta(0))


def normalize_category(value: str | None) -> SearchCategory | None:
    """Привести категорию подписки к каноническому значению.

    Пустое значение считается смешанным поиском (mixed).

    Args:
        value: Категория из записи подписки.

    Returns:
        SearchCategory или None если категория неизвестна.
    """
    if value is None or not str(value).strip():
        return SearchCategory.MIXED

    normalized = str(value).strip().lower()
    if normalized in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[normalized]

    try:
        return SearchCategory(normalized)
    except ValueError:
        return None
