"""Утилиты для работы с часовыми поясами.

Как это работает:
1. Время в базе данных хранится в UTC (универсальное время)
2. SQLite возвращает naive datetime — перед сравнением с datetime.now(UTC)
   его нужно сделать aware (ensure_utc_aware)
3. Часовой пояс логов задаётся через LOGGING__TIMEZONE в настройках
"""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo


def get_timezone(timezone_name: str) -> ZoneInfo:
    """Получить объект часового пояса по имени.

    Args:
        timezone_name: Название часового пояса из базы IANA.
            Примеры: "Europe/Moscow", "UTC", "America/New_York".

    Returns:
        Объект ZoneInfo для указанного часового пояса.

    Raises:
        ZoneInfoNotFoundError: Если указанный часовой пояс не найден.
    """
    return ZoneInfo(timezone_name)


def utc_now() -> datetime:
    """Текущее время в UTC (aware)."""
    return datetime.now(UTC)


def ensure_utc_aware(dt: datetime) -> datetime:
    """Гарантировать, что datetime является timezone-aware в UTC.

    Если datetime naive (без tzinfo) — считаем его UTC и добавляем tzinfo.
    Если datetime уже aware — конвертируем в UTC.

    Это критично для сравнения datetime из БД (обычно naive) с datetime.now(UTC).

    Args:
        dt: Время для нормализации.

    Returns:
        Время с timezone=UTC.

    Example:
        >>> naive_dt = datetime(2024, 1, 1, 12, 0, 0)  # Из БД
        >>> ensure_utc_aware(naive_dt).tzinfo
        datetime.timezone.utc
    """
    if dt.tzinfo is None:
        # Naive datetime из БД: считаем UTC
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def isoformat_or_none(dt: datetime | None) -> str | None:
    """Сериализовать datetime в ISO-8601 (UTC) или вернуть None."""
    if dt is None:
        return None
    return ensure_utc_aware(dt).isoformat()
