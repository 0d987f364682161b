"""Модель подписки на сохранённый поиск.

Подписка — это сохранённый пользователем поисковый запрос (категория,
строка запроса, фильтры) плюс желаемая частота дайджеста.

Планировщик дайджестов работает только с подмножеством полей:
- читает category, query, filters, frequency, next_run_at
- записывает last_triggered_at и next_run_at после успешного поиска

Жизненный цикл расписания:
1. Пользователь сохраняет поиск — next_run_at задаётся при создании
2. Когда next_run_at <= now, подписка считается "просроченной" (due)
3. После успешного поиска next_run_at сдвигается на период частоты
4. При ошибке поиска next_run_at не меняется — подписка остаётся due
   и будет выполнена на следующем тике
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from typing_extensions import override

from searchdigest.db.models_base import Base


class SearchCategory(StrEnum):
    """Категория сохранённого поиска.

    Каждой категории соответствует свой метод Discovery Provider.
    """

    JOB = "job"
    GIG = "gig"
    PROJECT = "project"
    LAUNCHPAD = "launchpad"
    VOLUNTEERING = "volunteering"
    PEOPLE = "people"
    MIXED = "mixed"


class DigestFrequency(StrEnum):
    """Частота дайджеста.

    Значения:
        IMMEDIATE: Следующий запуск — сразу (next_run_at = now).
        DAILY: Раз в сутки.
        WEEKLY: Раз в неделю.
    """

    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


class SearchSubscription(Base):
    """Подписка пользователя на сохранённый поиск.

    Категория и частота хранятся строками (а не Enum-колонкой), чтобы
    устаревшие значения из старых записей не ломали загрузку модели.
    Неизвестная частота трактуется как immediate, неизвестная
    категория — как ошибка выполнения.

    Attributes:
        id: Внутренний ID подписки (автоинкремент).
        user_id: ID владельца подписки.
        name: Название сохранённого поиска для интерфейса.
        category: Категория поиска (job, gig, project, ...).
        query: Строка поискового запроса.
        filters: Фильтры поиска (JSON), передаются провайдеру как есть.
        frequency: Частота дайджеста (immediate, daily, weekly).
        notify_by_email: Отправлять ли дайджест на email.
        notify_in_app: Показывать ли дайджест в приложении.
        next_run_at: Когда подписку нужно выполнить в следующий раз.
            None — подписка не участвует в расписании.
        last_triggered_at: Когда поиск был выполнен в последний раз.
        created_at: Время создания записи в БД.
        updated_at: Время последнего обновления.
            Используется как второй ключ сортировки просроченных подписок.

    Индексы:
        - next_run_at + updated_at — выборка просроченных подписок планировщиком
        - user_id — подписки пользователя
    """

    __tablename__ = "search_subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    category: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=SearchCategory.MIXED,
    )

    query: Mapped[str | None] = mapped_column(Text, nullable=True)

    filters: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    frequency: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DigestFrequency.DAILY,
    )

    notify_by_email: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    notify_in_app: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    next_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_triggered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        # Условие планировщика: next_run_at <= ? ORDER BY next_run_at, updated_at
        Index("ix_search_subscriptions_due", "next_run_at", "updated_at"),
        Index("ix_search_subscriptions_user", "user_id"),
    )

    @override
    def __repr__(self) -> str:
        """Строковое представление для отладки."""
        return (
            f"<SearchSubscription(id={self.id}, user_id={self.user_id}, "
            f"category={self.category}, frequency={self.frequency}, "
            f"next_run_at={self.next_run_at})>"
        )
