"""Базовый класс для всех моделей SQLAlchemy.

Этот модуль содержит только декларативную базу без побочных эффектов.
Используется для изоляции тестов от загрузки настроек при импорте моделей.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Базовый класс для всех моделей.

    Пример использования:
        class SearchSubscription(Base):
            __tablename__ = "search_subscriptions"
            id: Mapped[int] = mapped_column(primary_key=True)
    """
