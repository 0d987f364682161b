"""Модуль базы данных.

Содержит:
- base.py — подключение к БД (engine, session)
- models_base.py — базовый класс для моделей (без загрузки settings)
- models/ — модели SQLAlchemy (таблицы)
- repositories/ — репозитории для работы с данными

Для изоляции тестов используйте:
    from searchdigest.db.models_base import Base  # Без загрузки settings

Для runtime-использования с реальной БД:
    from searchdigest.db.base import get_async_session_factory
"""

# Не импортируем из base.py здесь, чтобы тесты могли импортировать
# Base из models_base.py без загрузки settings.
