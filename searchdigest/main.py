"""Точка входа в приложение.

Запускает FastAPI-сервер с воркером дайджестов сохранённых поисков.

Команда запуска:
    uvicorn searchdigest.main:app --host 0.0.0.0 --port 8000

Или через python:
    python -m searchdigest
"""

import logging

from searchdigest.app import create_app
from searchdigest.config.settings import settings
from searchdigest.utils.logging import setup_logging

# Настраиваем логирование при импорте модуля
setup_logging(
    level=settings.logging.level,
    timezone_name=settings.logging.timezone,
)

_logger = logging.getLogger(__name__)
_logger.info("Search Digest: логирование настроено, загрузка приложения")

# Создаём FastAPI приложение
app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.app.host, port=settings.app.port)
