"""Настройки приложения через переменные окружения.

ВАЖНО: Этот модуль загружает настройки из .env файла при импорте.
Для использования только классов настроек (без загрузки .env)
импортируйте из searchdigest.config.models вместо этого модуля.

Пример для тестов:
    # Изолированный импорт без побочных эффектов:
    from searchdigest.config.models import DiscoverySettings

    # НЕ используйте в тестах (загрузит .env):
    from searchdigest.config.settings import DiscoverySettings
"""

import sys
from pathlib import Path

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

# Путь к корню проекта (вычисляем от текущего файла)
# searchdigest/config/settings.py → searchdigest/config → searchdigest → корень
PROJECT_ROOT = Path(__file__).parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

# Если файл .env существует: используем его, иначе None (только переменные окружения)
ENV_FILE_PATH = ENV_FILE if ENV_FILE.exists() else None

# Импортируем классы настроек из models.py
# Это позволяет тестам импортировать классы без побочных эффектов
from searchdigest.config.models import (  # noqa: E402
    AppSettings,
    DatabaseSettings,
    DiscoverySettings,
    LoggingSettings,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "DiscoverySettings",
    "LoggingSettings",
    "Settings",
    "load_settings",
    "settings",
]

# Сообщение по умолчанию для ошибок конфигурации
DEFAULT_ERROR_MESSAGE = "Ошибка конфигурации. Проверьте файл .env или переменные окружения"


class Settings(BaseSettings):
    """Главные настройки приложения.

    Настройки загружаются из двух источников (в порядке приоритета):
    1. Переменные окружения (приоритет выше)
    2. Файл .env (если существует)

    Вложенные поля задаются через двойное подчёркивание:
        DISCOVERY__BASE_URL=https://api.example.com/api
        LOGGING__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app: AppSettings = AppSettings()
    database: DatabaseSettings = DatabaseSettings()
    logging: LoggingSettings = LoggingSettings()
    discovery: DiscoverySettings = DiscoverySettings()


def _format_validation_error(error: ValidationError) -> str:
    """Преобразовать ошибку Pydantic в понятное русское сообщение.

    Args:
        error: Ошибка валидации от Pydantic.

    Returns:
        Понятное сообщение на русском языке.
    """
    messages: list[str] = [DEFAULT_ERROR_MESSAGE]

    for err in error.errors():
        # Путь к полю (например, ("discovery", "timeout_seconds") -> "discovery.timeout_seconds")
        field_path = ".".join(str(loc) for loc in err["loc"])
        messages.append(f"Поле: {field_path}")
        messages.append(f"Тип ошибки: {err['type']}")
        messages.append(f"Сообщение: {err['msg']}")

    return "\n".join(messages)


def load_settings() -> Settings:
    """Загрузить настройки из переменных окружения.

    Если настройки некорректны — выводит понятную ошибку на русском
    и завершает программу.

    Returns:
        Объект Settings с загруженными настройками.
    """
    try:
        return Settings()
    except ValidationError as e:
        print(_format_validation_error(e), file=sys.stderr)
        sys.exit(1)


# Загружаем настройки при импорте модуля.
settings = load_settings()
