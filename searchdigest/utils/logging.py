"""Настройка логирования.

Поддерживает два канала вывода:
1. Консоль (stdout) — для просмотра в терминале (с цветной подсветкой)
2. Файл с ротацией — для хранения истории (data/logs/app.log)

Компактный формат логов:
    25-01-07 21:55:46 | INFO | services.digest_worker | Сообщение
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler

from typing_extensions import override

from searchdigest.config.constants import DATA_DIR
from searchdigest.utils.timezone import get_timezone

# Папка для логов
LOGS_DIR = DATA_DIR / "logs"

# Префикс пакета, который убирается из имени логгера в консоли
PACKAGE_PREFIX = "searchdigest."


# ==============================================================================
# ANSI-коды для цветного вывода в терминале
# ==============================================================================
#
# Формат: \033[<код>m, где <код> определяет цвет/стиль.
# 30-37: обычные цвета, 90-97: яркие версии, 0: сброс.


class AnsiColors:
    """ANSI escape-коды для цветного вывода в терминале."""

    RESET = "\033[0m"

    DEBUG = "\033[36m"  # Голубой (cyan)
    INFO = "\033[32m"  # Зелёный (green)
    WARNING = "\033[33m"  # Жёлтый (yellow)
    ERROR = "\033[31m"  # Красный (red)
    CRITICAL = "\033[35m"  # Пурпурный (magenta)


# Соответствие уровней логирования и цветов
LEVEL_COLORS: dict[str, str] = {
    "DEBUG": AnsiColors.DEBUG,
    "INFO": AnsiColors.INFO,
    "WARNING": AnsiColors.WARNING,
    "ERROR": AnsiColors.ERROR,
    "CRITICAL": AnsiColors.CRITICAL,
}


class TimezoneFormatter(logging.Formatter):
    """Форматтер логов с поддержкой часового пояса.

    Стандартный logging.Formatter использует локальное время системы.
    Этот форматтер позволяет указать любой часовой пояс для отображения.
    """

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        timezone_name: str = "UTC",
    ) -> None:
        """Инициализировать форматтер.

        Args:
            fmt: Формат строки лога.
            datefmt: Формат даты/времени.
            timezone_name: Название часового пояса из базы IANA.
        """
        super().__init__(fmt, datefmt)
        self.timezone = get_timezone(timezone_name)

    @override
    def formatTime(
        self,
        record: logging.LogRecord,
        datefmt: str | None = None,
    ) -> str:
        """Отформатировать время записи лога в настроенном часовом поясе."""
        dt = datetime.fromtimestamp(record.created, tz=self.timezone)

        if datefmt:
            return dt.strftime(datefmt)
        return dt.strftime(self.default_time_format)


class ColoredFormatter(TimezoneFormatter):
    """Форматтер логов с цветной подсветкой уровней.

    Особенности:
    - Короткий год (25 вместо 2025)
    - Убран префикс "searchdigest." из имени модуля
    - Уровни логирования выделяются цветом

    Цвета отображаются только в терминале с поддержкой ANSI-кодов.
    В файловом логе цвета не нужны — используйте обычный TimezoneFormatter.
    """

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        timezone_name: str = "UTC",
        use_colors: bool = True,
    ) -> None:
        """Инициализировать форматтер с цветами.

        Args:
            fmt: Формат строки лога.
            datefmt: Формат даты/времени.
            timezone_name: Название часового пояса из базы IANA.
            use_colors: Использовать ли цветную подсветку.
        """
        super().__init__(fmt, datefmt, timezone_name)
        self.use_colors = use_colors

    @override
    def format(self, record: logging.LogRecord) -> str:
        """Отформатировать запись лога с цветной подсветкой."""
        # searchdigest.services.digest_worker → services.digest_worker
        original_name = record.name
        record.name = record.name.removeprefix(PACKAGE_PREFIX)

        formatted = super().format(record)

        # Восстанавливаем оригинальное имя (для других handler-ов)
        record.name = original_name

        if not self.use_colors:
            return formatted

        level_color = LEVEL_COLORS.get(record.levelname, "")
        if level_color:
            # "| INFO |" → "| \033[32mINFO\033[0m |"
            colored_level = f"{level_color}{record.levelname}{AnsiColors.RESET}"
            formatted = formatted.replace(
                f"| {record.levelname} |",
                f"| {colored_level} |",
            )

        return formatted


def _should_use_colors() -> bool:
    """Определить, поддерживает ли терминал цвета.

    Проверяет:
    1. Переменную окружения NO_COLOR (стандарт https://no-color.org/)
    2. Является ли stdout терминалом (tty)

    Returns:
        True если можно использовать цвета.
    """
    if os.environ.get("NO_COLOR"):
        return False

    # В Docker/CI/перенаправлении в файл: isatty() вернёт False
    return sys.stdout.isatty()


def setup_logging(
    level: str = "INFO",
    timezone_name: str = "UTC",
) -> None:
    """Настроить логирование приложения.

    Логи выводятся в консоль (с цветной подсветкой) и сохраняются в файл с ротацией.
    Файлы логов: data/logs/app.log (максимум 5 МБ, 3 резервных копии).

    Args:
        level: Уровень логирования (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        timezone_name: Часовой пояс для отображения времени в логах.
    """
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

    log_format = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    date_format = "%y-%m-%d %H:%M:%S"

    console_formatter = ColoredFormatter(
        log_format,
        datefmt=date_format,
        timezone_name=timezone_name,
        use_colors=_should_use_colors(),
    )
    file_formatter = TimezoneFormatter(
        log_format, datefmt=date_format, timezone_name=timezone_name
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    # maxBytes=5MB, backupCount=3: хранит app.log + app.log.1, app.log.2, app.log.3
    file_handler = RotatingFileHandler(
        LOGS_DIR / "app.log",
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(file_formatter)
    root_logger.addHandler(file_handler)

    # ===========================================================================
    # Uvicorn: единый формат со всем приложением
    # ===========================================================================
    for name in ("uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(console_handler)
        uvicorn_logger.addHandler(file_handler)
        uvicorn_logger.propagate = False

    uvicorn_root = logging.getLogger("uvicorn")
    uvicorn_root.handlers = []
    uvicorn_root.propagate = False

    # WARNING для внешних библиотек: уменьшает шум, ошибки всё равно видны.
    # APScheduler на INFO пишет строку на каждый запуск задачи.
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Получить логгер с указанным именем.

    Args:
        name: Имя логгера (обычно __name__).

    Returns:
        Настроенный экземпляр логгера.
    """
    return logging.getLogger(name)
