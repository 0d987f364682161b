"""Константы приложения."""

from pathlib import Path

# ==============================================================================
# ПУТИ К ФАЙЛАМ И ДИРЕКТОРИЯМ
# ==============================================================================

# Корень проекта (где лежит pyproject.toml)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Папка для данных (локальная база SQLite, логи)
DATA_DIR = PROJECT_ROOT / "data"

# Создаём директорию если не существует (важно для первого запуска)
DATA_DIR.mkdir(parents=True, exist_ok=True)

# ==============================================================================
# ДАЙДЖЕСТЫ СОХРАНЁННЫХ ПОИСКОВ
# ==============================================================================

# Метка поверхности для метрик выполнения поиска
DIGEST_SURFACE = "subscription_digest"

# Поиск по подписке всегда запрашивает первую страницу
DIGEST_SEARCH_PAGE = 1

# Размер страницы результатов поиска по подписке
DIGEST_SEARCH_PAGE_SIZE = 10

# Окно "скоро выполнится" для сводки расписания (часы)
DUE_SOON_WINDOW_HOURS = 72

# Сколько ближайших запусков показывать в сводке
UPCOMING_RUNS_LIMIT = 8

# Сколько ключевых слов запросов показывать в сводке
KEYWORD_HIGHLIGHTS_LIMIT = 6

# Минимальная длина ключевого слова в сводке
KEYWORD_MIN_LENGTH = 3

# Сколько последних подписок пользователя учитывать в сводке
OVERVIEW_SUBSCRIPTIONS_LIMIT = 50
