"""Модуль конфигурации.

Для доступа к настройкам используйте:
    from searchdigest.config.settings import settings

Для использования только классов настроек (без загрузки .env):
    from searchdigest.config.models import DiscoverySettings
"""

# Не импортируем settings здесь, чтобы тесты могли импортировать
# другие модули из searchdigest.config без загрузки .env файла.
# Для доступа к settings используйте прямой импорт:
#   from searchdigest.config.settings import settings
