"""Загрузчик YAML-конфигурации.

Этот модуль загружает и валидирует config.yaml — файл с настройками,
которые можно менять без изменения кода.

Содержимое config.yaml:
- Настройки планировщика дайджестов (интервал тика, размер батча)
- Ёмкость очереди задач
- Лимит смешанного поиска

Пример config.yaml:
    digest:
      enabled: true
      interval_seconds: 60
      batch_size: 10
      queue_max_size: 500
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class DigestConfig(BaseModel):
    """Настройки планировщика дайджестов сохранённых поисков.

    Планировщик периодически (раз в interval_seconds) выполняет тик:
    1. Фаза A — ставит в очередь подписки, у которых наступил next_run_at
    2. Фаза B — забирает батч задач из очереди и выполняет поиск

    Attributes:
        enabled: Запускать ли воркер вместе с приложением.
            Если False — очередь доступна, но тики не выполняются.
        interval_seconds: Интервал между тиками (секунды).
        batch_size: Сколько подписок ставить в очередь и сколько задач
            забирать из очереди за один тик.
        queue_max_size: Ёмкость очереди задач.
            При заполнении новые подписки не ставятся (CapacityExceededError),
            повторная постановка уже присутствующих работает всегда.
        default_priority: Приоритет задачи по умолчанию.
            Сохраняется в задаче, но на порядок выборки не влияет.
        mixed_limit: Лимит результатов для смешанного (mixed) поиска.
    """

    enabled: bool = Field(
        default=True,
        description="Запускать воркер дайджестов вместе с приложением",
    )
    interval_seconds: int = Field(
        default=60,
        ge=5,
        le=86400,
        description="Интервал между тиками планировщика (5-86400 секунд)",
    )
    batch_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Размер батча фаз A и B (1-100)",
    )
    queue_max_size: int = Field(
        default=500,
        ge=1,
        description="Ёмкость очереди задач дайджестов",
    )
    default_priority: int = Field(
        default=5,
        description="Приоритет задачи по умолчанию (не влияет на порядок)",
    )
    mixed_limit: int = Field(
        default=30,
        ge=1,
        le=200,
        description="Лимит результатов смешанного поиска (1-200)",
    )


class YamlConfig(BaseModel):
    """Корневая модель config.yaml."""

    digest: DigestConfig = DigestConfig()


def load_yaml_config(path: Path | str = "config.yaml") -> YamlConfig:
    """Загрузить и валидировать YAML-конфигурацию.

    Args:
        path: Путь к файлу конфигурации.

    Returns:
        Валидированный объект конфигурации.
        Если файл не найден — конфигурация по умолчанию.

    Raises:
        yaml.YAMLError: Некорректный YAML.
        pydantic.ValidationError: Некорректная конфигурация.
    """
    config_path = Path(path)

    if not config_path.exists():
        return YamlConfig()

    with config_path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return YamlConfig.model_validate(data)


yaml_config = load_yaml_config()
