"""Планировщик дайджестов сохранённых поисков маркетплейса."""

__version__ = "0.1.0"
