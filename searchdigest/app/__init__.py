"""Модуль приложения.

Содержит factory для создания FastAPI app и lifecycle management.
"""

from searchdigest.app.factory import create_app
from searchdigest.app.lifecycle import ApplicationLifecycle

__all__ = [
    "ApplicationLifecycle",
    "create_app",
]
