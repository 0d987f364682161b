"""API эндпоинты.

- Health check (/health) с состоянием воркера дайджестов
"""

from searchdigest.api.health import router as health_router

__all__ = ["health_router"]
