"""Health check эндпоинт.

Содержит endpoint для проверки работоспособности сервиса:
- GET /health — health check для мониторинга и liveness probes
"""

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Проверка состояния сервиса.

    Помимо статуса возвращает состояние воркера дайджестов:
    запущен ли он, сколько задач в очереди, когда был последний тик.

    Returns:
        {"status": "ok", "digest": {...}} — digest равен None,
        пока приложение не завершило startup.
    """
    service = getattr(request.app.state, "digest_service", None)
    digest = service.worker_status().to_dict() if service is not None else None
    return {"status": "ok", "digest": digest}
