"""Тесты для health check эндпоинта.

Проверяет:
- Ответ до завершения startup (сервис дайджестов ещё не создан)
- Состояние воркера и очереди в ответе
"""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from searchdigest.api.health import router
from searchdigest.services.digest_worker import WorkerStatus


@pytest.fixture
def test_app() -> FastAPI:
    """Создать тестовое FastAPI приложение.

    Returns:
        FastAPI приложение с подключенным health router.
    """
    app = FastAPI()
    app.include_router(router)
    return app


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    """Создать тестовый HTTP-клиент."""
    return TestClient(test_app)


class TestHealthCheck:
    """Тесты для endpoint GET /health."""

    def test_health_without_digest_service(self, client: TestClient) -> None:
        """Проверить ответ, пока сервис дайджестов не создан."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "digest": None}

    def test_health_reports_worker_status(
        self, test_app: FastAPI, client: TestClient
    ) -> None:
        """Проверить, что в ответе есть состояние воркера и очереди."""
        # Arrange
        service = MagicMock()
        service.worker_status.return_value = WorkerStatus(
            running=True,
            pending_jobs=2,
            max_queue_size=100,
            oldest_job_at=None,
            newest_job_at=None,
            last_run_at=None,
        )
        test_app.state.digest_service = service

        # Act
        response = client.get("/health")

        # Assert
        assert response.status_code == 200
        digest = response.json()["digest"]
        assert digest["running"] is True
        assert digest["pending_jobs"] == 2
        assert digest["max_queue_size"] == 100
        service.worker_status.assert_called_once()
