"""Unit tests for FastAPI application setup.

Tests cover:
- Application factory creates FastAPI instance
- CORS and request logging middleware are configured
- Identity headers are turned into an Actor or rejected
- Engine errors are rendered as JSON bodies
- Health and readiness endpoints
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from httpx import ASGITransport, AsyncClient

from teamescrow import __version__
from teamescrow.config import TeamescrowConfig, WebConfig
from teamescrow.engine.actors import Actor, ActorRole
from teamescrow.errors import (
    IncompleteTasksError,
    InsufficientBalanceError,
    NotFoundError,
)
from teamescrow.web.app import create_app
from teamescrow.web.middleware import CORRELATION_HEADER, RequestLoggingMiddleware

PROJECT_ID = uuid.uuid4()
USER_ID = uuid.uuid4()
CLIENT_HEADERS = {"X-User-Id": str(USER_ID), "X-User-Role": "client"}


@pytest.fixture
def escrow() -> MagicMock:
    """Escrow engine double with a healthy database and idle scheduler."""
    mock = MagicMock()
    mock.scheduler.running = True
    mock.scheduler.pending_timers = 2

    session = AsyncMock()
    session.execute = AsyncMock(return_value=MagicMock())
    mock.ctx.session_factory.return_value.__aenter__ = AsyncMock(return_value=session)
    mock.ctx.session_factory.return_value.__aexit__ = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def app(escrow: MagicMock) -> FastAPI:
    app = create_app()
    app.state.escrow = escrow
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


class TestCreateApp:
    """Test application factory function."""

    def test_returns_fastapi_instance(self) -> None:
        """Test that create_app returns a configured FastAPI instance."""
        app = create_app()
        assert isinstance(app, FastAPI)
        assert app.title == "Teamescrow"
        assert app.version == __version__

    def test_app_stores_config_in_state(self) -> None:
        """Test that config is stored in app.state."""
        config = TeamescrowConfig()
        app = create_app(config)
        assert app.state.config is config

    def test_cors_uses_config_origins(self) -> None:
        """Test that CORS middleware uses origins from config."""
        origins = ["https://market.example.com"]
        app = create_app(TeamescrowConfig(web=WebConfig(cors_origins=origins)))

        cors = [m for m in app.user_middleware if m.cls == CORSMiddleware]
        assert len(cors) == 1
        assert cors[0].kwargs["allow_origins"] == origins

    def test_logging_middleware_is_registered(self) -> None:
        """Test that RequestLoggingMiddleware is added to the app."""
        app = create_app()
        assert any(m.cls == RequestLoggingMiddleware for m in app.user_middleware)


@pytest.mark.asyncio
class TestHealthEndpoints:
    """Test liveness and readiness endpoints."""

    async def test_liveness(self, client: AsyncClient) -> None:
        """Test that /health/ answers without touching the database."""
        response = await client.get("/health/")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_readiness_healthy(self, client: AsyncClient) -> None:
        """Test that readiness reports the database and scheduler state."""
        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "database": "connected",
            "scheduler": True,
            "pending_releases": 2,
        }

    async def test_readiness_unhealthy(self, client: AsyncClient, escrow: MagicMock) -> None:
        """Test that a failing database is reported as disconnected."""
        escrow.ctx.session_factory.return_value.__aenter__ = AsyncMock(
            side_effect=Exception("Database connection failed")
        )

        response = await client.get("/health/ready")

        assert response.json()["status"] == "unhealthy"
        assert response.json()["database"] == "disconnected"

    async def test_correlation_id_is_echoed(self, client: AsyncClient) -> None:
        """Test that a supplied correlation ID comes back on the response."""
        response = await client.get("/health/", headers={CORRELATION_HEADER: "req-42"})

        assert response.headers[CORRELATION_HEADER] == "req-42"

    async def test_correlation_id_is_generated(self, client: AsyncClient) -> None:
        response = await client.get("/health/")

        assert uuid.UUID(response.headers[CORRELATION_HEADER])


@pytest.mark.asyncio
class TestIdentityHeaders:
    """Test how the gateway identity headers become an Actor."""

    async def test_missing_headers_are_401(self, client: AsyncClient) -> None:
        """Test that write endpoints require identity headers."""
        response = await client.post(f"/projects/{PROJECT_ID}/launch")

        assert response.status_code == 401

    @pytest.mark.parametrize(
        "headers",
        [
            {"X-User-Id": "not-a-uuid", "X-User-Role": "client"},
            {"X-User-Id": str(USER_ID), "X-User-Role": "superuser"},
        ],
    )
    async def test_malformed_headers_are_400(
        self, client: AsyncClient, headers: dict[str, str]
    ) -> None:
        response = await client.post(f"/projects/{PROJECT_ID}/launch", headers=headers)

        assert response.status_code == 400

    async def test_actor_is_passed_to_engine(self, client: AsyncClient, escrow: MagicMock) -> None:
        """Test that the engine receives the caller built from the headers."""
        escrow.projects.delete_project = AsyncMock(return_value=None)

        response = await client.delete(
            f"/projects/{PROJECT_ID}",
            headers={"X-User-Id": str(USER_ID), "X-User-Role": "ADMIN"},
        )

        assert response.status_code == 204
        escrow.projects.delete_project.assert_awaited_once_with(
            Actor(user_id=USER_ID, role=ActorRole.ADMIN), PROJECT_ID
        )


@pytest.mark.asyncio
class TestErrorHandling:
    """Test that engine errors reach the client as JSON."""

    async def test_not_found(self, client: AsyncClient, escrow: MagicMock) -> None:
        """Test that NotFoundError maps to 404 with its error code."""
        escrow.projects.get_project = AsyncMock(side_effect=NotFoundError("project", PROJECT_ID))

        response = await client.get(f"/projects/{PROJECT_ID}")

        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "NOT_FOUND"
        assert body["entity_id"] == str(PROJECT_ID)

    async def test_insufficient_balance(self, client: AsyncClient, escrow: MagicMock) -> None:
        """Test that the balance error body carries both amounts."""
        escrow.projects.add_funds = AsyncMock(
            side_effect=InsufficientBalanceError(USER_ID, Decimal("10.00"), Decimal("500.00"))
        )

        response = await client.post(
            f"/projects/{PROJECT_ID}/funds", json={"amount": "500"}, headers=CLIENT_HEADERS
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "INSUFFICIENT_BALANCE"
        assert body["current_balance"] == "10.00"
        assert body["required_amount"] == "500.00"
        escrow.projects.add_funds.assert_awaited_once()
        assert escrow.projects.add_funds.await_args.args[2] == Decimal("500")

    async def test_incomplete_tasks(self, client: AsyncClient, escrow: MagicMock) -> None:
        """Test that completing with open tasks is a 409 listing them."""
        task_id = uuid.uuid4()
        escrow.projects.update_status = AsyncMock(side_effect=IncompleteTasksError([task_id]))

        response = await client.put(
            f"/projects/{PROJECT_ID}/status", json={"status": "completed"}, headers=CLIENT_HEADERS
        )

        assert response.status_code == 409
        assert response.json()["open_task_ids"] == [str(task_id)]

    async def test_unknown_status_name_is_400(self, client: AsyncClient, escrow: MagicMock) -> None:
        """Test that an unknown status never reaches the engine."""
        escrow.projects.update_status = AsyncMock()

        response = await client.put(
            f"/projects/{PROJECT_ID}/status", json={"status": "finished"}, headers=CLIENT_HEADERS
        )

        assert response.status_code == 400
        assert "Invalid status" in response.json()["detail"]
        escrow.projects.update_status.assert_not_awaited()

    async def test_catalogue(self, client: AsyncClient) -> None:
        response = await client.get("/projects/catalogue")

        assert response.status_code == 200
        assert "Backend Developer" in response.json()["roles"]


@pytest.mark.asyncio
class TestTaskRoutes:
    """Test how task requests reach the engine."""

    async def test_payer_in_body_is_ignored(self, client: AsyncClient, escrow: MagicMock) -> None:
        """Test that a caller cannot name who receives a task's refund."""
        escrow.tasks.create_task = AsyncMock(side_effect=NotFoundError("project", PROJECT_ID))
        freelancer_id = uuid.uuid4()

        response = await client.post(
            f"/projects/{PROJECT_ID}/tasks/",
            json={
                "freelancer_id": str(freelancer_id),
                "description": "Checkout API",
                "amount": "500",
                "payer_id": str(uuid.uuid4()),
            },
            headers=CLIENT_HEADERS,
        )

        assert response.status_code == 404
        escrow.tasks.create_task.assert_awaited_once()
        assert "payer_id" not in escrow.tasks.create_task.await_args.kwargs
        assert escrow.tasks.create_task.await_args.args[2] == freelancer_id
