from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from app.api.deps import (
    get_app_settings,
    get_gateway,
    get_project_service,
    get_task_manager,
    get_ws_manager,
)
from app.config import Settings
from app.main import create_app
from app.services.project_service import ProjectService
from app.services.task_manager import TaskManager
from tests.agent_fixtures import DummyWsManager, FakeGateway


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        api_key="test-key",
        credentials_path=tmp_path / "credentials.json",
        anthropic_model="test-model",
        image_base_url="http://image.test/v1",
    )


@pytest.fixture()
def ws_manager() -> DummyWsManager:
    return DummyWsManager()


@pytest.fixture()
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def projects() -> ProjectService:
    return ProjectService()


@pytest.fixture()
def tasks() -> TaskManager:
    return TaskManager()


@pytest.fixture()
def app(
    test_settings: Settings,
    ws_manager: DummyWsManager,
    fake_gateway: FakeGateway,
    projects: ProjectService,
    tasks: TaskManager,
):
    app = create_app()

    async def override_get_settings() -> Settings:
        return test_settings

    async def override_get_ws() -> DummyWsManager:
        return ws_manager

    async def override_get_gateway() -> FakeGateway:
        return fake_gateway

    async def override_get_projects() -> ProjectService:
        return projects

    async def override_get_tasks() -> TaskManager:
        return tasks

    app.dependency_overrides[get_app_settings] = override_get_settings
    app.dependency_overrides[get_ws_manager] = override_get_ws
    app.dependency_overrides[get_gateway] = override_get_gateway
    app.dependency_overrides[get_project_service] = override_get_projects
    app.dependency_overrides[get_task_manager] = override_get_tasks
    return app


@pytest_asyncio.fixture(scope="function")
async def async_client(app, tasks: TaskManager):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await tasks.shutdown()


@asynccontextmanager
async def _no_lifespan(_: object):
    yield


@pytest.fixture()
def ws_client(app):
    app.router.lifespan_context = _no_lifespan
    return TestClient(app)
