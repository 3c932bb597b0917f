"""Shared fixtures for API tests."""

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from migrun.api.app import create_app
from migrun.api.dependencies import (
    get_batch_engine,
    get_catalog,
    get_dispatcher,
    get_status_registry,
)
from migrun.migration.catalog import InMemoryMigrationCatalog
from migrun.migration.dispatcher import OperationDispatcher
from migrun.migration.engine import AsyncBatchEngine, InMemoryRecordProcessor
from migrun.migration.models import MigrationTask
from migrun.migration.registry import InMemoryStatusRegistry

TEST_CONFIG = """
[observability.logging]
level = "WARNING"
format = "json"
"""


@pytest.fixture
def registry() -> InMemoryStatusRegistry:
    return InMemoryStatusRegistry()


@pytest.fixture
def catalog() -> InMemoryMigrationCatalog:
    return InMemoryMigrationCatalog(
        [
            MigrationTask(id="users", label="Users"),
            MigrationTask(id="articles", dependencies=["users"]),
            MigrationTask(id="orphan"),
        ]
    )


@pytest.fixture
def processor() -> InMemoryRecordProcessor:
    return InMemoryRecordProcessor({str(i): {"id": i} for i in range(6)})


@pytest.fixture
def engine(registry, catalog, processor) -> AsyncBatchEngine:
    return AsyncBatchEngine(registry, catalog, {"users": processor})


@pytest.fixture
def dispatcher(registry, engine) -> OperationDispatcher:
    return OperationDispatcher(registry, engine, stop_reason="operator")


@pytest.fixture
def app(
    test_config_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    registry,
    catalog,
    engine,
    dispatcher,
) -> FastAPI:
    """Create the application wired to in-memory components."""
    (test_config_dir / "default.toml").write_text(TEST_CONFIG)
    monkeypatch.setenv("MIGRUN_CONFIG_DIR", str(test_config_dir))
    monkeypatch.setenv("MIGRUN_ENV", "test")

    app = create_app()
    app.dependency_overrides[get_status_registry] = lambda: registry
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_batch_engine] = lambda: engine
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client sharing one event loop across requests."""
    with TestClient(app) as client:
        yield client
