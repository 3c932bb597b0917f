"""Tests for migration status and operation endpoints."""

import asyncio
import time
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from migrun.api.dependencies import get_dispatcher
from migrun.migration.enums import MigrationStatus
from migrun.migration.exceptions import RegistryUnavailableError


def wait_for_idle(client: TestClient, task_id: str, timeout: float = 5.0) -> dict:
    """Poll the state endpoint until the run released the task."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        state = client.get(f"/v1/migrations/{task_id}").json()["state"]
        if state["status"] == "idle":
            return state
        time.sleep(0.01)
    raise AssertionError(f"{task_id} did not return to idle")


class TestListMigrations:
    """Tests for GET /v1/migrations."""

    def test_lists_configured_migrations(self, client: TestClient) -> None:
        response = client.get("/v1/migrations")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [item["migration"]["id"] for item in data["items"]] == [
            "articles",
            "orphan",
            "users",
        ]
        assert all(item["state"]["status"] == "idle" for item in data["items"])


class TestGetMigration:
    """Tests for GET /v1/migrations/{task_id}."""

    def test_get_state(self, client: TestClient) -> None:
        response = client.get("/v1/migrations/users")

        assert response.status_code == 200
        data = response.json()
        assert data["migration"]["label"] == "Users"
        assert data["state"]["task_id"] == "users"
        assert data["state"]["status"] == "idle"

    def test_unknown_migration(self, client: TestClient) -> None:
        response = client.get("/v1/migrations/comments")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "UNKNOWN_TASK"
        assert error["task_id"] == "comments"


class TestExecuteImport:
    """Tests for import and rollback through POST /execute."""

    def test_import_accepted(self, client: TestClient, processor) -> None:
        response = client.post(
            "/v1/migrations/users/execute",
            json={"operation": "import", "limit": "2", "update": "0"},
        )

        assert response.status_code == 202
        data = response.json()
        assert data["accepted"] is True
        assert data["operation"] == "import"
        assert data["status"] == "importing"
        assert data["options"] == {"limit": 2, "update": False, "force": False}
        assert data["run_id"]

        state = wait_for_idle(client, "users")
        assert state["last_result"] == "incomplete"
        assert state["processed"] == 2
        assert len(processor.destination) == 2

    def test_rollback_after_import(self, client: TestClient, processor) -> None:
        client.post("/v1/migrations/users/execute", json={"operation": "import"})
        wait_for_idle(client, "users")

        response = client.post("/v1/migrations/users/execute", json={"operation": "rollback"})

        assert response.status_code == 202
        state = wait_for_idle(client, "users")
        assert state["last_result"] == "completed"
        assert processor.destination == {}

    def test_busy_migration(self, client: TestClient, registry) -> None:
        asyncio.run(registry.set_status("users", MigrationStatus.IMPORTING))

        response = client.post("/v1/migrations/users/execute", json={"operation": "import"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "TASK_BUSY"
        assert client.get("/v1/migrations/users").json()["state"]["status"] == "importing"

    def test_dependencies_unmet(self, client: TestClient) -> None:
        response = client.post("/v1/migrations/articles/execute", json={"operation": "import"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DEPENDENCIES_UNMET"

    def test_processor_not_found(self, client: TestClient) -> None:
        response = client.post("/v1/migrations/orphan/execute", json={"operation": "import"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "PROCESSOR_NOT_FOUND"


class TestExecuteValidation:
    """Tests for rejected execute requests."""

    @pytest.mark.parametrize("body", [{}, {"operation": ""}, {"operation": "explode"}])
    def test_missing_operation(self, client: TestClient, body: dict) -> None:
        response = client.post("/v1/migrations/users/execute", json=body)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_OPERATION"

    @pytest.mark.parametrize("limit", ["-1", "abc", -3])
    def test_invalid_limit(self, client: TestClient, limit) -> None:
        response = client.post(
            "/v1/migrations/users/execute",
            json={"operation": "import", "limit": limit},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_OPTION"
        assert error["details"][0]["field"] == "limit"
        assert client.get("/v1/migrations/users").json()["state"]["status"] == "idle"

    def test_unknown_migration(self, client: TestClient) -> None:
        response = client.post("/v1/migrations/comments/execute", json={"operation": "reset"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "UNKNOWN_TASK"

    def test_malformed_body(self, client: TestClient) -> None:
        response = client.post("/v1/migrations/users/execute", json={"operation": 5})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"


class TestExecuteStopAndReset:
    """Tests for stop and reset through POST /execute."""

    def test_stop_idle_migration(self, client: TestClient) -> None:
        response = client.post("/v1/migrations/users/execute", json={"operation": "stop"})

        assert response.status_code == 202
        data = response.json()
        assert data["accepted"] is True
        assert data["status"] == "idle"
        assert data["message"] == "No running operation to stop"

    def test_stop_running_migration(self, client: TestClient, registry) -> None:
        asyncio.run(registry.begin_run("users", MigrationStatus.IMPORTING))

        response = client.post("/v1/migrations/users/execute", json={"operation": "stop"})

        assert response.status_code == 202
        assert response.json()["message"] == "Stop requested"
        state = client.get("/v1/migrations/users").json()["state"]
        assert state["interrupt_requested"] is True
        assert state["interrupt_reason"] == "operator"

    def test_reset_then_import(self, client: TestClient, registry) -> None:
        asyncio.run(registry.set_status("users", MigrationStatus.STOPPED))

        response = client.post("/v1/migrations/users/execute", json={"operation": "reset"})

        assert response.status_code == 202
        assert response.json()["status"] == "idle"
        response = client.post("/v1/migrations/users/execute", json={"operation": "import"})
        assert response.status_code == 202
        wait_for_idle(client, "users")


class TestRegistryUnavailable:
    """Tests for backend outages."""

    def test_maps_to_503(self, app, client: TestClient) -> None:
        dispatcher = AsyncMock()
        dispatcher.dispatch.side_effect = RegistryUnavailableError("redis down")
        app.dependency_overrides[get_dispatcher] = lambda: dispatcher

        response = client.post("/v1/migrations/users/execute", json={"operation": "stop"})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "REGISTRY_UNAVAILABLE"
