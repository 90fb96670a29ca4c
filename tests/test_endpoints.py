"""
HTTP endpoint tests for the to-do service.

Tests the FastAPI endpoints via TestClient, exercising the full
request -> validation -> TaskStore -> response serialization path.
"""

from datetime import datetime, timedelta

import pytest

from todo_service.errors import StoreConnectionError, UnclassifiedStoreError


# -------------------------------------------------------------------
# Health endpoints
# -------------------------------------------------------------------

class TestHealthEndpoints:
    """Tests for / and /health."""

    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        body = resp.json()
        assert "message" in body
        assert body["docs"] == "/docs"
        assert body["health"] == "/health"

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert "error" not in body
        stamp = datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00"))
        assert stamp.utcoffset() == timedelta(0)

    def test_health_database_down(self, client, store, monkeypatch):
        def failing_ping():
            raise StoreConnectionError()

        monkeypatch.setattr(store, "ping", failing_ping)

        resp = client.get("/health")
        assert resp.status_code == 500
        body = resp.json()
        assert body["status"] == "unhealthy"
        assert body["database"] == "disconnected"
        assert body["error"]
        assert "sqlite" not in body["error"]

    def test_health_never_raises(self, client, store, monkeypatch):
        def broken_ping():
            raise RuntimeError("postgresql://user:secret@db/todo")

        monkeypatch.setattr(store, "ping", broken_ping)

        resp = client.get("/health")
        assert resp.status_code == 500
        assert resp.json()["status"] == "unhealthy"
        assert "secret" not in resp.text


# -------------------------------------------------------------------
# Task endpoints
# -------------------------------------------------------------------

class TestTaskEndpoints:
    """Tests for /tasks and /tasks/{id}."""

    def _create(self, client, title):
        resp = client.post("/tasks", json={"title": title})
        assert resp.status_code == 201
        return resp.json()

    def test_read_tasks_empty(self, client):
        resp = client.get("/tasks")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_create_task(self, client):
        resp = client.post("/tasks", json={"title": "Buy milk"})

        assert resp.status_code == 201
        data = resp.json()
        assert isinstance(data["id"], int)
        assert data["title"] == "Buy milk"
        assert data["completed"] is False
        assert "created_at" in data
        assert "updated_at" in data

    def test_create_task_trims_title(self, client):
        assert self._create(client, "  Padded  ")["title"] == "Padded"

    def test_create_task_missing_title(self, client):
        resp = client.post("/tasks", json={})
        assert resp.status_code == 400
        assert resp.json()["error"]

    def test_create_task_blank_title(self, client):
        resp = client.post("/tasks", json={"title": "   "})
        assert resp.status_code == 400
        assert "título" in resp.json()["error"]
        assert client.get("/tasks").json() == []

    def test_create_task_title_too_long(self, client):
        resp = client.post("/tasks", json={"title": "x" * 201})
        assert resp.status_code == 400

    def test_read_tasks_newest_first(self, client):
        first = self._create(client, "Task A")
        second = self._create(client, "Task B")

        resp = client.get("/tasks")
        assert resp.status_code == 200
        assert [t["id"] for t in resp.json()] == [second["id"], first["id"]]

    def test_read_task(self, client):
        task = self._create(client, "Task 1")

        resp = client.get(f"/tasks/{task['id']}")
        assert resp.status_code == 200
        assert resp.json() == task

    def test_read_task_not_found(self, client):
        resp = client.get("/tasks/9999")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Tarea no encontrada"}

    def test_update_task_partial(self, client):
        task = self._create(client, "Buy milk")

        resp = client.put(f"/tasks/{task['id']}", json={"completed": True})
        assert resp.status_code == 200
        data = resp.json()
        assert data["completed"] is True
        assert data["title"] == "Buy milk"
        assert data["created_at"] == task["created_at"]

    def test_update_task_title(self, client):
        task = self._create(client, "Original Title")

        resp = client.put(f"/tasks/{task['id']}", json={"title": "Updated Title"})
        assert resp.status_code == 200
        assert resp.json()["title"] == "Updated Title"
        assert resp.json()["completed"] is False

    def test_update_task_numeric_completed(self, client):
        task = self._create(client, "Numeric flag")

        resp = client.put(f"/tasks/{task['id']}", json={"completed": 1})
        assert resp.status_code == 200
        assert resp.json()["completed"] is True

    @pytest.mark.parametrize("value, expected", [
        ("false", True),
        ("0", True),
        ("abc", True),
        ([1], True),
        ({}, True),
        ("", False),
        (0, False),
    ])
    def test_update_task_completed_truthiness(self, client, value, expected):
        task = self._create(client, "Loose flag")

        resp = client.put(f"/tasks/{task['id']}", json={"completed": value})
        assert resp.status_code == 200
        assert resp.json()["completed"] is expected
        assert client.get(f"/tasks/{task['id']}").json()["completed"] is expected

    def test_timestamps_are_utc(self, client):
        task = self._create(client, "Stamped")

        for field in ("created_at", "updated_at"):
            stamp = datetime.fromisoformat(task[field].replace("Z", "+00:00"))
            assert stamp.utcoffset() == timedelta(0)

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_non_integer_id_not_found(self, client, method):
        kwargs = {"json": {"title": "Renamed"}} if method == "put" else {}

        resp = getattr(client, method)("/tasks/abc", **kwargs)
        assert resp.status_code == 404
        assert resp.json() == {"error": "Tarea no encontrada"}

    def test_update_task_ignores_unknown_fields(self, client):
        task = self._create(client, "Fixed id")

        resp = client.put(f"/tasks/{task['id']}", json={"id": 77, "completed": True})
        assert resp.status_code == 200
        assert resp.json()["id"] == task["id"]

    def test_update_task_blank_title(self, client):
        task = self._create(client, "Keep")

        resp = client.put(f"/tasks/{task['id']}", json={"title": ""})
        assert resp.status_code == 400
        assert client.get(f"/tasks/{task['id']}").json()["title"] == "Keep"

    def test_update_task_not_found(self, client):
        resp = client.put("/tasks/9999", json={"title": "Updated Title"})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Tarea no encontrada"}

    def test_delete_task(self, client):
        task = self._create(client, "Task to Delete")

        resp = client.delete(f"/tasks/{task['id']}")
        assert resp.status_code == 200
        data = resp.json()
        assert "message" in data
        assert data["deletedTask"] == task

        assert client.get(f"/tasks/{task['id']}").status_code == 404

    def test_delete_task_not_found(self, client):
        resp = client.delete("/tasks/9999")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Tarea no encontrada"}

    def test_store_error_is_500_without_details(self, client, store, monkeypatch):
        def broken_list_all():
            raise UnclassifiedStoreError()

        monkeypatch.setattr(store, "list_all", broken_list_all)

        resp = client.get("/tasks")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Error del servidor"}

    def test_end_to_end_flow(self, client):
        created = client.post("/tasks", json={"title": "Buy milk"})
        assert created.status_code == 201
        task_id = created.json()["id"]
        assert created.json()["completed"] is False

        updated = client.put(f"/tasks/{task_id}", json={"completed": True})
        assert updated.status_code == 200
        assert updated.json()["completed"] is True
        assert updated.json()["title"] == "Buy milk"

        assert client.delete(f"/tasks/{task_id}").status_code == 200
        assert client.get(f"/tasks/{task_id}").status_code == 404


# -------------------------------------------------------------------
# Middleware
# -------------------------------------------------------------------

class TestMiddleware:

    def test_cors_allows_frontend_origin(self, client):
        resp = client.options(
            "/tasks",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_process_time_header(self, client):
        resp = client.get("/tasks")
        assert "x-process-time" in resp.headers
