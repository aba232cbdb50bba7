import logging
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from src.task_api.db import Base
from src.task_api.main import create_app
from src.task_api.settings import Settings


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def assert_task_shape(task: dict):
    assert set(task) == {"id", "title", "description", "completed", "createdAt", "updatedAt"}
    assert isinstance(task["id"], int)
    assert isinstance(task["title"], str)
    assert isinstance(task["completed"], bool)
    assert task["description"] is None or isinstance(task["description"], str)
    # Timestamps are ISO8601 strings
    parse_ts(task["createdAt"])
    parse_ts(task["updatedAt"])


def create(client, title="Test Task", description=None):
    res = client.post("/tasks", json={"title": title, "description": description})
    assert res.status_code == 201
    return res.json()


class TestHealthAndPage:
    def test_health_check(self, client, backend):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json() == {"message": "Healthy", "backend": backend, "tasks": 0}

    def test_page_served(self, client):
        res = client.get("/")
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/html")
        assert 'const API = "/tasks";' in res.text


class TestEndToEnd:
    def test_task_lifecycle(self, client):
        res = client.post("/tasks", json={"title": "Buy milk"})
        assert res.status_code == 201
        created = res.json()
        assert_task_shape(created)
        assert created["id"] == 1
        assert created["completed"] is False

        res = client.put("/tasks/1", json={"completed": True})
        assert res.status_code == 200
        updated = res.json()
        assert updated["completed"] is True
        assert updated["title"] == "Buy milk"

        res = client.get("/tasks/1")
        assert res.status_code == 200
        assert res.json() == updated

        res = client.delete("/tasks/1")
        assert res.status_code == 200
        assert res.json() == {"success": True, "message": "Task deleted successfully"}

        res = client.get("/tasks/1")
        assert res.status_code == 404
        assert res.json() == {"error": "Task not found"}

    def test_create_without_title_is_rejected(self, client):
        res = client.post("/tasks", json={})
        assert res.status_code == 400
        assert res.json()["error"] == "Title is required"
        assert client.get("/tasks").json() == []


class TestTasksCRUD:
    def test_list_returns_tasks_in_id_order(self, client):
        ids = [create(client, f"Task {i}")["id"] for i in range(3)]
        res = client.get("/tasks")
        assert res.status_code == 200
        items = res.json()
        assert [t["id"] for t in items] == ids
        for item in items:
            assert_task_shape(item)

    def test_create_with_description(self, client):
        task = create(client, "Pay bills", "Electricity")
        assert task["description"] == "Electricity"
        assert task["createdAt"] == task["updatedAt"]

    @pytest.mark.parametrize("title", ["", "   "])
    def test_create_blank_title(self, client, title):
        res = client.post("/tasks", json={"title": title})
        assert res.status_code == 400
        assert res.json() == {"error": "Title is required"}
        assert client.get("/health").json()["tasks"] == 0

    def test_create_wrong_type_title(self, client):
        res = client.post("/tasks", json={"title": 5})
        assert res.status_code == 400
        body = res.json()
        assert body["error"] == "Invalid request body"
        assert isinstance(body["details"], list)

    def test_create_malformed_json(self, client):
        res = client.post("/tasks", content="{not json", headers={"Content-Type": "application/json"})
        assert res.status_code == 400
        assert res.json()["error"] == "Invalid request body"

    def test_get_after_create_matches(self, client):
        task = create(client, "Read book")
        res = client.get(f"/tasks/{task['id']}")
        assert res.status_code == 200
        assert res.json() == task

    def test_get_not_found(self, client):
        res = client.get("/tasks/999999")
        assert res.status_code == 404
        assert res.json()["error"] == "Task not found"

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_non_numeric_id_rejected(self, client, method):
        kwargs = {"json": {"completed": True}} if method == "put" else {}
        res = getattr(client, method)("/tasks/abc", **kwargs)
        assert res.status_code == 400
        assert res.json()["error"] == "Invalid task id"

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_id_beyond_integer_range_is_not_found(self, client, method):
        create(client, "Only one")
        kwargs = {"json": {"completed": True}} if method == "put" else {}
        res = getattr(client, method)("/tasks/99999999999999999999", **kwargs)
        assert res.status_code == 404
        assert res.json() == {"error": "Task not found"}
        assert len(client.get("/tasks").json()) == 1

    @pytest.mark.parametrize("raw", ["1.0", "+1", "%201", "1_0", "-1", "0x1", "1" * 40])
    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_loosely_numeric_id_is_not_coerced(self, client, method, raw):
        task = create(client, "Target")
        kwargs = {"json": {"completed": True}} if method == "put" else {}
        res = getattr(client, method)(f"/tasks/{raw}", **kwargs)
        assert res.status_code == 400
        assert res.json()["error"] == "Invalid task id"
        assert client.get(f"/tasks/{task['id']}").json() == task

    def test_leading_zeros_are_plain_digits(self, client):
        task = create(client, "Padded")
        res = client.get(f"/tasks/00{task['id']}")
        assert res.status_code == 200
        assert res.json() == task


class TestErrorShape:
    def test_unknown_route_uses_error_body(self, client):
        res = client.get("/nowhere")
        assert res.status_code == 404
        assert res.json() == {"error": "Not Found"}

    def test_wrong_method_uses_error_body(self, client):
        task = create(client, "Patch me")
        res = client.patch(f"/tasks/{task['id']}", json={"completed": True})
        assert res.status_code == 405
        assert res.json() == {"error": "Method Not Allowed"}
        assert "PUT" in res.headers["allow"]


class TestUpdate:
    def test_partial_update_keeps_missing_fields(self, client):
        task = create(client, "Partial", "X")
        res = client.put(f"/tasks/{task['id']}", json={"title": "Partial Updated", "completed": True})
        assert res.status_code == 200
        patched = res.json()
        assert patched["title"] == "Partial Updated"
        assert patched["completed"] is True
        assert patched["description"] == "X"
        assert patched["createdAt"] == task["createdAt"]
        assert parse_ts(patched["updatedAt"]) > parse_ts(task["updatedAt"])

    def test_explicit_null_description_clears_it(self, client):
        task = create(client, "Clear me", "Soon gone")
        res = client.put(f"/tasks/{task['id']}", json={"description": None})
        assert res.status_code == 200
        assert res.json()["description"] is None
        assert res.json()["title"] == "Clear me"

    def test_empty_body_only_refreshes_updated_at(self, client):
        task = create(client, "Untouched", "Same")
        res = client.put(f"/tasks/{task['id']}", json={})
        assert res.status_code == 200
        body = res.json()
        assert body["title"] == "Untouched"
        assert body["description"] == "Same"
        assert body["completed"] is False
        assert parse_ts(body["updatedAt"]) > parse_ts(task["updatedAt"])

    @pytest.mark.parametrize(
        "payload, error",
        [
            ({"title": ""}, "Title is required"),
            ({"title": "   "}, "Title is required"),
            ({"title": None}, "Title is required"),
            ({"completed": None}, "Completed must be a boolean"),
            ({"completed": "yes"}, "Invalid request body"),
        ],
    )
    def test_invalid_fields_rejected(self, client, payload, error):
        task = create(client, "Stable")
        res = client.put(f"/tasks/{task['id']}", json=payload)
        assert res.status_code == 400
        assert res.json()["error"] == error
        assert client.get(f"/tasks/{task['id']}").json() == task

    def test_update_not_found_leaves_store_unchanged(self, client):
        create(client, "Only one")
        before = client.get("/tasks").json()
        res = client.put("/tasks/424242", json={"title": "Nope"})
        assert res.status_code == 404
        assert res.json() == {"error": "Task not found"}
        assert client.get("/tasks").json() == before


class TestDelete:
    def test_delete_is_not_repeatable(self, client):
        task = create(client, "ToDelete")
        assert client.delete(f"/tasks/{task['id']}").status_code == 200
        assert client.get(f"/tasks/{task['id']}").status_code == 404

        res = client.delete(f"/tasks/{task['id']}")
        assert res.status_code == 404
        assert res.json()["error"] == "Task not found"

    def test_list_counts_after_creates_and_deletes(self, client):
        ids = [create(client, f"Task {i}")["id"] for i in range(4)]
        for tid in ids[:2]:
            client.delete(f"/tasks/{tid}")
        assert [t["id"] for t in client.get("/tasks").json()] == ids[2:]


class TestStoreFaults:
    @pytest.fixture
    def broken_client(self, client, app_store, backend):
        if backend != "sql":
            pytest.skip("only the SQL store can fault")
        Base.metadata.drop_all(app_store.engine)
        return client

    @pytest.mark.parametrize(
        "method, path, kwargs, error",
        [
            ("get", "/tasks", {}, "Failed to fetch tasks"),
            ("post", "/tasks", {"json": {"title": "x"}}, "Failed to create task"),
            ("get", "/tasks/1", {}, "Failed to fetch task"),
            ("put", "/tasks/1", {"json": {"completed": True}}, "Failed to update task"),
            ("delete", "/tasks/1", {}, "Failed to delete task"),
        ],
    )
    def test_store_fault_maps_to_500(self, broken_client, method, path, kwargs, error):
        res = getattr(broken_client, method)(path, **kwargs)
        assert res.status_code == 500
        body = res.json()
        assert body["error"] == error
        assert "no such table" in body["details"]

    @pytest.mark.parametrize(
        "operation, method, path, kwargs",
        [
            ("list", "get", "/tasks", {}),
            ("create", "post", "/tasks", {"json": {"title": "x"}}),
            ("get", "get", "/tasks/1", {}),
            ("update", "put", "/tasks/1", {"json": {"completed": True}}),
            ("delete", "delete", "/tasks/1", {}),
        ],
    )
    def test_unexpected_fault_maps_to_json_500(
        self, app_store, backend, monkeypatch, caplog, operation, method, path, kwargs
    ):
        def explode(*args, **kw):
            raise RuntimeError("driver exploded")

        monkeypatch.setattr(app_store, operation, explode)
        app = create_app(settings=Settings(persistence_backend=backend), store=app_store)
        with TestClient(app, raise_server_exceptions=False) as c:
            with caplog.at_level(logging.ERROR, logger="src.task_api.main"):
                res = getattr(c, method)(path, **kwargs)

        assert res.status_code == 500
        assert res.json() == {"error": "Internal server error"}
        assert "driver exploded" not in res.text
        assert any(r.exc_info and isinstance(r.exc_info[1], RuntimeError) for r in caplog.records)
