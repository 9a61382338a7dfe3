"""
HTTP API tests
"""
import pytest
from fastapi.testclient import TestClient

from autoflow.api import create_app
from autoflow.core.engine import ExecutionEngine
from autoflow.core.parser import GraphParser
from autoflow.core.scheduler import WorkflowScheduler

from conftest import graph, node, simple_graph


def graph_payload(g=None):
    return GraphParser().to_dict(g or simple_graph())


class TestScheduleAPI:

    @pytest.fixture
    def scheduler(self, registry, clock):
        return WorkflowScheduler(ExecutionEngine(registry=registry), clock=clock, autostart=False)

    @pytest.fixture
    def client(self, scheduler):
        with TestClient(create_app(scheduler)) as client:
            yield client

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["active_schedules"] == 0
        assert "X-Request-ID" in response.headers

    def test_root(self, client):
        assert client.get("/").json()["name"] == "autoflow API"

    def test_run_workflow(self, client, calls):
        response = client.post("/api/v1/workflows/wf/run", json={"graph": graph_payload()})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["workflow_id"] == "wf"
        assert data["logs"][-1] == "Workflow completed successfully"
        assert [c[0] for c in calls] == ["notify"]

    def test_run_failed_workflow_reports_in_body(self, client):
        payload = graph_payload(graph([node("a", "action", action="notify")]))
        response = client.post("/api/v1/workflows/wf/run", json={"graph": payload})

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error_type"] == "no_trigger"

    def test_run_invalid_graph(self, client):
        payload = {"nodes": [{"id": "x", "type": "database"}]}
        response = client.post("/api/v1/workflows/wf/run", json={"graph": payload})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "unknown_node_type"

    def test_run_requires_graph(self, client):
        assert client.post("/api/v1/workflows/wf/run", json={}).status_code == 422

    def test_validate(self, client):
        ok = client.post("/api/v1/workflows/validate", json={"graph": graph_payload()})
        assert ok.json() == {"valid": True, "errors": []}

        payload = graph_payload(graph([node("t", "trigger"), node("fetch", "dataSource")]))
        bad = client.post("/api/v1/workflows/validate", json={"graph": payload})
        assert bad.json()["valid"] is False
        assert "source" in bad.json()["errors"][0]

    def test_schedule_lifecycle(self, client):
        created = client.post(
            "/api/v1/schedules/wf",
            json={"recurrence": "every_5_minutes", "graph": graph_payload()},
        )
        assert created.status_code == 201
        assert created.json()["execution_count"] == 0

        fetched = client.get("/api/v1/schedules/wf")
        assert fetched.status_code == 200
        assert fetched.json()["state"] == "active"
        assert fetched.json()["last_result"] is None

        listed = client.get("/api/v1/schedules").json()
        assert listed["total"] == 1
        assert listed["items"][0]["workflow_id"] == "wf"

        updated = client.put("/api/v1/schedules/wf", json={"recurrence": "hourly"})
        assert updated.status_code == 200
        assert updated.json()["recurrence"] == "hourly"

        triggered = client.post("/api/v1/schedules/wf/trigger")
        assert triggered.status_code == 200
        assert triggered.json()["success"] is True

        after = client.get("/api/v1/schedules/wf").json()
        assert after["execution_count"] == 1
        assert after["last_result"]["success"] is True

        deleted = client.delete("/api/v1/schedules/wf")
        assert deleted.status_code == 200
        assert client.delete("/api/v1/schedules/wf").status_code == 404

        inactive = client.get("/api/v1/schedules/wf").json()
        assert inactive["is_active"] is False
        assert inactive["state"] == "inactive"
        assert client.get("/api/v1/schedules").json()["total"] == 0
        assert client.get("/api/v1/schedules?include_inactive=true").json()["total"] == 1

    def test_schedule_without_trigger(self, client):
        payload = graph_payload(graph([node("a", "action", action="notify")]))
        response = client.post("/api/v1/schedules/wf", json={"graph": payload})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "no_trigger"

    def test_oversized_recurrence_is_accepted(self, client):
        response = client.post(
            "/api/v1/schedules/wf",
            json={"recurrence": "every_99999999999999_minutes", "graph": graph_payload()},
        )
        assert response.status_code == 201
        assert response.json()["recurrence"] == "every_99999999999999_minutes"

    def test_unknown_schedule(self, client):
        assert client.get("/api/v1/schedules/missing").status_code == 404
        assert client.post("/api/v1/schedules/missing/trigger").status_code == 404
        assert client.put("/api/v1/schedules/missing", json={"recurrence": "hourly"}).status_code == 404

    def test_clear_schedules(self, client, scheduler):
        client.post("/api/v1/schedules/a", json={"graph": graph_payload()})
        client.post("/api/v1/schedules/b", json={"graph": graph_payload()})

        response = client.delete("/api/v1/schedules")
        assert response.json() == {"purged": 2}
        assert client.get("/api/v1/schedules").json()["total"] == 0

    def test_locked_workflow_conflict(self, client, scheduler):
        # Simulate an in-flight run holding the lock
        scheduler._running.add("wf")

        response = client.post("/api/v1/workflows/wf/run", json={"graph": graph_payload()})
        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "workflow_locked"
