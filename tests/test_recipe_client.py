# ============================================================================
# RECIPE CLIENT TESTS
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Tests - HTTP client and CLI
# PURPOSE: Verify request shapes, error mapping and the polling loop
# CREATED: 19 OCT 2026
# ============================================================================
"""
Recipe Client Tests

Uses httpx.MockTransport, so no server is needed. Sleeps are recorded,
never slept.

Run with:
    pytest tests/test_recipe_client.py -v
"""

import json
import pytest
import httpx

import client.cli as cli
from client import PollingTimeoutError, RecipeClient, RecipeClientError


# ============================================================================
# FIXTURES
# ============================================================================

def _record(status="running", **kwargs):
    record = {
        "execution_id": "exec_1",
        "status": status,
        "recipe_snapshot": {"nodes": [{"id": "a"}, {"id": "b"}]},
        "action_results": [],
        "result": None,
        "error": None,
        "failed_node_id": None,
    }
    record.update(kwargs)
    return record


class FakeEngine:
    """Scripted engine: serves a queue of status records."""

    def __init__(self, statuses=("running", "completed")):
        self.statuses = list(statuses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/execute"):
            return httpx.Response(202, json={"execution_id": "exec_1", "status": "running"})
        if request.method == "GET" and path == "/api/v1/executions/exec_1":
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            result = {"greeting": "hi"} if status == "completed" else None
            return httpx.Response(200, json=_record(status, result=result))
        if path == "/api/v1/executions/missing":
            return httpx.Response(404, json={"detail": "Execution not found: missing"})
        if path.endswith("/retry"):
            return httpx.Response(202, json={"execution_id": "exec_2", "retry_of": "exec_1"})
        if path == "/api/v1/recipes":
            return httpx.Response(200, json={"recipes": [], "total": 0})
        if path.endswith("/preview"):
            return httpx.Response(200, json={"status": "completed", "output": json.loads(request.content)})
        return httpx.Response(500, text="boom")


def _client(engine, sleeps=None):
    recorded = sleeps if sleeps is not None else []
    return RecipeClient("http://engine.local/", transport=httpx.MockTransport(engine), sleep=recorded.append)


# ============================================================================
# REQUESTS
# ============================================================================

class TestRequests:

    def test_execute_posts_body(self):
        engine = FakeEngine()
        with _client(engine) as client:
            execution_id = client.execute("greeting", {"name": "Ana"}, project_id="p1")

        assert execution_id == "exec_1"
        request = engine.requests[0]
        assert request.url.path == "/api/v1/recipes/greeting/execute"
        body = json.loads(request.content)
        assert body["external_input"] == {"name": "Ana"}
        assert body["project_id"] == "p1"
        assert body["version"] is None

    def test_not_found_raises(self):
        with _client(FakeEngine()) as client:
            with pytest.raises(RecipeClientError) as exc_info:
                client.get_status("missing")

        assert exc_info.value.status_code == 404
        assert "not found" in exc_info.value.detail

    def test_non_json_error_body(self):
        with _client(FakeEngine()) as client:
            with pytest.raises(RecipeClientError) as exc_info:
                client.get_summary("exec_1")

        assert exc_info.value.status_code == 500
        assert exc_info.value.detail == "boom"

    def test_transport_failure_maps_to_502(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with _client(refuse) as client:
            with pytest.raises(RecipeClientError) as exc_info:
                client.get_status("exec_1")

        assert exc_info.value.status_code == 502

    def test_timeout_maps_to_504(self):
        def stall(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with _client(stall) as client:
            with pytest.raises(RecipeClientError) as exc_info:
                client.get_status("exec_1")

        assert exc_info.value.status_code == 504

    def test_retry_and_listing(self):
        engine = FakeEngine()
        with _client(engine) as client:
            assert client.retry("exec_1") == "exec_2"
            assert client.list_recipes(stage_type="copy")["total"] == 0

        assert engine.requests[-1].url.params["stage_type"] == "copy"

    def test_preview_body(self):
        with _client(FakeEngine()) as client:
            result = client.preview_node("greeting", "hello", mock_outputs={"gen": ["x"]})
            isolated = client.preview_node("greeting", "hello", execute_dependencies=False)

        assert result["output"] == {
            "external_input": {},
            "mock_outputs": {"gen": ["x"]},
            "execute_dependencies": True,
        }
        assert isolated["output"]["execute_dependencies"] is False


# ============================================================================
# POLLING
# ============================================================================

class TestPolling:

    def test_polls_until_terminal(self):
        sleeps = []
        seen = []
        engine = FakeEngine(["running", "running", "completed"])

        with _client(engine, sleeps) as client:
            record = client.wait_for_completion(
                "exec_1", interval_seconds=2.0, max_attempts=10,
                on_poll=lambda attempt, rec: seen.append((attempt, rec["status"])),
            )

        assert record["status"] == "completed"
        assert seen == [(1, "running"), (2, "running"), (3, "completed")]
        assert sleeps == [2.0, 2.0]

    def test_failed_is_terminal(self):
        with _client(FakeEngine(["failed"])) as client:
            assert client.wait_for_completion("exec_1", interval_seconds=1, max_attempts=3)["status"] == "failed"

    def test_gives_up_after_max_attempts(self):
        sleeps = []
        with _client(FakeEngine(["running"]), sleeps) as client:
            with pytest.raises(PollingTimeoutError) as exc_info:
                client.wait_for_completion("exec_1", interval_seconds=5.0, max_attempts=3)

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_status == "running"
        assert sleeps == [5.0, 5.0]
        assert "15s" in str(exc_info.value)

    def test_run_executes_then_waits(self):
        engine = FakeEngine(["completed"])
        with _client(engine) as client:
            record = client.run("greeting", {"name": "Ana"})

        assert record["result"] == {"greeting": "hi"}
        assert [r.method for r in engine.requests] == ["POST", "GET"]


# ============================================================================
# CLI
# ============================================================================

class TestCli:

    @pytest.fixture
    def engine(self, monkeypatch):
        engine = FakeEngine(["running", "completed"])
        monkeypatch.setattr(
            cli,
            "RecipeClient",
            lambda url: RecipeClient(url, transport=httpx.MockTransport(engine), sleep=lambda s: None),
        )
        return engine

    def test_fire_and_forget(self, engine, capsys):
        assert cli.main(["greeting", '{"name": "Ana"}']) == 0
        assert "Started execution exec_1" in capsys.readouterr().out
        assert len(engine.requests) == 1

    def test_poll_to_completion(self, engine, capsys):
        assert cli.main(["greeting", "{}", "--poll", "--interval", "0"]) == 0
        out = capsys.readouterr().out
        assert "nodes=0/2" in out
        assert '"greeting": "hi"' in out

    def test_poll_timeout_exit_code(self, engine):
        engine.statuses = ["running"]
        assert cli.main(["greeting", "--poll", "--max-attempts", "2", "--interval", "0"]) == 2

    def test_failed_execution_exit_code(self, engine, capsys):
        engine.statuses = ["failed"]
        assert cli.main(["greeting", "--poll"]) == 1
        assert "FAILED at node" in capsys.readouterr().out

    def test_invalid_json(self, engine, capsys):
        assert cli.main(["greeting", "{not json"]) == 1
        assert engine.requests == []
