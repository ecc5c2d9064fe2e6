"""HTTP surface tests against the FastAPI app with a scripted provider."""

import httpx
import pytest
from fastapi.testclient import TestClient

from enhancement_service import EnhancementService
from main import create_app
from settings import ServerSettings
from telemetry import DiagnosticLog


@pytest.fixture
def make_api(make_client):
    def _make(transport, enable_logging: bool = True, **overrides) -> TestClient:
        service = EnhancementService(make_client(transport, **overrides), diagnostics=DiagnosticLog())
        settings = ServerSettings(enable_logging=enable_logging, log_level="warning")
        return TestClient(create_app(service=service, settings=settings))
    return _make


class TestEnhanceEndpoint:
    def test_success(self, make_api, scripted, ok_response):
        api = make_api(scripted([ok_response("A well formed paragraph of text.")]))
        response = api.post("/api/enhance", json={"prompt": "Write a story about a fox.", "mode": "write"})
        assert response.status_code == 200
        body = response.json()
        assert body["enhanced_prompt"] == "A well formed paragraph of text."
        assert body["mode"] == "write"
        assert body["metadata"]["task_mode"] == "write"
        assert body["metadata"]["validation_result"] == {"is_valid": True, "violations": []}
        assert set(body["_meta"]) == {"processing_time", "request_id"}
        assert "warnings" not in body

    def test_prompt_warnings_are_returned(self, make_api, scripted, ok_response):
        api = make_api(scripted([ok_response("A well formed paragraph of text.")]))
        body = api.post("/api/enhance", json={"prompt": "Write a poem", "mode": "write"}).json()
        assert body["warnings"] == ["Consider ending your prompt with proper punctuation for clarity"]

    def test_short_prompt_is_rejected(self, make_api, scripted):
        transport = scripted([])
        response = make_api(transport).post("/api/enhance", json={"prompt": "Hi"})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["message"] == "Invalid prompt"
        assert error["details"] == ["Prompt is too short (minimum 5 characters)"]
        assert error["path"] == "/api/enhance"
        assert transport.requests == []

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"prompt": ""},
            {"prompt": "Write a story.", "mode": "limerick"},
            {"prompt": "Write a story.", "max_tokens": 50},
        ],
    )
    def test_malformed_body_is_400(self, make_api, scripted, payload):
        response = make_api(scripted([])).post("/api/enhance", json=payload)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Validation error"

    def test_provider_failure_maps_to_503(self, make_api, scripted):
        api = make_api(scripted([httpx.Response(401, json={"error": {"message": "bad key"}})]))
        response = api.post("/api/enhance", json={"prompt": "Write a story about a fox.", "mode": "write"})
        assert response.status_code == 503
        assert response.json()["error"]["message"] == "Invalid API key"


class TestHelperEndpoints:
    def test_suggestions(self, make_api, scripted, ok_response):
        api = make_api(scripted([ok_response("1. Be specific\n2. Add context\n3. Name the audience")]))
        body = api.post("/api/enhance/suggestions", json={"prompt": "Write a story."}).json()
        assert body["suggestions"] == ["Be specific", "Add context", "Name the audience"]
        assert body["mode"] == "standard"

    def test_validate_invalid_prompt_skips_suggestions(self, make_api, scripted):
        transport = scripted([])
        body = make_api(transport).post("/api/enhance/validate", json={"prompt": "Hi"}).json()
        assert body["validation"]["is_valid"] is False
        assert body["suggestions"] == []
        assert transport.requests == []

    def test_status(self, make_api, scripted):
        body = make_api(scripted([httpx.Response(200, json={"data": []})])).get("/api/enhance/status").json()
        assert body["service"] == "enhancement"
        assert body["available"] is True
        assert body["model"] == "test-model"

    def test_deterministic_id(self, make_api, scripted):
        api = make_api(scripted([]))
        payload = {"prompt": "Write a story.", "mode": "code"}
        first = api.post("/api/enhance/deterministic-id", json=payload).json()
        second = api.post("/api/enhance/deterministic-id", json=payload).json()
        assert first["prompt_id"] == second["prompt_id"]
        assert first["prompt_id"].startswith("prompt_")
        assert first["input"]["mode"] == "code"

    def test_config_hides_api_key(self, make_api, scripted):
        config = make_api(scripted([])).get("/api/enhance/config").json()["config"]
        assert "api_key" not in config
        assert config["model"] == "test-model"

    def test_root(self, make_api, scripted):
        assert make_api(scripted([])).get("/").json()["message"] == "Contract Enforcement API"


class TestContractCheck:
    def test_valid_json(self, make_api, scripted):
        response = make_api(scripted([])).post(
            "/api/enhance/contract/validate", json={"content": '{"a": 1}', "mode": "json"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["is_valid"] is True
        assert body["violations"] == []
        assert body["contract"] == "Output must be valid JSON only, no prose or markdown."

    def test_code_language_mismatch(self, make_api, scripted):
        body = make_api(scripted([])).post(
            "/api/enhance/contract/validate",
            json={"content": "```ruby\nputs 1\n```", "mode": "code", "language": "python"},
        ).json()
        assert body["is_valid"] is False
        assert body["violations"] == ["Language mismatch. Expected: python, Found: ruby"]
        assert body["suggested_fix"] == "Use code block with language: ```python"

    def test_deeply_nested_json_is_a_violation(self, make_api, scripted):
        response = make_api(scripted([])).post(
            "/api/enhance/contract/validate", json={"content": "[" * 50000 + "]" * 50000, "mode": "json"}
        )
        assert response.status_code == 200
        assert response.json()["violations"] == ["Invalid JSON format."]

    def test_unknown_mode_is_400(self, make_api, scripted):
        response = make_api(scripted([])).post(
            "/api/enhance/contract/validate", json={"content": "x", "mode": "standard"}
        )
        assert response.status_code == 400


class TestLogsEndpoints:
    def test_logs_lifecycle(self, make_api, scripted, ok_response):
        api = make_api(scripted([ok_response("A well formed paragraph of text.")]))
        enhanced = api.post("/api/enhance", json={"prompt": "Write a story about a fox.", "mode": "write"}).json()
        prompt_id = enhanced["metadata"]["prompt_id"]

        logs = api.get("/api/enhance/logs").json()
        assert logs["count"] == len(logs["logs"]) == 3

        per_prompt = api.get(f"/api/enhance/logs/{prompt_id}").json()
        assert [e["event"] for e in per_prompt["logs"]][-1] == "enhancement_completed"

        summary = api.get("/api/enhance/logs/summary", params={"hours": 1}).json()
        assert summary["counts"]["enhancement_started"] == 1
        assert summary["failure_rate_percent"] == 0.0

        assert api.delete("/api/enhance/logs").status_code == 200
        assert api.get("/api/enhance/logs").json()["count"] == 0

    def test_logs_not_mounted_when_disabled(self, make_api, scripted):
        api = make_api(scripted([]), enable_logging=False)
        assert api.get("/api/enhance/logs").status_code == 404


class TestHealth:
    def test_healthy(self, make_api, scripted):
        response = make_api(scripted([httpx.Response(200, json={"data": []})])).get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["dependencies"] == {"ai_service": "available"}

    def test_degraded(self, make_api, scripted):
        response = make_api(scripted([httpx.Response(500)])).get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_ready_requires_api_key(self, make_api, scripted):
        assert make_api(scripted([])).get("/health/ready").status_code == 200
        response = make_api(scripted([]), api_key="").get("/health/ready")
        assert response.status_code == 503
        assert response.json()["ready"] is False

    def test_live(self, make_api, scripted):
        assert make_api(scripted([])).get("/health/live").json()["alive"] is True
