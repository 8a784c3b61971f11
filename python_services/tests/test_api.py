import json

import pytest
from fastapi.testclient import TestClient

from conftest import (
    ASSESSMENTS,
    COMPLEXITY,
    DIFFERENTIATION,
    GAPS,
    INSPIRATION,
    LEARNING_PATH,
    NODES,
    NODES_JSON,
    PREREQUISITES,
    RUBRIC,
    RUBRIC_JSON,
    STANDARDS,
    SUITE,
    SUITE_JSON,
    _FakeAdapter,
    as_json,
)
from curriculum_service import main
from curriculum_service.main import app, get_ai, get_app_settings, get_repository
from shared.models import AIProvider, BloomLevel, OutputType

ANALYZE_BODY = {"rawText": "Unit 1: fractions", "gradeLevel": "3rd Grade", "standardsFramework": "Common Core Math"}

ALL_ROUTES = [
    (NODES, NODES_JSON),
    (GAPS, "[]"),
    (PREREQUISITES, "[]"),
    (LEARNING_PATH, as_json({"recommendedOrder": ["node-1", "node-2"], "rationale": "order"})),
    (ASSESSMENTS, "[]"),
    (DIFFERENTIATION, "[]"),
    (STANDARDS, "[]"),
    (COMPLEXITY, as_json({"averageBloomLevel": "Apply"})),
    (SUITE, SUITE_JSON),
    (RUBRIC, RUBRIC_JSON),
]


class _FakeRepository:
    def __init__(self):
        self.saved = []

    async def save_suite(self, suite):
        self.saved.append(suite)
        return suite

    async def load_suites(self, limit=50):
        return list(self.saved)

    async def delete_suite(self, suite_id):
        self.saved = [s for s in self.saved if s.id != suite_id]


@pytest.fixture
def client(settings, make_service):
    state = {"service": make_service(_FakeAdapter(AIProvider.GEMINI, routes=ALL_ROUTES)), "repository": None}
    app.dependency_overrides[get_ai] = lambda: state["service"]
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_repository] = lambda: state["repository"]
    test_client = TestClient(app)
    test_client.state = state
    yield test_client
    app.dependency_overrides.clear()


def _sse_events(text: str):
    return [line[len("data: "):] for line in text.split("\n\n") if line.startswith("data: ")]


def test_health_lists_providers(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["providers"] == ["gemini"]


def test_providers_endpoint(client) -> None:
    assert client.get("/api/providers").json() == {"providers": ["gemini"], "default": "gemini"}


def test_analyze_returns_analysis(client) -> None:
    response = client.post("/api/curriculum/analyze", json=ANALYZE_BODY)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert len(body["analysis"]["nodes"]) == 2
    assert body["analysis"]["estimatedTotalDuration"] == "1h 30m"


@pytest.mark.parametrize(
    "body,message",
    [
        ({"rawText": "x", "gradeLevel": "3rd Grade"}, "rawText, gradeLevel, and standardsFramework are required"),
        ({**ANALYZE_BODY, "gradeLevel": "Grade Three"}, "Invalid gradeLevel"),
        ({**ANALYZE_BODY, "standardsFramework": "Made Up"}, "Invalid standardsFramework"),
    ],
)
def test_analyze_validation(client, body, message) -> None:
    response = client.post("/api/curriculum/analyze", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": message}


def test_analyze_without_providers_is_server_error(client, make_service) -> None:
    client.state["service"] = make_service()

    response = client.post("/api/curriculum/analyze", json=ANALYZE_BODY)

    assert response.status_code == 500
    assert response.json() == {"error": "No AI providers configured."}


def test_debug_mode_adds_details(client, make_service, settings, monkeypatch) -> None:
    client.state["service"] = make_service()
    settings.debug = True
    monkeypatch.setattr(main, "get_settings", lambda: settings)

    response = client.post("/api/curriculum/analyze", json=ANALYZE_BODY)

    assert response.status_code == 500
    assert "Traceback" in response.json()["details"]


def test_rate_limit_message(client, make_service) -> None:
    class _RateLimited(Exception):
        status_code = 429

    client.state["service"] = make_service(_FakeAdapter(fail_with=_RateLimited("slow down")))

    response = client.post("/api/documents/parse", json={"base64Data": "JVBERi0=", "mimeType": "application/pdf"})

    assert response.status_code == 500
    assert response.json()["error"] == "Rate limit exceeded. Please try again in a moment"


def test_analyze_stream_emits_sse_until_done(client) -> None:
    response = client.post("/api/curriculum/analyze-stream", json=ANALYZE_BODY)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _sse_events(response.text)
    assert events[-1] == "[DONE]"
    chunks = [json.loads(e) for e in events[:-1]]
    assert chunks[0] == {"type": "progress", "progress": 10, "message": "Analyzing curriculum structure..."}
    assert chunks[-1]["type"] == "complete"
    assert chunks[-1]["progress"] == 100


def test_analyze_stream_error_chunk_then_done(client, make_service) -> None:
    client.state["service"] = make_service()

    response = client.post("/api/curriculum/analyze-stream", json=ANALYZE_BODY)

    events = _sse_events(response.text)
    assert json.loads(events[0]) == {"type": "error", "message": "No AI providers configured."}
    assert events[1] == "[DONE]"


def test_parse_document_strips_data_url(client) -> None:
    adapter = client.state["service"].adapters[AIProvider.GEMINI]

    response = client.post(
        "/api/documents/parse",
        json={"base64Data": "data:application/pdf;base64,JVBERi0=", "mimeType": "application/pdf"},
    )

    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert response.json()["success"] is True
    assert adapter.documents[-1] == ("JVBERi0=", "application/pdf")


def test_parse_document_validation(client) -> None:
    missing = client.post("/api/documents/parse", json={"mimeType": "application/pdf"})
    wrong_type = client.post("/api/documents/parse", json={"base64Data": "AAAA", "mimeType": "text/plain"})

    assert missing.status_code == 400
    assert missing.json()["error"] == "base64Data and mimeType are required"
    assert wrong_type.status_code == 400
    assert wrong_type.json()["error"] == (
        "Invalid mimeType. Supported types: application/pdf, image/png, image/jpeg, image/jpg, image/gif, image/webp"
    )


def test_wrong_method_is_405(client) -> None:
    response = client.get("/api/curriculum/analyze")

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_options_preflight_is_ok(client) -> None:
    assert client.options("/api/curriculum/analyze").status_code == 200


def test_invalid_json_body(client) -> None:
    response = client.post(
        "/api/curriculum/analyze", content="not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON body"}


def test_gamma_missing_fields(client) -> None:
    response = client.post("/api/integrations/gamma/enhance", json={"title": "Cells"})

    assert response.status_code == 400
    assert response.json() == {"error": "Content and title are required"}


def _generate_body(**extra):
    body = {
        "node": {"id": "node-1", "title": "Fractions", "description": "d", "learningObjectives": ["o"]},
        "outputType": OutputType.WORKSHEET.value,
        "bloomLevel": BloomLevel.RECALL.value,
        "pageCount": 1,
    }
    body.update(extra)
    return body


def test_generate_suite_returns_result(client) -> None:
    response = client.post("/api/suites/generate", json=_generate_body())

    assert response.status_code == 200
    body = response.json()
    assert body["suite"]["title"] == "Fractions Worksheet"
    assert [k["sectionId"] for k in body["suite"]["teacherKey"]] == ["s2", "s3", "s4"]
    assert {s["stage"]: s["status"] for s in body["stages"]}["generation"] == "ok"


def test_generate_suite_persists_when_asked(client) -> None:
    repository = _FakeRepository()
    client.state["repository"] = repository

    response = client.post("/api/suites/generate", json=_generate_body(persist=True))

    assert response.status_code == 200
    assert [s.id for s in repository.saved] == [response.json()["suite"]["id"]]


def test_generate_suite_rejects_bad_body(client) -> None:
    response = client.post("/api/suites/generate", json={"outputType": "Worksheet"})

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request:")


def test_export_pdf(client) -> None:
    suite = client.post("/api/suites/generate", json=_generate_body()).json()["suite"]

    response = client.post("/api/suites/export-pdf", json={"suite": suite, "includeTeacherKey": False})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert 'filename="Fractions_Worksheet.pdf"' in response.headers["content-disposition"]


def test_list_suites_without_storage_is_503(client) -> None:
    response = client.get("/api/suites")

    assert response.status_code == 503
    assert response.json() == {"error": "Suite storage is not configured"}


def test_list_and_delete_suites(client) -> None:
    repository = _FakeRepository()
    client.state["repository"] = repository
    client.post("/api/suites/generate", json=_generate_body(persist=True))

    listed = client.get("/api/suites").json()
    suite_id = listed["suites"][0]["id"]
    deleted = client.delete(f"/api/suites/{suite_id}")

    assert listed["count"] == 1
    assert deleted.json() == {"success": True, "id": suite_id}
    assert repository.saved == []


def test_cors_allows_any_origin(client) -> None:
    response = client.get("/health", headers={"Origin": "https://school.example"})

    assert response.headers["access-control-allow-origin"] == "*"
    assert "access-control-allow-credentials" not in response.headers


def test_providers_default_follows_order(client, make_service) -> None:
    client.state["service"] = make_service(_FakeAdapter(AIProvider.CLAUDE), _FakeAdapter(AIProvider.OPENAI))

    assert client.get("/api/providers").json() == {"providers": ["openai", "claude"], "default": "openai"}


def test_providers_without_keys(client, make_service) -> None:
    client.state["service"] = make_service()

    assert client.get("/api/providers").json() == {"providers": [], "default": None}


def test_export_html(client) -> None:
    suite = client.post("/api/suites/generate", json=_generate_body()).json()["suite"]
    suite["standards"] = [{"code": "3.NF.A.2", "description": "Fractions on a number line"}]

    response = client.post("/api/suites/export-pdf", json={"suite": suite, "format": "html"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "<h1 style='text-align:center'>Fractions Worksheet</h1>" in response.text
    assert "Standards: 3.NF.A.2: Fractions on a number line" in response.text
    assert "Teacher Key" in response.text


def test_export_rejects_unknown_format(client) -> None:
    suite = client.post("/api/suites/generate", json=_generate_body()).json()["suite"]

    response = client.post("/api/suites/export-pdf", json={"suite": suite, "format": "docx"})

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request:")


def test_generate_suite_with_inspiration(client, make_service) -> None:
    inspiration = as_json({"layout": {"structure": "Boxed warm-up then practice"}, "recommendations": "Wide margins"})
    adapter = _FakeAdapter(AIProvider.GEMINI, routes=[(INSPIRATION, inspiration)] + ALL_ROUTES)
    client.state["service"] = make_service(adapter)

    response = client.post(
        "/api/suites/generate",
        json=_generate_body(
            options={"enableInspiration": True},
            inspiration={"base64Data": "data:application/pdf;base64,JVBERi0=", "mimeType": "application/pdf"},
        ),
    )

    assert response.status_code == 200
    assert {s["stage"]: s["status"] for s in response.json()["stages"]}["inspiration"] == "ok"
    assert adapter.documents == [("JVBERi0=", "application/pdf")]
    suite_prompt = next(p for p in adapter.prompts if SUITE in p)
    assert "Layout structure: Boxed warm-up then practice" in suite_prompt
