"""
Tests for the FastAPI surface: /health, /analyze, /document, /render.
"""

import pytest
from fastapi.testclient import TestClient

from routescribe.api.dependencies import get_audit_logger, get_session
from routescribe.audit.logger import AuditLogger
from routescribe.config import Settings
from routescribe.core.engine import AnalysisSession
from routescribe.main import app
from routescribe.models.api_models import AuditEntry

CONTROLLER_PATH = "app/Http/Controllers/PostController.php"


@pytest.fixture
def audit(tmp_path):
    return AuditLogger(tmp_path / "audit.jsonl")


@pytest.fixture
def client(schemas, class_index, audit):
    session = AnalysisSession(Settings(max_source_bytes=20_000), schemas, class_index)
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_audit_logger] = lambda: audit
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "1.0.0"
    assert data["engine"] == "static"
    assert data["merge_strategy"] == "smart"


def test_analyze_controller(client, post_controller, audit):
    response = client.post("/analyze", json={"source": post_controller, "path": CONTROLLER_PATH})
    assert response.status_code == 200
    data = response.json()
    assert data["controller"] == "App\\Http\\Controllers\\PostController"
    assert list(data["analyses"]) == ["index", "show", "store", "update", "destroy"]
    store = data["analyses"]["store"]
    assert store["operation_type"] == "store"
    assert "title" in store["body_params"]
    assert data["duration_ms"] >= 0

    entries = audit.read_recent()
    assert len(entries) == 1
    assert entries[0]["endpoint"] == "analyze"
    assert entries[0]["unit"] == CONTROLLER_PATH
    assert entries[0]["methods"] == ["index", "show", "store", "update", "destroy"]


def test_analyze_single_method(client, post_controller):
    response = client.post("/analyze", json={"source": post_controller, "method": "scassa"})
    assert response.status_code == 200
    assert list(response.json()["analyses"]) == ["scassa"]


def test_document_controller(client, post_controller, audit):
    response = client.post("/document", json={"source": post_controller})
    assert response.status_code == 200
    docs = response.json()["docs"]
    assert docs["store"].startswith("/**\n * Store a newly created resource in storage")
    assert audit.read_recent()[-1]["endpoint"] == "document"


def test_render_round_trip(client, post_controller):
    analyses = client.post("/analyze", json={"source": post_controller}).json()["analyses"]
    documented = client.post("/document", json={"source": post_controller}).json()["docs"]

    response = client.post("/render", json={"analysis": analyses["store"]})
    assert response.status_code == 200
    data = response.json()
    assert data["method"] == "store"
    assert data["doc"] == documented["store"]


def test_render_with_existing_doc(client, post_controller):
    analyses = client.post("/analyze", json={"source": post_controller}).json()["analyses"]
    existing = "/**\n * Publish a post\n *\n * @subgroup Drafts\n */"

    smart = client.post("/render", json={"analysis": analyses["store"], "existing_doc": existing}).json()["doc"]
    assert smart.splitlines()[1] == " * Publish a post"

    overwrite = client.post(
        "/render",
        json={"analysis": analyses["store"], "existing_doc": existing, "merge_strategy": "overwrite"},
    ).json()["doc"]
    assert "@subgroup" not in overwrite


# ── Errors ──


def test_oversized_source(client):
    source = "<?php\n" + "// padding\n" * 2_000
    response = client.post("/analyze", json={"source": source})
    assert response.status_code == 400
    assert response.json()["detail"] == "Source exceeds maximum size of 20000 bytes"


def test_parse_error(client, audit):
    response = client.post("/document", json={"source": "<?php class {", "path": "broken.php"})
    assert response.status_code == 422
    assert "broken.php" in response.json()["detail"]
    assert audit.read_recent() == []


def test_no_class(client):
    response = client.post("/analyze", json={"source": "<?php\n\nfunction helper() {}\n"})
    assert response.status_code == 404


def test_missing_method(client, post_controller):
    response = client.post("/analyze", json={"source": post_controller, "method": "archive"})
    assert response.status_code == 404
    assert "archive" in response.json()["detail"]


def test_request_validation(client):
    response = client.post("/analyze", json={})
    assert response.status_code == 422
    assert "detail" in response.json()

    response = client.post("/document", json={"source": "x", "merge_strategy": "append"})
    assert response.status_code == 422


# ── Audit ──


def test_health_reports_request_totals(client, post_controller):
    client.post("/analyze", json={"source": post_controller, "path": CONTROLLER_PATH})
    client.post("/document", json={"source": post_controller, "method": "store"})

    totals = client.get("/health").json()["requests"]
    assert totals["analyze"]["requests"] == 1
    assert totals["analyze"]["methods"] == 5
    assert totals["document"]["methods"] == 1


def test_audit_filters_and_skips_malformed_lines(audit):
    audit.log(AuditEntry(request_id="a1", endpoint="analyze", unit="A.php", methods=["index"]))
    audit.log(AuditEntry(request_id="b2", endpoint="render", unit="B.php", methods=["show"]))
    with open(audit.log_path, "a", encoding="utf-8") as f:
        f.write("not json\n")
    audit.log(AuditEntry(request_id="c3", endpoint="analyze", unit="B.php", methods=["store"]))

    assert [e["request_id"] for e in audit.read_recent()] == ["a1", "b2", "c3"]
    assert [e["request_id"] for e in audit.read_recent(endpoint="analyze")] == ["a1", "c3"]
    assert [e["request_id"] for e in audit.read_recent(unit="B.php")] == ["b2", "c3"]
    assert [e["request_id"] for e in audit.read_recent(count=1)] == ["c3"]
    assert audit.totals()["analyze"]["requests"] == 2
