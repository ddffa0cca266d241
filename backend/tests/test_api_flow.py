from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studyaid.api.deps import get_llm_client, get_text_cache
from studyaid.db.session import get_db, init_db
from studyaid.main import app
from studyaid.services import document_service
from studyaid.services.text_cache import InMemoryTextCache

QUIZ_REPLY = """```json
[
  {"questionText": "What makes ATP?", "options": ["Nucleus", "Mitochondria", "Ribosome", "Golgi"], "correctAnswerIndex": 1},
  {"questionText": "Cell wall is found in?", "options": ["Plants", "Animals", "Both", "Neither"], "correctAnswerIndex": 0}
]
```"""


class _FakeLLM:
    def __init__(self):
        self.reply = QUIZ_REPLY

    def complete(self, prompt):
        return self.reply


@pytest.fixture()
def llm():
    return _FakeLLM()


@pytest.fixture()
def client(monkeypatch, llm):
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=engine)
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def _get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    cache = InMemoryTextCache(ttl_seconds=0)
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_text_cache] = lambda: cache
    app.dependency_overrides[get_llm_client] = lambda: llm
    monkeypatch.setattr(document_service, "read_upload", lambda data, **kw: "Mitochondria make ATP. Plants have cell walls.")

    yield TestClient(app)

    app.dependency_overrides.clear()
    engine.dispose()


def _register(client, name="ana"):
    res = client.post(
        "/api/auth/register",
        json={"username": name, "email": f"{name}@example.com", "password": "secret123"},
    )
    assert res.status_code == 201, res.text
    token = res.json()["data"]["token"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


def _upload(client, headers, kind="quizzes", name="bio.pdf"):
    res = client.post(
        f"/api/{kind}/upload",
        headers=headers,
        files={"file": (name, b"%PDF-1.4 fake", "application/pdf")},
    )
    assert res.status_code == 200, res.text
    return res.json()["data"]["fileId"]


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.json()["cache"]["backend"] == "InMemoryTextCache"
    assert res.headers["X-Request-ID"]


def test_health_reports_cached_uploads(client):
    assert client.get("/api/health").json()["cache"]["entries"] == 0

    _upload(client, _register(client))

    assert client.get("/api/health").json()["cache"]["entries"] == 1


def test_register_login_and_me(client):
    _register(client)

    dup = client.post("/api/auth/register", json={"username": "ana", "email": "ana@example.com", "password": "secret123"})
    assert dup.status_code == 409
    assert dup.json()["error"]["code"] == "CONFLICT"

    bad = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope"})
    assert bad.status_code == 401

    ok = client.post("/api/auth/login", json={"email": "ANA@example.com", "password": "secret123"})
    assert ok.status_code == 200
    headers = {"Authorization": "Bearer " + ok.json()["data"]["token"]["access_token"]}

    me = client.get("/api/auth/me", headers=headers)
    assert me.json()["data"]["username"] == "ana"


def test_protected_routes_need_a_token(client):
    res = client.get("/api/quizzes")
    assert res.status_code == 401
    assert res.json()["error"]["message"] == "Not authorized, no token provided."

    res = client.get("/api/quizzes", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401
    assert res.json()["error"]["message"] == "Not authorized, token failed."


def test_generate_submit_and_dashboard(client):
    headers = _register(client)
    file_id = _upload(client, headers)
    assert file_id == "bio.pdf"

    res = client.post("/api/quizzes/generate", headers=headers, json={"fileId": file_id, "prompt": "2 questions"})
    assert res.status_code == 201, res.text
    quiz = res.json()["data"]
    assert quiz["topic"] == "2 questions"
    assert [q["correctAnswerIndex"] for q in quiz["questions"]] == [1, 0]

    res = client.post(
        f"/api/quizzes/{quiz['id']}/submit",
        headers=headers,
        json={
            "answers": [
                {"questionIndex": 0, "selectedOptionIndex": 1},
                {"questionIndex": 1, "selectedAnswerIndex": 3},
            ],
            "durationSec": 90,
        },
    )
    assert res.status_code == 201, res.text
    attempt = res.json()["data"]
    assert attempt["score"] == 1
    assert attempt["totalQuestions"] == 2

    attempts = client.get("/api/quizzes/attempts", headers=headers).json()["data"]
    assert len(attempts) == 1
    assert attempts[0]["quizTopic"] == "2 questions"

    stats = client.get("/api/quizzes/stats", headers=headers).json()["data"]
    assert stats["averageScore"] == 50.0

    dash = client.get("/api/dashboard", headers=headers).json()["data"]
    assert dash["userName"] == "ana"
    assert [s["value"] for s in dash["stats"]] == ["1", "50%", "0h 1m", "0"]
    assert dash["recentActivity"][0]["score"] == "1/2"
    assert len(dash["performance"]) == 5


def test_flashcards_flow(client, llm):
    headers = _register(client)
    file_id = _upload(client, headers, kind="flashcards", name="verbs.pdf")
    llm.reply = 'Sure! [{"question": "ser?", "answer": "to be"}] Enjoy.'

    res = client.post("/api/flashcards/generate", headers=headers, json={"fileId": file_id, "prompt": "1 card"})
    assert res.status_code == 201, res.text
    set_id = res.json()["data"]["id"]

    got = client.get(f"/api/flashcards/{set_id}", headers=headers).json()["data"]
    assert got["cards"] == [{"question": "ser?", "answer": "to be"}]

    activity = client.get("/api/dashboard/activity?limit=1", headers=headers).json()["data"]
    assert activity[0]["type"] == "flashcards"
    assert activity[0]["score"] == "1 cards"


def test_generate_without_upload_is_not_found(client):
    headers = _register(client)

    res = client.post("/api/quizzes/generate", headers=headers, json={"fileId": "missing.pdf", "prompt": "x"})
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "NOT_FOUND"


def test_malformed_completion_saves_nothing(client, llm, monkeypatch):
    from studyaid.core.config import settings

    headers = _register(client)
    file_id = _upload(client, headers)
    llm.reply = "I am unable to produce JSON today."

    monkeypatch.setattr(settings, "ENV", "prod")
    res = client.post("/api/quizzes/generate", headers=headers, json={"fileId": file_id, "prompt": "x"})

    assert res.status_code == 502
    error = res.json()["error"]
    assert error["code"] == "MALFORMED_OUTPUT"
    assert error["message"] == "Failed to generate quiz."
    assert "details" not in error
    assert client.get("/api/quizzes", headers=headers).json()["data"] == []


def test_generation_diagnostics_shown_in_dev(client, llm):
    headers = _register(client)
    file_id = _upload(client, headers)
    llm.reply = '[{"questionText": "Q", "options": ["a", "b", "c"], "correctAnswerIndex": 0}]'

    res = client.post("/api/quizzes/generate", headers=headers, json={"fileId": file_id, "prompt": "x"})

    assert res.status_code == 502
    error = res.json()["error"]
    assert error["code"] == "SCHEMA_VIOLATION"
    assert error["details"]["index"] == 0


def test_quizzes_are_private(client):
    owner = _register(client, "ana")
    other = _register(client, "bob")
    file_id = _upload(client, owner)
    quiz_id = client.post("/api/quizzes/generate", headers=owner, json={"fileId": file_id, "prompt": "x"}).json()["data"]["id"]

    assert client.get(f"/api/quizzes/{quiz_id}", headers=other).status_code == 404

    res = client.post(
        f"/api/quizzes/{quiz_id}/submit",
        headers=other,
        json={"answers": [{"questionIndex": 0, "selectedOptionIndex": 1}]},
    )
    assert res.status_code == 404

    # Uploads are scoped per user too
    res = client.post("/api/quizzes/generate", headers=other, json={"fileId": file_id, "prompt": "x"})
    assert res.status_code == 404


def test_submit_validation(client):
    headers = _register(client)

    res = client.post("/api/quizzes/1/submit", headers=headers, json={"answers": []})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_INPUT"

    res = client.post("/api/quizzes/1/submit", headers=headers, json={})
    assert res.status_code == 422
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"
