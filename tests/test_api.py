# =============================================================================
# Integration Tests — HTTP API
# =============================================================================
#
# FastAPI TestClient with every collaborator swapped through
# dependency_overrides: SQLite job store, recording dispatcher, fake
# answerer, in-memory Q&A store, empty knowledge index. The lifespan is
# not entered, so no database file is created.
# =============================================================================

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from rfi_agent.agents.answerer import AskResult, ToolLoopLimitExceeded
from rfi_agent.api.deps import (
    get_answerer,
    get_batch_dispatcher,
    get_job_store,
    get_knowledge_index,
    get_qa_store,
)
from rfi_agent.config import settings
from rfi_agent.db.models import JobStatus
from rfi_agent.main import app
from rfi_agent.services.knowledge_index import KnowledgeIndex
from rfi_agent.services.qa_store import QAPair, QAStore


class RecordingDispatcher:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.job_ids: list[str] = []

    def __call__(self, job_id: str) -> None:
        if self.error is not None:
            raise self.error
        self.job_ids.append(job_id)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def qa_store():
    return QAStore([
        QAPair(id="qa_1", q="Is Zenlytic SOC2 certified?", a="Yes.", keywords=["soc2"]),
    ])


@pytest.fixture
def client(job_store, dispatcher, qa_store, tmp_path):
    async def answer(question, context):
        return AskResult(
            answer=f"**Yes** - {question} [Employee Handbook]",
            citations=["Employee Handbook"],
            searches=['search_workspace: {"query":"mfa"}'],
            model="test-model",
            input_tokens=12,
            output_tokens=4,
        )

    app.dependency_overrides[get_answerer] = lambda: answer
    app.dependency_overrides[get_job_store] = lambda: job_store
    app.dependency_overrides[get_batch_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_qa_store] = lambda: qa_store
    app.dependency_overrides[get_knowledge_index] = (
        lambda: KnowledgeIndex([tmp_path / "no-snapshot"])
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def _failing_answerer(exc: Exception):
    async def answer(question, context):
        raise exc

    return lambda: answer


# ---------------------------------------------------------------------------
# POST /ask
# ---------------------------------------------------------------------------


class TestAsk:

    def test_answer_with_citations(self, client):
        response = client.post("/ask", json={"question": "Is MFA enforced?"})

        assert response.status_code == 200
        body = response.json()
        assert body["answer"].startswith("**Yes**")
        assert body["citations"] == ["Employee Handbook"]
        assert body["searches"] == ['search_workspace: {"query":"mfa"}']
        assert body["model"] == "test-model"

    def test_missing_configuration_is_503(self, client):
        app.dependency_overrides[get_answerer] = _failing_answerer(
            ValueError("No Anthropic API key configured"),
        )
        response = client.post("/ask", json={"question": "Is MFA enforced?"})
        assert response.status_code == 503

    def test_loop_limit_is_502(self, client):
        app.dependency_overrides[get_answerer] = _failing_answerer(
            ToolLoopLimitExceeded("No final answer after 10 provider turns"),
        )
        response = client.post("/ask", json={"question": "Is MFA enforced?"})
        assert response.status_code == 502

    def test_question_required(self, client):
        assert client.post("/ask", json={}).status_code == 422


# ---------------------------------------------------------------------------
# /batch
# ---------------------------------------------------------------------------


class TestBatch:

    def _start(self, client, **extra):
        return client.post("/batch", json={
            "questions": [
                {"id": "1", "question": "Do you have SOC2?"},
                {"id": "2", "question": "Is MFA enforced?", "context": "Prod"},
            ],
            **extra,
        })

    def test_start_returns_202_and_queues(self, client, dispatcher, job_store):
        response = self._start(client, instructions="Be brief")

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"
        assert body["total"] == 2
        assert dispatcher.job_ids == [body["job_id"]]
        assert job_store.get(body["job_id"]).instructions == "Be brief"

    def test_status_of_new_job(self, client):
        job_id = self._start(client).json()["job_id"]

        response = client.get(f"/batch/{job_id}")

        assert response.status_code == 200
        body = response.json()
        assert body == {
            "job_id": job_id,
            "status": "pending",
            "progress": 0,
            "total": 2,
            "processed": 0,
            "results": [],
            "error": None,
        }

    def test_status_reflects_results(self, client, job_store):
        job_id = self._start(client).json()["job_id"]
        job_store.update(job_id, status=JobStatus.PROCESSING)
        job_store.append_result(job_id, {"id": "1", "question": "Q", "answer": "Yes"})

        body = client.get(f"/batch/{job_id}").json()

        assert body["status"] == "processing"
        assert body["progress"] == 50
        assert body["processed"] == 1
        assert body["results"][0]["answer"] == "Yes"

    def test_dispatch_failure_fails_job(self, client, job_store):
        app.dependency_overrides[get_batch_dispatcher] = lambda: RecordingDispatcher(
            error=ConnectionError("broker unreachable"),
        )

        response = self._start(client)

        assert response.status_code == 503
        [job] = job_store.list_recent()
        assert job.status == JobStatus.FAILED
        assert "broker unreachable" in job.error

    def test_unknown_job_is_404(self, client):
        assert client.get("/batch/job_0_deadbeef").status_code == 404

    def test_empty_batch_rejected(self, client, dispatcher):
        response = client.post("/batch", json={"questions": []})
        assert response.status_code == 422
        assert dispatcher.job_ids == []

    def test_oversized_batch_rejected(self, client, dispatcher):
        questions = [
            {"id": str(i), "question": f"Question {i}?"}
            for i in range(settings.batch_max_questions + 1)
        ]
        response = client.post("/batch", json={"questions": questions})
        assert response.status_code == 422
        assert dispatcher.job_ids == []


# ---------------------------------------------------------------------------
# /qa-pairs and /health
# ---------------------------------------------------------------------------


class TestQAPairs:

    def test_list(self, client):
        body = client.get("/qa-pairs").json()
        assert body["pairs"] == [{
            "id": "qa_1",
            "question": "Is Zenlytic SOC2 certified?",
            "answer": "Yes.",
            "keywords": ["soc2"],
        }]
        assert body["matches"] is None

    def test_search(self, client):
        body = client.get("/qa-pairs", params={"q": "does zenlytic have soc2"}).json()
        assert body["matches"].startswith("**Q:** Is Zenlytic SOC2 certified?")

    def test_add(self, client, qa_store):
        response = client.post("/qa-pairs", json={
            "question": "Do you have a DPA?",
            "answer": "Yes.",
            "keywords": ["dpa"],
        })

        assert response.status_code == 201
        assert response.json()["id"].startswith("qa_")
        assert len(qa_store.all()) == 2


class TestHealth:

    def test_health_reports_index_state(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["knowledge_index"]["available"] is False
        assert body["knowledge_index"]["page_count"] == 0
