# =============================================================================
# Unit Tests — Celery Tasks
# =============================================================================
#
# Tasks are called directly (no broker); the job store is the SQLite
# fixture and the provider is patched.
# =============================================================================

from __future__ import annotations

from unittest.mock import MagicMock, patch

from celery.exceptions import SoftTimeLimitExceeded

from rfi_agent.db.models import JobStatus
from rfi_agent.services.llm import LLMResponse, TextBlock
from rfi_agent.workers.tasks import cleanup_batch_jobs, process_batch_job


class FixedProvider:
    async def complete(self, **kwargs) -> LLMResponse:
        return LLMResponse(
            content=[TextBlock(text="Yes [SOC2 Report]")],
            model="test-model",
            input_tokens=5,
            output_tokens=2,
        )


class TestProcessBatchJob:

    def test_missing_api_key_fails_job(self, job_store):
        job = job_store.create([{"id": "1", "question": "Q"}])

        with (
            patch("rfi_agent.workers.tasks.get_job_store", return_value=job_store),
            patch(
                "rfi_agent.workers.tasks.AnthropicProvider",
                side_effect=ValueError("No Anthropic API key configured"),
            ),
        ):
            summary = process_batch_job(job.id)

        assert summary["status"] == "failed"
        stored = job_store.get(job.id)
        assert stored.status == JobStatus.FAILED
        assert "API key" in stored.error

    def test_runs_job_to_completion(self, job_store):
        job = job_store.create([
            {"id": "1", "question": "SOC2?"},
            {"id": "2", "question": "MFA?"},
        ])

        with (
            patch("rfi_agent.workers.tasks.get_job_store", return_value=job_store),
            patch("rfi_agent.workers.tasks.AnthropicProvider", FixedProvider),
            patch("rfi_agent.workers.tasks.build_tool_router", return_value=MagicMock()),
        ):
            summary = process_batch_job(job.id)

        assert summary == {"job_id": job.id, "status": "completed", "progress": 100}
        results = job_store.get(job.id).results
        assert [r.citations for r in results] == [["SOC2 Report"], ["SOC2 Report"]]

    def test_soft_time_limit_fails_job(self, job_store):
        job = job_store.create([{"id": "1", "question": "Q"}])
        job_store.update(job.id, status=JobStatus.PROCESSING)

        async def interrupted(job_id, **kwargs):
            raise SoftTimeLimitExceeded()

        with (
            patch("rfi_agent.workers.tasks.get_job_store", return_value=job_store),
            patch("rfi_agent.workers.tasks.AnthropicProvider", FixedProvider),
            patch("rfi_agent.workers.tasks.build_tool_router", return_value=MagicMock()),
            patch("rfi_agent.workers.tasks.process_job", interrupted),
        ):
            summary = process_batch_job(job.id)

        assert summary["status"] == "failed"
        stored = job_store.get(job.id)
        assert stored.status == JobStatus.FAILED
        assert "time limit" in stored.error


class TestCleanupBatchJobs:

    def test_fails_stale_then_deletes_expired(self, job_store, clock):
        expired = job_store.create([{"id": "1", "question": "Q"}])
        clock.advance(minutes=20)
        stuck = job_store.create([{"id": "1", "question": "Q"}])
        job_store.update(stuck.id, status=JobStatus.PROCESSING)
        queued = job_store.create([{"id": "1", "question": "Q"}])
        clock.advance(minutes=45)

        with patch("rfi_agent.workers.tasks.get_job_store", return_value=job_store):
            summary = cleanup_batch_jobs()

        # The stuck job is failed (and its updated_at refreshed), not deleted
        assert summary == {"failed": 1, "deleted": 1}
        assert job_store.get(expired.id) is None
        assert job_store.get(stuck.id).status == JobStatus.FAILED
        assert job_store.get(queued.id).status == JobStatus.PENDING
