# =============================================================================
# Celery Task Definitions — Batch Questionnaire Processing
# =============================================================================
#
# process_batch_job(job_id)
#   Builds a fresh provider and tool router, then drives the batch
#   orchestrator to completion with asyncio.run(). Each task run owns its
#   event loop, so no async client is shared with another loop.
#
# cleanup_batch_jobs()
#   Periodic (celery beat). Fails jobs that stopped making progress, then
#   deletes records past the retention window.
#
# RETRY STRATEGY:
# None. A retried task would see a job that is no longer pending and do
# nothing; per-question failures are already recorded on the job, and a
# job-level failure is final. Clients resubmit.
# =============================================================================

import asyncio
import logging
from datetime import timedelta
from functools import partial

from celery.exceptions import SoftTimeLimitExceeded

from rfi_agent.agents.answerer import ask_question
from rfi_agent.agents.batch import mark_failed, process_job
from rfi_agent.agents.tools import build_tool_router
from rfi_agent.config import settings
from rfi_agent.services.job_store import get_job_store
from rfi_agent.services.llm import AnthropicProvider
from rfi_agent.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="process_batch_job",
    acks_late=False,
    max_retries=0,
)
def process_batch_job(self, job_id: str) -> dict:
    """
    Answer every question of a batch job.

    Returns:
        dict summary (job_id, status, progress) for the Celery result
        backend. The job store remains the source of truth.
    """
    store = get_job_store()
    logger.info("Starting batch job %s (task_id=%s)", job_id, self.request.id)

    try:
        llm = AnthropicProvider()
    except ValueError as e:
        logger.error("Cannot start batch job %s: %s", job_id, e)
        mark_failed(store, job_id, str(e))
        return {"job_id": job_id, "status": "failed", "error": str(e)}

    answer = partial(ask_question, llm=llm, router=build_tool_router())
    try:
        job = asyncio.run(process_job(
            job_id,
            store=store,
            answer=answer,
            time_budget=settings.batch_time_budget_seconds,
        ))
    except SoftTimeLimitExceeded:
        logger.error("Batch job %s hit the task time limit", job_id)
        error = (
            f"Task time limit of {settings.batch_task_soft_time_limit}s exceeded"
        )
        mark_failed(store, job_id, error)
        return {"job_id": job_id, "status": "failed", "error": error}

    if job is None:
        return {"job_id": job_id, "status": "not_found"}

    logger.info(
        "Batch job %s finished: status=%s, progress=%d%%",
        job_id, job.status.value, job.progress,
    )
    return {
        "job_id": job_id,
        "status": job.status.value,
        "progress": job.progress,
    }


@celery_app.task(name="cleanup_batch_jobs")
def cleanup_batch_jobs() -> dict:
    """Fail abandoned jobs, then delete expired ones."""
    store = get_job_store()
    failed = store.fail_stale(timedelta(seconds=settings.job_stale_after_seconds))
    deleted = store.cleanup()
    return {"failed": failed, "deleted": deleted}
