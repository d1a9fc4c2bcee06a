# =============================================================================
# Batch API — Questionnaire Jobs
# =============================================================================
#
# FLOW:
#   POST /batch            persist a pending job → queue it → 202 + job_id
#   GET  /batch/{job_id}   poll status, progress and per-question results
#
# The request that creates a job never waits for it. If the job cannot be
# handed to the workers, it is marked failed right away so pollers do not
# wait forever, and the client gets a 503.
#
# These routes are plain `def`: the job store is synchronous and FastAPI
# runs them in its threadpool.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException

from rfi_agent.agents.batch import mark_failed
from rfi_agent.api.deps import get_batch_dispatcher, get_job_store
from rfi_agent.models.requests import BatchRequest
from rfi_agent.models.responses import BatchStartResponse, BatchStatusResponse
from rfi_agent.services.job_store import JobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batch", tags=["Batch"])


@router.post(
    "",
    response_model=BatchStartResponse,
    status_code=202,
    summary="Start a batch questionnaire job",
)
def start_batch(
    request: BatchRequest,
    store: JobStore = Depends(get_job_store),
    dispatch: Callable[[str], object] = Depends(get_batch_dispatcher),
) -> BatchStartResponse:
    job = store.create(request.questions, request.instructions)

    try:
        dispatch(job.id)
    except Exception as e:
        logger.exception("Could not queue batch job %s", job.id)
        mark_failed(store, job.id, f"Could not queue job: {e}")
        raise HTTPException(
            status_code=503,
            detail=f"Batch processing unavailable: {e}",
        ) from e

    logger.info("Queued batch job %s (%d questions)", job.id, len(job.questions))
    return BatchStartResponse(
        job_id=job.id,
        status=job.status,
        total=len(job.questions),
        message=f"Processing {len(job.questions)} questions",
    )


@router.get(
    "/{job_id}",
    response_model=BatchStatusResponse,
    summary="Get batch job status and results",
)
def get_batch(
    job_id: str,
    store: JobStore = Depends(get_job_store),
) -> BatchStatusResponse:
    job = store.get(job_id)
    if job is None:
        raise HTTPException(
            status_code=404,
            detail=f"Job {job_id} not found (it may have expired)",
        )
    return BatchStatusResponse.from_job(job)
