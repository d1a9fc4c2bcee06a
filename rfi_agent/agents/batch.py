# =============================================================================
# Batch Orchestrator — Answer Every Question of One Job
# =============================================================================
#
# Runs detached from the request that created the job (in a Celery worker)
# and talks to the job only through the JobStore:
#
#   load job ─▶ pending? ─no─▶ return as-is (partial results are final)
#                 │ yes
#                 ▼
#   status = processing
#   for each question, in input order:
#       context = question context + job instructions
#       answer ─ ok ──▶ append {answer, citations}
#              └ error ─▶ append {answer: "", citations: [], error}
#   status = completed
#
# A failing question never stops the loop. Anything that escapes the loop
# (the store itself failing, the time budget running out before the next
# question) fails the whole job with a top-level error; results already
# appended are kept.
# =============================================================================

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

from rfi_agent.agents.answerer import AskResult, ask_question
from rfi_agent.db.models import JobStatus
from rfi_agent.models.jobs import BatchJob, BatchResult
from rfi_agent.services.job_store import JobStore

logger = logging.getLogger(__name__)

AnswerFn = Callable[[str, str | None], Awaitable[AskResult]]


class BatchTimeLimitExceeded(RuntimeError):
    """The job ran out of time before every question was answered."""


def combine_context(context: str | None, instructions: str | None) -> str | None:
    """Question context first, then the job's shared instructions."""
    if context and instructions:
        return f"{context}\n\nAdditional instructions: {instructions}"
    if instructions:
        return f"Additional instructions: {instructions}"
    return context or None


def describe_error(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def process_job(
    job_id: str,
    *,
    store: JobStore,
    answer: AnswerFn = ask_question,
    time_budget: float | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> BatchJob | None:
    """
    Answer every question of a pending job, in order.

    Args:
        job_id: Job to process.
        store: Job store holding the job.
        answer: Coroutine answering one (question, context) pair.
        time_budget: Seconds after which no further question is started;
            the job is then failed with the results gathered so far.
        clock: Monotonic seconds. Injected in tests.

    Returns:
        The job as last persisted, or None when it does not exist.
    """
    job = store.get(job_id)
    if job is None:
        logger.error("Batch job %s not found", job_id)
        return None

    if job.status != JobStatus.PENDING:
        logger.warning(
            "Batch job %s is %s, not reprocessing", job_id, job.status.value,
        )
        return job

    total = len(job.questions)
    started = clock()
    logger.info("Processing batch job %s (%d questions)", job_id, total)

    try:
        store.update(job_id, status=JobStatus.PROCESSING)

        for position, item in enumerate(job.questions, start=1):
            if time_budget is not None and clock() - started >= time_budget:
                raise BatchTimeLimitExceeded(
                    f"Time limit of {time_budget:.0f}s reached after "
                    f"{position - 1} of {total} questions"
                )

            context = combine_context(item.context, job.instructions)
            try:
                outcome = await answer(item.question, context)
            except Exception as e:
                logger.exception(
                    "Question %s (%d/%d) of job %s failed",
                    item.id, position, total, job_id,
                )
                result = BatchResult(
                    id=item.id,
                    question=item.question,
                    error=describe_error(e),
                )
            else:
                result = BatchResult(
                    id=item.id,
                    question=item.question,
                    answer=outcome.answer,
                    citations=outcome.citations,
                )

            store.append_result(job_id, result)
            logger.info(
                "Job %s: question %s done (%d/%d)",
                job_id, item.id, position, total,
            )

        store.update(job_id, status=JobStatus.COMPLETED)

    except Exception as e:
        logger.exception("Batch job %s failed", job_id)
        mark_failed(store, job_id, describe_error(e))

    return store.get(job_id)


def mark_failed(store: JobStore, job_id: str, error: str) -> None:
    """Move a job to failed with a top-level error, unless already terminal."""
    job = store.get(job_id)
    if job is None or job.is_terminal:
        return
    store.update(job_id, status=JobStatus.FAILED, error=error)
