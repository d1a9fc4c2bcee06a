# =============================================================================
# Celery Application Configuration
# =============================================================================
#
# Batch jobs run in Celery workers, outside the HTTP request that created
# them:
#   POST /batch → persist job → process_batch_job.delay(job_id) → 202
#
# ARCHITECTURE:
# ┌──────────┐     ┌───────┐     ┌──────────────┐     ┌──────────┐
# │ FastAPI  │────▶│ Redis │────▶│ Celery Worker│────▶│ Job Store│
# │(producer)│     │(broker)│    │  (consumer)  │     │  (SQL)   │
# └──────────┘     └───────┘     └──────────────┘     └──────────┘
#                                       ▲
#                       celery beat ────┘  cleanup_batch_jobs
#
# Job progress lives in the job store, not in the Celery result backend;
# clients poll GET /batch/{job_id}.
# =============================================================================

from celery import Celery
from celery.signals import worker_init

from rfi_agent.config import settings

celery_app = Celery(
    "rfi_agent.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # --- Serialization ---
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # --- Reliability ---
    # Batch tasks are NOT safe to redeliver: a second run would append
    # results to a partially processed job. Tasks are acknowledged on
    # receipt, and stuck jobs are failed by cleanup_batch_jobs instead.
    task_acks_late=False,
    worker_prefetch_multiplier=1,

    # --- Timeouts ---
    # The orchestrator stops starting questions at batch_time_budget_seconds;
    # the soft limit (caught in the task) and the hard kill sit above it.
    task_soft_time_limit=settings.batch_task_soft_time_limit,
    task_time_limit=settings.batch_task_time_limit,

    # --- Results ---
    result_expires=settings.job_retention_seconds,

    # --- Periodic maintenance (celery beat) ---
    beat_schedule={
        "cleanup-batch-jobs": {
            "task": "cleanup_batch_jobs",
            "schedule": float(settings.job_cleanup_interval_seconds),
        },
    },

    include=["rfi_agent.workers.tasks"],
)


@worker_init.connect
def _create_tables(**kwargs) -> None:
    """Workers may start before the API has created the schema."""
    from rfi_agent.db.engine import init_db

    init_db()
