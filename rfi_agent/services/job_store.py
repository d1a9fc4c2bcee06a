# =============================================================================
# Job Store — Persisted Batch Job Records
# =============================================================================
#
# Key-value storage of batch jobs keyed by job id, backed by SQLAlchemy so
# records survive process restarts and are shared between the API process
# and the Celery worker.
#
# Every mutation is a read-modify-write inside its own session:
#   load record → check invariants → write → refresh updated_at → commit
#
# INVARIANTS (enforced here, nowhere else):
#   - progress == round(100 * len(results) / len(questions))
#   - len(results) <= len(questions)
#   - status only moves forward:
#       pending → processing → completed
#       pending | processing → failed
#   - append_result() is the only writer of `results` and `progress`, and
#     flips status to completed when the last result arrives.
#
# The session factory and the clock are injected so tests can run against
# in-memory SQLite with a controllable time source.
# =============================================================================

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.orm import sessionmaker

from rfi_agent.config import settings
from rfi_agent.db.engine import get_session_factory, get_sync_session
from rfi_agent.db.models import BatchJobRecord, JobStatus
from rfi_agent.models.jobs import BatchJob, BatchQuestion, BatchResult

logger = logging.getLogger(__name__)


class JobStateError(ValueError):
    """Raised when a mutation would break a batch job invariant."""


# Position of each status in the forward-only lifecycle. A transition is
# legal when it keeps the status or moves it to a later rank, and never
# leaves a terminal status.
_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}

_TERMINAL = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Fields update() may write. results/progress belong to append_result().
_UPDATABLE_FIELDS = frozenset({"status", "error", "instructions"})


def _utcnow() -> datetime:
    return datetime.now(UTC)


def compute_progress(done: int, total: int) -> int:
    """Percentage of answered questions, rounded half up (0-100)."""
    if total <= 0:
        return 0
    return (200 * done + total) // (2 * total)


def new_job_id() -> str:
    """
    Generate a job id: millisecond timestamp plus 32 random bits.

    The random suffix keeps ids unique for jobs created within the same
    millisecond.
    """
    return f"job_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def check_transition(current: JobStatus, target: JobStatus) -> None:
    """Raise JobStateError unless `current → target` is a forward move."""
    if current == target:
        return
    if current in _TERMINAL:
        raise JobStateError(
            f"Job is already {current.value}; cannot move to {target.value}"
        )
    if _STATUS_RANK[target] < _STATUS_RANK[current]:
        raise JobStateError(
            f"Illegal status transition {current.value} → {target.value}"
        )


class JobStore:
    """
    CRUD over batch jobs with the batch invariants enforced.

    Args:
        session_factory: SQLAlchemy sessionmaker. Defaults to the
            application's configured database.
        clock: Returns the current timezone-aware time. Injected in tests.
        retention: Age (since last update) after which cleanup() deletes
            a record.
    """

    def __init__(
        self,
        session_factory: sessionmaker | None = None,
        clock: Callable[[], datetime] = _utcnow,
        retention: timedelta | None = None,
    ) -> None:
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock
        self._retention = retention or timedelta(
            seconds=settings.job_retention_seconds,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, job_id: str) -> BatchJob | None:
        with get_sync_session(self._session_factory) as session:
            record = session.get(BatchJobRecord, job_id)
            if record is None:
                return None
            return BatchJob.model_validate(record)

    def list_recent(self, limit: int = 20) -> list[BatchJob]:
        """Most recently updated jobs first."""
        with get_sync_session(self._session_factory) as session:
            stmt = (
                select(BatchJobRecord)
                .order_by(BatchJobRecord.updated_at.desc())
                .limit(limit)
            )
            records = session.execute(stmt).scalars().all()
            return [BatchJob.model_validate(r) for r in records]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        questions: Iterable[BatchQuestion | dict],
        instructions: str | None = None,
    ) -> BatchJob:
        """Persist a new pending job and return it."""
        validated = [BatchQuestion.model_validate(q) for q in questions]
        if not validated:
            raise JobStateError("A batch job needs at least one question")

        now = self._clock()
        record = BatchJobRecord(
            id=new_job_id(),
            status=JobStatus.PENDING,
            questions=[q.model_dump() for q in validated],
            instructions=instructions or None,
            results=[],
            progress=0,
            error=None,
            created_at=now,
            updated_at=now,
        )

        with get_sync_session(self._session_factory) as session:
            session.add(record)
            session.flush()
            job = BatchJob.model_validate(record)

        logger.info(
            "Created batch job %s with %d questions", job.id, len(validated),
        )
        return job

    def update(self, job_id: str, **fields) -> BatchJob | None:
        """
        Apply a partial update (status, error, instructions).

        Always refreshes updated_at. Returns None when the job does not
        exist.

        Raises:
            JobStateError: Unknown/derived field, backward status move,
                or completion while questions are still unanswered.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise JobStateError(
                f"Fields not updatable via update(): {sorted(unknown)}"
            )

        with get_sync_session(self._session_factory) as session:
            record = session.get(BatchJobRecord, job_id, with_for_update=True)
            if record is None:
                return None

            if "status" in fields:
                target = JobStatus(fields["status"])
                check_transition(record.status, target)
                if (
                    target == JobStatus.COMPLETED
                    and len(record.results) < len(record.questions)
                ):
                    raise JobStateError(
                        f"Job {job_id} has {len(record.results)}/"
                        f"{len(record.questions)} results; cannot complete"
                    )
                record.status = target
            if "error" in fields:
                record.error = fields["error"]
            if "instructions" in fields:
                record.instructions = fields["instructions"]

            record.updated_at = self._clock()
            return BatchJob.model_validate(record)

    def append_result(
        self,
        job_id: str,
        result: BatchResult | dict,
    ) -> BatchJob | None:
        """
        Append one question's result, recompute progress, and mark the
        job completed when every question has a result.

        Returns None when the job does not exist.
        """
        validated = BatchResult.model_validate(result)

        with get_sync_session(self._session_factory) as session:
            record = session.get(BatchJobRecord, job_id, with_for_update=True)
            if record is None:
                return None

            if record.status in _TERMINAL:
                raise JobStateError(
                    f"Job {job_id} is {record.status.value}; "
                    "results can no longer be appended"
                )

            total = len(record.questions)
            if len(record.results) >= total:
                raise JobStateError(
                    f"Job {job_id} already has all {total} results"
                )

            # Assign a new list so the JSON column is marked dirty
            results = [*record.results, validated.model_dump()]
            record.results = results
            record.progress = compute_progress(len(results), total)
            if len(results) == total:
                record.status = JobStatus.COMPLETED
            record.updated_at = self._clock()
            return BatchJob.model_validate(record)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup(self) -> int:
        """
        Delete every job not updated within the retention window.

        One DELETE statement; a job that is being worked on always has a
        fresh updated_at and is never collected. Returns the number of
        deleted records.
        """
        cutoff = self._clock() - self._retention
        with get_sync_session(self._session_factory) as session:
            outcome = session.execute(
                delete(BatchJobRecord).where(BatchJobRecord.updated_at < cutoff)
            )
            deleted = outcome.rowcount or 0

        if deleted:
            logger.info("Cleaned up %d expired batch jobs", deleted)
        return deleted

    def fail_stale(self, max_age: timedelta) -> int:
        """
        Mark processing jobs with no update for `max_age` as failed.

        A worker that died mid-job leaves its record in processing; this
        turns it into a terminal status so pollers stop waiting. The job
        is not resumed. Pending jobs are still queued and only expire
        through cleanup(). Returns the number of corrected records.
        """
        now = self._clock()
        cutoff = now - max_age
        minutes = int(max_age.total_seconds() // 60)

        with get_sync_session(self._session_factory) as session:
            outcome = session.execute(
                update(BatchJobRecord)
                .where(
                    BatchJobRecord.status == JobStatus.PROCESSING,
                    BatchJobRecord.updated_at < cutoff,
                )
                .values(
                    status=JobStatus.FAILED,
                    error=f"Job abandoned: no progress for {minutes} minutes",
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            corrected = outcome.rowcount or 0

        if corrected:
            logger.warning("Marked %d stale batch jobs as failed", corrected)
        return corrected


_store: JobStore | None = None


def get_job_store() -> JobStore:
    """Lazy singleton over the configured database. FastAPI dependency."""
    global _store
    if _store is None:
        _store = JobStore()
    return _store
