# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# One table holds batch jobs. Questions and results are ordered lists kept
# as JSON columns: they are always read and written as a whole together
# with the job, never queried individually.
#
# ┌──────────────────────────────┐
# │  batch_jobs                  │
# ├──────────────────────────────┤
# │ id (PK, "job_<ms>_<rand>")   │
# │ status                       │
# │ questions (json)             │
# │ instructions (text)          │
# │ results (json)               │
# │ progress (int, 0-100)        │
# │ error (text)                 │
# │ created_at                   │
# │ updated_at (indexed)         │
# └──────────────────────────────┘
# =============================================================================

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class JobStatus(str, enum.Enum):
    """
    Lifecycle of a batch job.

    State machine (forward only):
        PENDING → PROCESSING → COMPLETED
        PENDING | PROCESSING → FAILED
    """

    PENDING = "pending"          # Persisted, waiting for a worker
    PROCESSING = "processing"    # Worker is answering questions
    COMPLETED = "completed"      # Every question has a result
    FAILED = "failed"            # Job-level failure (see error)


class BatchJobRecord(Base):
    """A persisted batch job. Mutated only through the JobStore."""

    __tablename__ = "batch_jobs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus),
        nullable=False,
        default=JobStatus.PENDING,
    )

    # [{"id": str, "question": str, "context": str | None}, ...]
    questions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Free-text instructions appended to every question's context
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    # [{"id", "question", "answer", "citations", "error"}, ...] in input order
    results: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Derived from len(results) / len(questions); written by append only
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Top-level error (job-level failure only)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Set explicitly by the store's clock, never by the database, so that
    # retention comparisons use a single time source.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<BatchJobRecord(id='{self.id}', status={self.status}, "
            f"progress={self.progress})>"
        )


# Supports cleanup (DELETE WHERE updated_at < cutoff) and stale detection
batch_job_updated_idx = Index(
    "idx_batch_job_updated_at",
    BatchJobRecord.updated_at,
)
