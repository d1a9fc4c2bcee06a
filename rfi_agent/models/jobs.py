# =============================================================================
# Batch Job Domain Models — Pydantic V2
# =============================================================================
#
# The job store never hands ORM objects to callers. Each operation returns
# a detached `BatchJob` snapshot validated from the record, so the
# orchestrator cannot mutate persisted state except through the store.
# =============================================================================

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from rfi_agent.db.models import JobStatus


class BatchQuestion(BaseModel):
    """One input question of a batch job."""

    id: str = Field(min_length=1, max_length=200)
    question: str = Field(min_length=1)
    context: str | None = None


class BatchResult(BaseModel):
    """
    Outcome for one question. A failed question still gets a result:
    empty answer, empty citations, and the failure description in `error`.
    """

    id: str
    question: str
    answer: str = ""
    citations: list[str] = Field(default_factory=list)
    error: str | None = None


class BatchJob(BaseModel):
    """Snapshot of a persisted batch job."""

    id: str
    status: JobStatus
    questions: list[BatchQuestion]
    instructions: str | None = None
    results: list[BatchResult] = Field(default_factory=list)
    progress: int = 0
    error: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)
