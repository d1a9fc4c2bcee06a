# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data going OUT of the API. Batch responses are built from the
# job store's BatchJob snapshots; ORM records never reach a route.
# =============================================================================

from pydantic import BaseModel, Field

from rfi_agent.db.models import JobStatus
from rfi_agent.models.jobs import BatchJob, BatchResult


class HealthResponse(BaseModel):
    """Response for GET /health — service identity and index state."""

    status: str = "ok"
    version: str
    service: str
    knowledge_index: dict = Field(
        default_factory=dict,
        description="available, page_count, exported_at",
    )


class AskResponse(BaseModel):
    """Response for POST /ask."""

    answer: str
    citations: list[str] = Field(
        default_factory=list,
        description="Bracketed references found in the answer, in order",
    )
    searches: list[str] = Field(
        default_factory=list,
        description="Tool calls made while answering, as 'tool: {args}'",
    )
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0


class BatchStartResponse(BaseModel):
    """
    Response for POST /batch (202 Accepted).

    Processing happens in a worker; poll GET /batch/{job_id} until the
    status is completed or failed.
    """

    job_id: str
    status: JobStatus
    total: int
    message: str = "Batch job queued"


class BatchStatusResponse(BaseModel):
    """
    Response for GET /batch/{job_id}.

    pending and processing are in-flight states; completed and failed are
    terminal.
    """

    job_id: str
    status: JobStatus
    progress: int = Field(ge=0, le=100)
    total: int
    processed: int
    results: list[BatchResult] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_job(cls, job: BatchJob) -> "BatchStatusResponse":
        return cls(
            job_id=job.id,
            status=job.status,
            progress=job.progress,
            total=len(job.questions),
            processed=len(job.results),
            results=job.results,
            error=job.error,
        )


class QAPairResponse(BaseModel):
    id: str
    question: str
    answer: str
    keywords: list[str] = Field(default_factory=list)


class QAPairListResponse(BaseModel):
    """Response for GET /qa-pairs. `matches` is set when `q` was given."""

    pairs: list[QAPairResponse] = Field(default_factory=list)
    matches: str | None = None
