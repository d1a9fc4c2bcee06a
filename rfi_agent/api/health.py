# =============================================================================
# Health API
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends

from rfi_agent.api.deps import get_knowledge_index
from rfi_agent.config import settings
from rfi_agent.models.responses import HealthResponse
from rfi_agent.services.knowledge_index import KnowledgeIndex

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health(index: KnowledgeIndex = Depends(get_knowledge_index)) -> HealthResponse:
    """Service identity plus whether a local snapshot is loaded."""
    return HealthResponse(
        version=settings.app_version,
        service=settings.app_name,
        knowledge_index=index.metadata(),
    )
