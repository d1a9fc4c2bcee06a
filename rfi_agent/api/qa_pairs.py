# =============================================================================
# Q&A Pairs API — Approved Answers
# =============================================================================
#
#   GET  /qa-pairs         every stored pair
#   GET  /qa-pairs?q=...   the same formatted matches the model sees
#   POST /qa-pairs         add a pair (kept in memory only)
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from rfi_agent.api.deps import get_qa_store
from rfi_agent.models.requests import QAPairRequest
from rfi_agent.models.responses import QAPairListResponse, QAPairResponse
from rfi_agent.services.qa_store import QAPair, QAStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/qa-pairs", tags=["Q&A Pairs"])


def _to_response(pair: QAPair) -> QAPairResponse:
    return QAPairResponse(
        id=pair.id,
        question=pair.question,
        answer=pair.answer,
        keywords=pair.keywords,
    )


@router.get("", response_model=QAPairListResponse)
def list_pairs(
    q: str | None = None,
    store: QAStore = Depends(get_qa_store),
) -> QAPairListResponse:
    if q:
        return QAPairListResponse(matches=store.search_text(q))
    return QAPairListResponse(pairs=[_to_response(p) for p in store.all()])


@router.post("", response_model=QAPairResponse, status_code=201)
def add_pair(
    request: QAPairRequest,
    store: QAStore = Depends(get_qa_store),
) -> QAPairResponse:
    pair = store.add(request.question, request.answer, request.keywords)
    return _to_response(pair)
