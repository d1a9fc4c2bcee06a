# =============================================================================
# Ask API — Single-Question Endpoint
# =============================================================================
#
# POST /ask answers one questionnaire item inside the request: the
# answering engine runs its tool loop to completion and the answer comes
# back with its citations and the trace of tool calls.
#
# Error mapping:
#   ValueError (missing API key / configuration)   → 503
#   anything else (provider error, tool-loop cap)  → 502
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from rfi_agent.agents.batch import AnswerFn
from rfi_agent.api.deps import get_answerer
from rfi_agent.models.requests import AskRequest
from rfi_agent.models.responses import AskResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Question Answering"])


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Answer one questionnaire item",
    description=(
        "The model searches cached answers, the workspace and the public "
        "documentation as needed, then answers with bracketed citations."
    ),
)
async def ask_endpoint(
    request: AskRequest,
    answer: AnswerFn = Depends(get_answerer),
) -> AskResponse:
    logger.info("Ask request: question='%s'", request.question[:80])

    try:
        result = await answer(request.question, request.context)
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
    except Exception as e:
        logger.exception("Answering failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"LLM service error: {e}",
        ) from e

    return AskResponse(
        answer=result.answer,
        citations=result.citations,
        searches=result.searches,
        model=result.model,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
    )
