# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data coming INTO the API. FastAPI validates request bodies
# against them (automatic 422 on invalid input) and publishes them in the
# OpenAPI docs at /docs.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field

from rfi_agent.config import settings
from rfi_agent.models.jobs import BatchQuestion


class AskRequest(BaseModel):
    """
    Request body for POST /ask — answer one questionnaire item.

    Example:
        {
            "question": "Do you encrypt customer data at rest?",
            "context": "Vendor assessment for a healthcare customer"
        }
    """

    question: str = Field(
        ...,
        min_length=3,
        max_length=4000,
        description="The questionnaire item to answer",
        examples=["Is Zenlytic SOC2 certified?"],
    )

    context: str | None = Field(
        default=None,
        max_length=8000,
        description="Optional context sent to the model ahead of the question",
    )


class BatchRequest(BaseModel):
    """
    Request body for POST /batch — answer a whole questionnaire.

    `instructions` apply to every question and are appended to each
    question's own context.
    """

    questions: list[BatchQuestion] = Field(
        ...,
        min_length=1,
        max_length=settings.batch_max_questions,
        description="Questions in the order they should be answered",
    )

    instructions: str | None = Field(
        default=None,
        max_length=8000,
        description="Instructions shared by every question of the batch",
        examples=["Answer as briefly as possible."],
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "questions": [
                        {"id": "1.1", "question": "Do you have SOC2 Type II?"},
                        {
                            "id": "1.2",
                            "question": "Is MFA enforced?",
                            "context": "Production systems only",
                        },
                    ],
                    "instructions": "Keep answers under two sentences.",
                },
            ],
        },
    )


class QAPairRequest(BaseModel):
    """Request body for POST /qa-pairs — add an approved answer."""

    question: str = Field(..., min_length=3, max_length=2000)
    answer: str = Field(..., min_length=1, max_length=8000)
    keywords: list[str] = Field(default_factory=list, max_length=50)
