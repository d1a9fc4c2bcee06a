# =============================================================================
# API Dependencies — FastAPI Dependency Injection
# =============================================================================
#
# Routes never reach for singletons directly; they declare what they need
# with Depends() so tests can swap any collaborator through
# `app.dependency_overrides`:
#
#   get_answerer()          → coroutine answering one (question, context)
#   get_job_store()         → JobStore over the configured database
#   get_batch_dispatcher()  → callable handing a job id to the workers
#   get_qa_store()          → cached-answer store
#   get_knowledge_index()   → local snapshot (health reporting)
# =============================================================================

from __future__ import annotations

from collections.abc import Callable

from rfi_agent.agents.answerer import ask_question
from rfi_agent.agents.batch import AnswerFn
from rfi_agent.services.job_store import get_job_store
from rfi_agent.services.knowledge_index import get_knowledge_index
from rfi_agent.services.qa_store import get_qa_store

__all__ = [
    "get_answerer",
    "get_batch_dispatcher",
    "get_job_store",
    "get_knowledge_index",
    "get_qa_store",
]


def get_answerer() -> AnswerFn:
    return ask_question


def get_batch_dispatcher() -> Callable[[str], object]:
    """Queue a batch job on the Celery workers."""
    from rfi_agent.workers.tasks import process_batch_job

    return process_batch_job.delay
