# =============================================================================
# Tool Router — Dispatch Model Tool Calls to Retrieval Sources
# =============================================================================
#
# The model picks a tool by name and sends JSON arguments. Nothing about
# those arguments is trusted: every field is optional, non-string values
# are stringified, unknown keys are ignored, and a few legacy spellings
# are accepted. Every outcome is text:
#
#   unknown tool          → "Unknown tool: <name>"
#   missing argument      → "Missing required argument: <field>"
#   source failure        → the source's own error description
#   success               → the source's formatted results
#
# and is cut to `tool_result_max_chars` before it reaches the transcript.
# Unexpected exceptions from a source are not caught here; the batch
# orchestrator isolates them per question.
#
# ROUTING:
#   search_cached_answers → QAStore.search_text
#   search_workspace      → KnowledgeIndex (if a snapshot exists)
#                           else WorkspaceClient.search
#   get_workspace_page    → KnowledgeIndex.get_page (resolved id, then raw)
#                           else WorkspaceClient.fetch
#   search_documents      → DocsCorpus.search_text
#   get_document_page     → DocsCorpus.fetch
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from rfi_agent.config import settings
from rfi_agent.services.docs_search import DocsCorpus, get_docs_corpus
from rfi_agent.services.knowledge_index import KnowledgeIndex, get_knowledge_index
from rfi_agent.services.qa_store import QAStore, get_qa_store
from rfi_agent.services.workspace import (
    WORKSPACE_SECTIONS,
    WorkspaceClient,
    resolve_page_id,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Argument Models
# ---------------------------------------------------------------------------


class ToolArgs(BaseModel):
    """Base for tool arguments: all optional, extras ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = value if isinstance(value, str) else str(value)
        return text.strip() or None


class QueryArgs(ToolArgs):
    query: str | None = None


class SectionQueryArgs(QueryArgs):
    section_filter: str | None = Field(
        default=None,
        validation_alias=AliasChoices("section_filter", "page_filter", "section"),
    )


class PageArgs(ToolArgs):
    page_id: str | None = None


class PathArgs(ToolArgs):
    path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("path", "page_path"),
    )


def missing(field: str) -> str:
    return f"Missing required argument: {field}"


def truncate(text: str, limit: int) -> str:
    return text[:limit]


def workspace_section_title(section_filter: str | None) -> str | None:
    """Top-level page title for a section filter; None means all sections."""
    if not section_filter:
        return None
    key = "_".join(section_filter.lower().split())
    if key == "all":
        return None
    title = WORKSPACE_SECTIONS.get(key)
    if title is None:
        logger.info("Ignoring unknown workspace section: %s", section_filter)
    return title


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class ToolRouter:
    """
    Executes one tool invocation against the retrieval sources.

    Sources are injected so tests can substitute any of them.
    """

    def __init__(
        self,
        qa_store: QAStore,
        index: KnowledgeIndex,
        workspace: WorkspaceClient,
        docs: DocsCorpus,
        max_chars: int | None = None,
    ) -> None:
        self.qa_store = qa_store
        self.index = index
        self.workspace = workspace
        self.docs = docs
        self.max_chars = max_chars or settings.tool_result_max_chars

        self._handlers: dict[str, Callable[[dict], Awaitable[str]]] = {
            "search_cached_answers": self._search_cached_answers,
            "search_workspace": self._search_workspace,
            "get_workspace_page": self._get_workspace_page,
            "search_documents": self._search_documents,
            "get_document_page": self._get_document_page,
        }

    async def dispatch(self, name: str, arguments: Any) -> str:
        """Run the named tool and return its (truncated) text result."""
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("Model requested unknown tool: %s", name)
            return f"Unknown tool: {name}"

        if not isinstance(arguments, dict):
            arguments = {}

        logger.info("Tool call: %s %s", name, arguments)
        result = await handler(arguments)
        return truncate(result, self.max_chars)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _search_cached_answers(self, arguments: dict) -> str:
        args = QueryArgs.model_validate(arguments)
        if args.query is None:
            return missing("query")
        return self.qa_store.search_text(args.query)

    async def _search_workspace(self, arguments: dict) -> str:
        args = SectionQueryArgs.model_validate(arguments)
        if args.query is None:
            return missing("query")

        if self.index.available:
            return self.index.search_text(
                args.query,
                section=workspace_section_title(args.section_filter),
            )

        logger.info("No local snapshot, searching live workspace")
        return await self.workspace.search(args.query)

    async def _get_workspace_page(self, arguments: dict) -> str:
        args = PageArgs.model_validate(arguments)
        if args.page_id is None:
            return missing("page_id")

        resolved = resolve_page_id(args.page_id)
        if self.index.available:
            page = self.index.get_page(resolved) or self.index.get_page(args.page_id)
            if page is not None:
                return page

        return await self.workspace.fetch(args.page_id)

    async def _search_documents(self, arguments: dict) -> str:
        args = SectionQueryArgs.model_validate(arguments)
        if args.query is None:
            return missing("query")
        return self.docs.search_text(args.query, section=args.section_filter)

    async def _get_document_page(self, arguments: dict) -> str:
        args = PathArgs.model_validate(arguments)
        if args.path is None:
            return missing("path")
        return self.docs.fetch(args.path)


def build_tool_router() -> ToolRouter:
    """Router over the process-wide sources."""
    return ToolRouter(
        qa_store=get_qa_store(),
        index=get_knowledge_index(),
        workspace=WorkspaceClient(),
        docs=get_docs_corpus(),
    )
