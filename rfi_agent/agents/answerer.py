# =============================================================================
# Answering Engine — LangGraph Tool-Use Loop
# =============================================================================
#
# Answers one question by letting the model call retrieval tools until it
# produces a final text answer.
#
# GRAPH TOPOLOGY:
#
#   START ──▶ call_provider ──(tool calls?)──▶ run_tools ──┐
#                 ▲              │ no                       │
#                 │              ▼                          │
#                 │             END                         │
#                 └─────────────────────────────────────────┘
#
#   call_provider   one provider round-trip. A response with tool calls is
#                   appended to the transcript as the assistant turn; a
#                   response without them ends the loop and becomes the
#                   answer.
#   run_tools       every requested call goes through the tool router
#                   (concurrently, results kept in request order) and ALL
#                   results are appended as one user turn before the next
#                   provider call, so the transcript stays turn-balanced.
#
# Termination: `max_tool_turns` caps provider round-trips. The cap raises
# ToolLoopLimitExceeded, which fails this question only. The graph's
# recursion_limit sits just above the cap as a second stop.
#
# As in the rest of the agents package, the graph is compiled once at
# module level and the provider/router objects travel in the state (no
# checkpointer is configured, so they never need to be serialised).
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from rfi_agent.agents.prompts import TOOL_DEFINITIONS, build_system_prompt
from rfi_agent.agents.tools import ToolRouter, build_tool_router
from rfi_agent.config import settings
from rfi_agent.services.llm import LLMProvider, ToolUseBlock, get_llm_provider

logger = logging.getLogger(__name__)

_CITATION = re.compile(r"\[([^\]]+)\]")


class ToolLoopLimitExceeded(RuntimeError):
    """The model kept requesting tools past the configured turn ceiling."""


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class AskResult:
    """Final answer for one question."""

    answer: str
    citations: list[str] = field(default_factory=list)
    searches: list[str] = field(default_factory=list)  # "tool: {json args}"
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0


class AnswerState(TypedDict, total=False):
    """
    State flowing through the answering graph.

    Nodes return only the keys they change; list-valued keys are always
    returned as new lists.
    """

    # --- Input (set by caller) ---
    question: str
    context: str | None
    system: str
    max_turns: int

    # --- Collaborators ---
    llm: LLMProvider
    router: ToolRouter

    # --- Loop ---
    messages: list[dict[str, Any]]
    pending: list[ToolUseBlock]  # Tool calls of the latest response
    searches: list[str]
    turns: int

    # --- Output ---
    answer: str
    citations: list[str]
    model: str
    input_tokens: int
    output_tokens: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_user_message(question: str, context: str | None = None) -> str:
    if context:
        return f"Context: {context}\n\nQuestion: {question}"
    return question


def extract_citations(answer: str) -> list[str]:
    """Bracketed substrings of the answer, de-duplicated, first-seen order."""
    return list(dict.fromkeys(_CITATION.findall(answer)))


def describe_call(call: ToolUseBlock) -> str:
    return f"{call.name}: {json.dumps(call.input, separators=(',', ':'))}"


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def call_provider_node(state: AnswerState) -> dict:
    turns = state.get("turns", 0)
    if turns >= state["max_turns"]:
        raise ToolLoopLimitExceeded(
            f"No final answer after {turns} provider turns "
            f"({len(state.get('searches', []))} tool calls)"
        )

    response = await state["llm"].complete(
        messages=state["messages"],
        system=state["system"],
        tools=TOOL_DEFINITIONS,
    )

    update: dict[str, Any] = {
        "turns": turns + 1,
        "model": response.model,
        "input_tokens": state.get("input_tokens", 0) + response.input_tokens,
        "output_tokens": state.get("output_tokens", 0) + response.output_tokens,
    }

    tool_uses = response.tool_uses
    if tool_uses:
        update["messages"] = [*state["messages"], response.to_message()]
        update["pending"] = tool_uses
        return update

    answer = response.text
    update["pending"] = []
    update["answer"] = answer
    update["citations"] = extract_citations(answer)
    return update


async def run_tools_node(state: AnswerState) -> dict:
    calls = state.get("pending", [])
    router = state["router"]

    tasks = [
        asyncio.ensure_future(router.dispatch(call.name, call.input))
        for call in calls
    ]
    try:
        outputs = await asyncio.gather(*tasks)
    except BaseException:
        # Cancel the calls still running and wait for them to settle
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    tool_results = [
        {"type": "tool_result", "tool_use_id": call.id, "content": output}
        for call, output in zip(calls, outputs)
    ]

    return {
        "messages": [
            *state["messages"],
            {"role": "user", "content": tool_results},
        ],
        "searches": [*state.get("searches", []), *map(describe_call, calls)],
        "pending": [],
    }


def _after_provider(state: AnswerState) -> str:
    return "run_tools" if state.get("pending") else END


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(AnswerState)
_builder.add_node("call_provider", call_provider_node)
_builder.add_node("run_tools", run_tools_node)

_builder.add_edge(START, "call_provider")
_builder.add_conditional_edges(
    "call_provider", _after_provider, ["run_tools", END],
)
_builder.add_edge("run_tools", "call_provider")

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def ask_question(
    question: str,
    context: str | None = None,
    llm: LLMProvider | None = None,
    router: ToolRouter | None = None,
    max_turns: int | None = None,
) -> AskResult:
    """
    Answer one question with tool-assisted retrieval.

    Args:
        question: The questionnaire item.
        context: Optional extra context, sent ahead of the question.
        llm: Provider override; defaults to the process-wide provider.
        router: Tool router override; defaults to the process-wide sources.
        max_turns: Provider round-trip ceiling.

    Raises:
        ToolLoopLimitExceeded: The model never stopped requesting tools.
    """
    turn_cap = max_turns or settings.max_tool_turns
    initial_state: AnswerState = {
        "question": question,
        "context": context,
        "system": build_system_prompt(),
        "max_turns": turn_cap,
        "llm": llm or get_llm_provider(),
        "router": router or build_tool_router(),
        "messages": [
            {"role": "user", "content": build_user_message(question, context)},
        ],
        "searches": [],
        "turns": 0,
    }

    logger.info("Answering question: '%s'", question[:80])

    final = await graph.ainvoke(
        initial_state,
        config={"recursion_limit": 2 * turn_cap + 2},
    )

    result = AskResult(
        answer=final.get("answer", ""),
        citations=final.get("citations", []),
        searches=final.get("searches", []),
        model=final.get("model", ""),
        input_tokens=final.get("input_tokens", 0),
        output_tokens=final.get("output_tokens", 0),
    )

    logger.info(
        "Answered in %d turns: %d tool calls, %d citations",
        final.get("turns", 0), len(result.searches), len(result.citations),
    )
    return result
