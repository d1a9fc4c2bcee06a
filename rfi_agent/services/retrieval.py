# =============================================================================
# Retrieval Sources — Shared Types
# =============================================================================
#
# Four sources feed the tool router: cached answers, the local knowledge
# index, the live workspace, and the documentation corpus. They all expose
#   search(query, filter?) → text
#   fetch(identifier)      → text          (where the source has ids)
# and report their own failures as text instead of raising, so the model
# can read a failure description like any other tool result.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass

# Separator between formatted results in a tool response
RESULT_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class RetrievalResult:
    """
    One scored hit from a retrieval source.

    Scores are source-specific integers and are not comparable across
    sources.
    """

    content: str
    score: int
    source: str
    reference: str | None = None  # page id, document path, or pair id


def join_results(results: list[RetrievalResult]) -> str:
    return RESULT_SEPARATOR.join(r.content for r in results)

