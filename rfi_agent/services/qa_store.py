# =============================================================================
# Cached Answers — Admin-Curated Q&A Pairs
# =============================================================================
#
# Approved answers to questions that come up in every questionnaire
# ("Is the company SOC2 certified?"). Seeded from a JSON file:
#
#   {"pairs": [{"id": "qa_1", "q": "...", "a": "...", "keywords": [...]}]}
#
# and extended in memory by admins. Added pairs are not written back.
#
# SCORING (case-insensitive):
#   +10  the whole query appears inside the stored question
#   +5   per keyword that appears inside the query
#   +2   per (keyword, query word) where the keyword contains a query
#        word longer than 3 characters
# Top 3 pairs with a positive score are returned.
# =============================================================================

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from rfi_agent.config import settings
from rfi_agent.services.retrieval import RetrievalResult, join_results

logger = logging.getLogger(__name__)

NO_MATCHES = "No matching approved Q&A pairs found."


class QAPair(BaseModel):
    """One approved question/answer pair. Serialised with the seed-file keys."""

    id: str
    question: str = Field(alias="q")
    answer: str = Field(alias="a")
    keywords: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


def score_pair(pair: QAPair, query: str) -> int:
    query_lower = query.lower()
    words = query_lower.split()

    score = 0
    if query_lower in pair.question.lower():
        score += 10

    for keyword in pair.keywords:
        keyword_lower = keyword.lower()
        if keyword_lower in query_lower:
            score += 5
        score += 2 * sum(
            1 for w in words if len(w) > 3 and w in keyword_lower
        )
    return score


class QAStore:
    """In-memory list of approved pairs, in insertion order."""

    def __init__(self, pairs: list[QAPair] | None = None) -> None:
        self._pairs: list[QAPair] = list(pairs or [])

    @classmethod
    def from_file(cls, path: str | Path) -> QAStore:
        """Load the seed file; a missing file gives an empty store."""
        path = Path(path)
        if not path.is_file():
            logger.warning("Q&A seed file not found at %s, starting empty", path)
            return cls()

        data = json.loads(path.read_text(encoding="utf-8"))
        pairs = [QAPair.model_validate(p) for p in data.get("pairs", [])]
        logger.info("Loaded %d Q&A pairs from %s", len(pairs), path)
        return cls(pairs)

    def all(self) -> list[QAPair]:
        return list(self._pairs)

    def search(self, query: str, limit: int = 3) -> list[RetrievalResult]:
        scored = [(pair, score_pair(pair, query)) for pair in self._pairs]
        scored = [item for item in scored if item[1] > 0]
        scored.sort(key=lambda item: item[1], reverse=True)

        return [
            RetrievalResult(
                content=f"**Q:** {pair.question}\n**A:** {pair.answer}",
                score=score,
                source="cached_answers",
                reference=pair.id,
            )
            for pair, score in scored[:limit]
        ]

    def search_text(self, query: str) -> str:
        """search() rendered as a tool result."""
        results = self.search(query)
        if not results:
            return NO_MATCHES
        return join_results(results)

    def add(self, question: str, answer: str, keywords: list[str]) -> QAPair:
        """
        Append a pair with a millisecond-timestamp id.

        Two pairs added within the same millisecond get the same id; the
        store assumes a single admin writer.
        """
        pair = QAPair(
            id=f"qa_{int(time.time() * 1000)}",
            question=question,
            answer=answer,
            keywords=list(keywords),
        )
        self._pairs.append(pair)
        logger.info("Added Q&A pair %s", pair.id)
        return pair


_store: QAStore | None = None


def get_qa_store() -> QAStore:
    """Process-wide store seeded from settings.qa_pairs_path."""
    global _store
    if _store is None:
        _store = QAStore.from_file(settings.qa_pairs_path)
    return _store
