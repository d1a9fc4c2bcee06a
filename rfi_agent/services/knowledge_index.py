# =============================================================================
# Knowledge Index — Offline Workspace Snapshot
# =============================================================================
#
# An out-of-band export writes a snapshot of the workspace as two files:
#
#   search-index.json   [{id, title, parent, keywords, snippet}, ...]
#   index.json          {exportedAt, pages: [{id, title, parent, keywords,
#                                             content, lastUpdated}, ...]}
#
# Searches only need the lightweight file; full page text is loaded the
# first time a page is requested. Both loads are memoized behind explicit
# guards and are tried against an ordered list of candidate directories
# (first hit wins). Finding no snapshot is a valid, degraded state: the
# index reports itself unavailable and the tool router falls back to the
# live workspace.
#
# SCORING (per query token, tokens of length ≤ 2 dropped):
#   +10  exact keyword match   (else +5 if a keyword contains the token)
#   +8   title contains token
#   +3   snippet contains token
#   +15  token looks like a control id (cc1.2.3) and is an exact keyword
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from rfi_agent.config import settings
from rfi_agent.services.retrieval import RetrievalResult, join_results

logger = logging.getLogger(__name__)

SEARCH_INDEX_FILE = "search-index.json"
FULL_INDEX_FILE = "index.json"

_TOKEN_SPLIT = re.compile(r"[\s,]+")
_CONTROL_ID = re.compile(r"^cc[\d.]+$")

# Pages whose parent is this value sit at the top of a section
ROOT_PARENT = "root"

# Guard against parent-title cycles when resolving a page's section
_MAX_PARENT_DEPTH = 10


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IndexedPage:
    """One exported workspace page. Parent is referenced by title."""

    id: str
    title: str
    parent: str
    keywords: tuple[str, ...] = ()
    snippet: str = ""
    content: str = ""
    last_updated: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> IndexedPage:
        content = data.get("content") or ""
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "Untitled",
            parent=data.get("parent") or ROOT_PARENT,
            keywords=tuple(data.get("keywords") or ()),
            snippet=data.get("snippet") or content[:500],
            content=content,
            last_updated=data.get("lastUpdated"),
        )


@dataclass
class KnowledgeSnapshot:
    """Pages in export order, plus where they were loaded from."""

    pages: list[IndexedPage] = field(default_factory=list)
    source: Path | None = None
    exported_at: str | None = None

    @property
    def available(self) -> bool:
        return bool(self.pages)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def tokenize_query(query: str) -> list[str]:
    """Lowercase, split on whitespace/commas, drop tokens of length ≤ 2."""
    return [t for t in _TOKEN_SPLIT.split(query.lower()) if len(t) > 2]


def score_page(page: IndexedPage, terms: Sequence[str]) -> int:
    """Keyword/title/snippet relevance of `page` for the query terms."""
    title = page.title.lower()
    snippet = page.snippet.lower()
    keywords = [k.lower() for k in page.keywords]

    score = 0
    for term in terms:
        exact = term in keywords
        if exact:
            score += 10
        elif any(term in k for k in keywords):
            score += 5

        if term in title:
            score += 8
        if term in snippet:
            score += 3

        if exact and _CONTROL_ID.match(term):
            score += 15
    return score


def default_index_dirs() -> list[Path]:
    """Candidate snapshot directories, highest priority first."""
    candidates = []
    if settings.knowledge_index_dir:
        candidates.append(Path(settings.knowledge_index_dir))
    candidates.append(Path.cwd() / "config" / "knowledge-index")
    candidates.append(
        Path(__file__).resolve().parents[2] / "config" / "knowledge-index"
    )
    return candidates


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


class KnowledgeIndex:
    """
    Read-only, lazily loaded view over the exported snapshot.

    Safe to share between concurrent readers: nothing is mutated after the
    first successful load.
    """

    def __init__(self, candidate_dirs: Sequence[Path] | None = None) -> None:
        self._candidate_dirs = list(
            candidate_dirs if candidate_dirs is not None else default_index_dirs()
        )
        self._snapshot: KnowledgeSnapshot | None = None
        self._full: KnowledgeSnapshot | None = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _read_json(self, filename: str) -> tuple[object, Path] | None:
        for directory in self._candidate_dirs:
            path = directory / filename
            if not path.is_file():
                continue
            try:
                return json.loads(path.read_text(encoding="utf-8")), path
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Unreadable snapshot file %s: %s", path, e)
        return None

    def load(self) -> KnowledgeSnapshot:
        """
        Load the search snapshot (id, title, parent, keywords, snippet).

        Memoized after the first call, including the "nothing found"
        outcome. Falls back to deriving snippets from the full index when
        only index.json was exported.
        """
        if self._snapshot is not None:
            return self._snapshot

        found = self._read_json(SEARCH_INDEX_FILE)
        if found is not None and isinstance(found[0], list):
            data, path = found
            self._snapshot = KnowledgeSnapshot(
                pages=[IndexedPage.from_dict(p) for p in data],
                source=path,
            )
            logger.info(
                "Loaded search index from %s (%d pages)",
                path, len(self._snapshot.pages),
            )
            return self._snapshot

        full = self.load_full()
        if full.available:
            self._snapshot = full
            return self._snapshot

        logger.warning("Knowledge index not found, local search unavailable")
        self._snapshot = KnowledgeSnapshot()
        return self._snapshot

    def load_full(self) -> KnowledgeSnapshot:
        """Load the full snapshot (with page content). Memoized."""
        if self._full is not None:
            return self._full

        found = self._read_json(FULL_INDEX_FILE)
        if found is not None and isinstance(found[0], dict):
            data, path = found
            self._full = KnowledgeSnapshot(
                pages=[IndexedPage.from_dict(p) for p in data.get("pages", [])],
                source=path,
                exported_at=data.get("exportedAt"),
            )
            logger.info(
                "Loaded full index from %s (%d pages)",
                path, len(self._full.pages),
            )
        else:
            logger.warning("Full knowledge index not found")
            self._full = KnowledgeSnapshot()
        return self._full

    @property
    def available(self) -> bool:
        return self.load().available

    def metadata(self) -> dict:
        snapshot = self.load()
        return {
            "available": snapshot.available,
            "page_count": len(snapshot.pages),
            "exported_at": self.load_full().exported_at,
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def section_of(self, page: IndexedPage) -> str:
        """Title of the top-level page `page` lives under."""
        by_title: dict[str, IndexedPage] = {}
        for p in self.load().pages:
            by_title.setdefault(p.title, p)

        current = page
        for _ in range(_MAX_PARENT_DEPTH):
            if current.parent == ROOT_PARENT:
                return current.title
            parent = by_title.get(current.parent)
            if parent is None:
                return current.parent
            current = parent
        return current.title

    def search(
        self,
        query: str,
        limit: int = 5,
        section: str | None = None,
    ) -> list[RetrievalResult]:
        """
        Score every page against the query and return the best `limit`.

        Pages scoring 0 are excluded; ties keep snapshot order.

        Args:
            query: Free-text query.
            limit: Maximum number of results.
            section: Optional top-level page title to restrict results to.
        """
        terms = tokenize_query(query)
        pages = self.load().pages
        if section:
            pages = [p for p in pages if self.section_of(p) == section]

        scored = [(page, score_page(page, terms)) for page in pages]
        scored = [item for item in scored if item[1] > 0]
        scored.sort(key=lambda item: item[1], reverse=True)

        return [
            RetrievalResult(
                content=(
                    f"## {page.title}\n"
                    f"**Parent:** {page.parent}\n"
                    f"**Keywords:** {', '.join(page.keywords)}\n\n"
                    f"{page.snippet}..."
                ),
                score=score,
                source="local_index",
                reference=page.id,
            )
            for page, score in scored[:limit]
        ]

    def search_text(
        self,
        query: str,
        limit: int = 5,
        section: str | None = None,
    ) -> str:
        """search() rendered as a tool result."""
        if not self.available:
            return "Local index not available"
        results = self.search(query, limit=limit, section=section)
        if not results:
            return f'No local results for "{query}"'
        return join_results(results)

    def get_page(self, id_or_title: str) -> str | None:
        """
        Full page text by id (dashes optional) or title.

        Title matching is case-insensitive, exact or substring. The first
        page in snapshot order matching any rule wins. Returns None when
        nothing matches or no full snapshot exists.
        """
        wanted = id_or_title.strip()
        if not wanted:
            return None

        wanted_lower = wanted.lower()
        wanted_compact = wanted.replace("-", "")

        for page in self.load_full().pages:
            title = page.title.lower()
            if (
                page.id == wanted
                or page.id.replace("-", "") == wanted_compact
                or title == wanted_lower
                or wanted_lower in title
            ):
                return (
                    f"# {page.title}\n\n"
                    f"**Parent:** {page.parent}\n"
                    f"**Keywords:** {', '.join(page.keywords)}\n\n"
                    f"{page.content}"
                )
        return None


_index: KnowledgeIndex | None = None


def get_knowledge_index() -> KnowledgeIndex:
    """Process-wide index over the default candidate directories."""
    global _index
    if _index is None:
        _index = KnowledgeIndex()
    return _index
