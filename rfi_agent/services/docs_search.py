# =============================================================================
# Document Search — Public Documentation Corpus
# =============================================================================
#
# The public docs are a directory of markdown files grouped by section:
#
#   docs/
#   ├── authentication-and-security/   SSO, SAML, IP allow-listing
#   ├── data-sources/                  warehouse connection guides
#   └── legal-and-support/             ToS, DPA, subprocessors, support
#
# Only these sections are searched. A file's public URL is the docs site
# base URL plus its path relative to the corpus root, without ".md".
#
# SCORING (per whitespace-separated query term, case-insensitive):
#   +10  the file name contains the term
#   +n   the term occurs n times in the body (matched literally)
# =============================================================================

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from rfi_agent.config import settings
from rfi_agent.services.retrieval import RetrievalResult, join_results

logger = logging.getLogger(__name__)

DOCS_SECTIONS = (
    "authentication-and-security",
    "data-sources",
    "legal-and-support",
)

# Excerpt window around the first query term's first occurrence
EXCERPT_BEFORE = 100
EXCERPT_AFTER = 500
EXCERPT_MAX = 600


@dataclass(frozen=True)
class DocPage:
    path: str       # relative to the corpus root, posix, without ".md"
    section: str
    name: str       # file stem
    content: str


def default_docs_root() -> Path:
    """First existing docs directory, or the first candidate."""
    candidates = []
    if settings.docs_dir:
        candidates.append(Path(settings.docs_dir))
    candidates.append(Path.cwd() / "docs")
    candidates.append(Path(__file__).resolve().parents[2] / "docs")

    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return candidates[0]


def make_excerpt(content: str, term: str) -> str:
    index = content.lower().find(term) if term else -1
    index = max(index, 0)
    start = max(0, index - EXCERPT_BEFORE)
    excerpt = content[start:index + EXCERPT_AFTER].strip()
    if len(excerpt) > EXCERPT_MAX:
        return excerpt[:EXCERPT_MAX] + "..."
    return excerpt


def score_doc(doc: DocPage, terms: list[str]) -> int:
    name = doc.name.lower()
    score = 0
    for term in terms:
        if term in name:
            score += 10
        score += len(re.findall(re.escape(term), doc.content, re.IGNORECASE))
    return score


class DocsCorpus:
    """Markdown corpus read from disk on every query."""

    def __init__(
        self,
        root: str | Path | None = None,
        base_url: str | None = None,
    ) -> None:
        self.root = Path(root) if root is not None else default_docs_root()
        self.base_url = (base_url or settings.docs_base_url).rstrip("/")

    def reference_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def pages(self, section: str | None = None) -> list[DocPage]:
        """Every markdown page in the searched sections, in path order."""
        sections = [section] if section in DOCS_SECTIONS else list(DOCS_SECTIONS)
        found = []
        for name in sections:
            section_dir = self.root / name
            if not section_dir.is_dir():
                logger.warning("Docs section not found: %s", section_dir)
                continue
            for file in sorted(section_dir.rglob("*.md")):
                try:
                    content = file.read_text(encoding="utf-8")
                except OSError as e:
                    logger.error("Error reading %s: %s", file, e)
                    continue
                found.append(DocPage(
                    path=file.relative_to(self.root).with_suffix("").as_posix(),
                    section=name,
                    name=file.stem,
                    content=content,
                ))
        return found

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        section: str | None = None,
        limit: int = 5,
    ) -> list[RetrievalResult]:
        """
        Score every page in scope and return the best `limit`.

        An unknown `section` searches every section.
        """
        terms = query.lower().split()
        if not terms:
            return []

        scored = [(doc, score_doc(doc, terms)) for doc in self.pages(section)]
        scored = [item for item in scored if item[1] > 0]
        scored.sort(key=lambda item: item[1], reverse=True)

        return [
            RetrievalResult(
                content=(
                    f"## {doc.path}\n"
                    f"Source: {self.reference_url(doc.path)}\n\n"
                    f"{make_excerpt(doc.content, terms[0])}"
                ),
                score=score,
                source="documents",
                reference=doc.path,
            )
            for doc, score in scored[:limit]
        ]

    def search_text(self, query: str, section: str | None = None) -> str:
        """search() rendered as a tool result."""
        results = self.search(query, section=section)
        if not results:
            return f'No results found for "{query}" in the documentation.'
        return join_results(results)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    def _resolve(self, relative: str) -> Path | None:
        """Absolute path of `relative` if it is a file inside the corpus."""
        root = self.root.resolve()
        candidate = (root / relative).resolve()
        if not candidate.is_relative_to(root):
            logger.warning("Refusing docs path outside corpus: %s", relative)
            return None
        return candidate if candidate.is_file() else None

    def fetch(self, path: str) -> str:
        """
        Full page text with its public URL.

        The path may omit ".md" and the section prefix; an exact match is
        tried first, then each section in turn.
        """
        normalized = path.strip().strip("/")
        if normalized.endswith(".md"):
            normalized = normalized[:-3]
        if not normalized:
            return f"Page not found: {path}"

        for relative in [normalized, *(f"{s}/{normalized}" for s in DOCS_SECTIONS)]:
            file = self._resolve(f"{relative}.md")
            if file is None:
                continue
            try:
                content = file.read_text(encoding="utf-8")
            except OSError as e:
                logger.error("Error reading docs page %s: %s", file, e)
                return f"Error reading page: {e}"
            return f"Source: {self.reference_url(relative)}\n\n{content}"

        return f"Page not found: {path}"


_corpus: DocsCorpus | None = None


def get_docs_corpus() -> DocsCorpus:
    global _corpus
    if _corpus is None:
        _corpus = DocsCorpus()
    return _corpus
