# =============================================================================
# Unit Tests — Tool Router
# =============================================================================
#
# Every retrieval source is a mock; these tests only cover argument
# handling, routing, local-first fallback and truncation.
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from rfi_agent.agents.tools import ToolRouter, workspace_section_title


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _router(index_available: bool = True, max_chars: int = 10_000) -> ToolRouter:
    qa_store = MagicMock()
    qa_store.search_text.return_value = "**Q:** q\n**A:** a"

    index = MagicMock()
    index.available = index_available
    index.search_text.return_value = "local results"
    index.get_page.return_value = None

    workspace = AsyncMock()
    workspace.search.return_value = "live results"
    workspace.fetch.return_value = "# Live page"

    docs = MagicMock()
    docs.search_text.return_value = "doc results"
    docs.fetch.return_value = "Source: https://docs.example.com/x\n\nbody"

    return ToolRouter(
        qa_store=qa_store,
        index=index,
        workspace=workspace,
        docs=docs,
        max_chars=max_chars,
    )


# ---------------------------------------------------------------------------
# Test: Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:

    def test_unknown_tool(self):
        assert _run(_router().dispatch("delete_everything", {})) == (
            "Unknown tool: delete_everything"
        )

    def test_missing_required_argument(self):
        router = _router()
        assert _run(router.dispatch("search_workspace", {})) == (
            "Missing required argument: query"
        )
        assert _run(router.dispatch("get_workspace_page", {"query": "x"})) == (
            "Missing required argument: page_id"
        )
        router.workspace.search.assert_not_called()

    def test_non_dict_arguments_treated_as_empty(self):
        router = _router()
        assert _run(router.dispatch("get_document_page", "oops")) == (
            "Missing required argument: path"
        )

    def test_blank_argument_is_missing(self):
        result = _run(_router().dispatch("search_cached_answers", {"query": "  "}))
        assert result == "Missing required argument: query"

    def test_non_string_argument_coerced(self):
        router = _router()
        _run(router.dispatch("search_cached_answers", {"query": 2023}))
        router.qa_store.search_text.assert_called_once_with("2023")

    def test_extra_arguments_ignored(self):
        router = _router()
        _run(router.dispatch("search_cached_answers", {"query": "mfa", "limit": 99}))
        router.qa_store.search_text.assert_called_once_with("mfa")

    def test_result_truncated(self):
        router = _router(max_chars=100)
        router.docs.search_text.return_value = "x" * 5000
        result = _run(router.dispatch("search_documents", {"query": "sso"}))
        assert len(result) == 100

    def test_source_exception_propagates(self):
        router = _router()
        router.docs.fetch.side_effect = PermissionError("denied")
        with pytest.raises(PermissionError):
            _run(router.dispatch("get_document_page", {"path": "legal/dpa"}))


# ---------------------------------------------------------------------------
# Test: Workspace Routing
# ---------------------------------------------------------------------------


class TestWorkspaceRouting:

    def test_search_prefers_local_index(self):
        router = _router(index_available=True)
        result = _run(router.dispatch("search_workspace", {"query": "training"}))

        assert result == "local results"
        router.index.search_text.assert_called_once_with("training", section=None)
        router.workspace.search.assert_not_called()

    def test_search_falls_back_to_live_without_snapshot(self):
        router = _router(index_available=False)
        result = _run(router.dispatch("search_workspace", {"query": "training"}))

        assert result == "live results"
        router.workspace.search.assert_awaited_once_with("training")

    def test_no_local_results_do_not_trigger_live_search(self):
        router = _router(index_available=True)
        router.index.search_text.return_value = 'No local results for "x"'
        _run(router.dispatch("search_workspace", {"query": "x"}))
        router.workspace.search.assert_not_called()

    @pytest.mark.parametrize("key", ["section_filter", "page_filter", "section"])
    def test_section_filter_spellings(self, key):
        router = _router()
        _run(router.dispatch(
            "search_workspace", {"query": "bcp", key: "business_continuity_plan"},
        ))
        router.index.search_text.assert_called_once_with(
            "bcp", section="Business Continuity Plan",
        )

    def test_section_titles(self):
        assert workspace_section_title("employee_handbook") == "Employee Handbook"
        assert workspace_section_title("Security Homepage") == "Security Homepage"
        assert workspace_section_title("all") is None
        assert workspace_section_title("nonsense") is None
        assert workspace_section_title(None) is None

    def test_page_from_local_index_by_resolved_alias(self):
        router = _router()
        router.index.get_page.side_effect = lambda ref: (
            "# Security Awareness Training"
            if ref == "53107304c6764dad877fe3dc62b7fe2f" else None
        )

        result = _run(router.dispatch("get_workspace_page", {"page_id": "CC1.1.3"}))

        assert result == "# Security Awareness Training"
        router.workspace.fetch.assert_not_called()

    def test_page_falls_back_to_raw_reference(self):
        router = _router()
        router.index.get_page.side_effect = lambda ref: (
            "# Vendor Management" if ref == "Vendor Management" else None
        )

        result = _run(router.dispatch(
            "get_workspace_page", {"page_id": "Vendor Management"},
        ))
        assert result == "# Vendor Management"

    def test_page_missing_locally_fetched_live(self):
        router = _router()
        result = _run(router.dispatch("get_workspace_page", {"page_id": "CC9.1.1"}))

        assert result == "# Live page"
        router.workspace.fetch.assert_awaited_once_with("CC9.1.1")

    def test_page_without_snapshot_fetched_live(self):
        router = _router(index_available=False)
        _run(router.dispatch("get_workspace_page", {"page_id": "soc2"}))
        router.index.get_page.assert_not_called()
        router.workspace.fetch.assert_awaited_once_with("soc2")


# ---------------------------------------------------------------------------
# Test: Documents and Cached Answers
# ---------------------------------------------------------------------------


class TestOtherSources:

    def test_search_documents_with_section(self):
        router = _router()
        _run(router.dispatch(
            "search_documents",
            {"query": "okta", "section_filter": "authentication-and-security"},
        ))
        router.docs.search_text.assert_called_once_with(
            "okta", section="authentication-and-security",
        )

    def test_get_document_page_legacy_path_key(self):
        router = _router()
        result = _run(router.dispatch(
            "get_document_page", {"page_path": "legal-and-support/legal/dpa"},
        ))
        router.docs.fetch.assert_called_once_with("legal-and-support/legal/dpa")
        assert result.startswith("Source: ")

    def test_search_cached_answers(self):
        router = _router()
        result = _run(router.dispatch("search_cached_answers", {"query": "soc2"}))
        assert result == "**Q:** q\n**A:** a"
