# =============================================================================
# Unit Tests — Document Search
# =============================================================================
#
# Builds a miniature docs corpus under tmp_path.
# =============================================================================

from __future__ import annotations

import pytest

from rfi_agent.services.docs_search import DocPage, DocsCorpus, make_excerpt, score_doc

BASE = "https://docs.example.com"


@pytest.fixture
def corpus(tmp_path):
    root = tmp_path / "docs"
    files = {
        "legal-and-support/legal/subprocessors.md": (
            "# Subprocessors\n\nWe use the following subprocessors: AWS, "
            "OpenAI, Anthropic. Subprocessors are reviewed annually."
        ),
        "legal-and-support/support-policy.md": (
            "# Support Policy\n\nSupport is available on business days. "
            "A list of subprocessors is published separately."
        ),
        "authentication-and-security/okta.md": (
            "# Okta SSO\n\nConfigure SAML with Okta for single sign-on."
        ),
        "data-sources/snowflake_setup.md": (
            "# Snowflake\n\nCreate a service user for Snowflake."
        ),
        "internal/secret.md": "# Internal\n\nsubprocessors draft",
    }
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    (tmp_path / "outside.md").write_text("outside the corpus")
    return DocsCorpus(root=root, base_url=BASE)


class TestScoring:

    def test_title_match_worth_ten(self):
        doc = DocPage(path="x/okta", section="x", name="okta", content="")
        assert score_doc(doc, ["okta"]) == 10

    def test_body_occurrences_counted(self):
        doc = DocPage(path="x/a", section="x", name="a", content="SSO sso Sso")
        assert score_doc(doc, ["sso"]) == 3

    def test_regex_characters_matched_literally(self):
        doc = DocPage(path="x/a", section="x", name="a", content="c++ and (beta)")
        assert score_doc(doc, ["c++", "(beta)"]) == 2


class TestExcerpt:

    def test_window_around_first_term(self):
        content = "a" * 1000 + "TARGET" + "b" * 1000
        excerpt = make_excerpt(content, "target")
        assert excerpt == "a" * 100 + "TARGET" + "b" * 494

    def test_term_absent_uses_document_start(self):
        content = "Intro text. " * 100
        assert make_excerpt(content, "missing").startswith("Intro text.")

    def test_short_document_unchanged(self):
        assert make_excerpt("  Short doc.  ", "short") == "Short doc."


class TestSearch:

    def test_title_match_ranks_first(self, corpus):
        results = corpus.search("subprocessors")
        assert results[0].reference == "legal-and-support/legal/subprocessors"
        assert results[1].reference == "legal-and-support/support-policy"

    def test_result_format_has_public_url(self, corpus):
        text = corpus.search_text("snowflake")
        assert text.startswith(
            "## data-sources/snowflake_setup\n"
            "Source: https://docs.example.com/data-sources/snowflake_setup\n\n"
        )

    def test_only_listed_sections_searched(self, corpus):
        refs = [r.reference for r in corpus.search("subprocessors")]
        assert "internal/secret" not in refs

    def test_section_restriction(self, corpus):
        results = corpus.search("saml okta", section="authentication-and-security")
        assert [r.reference for r in results] == ["authentication-and-security/okta"]
        assert corpus.search("snowflake", section="legal-and-support") == []

    def test_unknown_section_searches_everything(self, corpus):
        assert corpus.search("snowflake", section="bogus")

    def test_top_five(self, tmp_path):
        root = tmp_path / "many"
        section = root / "data-sources"
        section.mkdir(parents=True)
        for i in range(8):
            (section / f"warehouse_{i}.md").write_text("warehouse setup")
        assert len(DocsCorpus(root=root, base_url=BASE).search("warehouse")) == 5

    def test_no_results_message(self, corpus):
        assert corpus.search_text("kubernetes") == (
            'No results found for "kubernetes" in the documentation.'
        )

    def test_missing_corpus(self, tmp_path):
        empty = DocsCorpus(root=tmp_path / "none", base_url=BASE)
        assert empty.search("anything") == []


class TestFetch:

    def test_exact_path(self, corpus):
        text = corpus.fetch("legal-and-support/legal/subprocessors")
        assert text.startswith(
            "Source: https://docs.example.com/legal-and-support/legal/subprocessors\n\n"
        )
        assert "# Subprocessors" in text

    def test_extension_and_slashes_ignored(self, corpus):
        expected = corpus.fetch("data-sources/snowflake_setup")
        assert corpus.fetch("/data-sources/snowflake_setup.md/") == expected

    def test_section_fallback(self, corpus):
        text = corpus.fetch("legal/subprocessors")
        assert text.startswith(
            "Source: https://docs.example.com/legal-and-support/legal/subprocessors"
        )

    def test_not_found(self, corpus):
        assert corpus.fetch("legal/nothing") == "Page not found: legal/nothing"

    def test_path_outside_corpus_refused(self, corpus):
        assert corpus.fetch("../outside") == "Page not found: ../outside"
