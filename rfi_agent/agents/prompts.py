# =============================================================================
# Prompts and Tool Schemas
# =============================================================================
#
# The system prompt tells the model how to answer a questionnaire item:
# search first, answer in a fixed short format, and cite every claim with
# a bracketed source the answering engine can extract.
#
# Standing company facts (contacts, certifications, infrastructure) are
# read from `company_facts_path` and appended verbatim. A missing file
# leaves them out.
#
# Tool schemas use the Anthropic `input_schema` shape. They describe what
# the model SHOULD send; the tool router still treats every argument as
# optional and untrusted.
# =============================================================================

from __future__ import annotations

import logging
from pathlib import Path

from rfi_agent.config import settings
from rfi_agent.services.docs_search import DOCS_SECTIONS
from rfi_agent.services.workspace import WORKSPACE_SECTIONS

logger = logging.getLogger(__name__)


def load_company_facts(path: str | Path | None = None) -> str:
    facts_path = Path(path or settings.company_facts_path)
    if not facts_path.is_file():
        logger.warning("Company facts file not found at %s", facts_path)
        return ""
    return facts_path.read_text(encoding="utf-8").strip()


def build_system_prompt(
    company_name: str | None = None,
    facts: str | None = None,
) -> str:
    company = company_name or settings.company_name
    if facts is None:
        facts = load_company_facts()
    prompt = (
        f"You are the {company} RFI Response Assistant. You answer security "
        "questionnaires, RFIs, RFPs and vendor risk assessments with "
        "accurate, citation-backed responses.\n\n"
        "## Search protocol\n"
        "- Check search_cached_answers first for previously approved "
        "answers.\n"
        "- Search the workspace before answering anything about security "
        "policies (CC* controls), training, HR procedures, audits, "
        "architecture, incident management, access control or data "
        "handling.\n"
        "- Use search_documents for data source setup, SSO/SAML, legal "
        "documents, subprocessors and support policy.\n"
        "- Fetch the full page when a search preview is not enough to "
        "answer.\n\n"
        "## Response format\n"
        "**[Yes/No]** - [1-2 sentence answer]. [Citation]\n\n"
        "Citations are bracketed and specific, e.g. "
        "[Employee Handbook > CC1.1.3 Security Awareness Training] or "
        "[docs.zenlytic.com/legal-and-support/legal/subprocessors]. Never "
        "use vague citations such as [Workspace] or [SOC2].\n\n"
        "## Negative answers\n"
        f"Frame them constructively: state what {company} does not do, then "
        "the closest control it does have.\n\n"
        "If no source supports an answer, say so plainly instead of "
        "guessing."
    )
    if facts:
        prompt += f"\n\n{facts}"
    return prompt


# ---------------------------------------------------------------------------
# Tool Schemas
# ---------------------------------------------------------------------------

TOOL_DEFINITIONS: list[dict] = [
    {
        "name": "search_cached_answers",
        "description": (
            "Search previously approved Q&A responses for similar "
            "questions. Use this first for common questions about SOC2, "
            "encryption, training and similar topics."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Question to search for",
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "search_workspace",
        "description": (
            "Search the company workspace for policies, procedures and "
            "internal documentation.\n\n"
            "Sections:\n"
            "- employee_handbook: all CC* policies, training, HR\n"
            "- security_homepage: SOC2 reports, audit evidence\n"
            "- engineering_wiki: architecture, technical docs\n"
            "- business_continuity_plan: BCP and disaster recovery"
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": (
                        'Search query, be specific, e.g. "CC1.1.3 training" '
                        'or "incident response"'
                    ),
                },
                "section_filter": {
                    "type": "string",
                    "enum": [*WORKSPACE_SECTIONS, "all"],
                    "description": "Which workspace section to search",
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "get_workspace_page",
        "description": (
            "Get the full content of a workspace page by page id, page "
            'title, or control number (e.g. "CC1.1.3", "CC2.3.3").'
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "page_id": {
                    "type": "string",
                    "description": "Page id, page title, or control number",
                },
            },
            "required": ["page_id"],
        },
    },
    {
        "name": "search_documents",
        "description": (
            "Search the public product documentation. Use this for data "
            "source connections, authentication (SSO, SAML, Okta), IP "
            "allow-listing, legal documents and support policy."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": (
                        'Search query, e.g. "subprocessors", '
                        '"snowflake setup", "okta SSO"'
                    ),
                },
                "section_filter": {
                    "type": "string",
                    "enum": list(DOCS_SECTIONS),
                    "description": "Optional: limit search to one section",
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "get_document_page",
        "description": "Get the full content of one documentation page.",
        "input_schema": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": (
                        'Path to the page, e.g. "legal-and-support/legal/'
                        'subprocessors" or "data-sources/snowflake_setup"'
                    ),
                },
            },
            "required": ["path"],
        },
    },
]

TOOL_NAMES = frozenset(tool["name"] for tool in TOOL_DEFINITIONS)
