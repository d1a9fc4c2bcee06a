# =============================================================================
# Live Workspace — Notion REST API
# =============================================================================
#
# Network-bound retrieval against the company workspace, used when no local
# snapshot exists (search) or the snapshot has no copy of a page (fetch).
#
# SEARCH:
#   POST /search (pages only) → first N pages get a short preview built
#   from their first few child blocks. Previews are fetched concurrently; a
#   page whose preview fails still appears, marked "[Content preview
#   unavailable]".
#
# FETCH:
#   alias resolution → GET /pages/{id} (title) → GET /blocks/{id}/children
#   until has_more is false → blocks rendered to plain text.
#
# Every failure (HTTP error, timeout, malformed JSON) comes back as a
# readable string. The answering engine passes it to the model like any
# other tool result.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from rfi_agent.config import settings
from rfi_agent.services.retrieval import RESULT_SEPARATOR

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Well-Known Pages
# ---------------------------------------------------------------------------

NOTION_PAGES = {
    "EMPLOYEE_HANDBOOK": "dc73011524e54feaa2a69d78d6e5164e",
    "SECURITY_HOMEPAGE": "6b8833be227a437a8f846f9cd5c896e4",
    "ENGINEERING_WIKI": "3f72c85f50d947ec97543db5242260f9",
    "SOC2_PAGE": "a4bde54a446d41b6a3f36ccf8fbf3374",
    "BUSINESS_CONTINUITY_PLAN": "129a8dad05ac801cb803e69297ecf8c7",
}

# SOC2 common-criteria control ids → the page documenting the control
CONTROL_PAGES = {
    "CC1.1.1": "526475ca69d24b67a4f7ddf8d8964201",
    "CC1.1.3": "53107304c6764dad877fe3dc62b7fe2f",
    "CC1.5.1": "519cf166e30d44bfb454d388ed246e04",
    "CC2.3.3": "cdfb1ee20e754a98b2ee05e323f44433",
    "CC2.3.4": "1b4a8dad05ac803ba447fc9262f97f83",
    "CC6.2.2": "808186e5ec0845e99539c798f47ffb15",
    "CC8.1.1": "fc9d81e43f8440c8b798d5018a890134",
    "CC9.1.1": "54d40b58483548bebe4d087df35eed07",
    "CC9.1.2": "ab72611c438740fe8ab4f7dcac850c91",
    "CC-P2.1": "df929f142b7d418893dd979ceeee50f8",
    "CC.AI.1": "21ea8dad05ac8094a02de223590bc0b3",
}

# Named shortcuts the model may pass instead of an id
PAGE_ALIASES = {
    "employee_handbook": NOTION_PAGES["EMPLOYEE_HANDBOOK"],
    "security_homepage": NOTION_PAGES["SECURITY_HOMEPAGE"],
    "engineering_wiki": NOTION_PAGES["ENGINEERING_WIKI"],
    "soc2": NOTION_PAGES["SOC2_PAGE"],
}

# section_filter value → title of the top-level page of that section
WORKSPACE_SECTIONS = {
    "employee_handbook": "Employee Handbook",
    "security_homepage": "Security Homepage",
    "engineering_wiki": "Engineering Wiki",
    "business_continuity_plan": "Business Continuity Plan",
}


def resolve_page_id(page_ref: str) -> str:
    """
    Map a control id ("cc1.1.3") or named alias ("Security Homepage") to
    a page id. Anything else is returned unchanged.
    """
    resolved = CONTROL_PAGES.get(page_ref.upper(), page_ref)
    alias = "_".join(page_ref.lower().split())
    return PAGE_ALIASES.get(alias, resolved)


# ---------------------------------------------------------------------------
# Block Rendering
# ---------------------------------------------------------------------------


def plain_text(rich_text: Any) -> str:
    if not isinstance(rich_text, list):
        return ""
    return "".join(
        part["plain_text"]
        for part in rich_text
        if isinstance(part, dict) and isinstance(part.get("plain_text"), str)
    )


def page_title(page: Any) -> str:
    """Title of a page object, whatever its title property is called."""
    properties = page.get("properties") if isinstance(page, dict) else None
    if not isinstance(properties, dict):
        return "Untitled"
    for key in ("title", "Name"):
        prop = properties.get(key)
        text = plain_text(prop.get("title")) if isinstance(prop, dict) else ""
        if text:
            return text
    for prop in properties.values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            text = plain_text(prop.get("title"))
            if text:
                return text
    return "Untitled"


def _code(text: str, payload: dict) -> str:
    return f"```{payload.get('language', '')}\n{text}\n```"


def _to_do(text: str, payload: dict) -> str:
    return f"{'☑' if payload.get('checked') else '☐'} {text}"


_BLOCK_RENDERERS = {
    "heading_1": lambda text, payload: f"# {text}",
    "heading_2": lambda text, payload: f"## {text}",
    "heading_3": lambda text, payload: f"### {text}",
    "bulleted_list_item": lambda text, payload: f"• {text}",
    "numbered_list_item": lambda text, payload: f"1. {text}",
    "to_do": _to_do,
    "divider": lambda text, payload: "---",
    "quote": lambda text, payload: f"> {text}",
    "code": _code,
}


def _payload(block: Any) -> tuple[str, dict]:
    """(type, type-specific payload) of a block; empty for malformed ones."""
    if not isinstance(block, dict):
        return "", {}
    block_type = block.get("type")
    if not isinstance(block_type, str):
        return "", {}
    payload = block.get(block_type)
    return block_type, payload if isinstance(payload, dict) else {}


def block_text(block: Any) -> str:
    """The block's rich text, without any type-specific decoration."""
    _, payload = _payload(block)
    return plain_text(payload.get("rich_text"))


def render_block(block: Any) -> str:
    """Render one block to plain text. Unknown types render as their text."""
    block_type, payload = _payload(block)
    if not block_type:
        return ""
    text = plain_text(payload.get("rich_text"))
    renderer = _BLOCK_RENDERERS.get(block_type)
    if renderer is None:
        return text
    return renderer(text, payload)


def render_blocks(blocks: list[dict]) -> str:
    return "\n\n".join(r for r in (render_block(b) for b in blocks) if r)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class WorkspaceClient:
    """
    Thin async client over the workspace REST API.

    Opens one httpx.AsyncClient per operation unless a client is injected
    (tests pass one built on httpx.MockTransport).
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token = token if token is not None else settings.notion_token
        self.base_url = (base_url or settings.notion_api_url).rstrip("/")
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": settings.notion_version,
            "Content-Type": "application/json",
        }

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.notion_timeout),
        ) as client:
            yield client

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        **kwargs,
    ) -> dict:
        response = await client.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            **kwargs,
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected response from {path}")
        return data

    @staticmethod
    def _results(data: dict, path: str) -> list[dict]:
        """The `results` array of a list response; non-object entries dropped."""
        results = data.get("results") or []
        if not isinstance(results, list):
            raise ValueError(f"Malformed results in response from {path}")
        return [item for item in results if isinstance(item, dict)]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def _preview(self, client: httpx.AsyncClient, page: dict) -> str:
        title = page_title(page)
        limit = settings.workspace_preview_chars
        path = f"/blocks/{page.get('id', '')}/children"
        try:
            data = await self._request(
                client,
                "GET",
                path,
                params={"page_size": settings.workspace_preview_blocks},
            )
            blocks = self._results(data, path)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Preview unavailable for page %s: %s", page.get("id"), e)
            return f"## {title}\n[Content preview unavailable]"

        content = "\n".join(t for t in (block_text(b) for b in blocks) if t)
        suffix = "..." if len(content) > limit else ""
        return f"## {title}\n{content[:limit]}{suffix}"

    async def search(self, query: str) -> str:
        """Search pages and return titled previews of the top hits."""
        if not self.configured:
            logger.warning("Workspace search skipped: no NOTION_TOKEN configured")
            return "Workspace search unavailable: no workspace token configured."

        try:
            async with self._session() as client:
                data = await self._request(
                    client,
                    "POST",
                    "/search",
                    json={
                        "query": query,
                        "filter": {"property": "object", "value": "page"},
                        "page_size": settings.workspace_search_page_size,
                    },
                )
                pages = self._results(data, "/search")
                if not pages:
                    return f'No results found for "{query}" in the workspace.'

                previews = await asyncio.gather(*(
                    self._preview(client, page)
                    for page in pages[: settings.workspace_preview_pages]
                ))
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Workspace search failed: %s", e)
            return f"Error searching workspace: {e}"

        return RESULT_SEPARATOR.join(previews)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def fetch(self, page_ref: str) -> str:
        """Full text of a page, by id, control id, or named alias."""
        if not self.configured:
            logger.warning("Workspace fetch skipped: no NOTION_TOKEN configured")
            return "Workspace page unavailable: no workspace token configured."

        page_id = resolve_page_id(page_ref)
        blocks: list[dict] = []

        try:
            async with self._session() as client:
                page = await self._request(client, "GET", f"/pages/{page_id}")

                params: dict[str, Any] = {"page_size": 100}
                while True:
                    data = await self._request(
                        client,
                        "GET",
                        f"/blocks/{page_id}/children",
                        params=params,
                    )
                    blocks.extend(self._results(data, f"/blocks/{page_id}/children"))
                    cursor = data.get("next_cursor")
                    if not data.get("has_more") or not cursor:
                        break
                    params = {"page_size": 100, "start_cursor": cursor}
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Workspace fetch failed for %s: %s", page_id, e)
            return f"Error fetching page: {e}"

        logger.info("Fetched workspace page %s (%d blocks)", page_id, len(blocks))
        return f"# {page_title(page)}\n\n{render_blocks(blocks)}"
