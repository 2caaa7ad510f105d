"""HTTP GET of a web page, returned as (truncated) text."""

import logging
from typing import Any, Dict, Optional

import httpx

from tools.base import Tool, ToolArgumentError, ToolResult, ToolSchema, str_arg

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 15.0
MAX_BODY_CHARS = 50_000
USER_AGENT = "clawloop/0.1"


class WebFetchTool(Tool):
    category = "network"

    def __init__(
        self,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        max_chars: int = MAX_BODY_CHARS,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_chars = max_chars
        self._transport = transport

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name="web_fetch",
            description="Fetch a URL over HTTP(S) and return the status line and response body as text.",
            parameters={
                "url": {"type": "string", "description": "http:// or https:// URL to fetch"},
            },
            required=["url"],
        )

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            url = str_arg(args, "url").strip()
        except ToolArgumentError as e:
            return ToolResult.fail(str(e))
        if not (url.startswith("http://") or url.startswith("https://")):
            return ToolResult.fail("URL must start with http:// or https://")

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            ) as client:
                async with client.stream("GET", url) as response:
                    body, truncated = await self._read_text(response)
        except httpx.HTTPError as e:
            logger.debug("web_fetch %s failed: %s", url, e)
            return ToolResult.fail(f"Request failed: {e}")

        suffix = "\n... [truncated]" if truncated else ""
        status = response.status_code
        output = f"HTTP {status}\n{body}{suffix}"
        if response.is_success:
            return ToolResult.ok(output, status=status, url=str(response.url))
        return ToolResult.fail(f"HTTP {status}", output=output, status=status, url=str(response.url))

    async def _read_text(self, response: httpx.Response):
        """Decode the body until more than ``max_chars`` have arrived."""
        chunks = []
        size = 0
        async for chunk in response.aiter_text():
            chunks.append(chunk)
            size += len(chunk)
            if size > self.max_chars:
                return "".join(chunks)[:self.max_chars], True
        return "".join(chunks), False

