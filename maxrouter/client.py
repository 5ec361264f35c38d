"""Native Messages API client."""

import json
import logging
from contextlib import aclosing, asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx

from .exceptions import UpstreamError
from .streaming import parse_sse_lines

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_BETA = (
    "oauth-2025-04-20,claude-code-20250219,"
    "interleaved-thinking-2025-05-14,fine-grained-tool-streaming-2025-05-14"
)


class UpstreamClient:
    """
    Async client for the native Messages endpoint.

    Handles:
    - JSON requests (send)
    - SSE streams, parsed (stream) or raw (stream_raw)
    - Converting HTTP failures into UpstreamError with the original status

    There are no retries; callers see the first failure.
    """

    def __init__(
        self,
        api_url: str,
        token_provider: Callable[[], Awaitable[str]],
        timeout: float = 600.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self.token_provider = token_provider
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def _headers(self) -> Dict[str, str]:
        access_token = await self.token_provider()
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
            "anthropic-beta": ANTHROPIC_BETA,
        }

    async def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Non-streaming request; returns the parsed native response"""
        headers = await self._headers()
        try:
            resp = await self.client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Upstream request failed: {e}")
            raise UpstreamError(502, "api_error", f"Upstream request failed: {e}")

        if resp.status_code >= 400:
            raise _error_from(resp.status_code, resp.content)
        return resp.json()

    async def stream(self, payload: Dict[str, Any]) -> AsyncIterator[Dict[str, Any]]:
        """Streaming request; yields parsed native events in arrival order"""
        async with aclosing(self._stream_lines(payload)) as lines:
            async with aclosing(parse_sse_lines(lines)) as events:
                async for event in events:
                    yield event

    async def stream_raw(self, payload: Dict[str, Any]) -> AsyncIterator[bytes]:
        """Streaming request; yields the upstream bytes untouched"""
        async with self._open_stream(payload) as resp:
            try:
                async for chunk in resp.aiter_raw():
                    yield chunk
            except httpx.HTTPError as e:
                raise UpstreamError(502, "api_error", f"Upstream stream interrupted: {e}")

    async def _stream_lines(self, payload: Dict[str, Any]) -> AsyncIterator[str]:
        async with self._open_stream(payload) as resp:
            try:
                async for line in resp.aiter_lines():
                    yield line
            except httpx.HTTPError as e:
                raise UpstreamError(502, "api_error", f"Upstream stream interrupted: {e}")

    @asynccontextmanager
    async def _open_stream(self, payload: Dict[str, Any]) -> AsyncIterator[httpx.Response]:
        """Open an upstream stream; HTTP errors are raised before any bytes flow"""
        headers = await self._headers()
        request = self.client.build_request("POST", self.api_url, json=payload, headers=headers)
        try:
            resp = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Upstream stream failed to open: {e}")
            raise UpstreamError(502, "api_error", f"Upstream request failed: {e}")

        try:
            if resp.status_code >= 400:
                raise _error_from(resp.status_code, await resp.aread())
            yield resp
        finally:
            await resp.aclose()


def _error_from(status_code: int, body: bytes) -> UpstreamError:
    try:
        parsed = json.loads(body)
    except ValueError:
        parsed = body
    error = UpstreamError.from_body(status_code, parsed)
    logger.error(f"Upstream HTTP {status_code}: {error.error_type}: {error.message[:300]}")
    return error
