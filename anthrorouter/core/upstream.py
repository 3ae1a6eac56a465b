"""HTTP client for the OpenAI-compatible upstream provider."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Mapping, Optional

import httpx

from .exceptions import MalformedUpstream, UpstreamHttpError

if TYPE_CHECKING:
    from ..config_loader import UpstreamSettings

logger = logging.getLogger("anthrorouter")

DEFAULT_ERROR_MESSAGE = "Upstream API error"


def format_httpx_error(exc: httpx.HTTPError, url: str, timeout: float) -> str:
    """Produce a detailed, user-facing description of an httpx error."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)
    parts.append(f"url={url}")
    if isinstance(exc, httpx.TimeoutException):
        parts.append(f"timeout={timeout}s")
    return "; ".join(parts)


def extract_error_message(body: bytes) -> str:
    """Pull ``error.message`` out of a provider error body when there is one."""
    try:
        parsed = json.loads(body or b"null")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return DEFAULT_ERROR_MESSAGE
    if not isinstance(parsed, Mapping):
        return DEFAULT_ERROR_MESSAGE
    error = parsed.get("error")
    if isinstance(error, Mapping) and error.get("message"):
        return str(error["message"])
    return DEFAULT_ERROR_MESSAGE


class UpstreamClient:
    """Sends translated requests to the upstream chat completions endpoint.

    A fresh ``httpx.AsyncClient`` is opened per call. Tests (and in-process
    upstreams) can supply ``transport`` to route requests without a network.
    """

    def __init__(
        self,
        settings: UpstreamSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.transport = transport

    @property
    def url(self) -> str:
        return self.settings.chat_completions_url

    def build_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "HTTP-Referer": self.settings.site_url,
            "X-Title": self.settings.title,
        }
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        return headers

    def _encode(self, target_request: Mapping[str, Any]) -> bytes:
        return json.dumps(target_request, ensure_ascii=False).encode("utf-8")

    async def send(self, target_request: Mapping[str, Any]) -> dict[str, Any]:
        """POST a non-streaming request and return the parsed JSON body.

        Raises:
            UpstreamHttpError: On transport failure or a non-2xx status.
            MalformedUpstream: If a 2xx body is not a JSON object.
        """
        timeout = self.settings.timeout
        logger.debug(f"Sending non-streaming request to {self.url}")
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                resp = await client.post(
                    self.url, headers=self.build_headers(), content=self._encode(target_request)
                )
        except httpx.HTTPError as exc:
            logger.error(f"HTTP error sending request to {self.url}: {exc} (type: {exc.__class__.__name__})")
            raise UpstreamHttpError(502, format_httpx_error(exc, self.url, timeout)) from exc

        logger.debug(f"Received response from {self.url}: status {resp.status_code}")

        if resp.status_code >= 400:
            message = extract_error_message(resp.content)
            logger.warning(f"Upstream returned error status {resp.status_code}: {message}")
            raise UpstreamHttpError(resp.status_code, message)

        try:
            body = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedUpstream(f"Upstream returned invalid JSON: {exc}") from exc
        if not isinstance(body, dict):
            raise MalformedUpstream("Upstream response body must be a JSON object")
        return body

    async def send_streaming(self, target_request: Mapping[str, Any]) -> AsyncIterator[bytes]:
        """Open a streaming request and return an iterator over raw body chunks.

        The status is checked before returning, so errors surface before the
        caller commits to a streaming response. The connection is closed when
        the iterator is exhausted or closed.

        Raises:
            UpstreamHttpError: On transport failure or a non-2xx status.
        """
        timeout = self.settings.timeout
        stream_timeout = httpx.Timeout(connect=timeout, read=None, write=timeout, pool=timeout)
        client = httpx.AsyncClient(timeout=stream_timeout, transport=self.transport)
        try:
            request = client.build_request(
                "POST", self.url, headers=self.build_headers(), content=self._encode(target_request)
            )
            logger.debug(f"Sending streaming request to {self.url}")
            resp = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            logger.error(f"Failed to send streaming request to {self.url}: {exc} (type: {exc.__class__.__name__})")
            raise UpstreamHttpError(502, format_httpx_error(exc, self.url, timeout)) from exc

        if resp.status_code >= 400:
            data = await resp.aread()
            await resp.aclose()
            await client.aclose()
            message = extract_error_message(data)
            logger.warning(f"Streaming request to {self.url} returned error status {resp.status_code}: {message}")
            raise UpstreamHttpError(resp.status_code, message)

        async def iterator() -> AsyncIterator[bytes]:
            try:
                async for chunk in resp.aiter_bytes():
                    if chunk:
                        yield chunk
            finally:
                logger.debug(f"Closing stream for {self.url}")
                await resp.aclose()
                await client.aclose()

        return iterator()
