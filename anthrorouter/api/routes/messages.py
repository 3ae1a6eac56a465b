"""Anthropic-compatible Messages API endpoint."""

import json
import logging
import time
import uuid
from typing import Mapping, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.requests import ClientDisconnect

from ...admission import AdmissionCache, RateLimitStatus
from ...core import (
    AuthenticationError,
    GatewayError,
    RateLimitError,
    UpstreamClient,
)
from ...messages import (
    chat_completion_to_messages,
    messages_to_chat_completions,
    transcode_stream,
)

logger = logging.getLogger("anthrorouter")

API_KEY_HEADER = "x-api-key"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _anthropic_error_response(
    message: str,
    *,
    error_type: str = "invalid_request_error",
    status_code: int = 400,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    payload = {"type": "error", "error": {"type": error_type, "message": message}}
    return JSONResponse(payload, status_code=status_code, headers=dict(headers or {}))


def _gateway_error_response(
    exc: GatewayError, headers: Optional[Mapping[str, str]] = None
) -> JSONResponse:
    return _anthropic_error_response(
        exc.message,
        error_type=exc.error_type,
        status_code=exc.status_code,
        headers=headers,
    )


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length", "0"))
    except ValueError:
        return 0


def _body_too_large(
    req_id: str, max_body_bytes: int, headers: Mapping[str, str]
) -> JSONResponse:
    logger.warning(f"[{req_id}] Request body larger than {max_body_bytes} bytes rejected")
    return _anthropic_error_response(
        f"Request body exceeds the {max_body_bytes} byte limit",
        error_type="request_too_large",
        status_code=413,
        headers=headers,
    )


def raw_key_from_request(request: Request) -> Optional[str]:
    """Return the client API key from ``x-api-key`` or a Bearer token."""
    provided_key = request.headers.get(API_KEY_HEADER)
    if not provided_key:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.lower().startswith("bearer "):
            provided_key = auth_header[7:].strip()
    return provided_key or None


def admit(admission: AdmissionCache, raw_key: Optional[str]) -> RateLimitStatus:
    """Run key validation and meter the request.

    ``check_rate`` is called exactly once, after the key is known to be valid.

    Raises:
        AuthenticationError: If the key is missing or invalid.
        RateLimitError: If the key's window is exhausted.
    """
    if not raw_key:
        raise AuthenticationError("Missing x-api-key header")
    if not admission.validate(raw_key):
        raise AuthenticationError("Invalid API key")

    status = admission.check_rate(raw_key)
    if not status.allowed:
        raise RateLimitError("Rate limit exceeded. Please try again later.", status=status)
    return status


async def messages_endpoint(request: Request) -> Response:
    """POST /v1/messages - Anthropic Messages API compatible endpoint."""
    req_id = uuid.uuid4().hex[:8]
    start_time = time.perf_counter()
    client_host = request.client.host if request.client else "unknown"

    logger.info(f"[{req_id}] Messages API request from {client_host}")

    admission: AdmissionCache = request.app.state.admission
    upstream: UpstreamClient = request.app.state.upstream

    try:
        rate_status = admit(admission, raw_key_from_request(request))
    except RateLimitError as exc:
        logger.warning(f"[{req_id}] Rate limit exceeded for client {client_host}")
        return _gateway_error_response(exc, exc.status.headers() if exc.status else None)
    except AuthenticationError as exc:
        logger.warning(f"[{req_id}] Request rejected: {exc.message}")
        return _gateway_error_response(exc)

    rate_headers = rate_status.headers()
    max_body_bytes = request.app.state.settings.max_body_bytes

    if _declared_length(request) > max_body_bytes:
        return _body_too_large(req_id, max_body_bytes, rate_headers)

    try:
        body = await request.body()
    except ClientDisconnect:
        logger.warning(f"[{req_id}] Client disconnected while sending the request body")
        return Response(status_code=499)  # Client Closed Request

    if len(body) > max_body_bytes:
        return _body_too_large(req_id, max_body_bytes, rate_headers)

    try:
        payload = json.loads(body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning(f"[{req_id}] Invalid JSON payload: {exc}")
        return _anthropic_error_response("Invalid JSON payload", headers=rate_headers)

    if not isinstance(payload, Mapping):
        return _anthropic_error_response(
            "Request body must be a JSON object", headers=rate_headers
        )

    original_model = payload.get("model", "")
    is_stream = bool(payload.get("stream"))

    try:
        openai_payload = messages_to_chat_completions(payload)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"[{req_id}] Translated to OpenAI format: model={openai_payload.get('model')}, "
                f"messages_count={len(openai_payload.get('messages', []))}, stream={is_stream}"
            )

        if is_stream:
            chunks = await upstream.send_streaming(openai_payload)
            elapsed = time.perf_counter() - start_time
            logger.info(
                f"[{req_id}] Starting streaming response for {original_model}, "
                f"setup took {elapsed:.3f}s"
            )
            return StreamingResponse(
                transcode_stream(chunks),
                media_type="text/event-stream",
                headers={**SSE_HEADERS, **rate_headers},
            )

        openai_response = await upstream.send(openai_payload)
        anthropic_response = chat_completion_to_messages(openai_response, original_model)
    except GatewayError as exc:
        elapsed = time.perf_counter() - start_time
        logger.error(
            f"[{req_id}] Upstream failure after {elapsed:.3f}s: "
            f"{exc.__class__.__name__} ({exc.status_code}): {exc.message}"
        )
        return _gateway_error_response(exc, rate_headers)
    except Exception:
        logger.exception(f"[{req_id}] Unhandled error while serving messages request")
        return _anthropic_error_response(
            "Internal server error",
            error_type="internal_error",
            status_code=500,
            headers=rate_headers,
        )

    elapsed = time.perf_counter() - start_time
    logger.info(
        f"[{req_id}] Completed non-streaming response for {original_model}, took {elapsed:.3f}s"
    )
    return JSONResponse(anthropic_response, headers=rate_headers)
