"""Health and fallback routes."""

from datetime import datetime, timezone

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


async def health() -> dict:
    """GET /health - liveness check."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render unknown routes in the gateway's error shape."""
    if exc.status_code != 404:
        return JSONResponse(
            {"error": {"type": "api_error", "message": str(exc.detail)}},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )
    return JSONResponse(
        {
            "error": {
                "type": "not_found",
                "message": f"Endpoint {request.method} {request.url.path} not found",
            }
        },
        status_code=404,
    )
