from __future__ import annotations

import json
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response


def build_success_envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict) or "success" not in payload:
        return False
    return "data" in payload or "error" in payload


def _copy_headers(source: Response, target: Response) -> Response:
    for key, value in source.headers.items():
        if key.lower() in {"content-length", "content-type"}:
            continue
        target.headers[key] = value
    return target


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap successful JSON bodies as ``{"success": true, "data": ...}``."""

    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)

        if response.status_code < 200 or response.status_code >= 300:
            return response

        if response.status_code == 204:
            return _copy_headers(
                response, JSONResponse(status_code=200, content=build_success_envelope(None))
            )

        if response.headers.get("content-type", "").split(";")[0].strip() != "application/json":
            return response

        body = b""
        async for chunk in response.body_iterator:
            body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")

        try:
            raw_body = body.decode("utf-8")
            payload = json.loads(raw_body) if raw_body else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            return _copy_headers(
                response,
                Response(content=body, status_code=response.status_code, media_type=response.media_type),
            )

        if _is_enveloped(payload):
            content = payload
        else:
            content = build_success_envelope(payload)
        return _copy_headers(response, JSONResponse(status_code=response.status_code, content=content))


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)
