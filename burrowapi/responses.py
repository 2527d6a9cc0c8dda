"""Request and response objects and the JSON response helpers."""

from __future__ import annotations

import json
import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from burrowapi.models import RequestInfo
from burrowapi.settings import Settings

ENCODE_FAILURE_BODY = b'{"error":true,"message":"could not encode JSON","result":{}}'


@dataclass
class Request:
    """An incoming HTTP request."""

    method: str = "GET"
    path: str = "/"
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class Response:
    """An HTTP response ready to be sent."""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        """Decode the body as JSON."""
        return json.loads(self.body)


def make_request_info(request: Request) -> RequestInfo:
    """Describe the request path and the serving host."""
    return RequestInfo(uri=urlsplit(request.path).path, host=socket.gethostname())


def _encode(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, Enum):
        return value.name
    raise TypeError(f"cannot encode {type(value).__name__}")


def _cors_headers(settings: Settings) -> dict[str, str]:
    origin = settings.get_string("general.access-control-allow-origin")
    return {"Access-Control-Allow-Origin": origin} if origin else {}


def json_response(settings: Settings, status: int, payload: Any) -> Response:
    """Encode a payload as a JSON response, falling back to a 500 if it cannot be encoded."""
    headers = _cors_headers(settings)
    headers["Content-Type"] = "application/json"
    try:
        body = json.dumps(payload, default=_encode, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError):
        return Response(500, ENCODE_FAILURE_BODY, headers)
    return Response(status, body.encode("utf-8"), headers)


def error_response(settings: Settings, request: Request, status: int, message: str) -> Response:
    """Build the standard error body for a request."""
    return json_response(
        settings,
        status,
        {"error": True, "message": message, "request": make_request_info(request).to_dict()},
    )