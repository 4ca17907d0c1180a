"""Builds CapturedRequest/CapturedResponse from framework-native objects.

Bodies must already be buffered: reading them is the only async step of a logging
cycle, and it belongs to the caller (see ``har_metrics.middleware``).
"""

from typing import Optional

import httpx
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response as StarletteResponse

from har_metrics.core.capture import CapturedRequest, CapturedResponse
from har_metrics.har.normalizer import normalize_headers


def _pairs(headers) -> list[tuple[str, str]]:
    return [(pair.name, pair.value) for pair in normalize_headers(headers)]


def capture_starlette_request(request: StarletteRequest, body: bytes) -> CapturedRequest:
    """Captures an incoming Starlette/FastAPI request whose body has been read."""
    return CapturedRequest(
        method=request.method,
        url=str(request.url),
        scheme=request.url.scheme,
        host=request.url.netloc,
        path=request.url.path,
        query_string=request.url.query,
        http_version=request.scope.get("http_version", "1.1"),
        headers=_pairs(request.headers),
        body=body,
        client_address=request.client.host if request.client else None,
    )


def capture_starlette_response(response: StarletteResponse, body: bytes) -> CapturedResponse:
    """Captures an outgoing Starlette response together with its buffered body."""
    return CapturedResponse(
        status_code=response.status_code,
        headers=_pairs(response.headers),
        body=body,
    )


def capture_httpx_request(request: httpx.Request, client_address: Optional[str] = None) -> CapturedRequest:
    """Captures an httpx request. Streaming request bodies must be read first."""
    return CapturedRequest(
        method=request.method,
        url=str(request.url),
        scheme=request.url.scheme,
        host=request.url.netloc.decode("ascii"),
        path=request.url.path,
        query_string=request.url.query.decode("ascii"),
        headers=_pairs(request.headers),
        body=request.content,
        client_address=client_address,
    )


def capture_httpx_response(response: httpx.Response) -> CapturedResponse:
    """Captures an httpx response. httpx has already undone any Content-Encoding."""
    return CapturedResponse(
        status_code=response.status_code,
        status_text=response.reason_phrase or None,
        headers=_pairs(response.headers),
        body=response.content,
        body_is_decoded=True,
    )
