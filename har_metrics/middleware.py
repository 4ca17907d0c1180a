"""ASGI middleware that logs every request/response cycle to the metrics collector."""

import inspect
import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from har_metrics.config.options import MetricsOptions
from har_metrics.core.adapters import capture_starlette_request, capture_starlette_response
from har_metrics.delivery.metrics_client import MetricsClient
from har_metrics.exceptions import ConfigurationError
from har_metrics.har.payload import IdentityInput, PayloadAssembler

logger = logging.getLogger(__name__)

DOCUMENTATION_HEADER = "x-documentation-url"

GroupingFunction = Callable[[Request], Union[IdentityInput, Awaitable[IdentityInput]]]
RoutePathFunction = Callable[[Request], Optional[str]]


def matched_route_path(request: Request) -> Optional[str]:
    """The path template of the route that handled the request (``/users/{user_id}``), if any."""
    route = request.scope.get("route")
    return getattr(route, "path", None)


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Captures each request and response, builds the HAR log entry and hands it to a MetricsClient.

    The request body is read with ``await request.body()`` before the app runs; Starlette
    caches it on the request it hands downstream, so the app can read it again. The response
    body is buffered after the app returns, then the response is rebuilt so the client still
    receives it unchanged (apart from the optional ``x-documentation-url`` header).
    """

    def __init__(
        self,
        app: ASGIApp,
        client: MetricsClient,
        grouping_function: GroupingFunction,
        options: Optional[MetricsOptions] = None,
        allowed_http_hosts: Optional[Iterable[str]] = None,
        base_log_url: Optional[str] = None,
        route_path_function: RoutePathFunction = matched_route_path,
        assembler: Optional[PayloadAssembler] = None,
    ):
        super().__init__(app)
        self.client = client
        self.grouping_function = grouping_function
        self.options = options or MetricsOptions()
        # Normalized once; raises FilterConfigError for malformed lists at startup.
        self.redaction_config = self.options.to_redaction_config()
        self.allowed_http_hosts = set(allowed_http_hosts) if allowed_http_hosts else None
        self.base_log_url = base_log_url.rstrip("/") if base_log_url else None
        self.route_path_function = route_path_function
        self.assembler = assembler or PayloadAssembler()

    def _should_log(self, request: Request) -> bool:
        if self.allowed_http_hosts is None:
            return True
        return request.url.hostname in self.allowed_http_hosts

    async def _resolve_identity(self, request: Request) -> IdentityInput:
        identity: Any = self.grouping_function(request)
        if inspect.isawaitable(identity):
            identity = await identity
        return identity

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self._should_log(request):
            return await call_next(request)

        started_at = datetime.now(UTC)
        request_body = await request.body()

        response = await call_next(request)
        chunks = []
        async for chunk in response.body_iterator:
            chunks.append(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
        response_body = b"".join(chunks)
        finished_at = datetime.now(UTC)

        rebuilt = Response(content=response_body, status_code=response.status_code, background=response.background)
        rebuilt.raw_headers = list(response.raw_headers)

        identity = await self._resolve_identity(request)
        if identity is None:
            logger.debug(f"Not logging {request.method} {request.url.path}: no group identity")
            return rebuilt

        try:
            entry = self.assembler.build(
                request=capture_starlette_request(request, request_body),
                response=capture_starlette_response(response, response_body),
                identity=identity,
                started_at=started_at,
                finished_at=finished_at,
                config=self.redaction_config,
                development=self.options.development,
                log_id=str(uuid.uuid4()),
                route_path=self.route_path_function(request),
            )
        except ConfigurationError as e:
            logger.error(f"Not logging {request.method} {request.url.path}: {e}")
            return rebuilt

        if self.base_log_url:
            rebuilt.headers[DOCUMENTATION_HEADER] = f"{self.base_log_url}/logs/{entry.id}"

        await self.client.enqueue(entry)
        return rebuilt
