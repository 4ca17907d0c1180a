import os
from datetime import UTC, datetime, timedelta
from typing import Iterator, List, Tuple
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from har_metrics.config.settings import Settings
from har_metrics.core.capture import CapturedRequest, CapturedResponse
from har_metrics.har.payload import GroupIdentity, PayloadAssembler

ENV_PREFIXES = ("METRICS_", "README_API_KEY", "LOG_LEVEL")

MULTIPART_BOUNDARY = "----har-metrics-boundary"

# Smallest valid PNG: 1x1 transparent pixel.
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)


@pytest.fixture(autouse=True)
def clean_metrics_environment() -> Iterator[None]:
    """AUTOUSE: Removes any metrics-related variables (e.g. from a developer's .env) for the test's duration."""
    original_environ = os.environ.copy()
    for key in list(os.environ):
        if key.startswith(ENV_PREFIXES):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_environ)


def build_multipart_body(
    fields: List[Tuple[str, str]], files: List[Tuple[str, str, str, bytes]] = (), boundary: str = MULTIPART_BOUNDARY
) -> bytes:
    """Encodes scalar ``(name, value)`` fields and ``(field, filename, content_type, data)`` files."""
    body = b""
    for name, value in fields:
        body += (
            f"--{boundary}\r\n" f'Content-Disposition: form-data; name="{name}"\r\n\r\n' f"{value}\r\n"
        ).encode("utf-8")
    for field_name, file_name, content_type, data in files:
        body += (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{field_name}"; filename="{file_name}"\r\n'
            f"Content-Type: {content_type}\r\n\r\n"
        ).encode("utf-8")
        body += data + b"\r\n"
    body += f"--{boundary}--\r\n".encode("utf-8")
    return body


@pytest.fixture
def make_multipart():
    """Factory fixture returning ``(content_type, body)`` for the given fields and files."""

    def _make(fields, files=()):
        return f"multipart/form-data; boundary={MULTIPART_BOUNDARY}", build_multipart_body(fields, files)

    return _make


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def started_at() -> datetime:
    return datetime(2024, 6, 30, 10, 21, 55, 394000, tzinfo=UTC)


@pytest.fixture
def finished_at(started_at: datetime) -> datetime:
    return started_at + timedelta(milliseconds=125)


@pytest.fixture
def identity() -> GroupIdentity:
    return GroupIdentity(api_key="owlbert-api-key", label="Owlbert", email="owlbert@example.com")


@pytest.fixture
def assembler() -> PayloadAssembler:
    return PayloadAssembler()


@pytest.fixture
def get_request() -> CapturedRequest:
    """A bodiless GET with a bracketed query parameter."""
    return CapturedRequest(
        method="GET",
        scheme="http",
        host="localhost:8000",
        path="/",
        query_string="arr%5B1%5D=3&val=1",
        headers=[("Host", "localhost:8000"), ("Connection", "close"), ("Authorization", "Bearer s3cr3t")],
        client_address="127.0.0.1",
    )


@pytest.fixture
def json_request() -> CapturedRequest:
    return CapturedRequest(
        method="POST",
        url="http://localhost:8000/users",
        headers=[("Host", "localhost:8000"), ("Content-Type", "application/json")],
        body=b'{"user":{"email":"dom@readme.io","password":"hunter2"}}',
        client_address="127.0.0.1",
    )


@pytest.fixture
def json_response() -> CapturedResponse:
    return CapturedResponse(
        status_code=200,
        headers=[("Content-Type", "application/json; charset=utf-8"), ("Set-Cookie", "session=abc")],
        body=b'{"message":"hello world"}',
    )


@pytest.fixture
def mock_settings() -> MagicMock:
    """Provides a mock Settings instance."""
    settings = MagicMock(spec=Settings)
    settings.require_readme_api_key.return_value = "rdme_abcdefghijklmnopqrstuvwxyz"
    settings.get_metrics_api_url.return_value = "http://collector.test"
    settings.get_buffer_length.return_value = 1
    settings.get_timeout.return_value = 3.0
    settings.fire_and_forget.return_value = False
    return settings


@pytest.fixture
def mock_http_client() -> AsyncMock:
    """Provides a mock httpx.AsyncClient whose posts succeed."""
    client = AsyncMock(spec=httpx.AsyncClient)
    client.post.return_value = httpx.Response(202, request=httpx.Request("POST", "http://collector.test/v1/request"))
    return client
