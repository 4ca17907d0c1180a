"""Serializes captured requests and responses into filtered HAR request/response records."""

import logging
from http import HTTPStatus
from typing import List, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from har_metrics.core.capture import CapturedRequest, CapturedResponse
from har_metrics.exceptions import ContentDecodingError
from har_metrics.har.body import DEFAULT_TEXT_MIME_TYPE, build_body_record
from har_metrics.har.encoding import decompress_content
from har_metrics.har.field_filter import RedactionConfig, filter_pairs
from har_metrics.har.models import BodyKind, HarContent, HarRequest, HarResponse, NameValuePair
from har_metrics.har.normalizer import get_header, normalize_headers, normalize_query, parse_query_string

logger = logging.getLogger(__name__)


def format_http_version(version: Optional[str]) -> str:
    """``1.1`` -> ``HTTP/1.1``; already-prefixed values are returned unchanged."""
    if not version:
        return "HTTP/1.1"
    if version.upper().startswith("HTTP/"):
        return version.upper()
    return f"HTTP/{version}"


def status_text_for(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def _decoded_body(body: bytes, content_encoding: Optional[str], already_decoded: bool) -> bytes:
    if already_decoded or not content_encoding:
        return body
    try:
        return decompress_content(body, content_encoding)
    except ContentDecodingError as e:
        logger.warning(f"Logging body without decoding it: {e}")
        return body


def redact_url(url: str, query: List[NameValuePair], filtered_query: List[NameValuePair]) -> str:
    """Rebuilds the query of ``url`` from ``filtered_query`` if any value in it was redacted.

    The URL is returned unchanged when nothing was redacted, so its original encoding is kept.
    """
    if filtered_query == query:
        return url
    parts = urlsplit(url)
    return urlunsplit(parts._replace(query=urlencode([(pair.name, pair.value) for pair in filtered_query])))


def serialize_request(request: CapturedRequest, config: RedactionConfig) -> HarRequest:
    """Builds the filtered HAR request record. ``request`` is not modified.

    Redacted query values are also replaced in the logged ``url``.
    """
    headers = normalize_headers(request.headers)
    url = request.full_url
    query = parse_query_string(request.query_string) if request.query_string else normalize_query(url)
    filtered_query = filter_pairs(query, config)
    body = _decoded_body(request.body, get_header(headers, "content-encoding"), request.body_is_decoded)

    return HarRequest(
        method=request.method.upper(),
        url=redact_url(url, query, filtered_query),
        http_version=format_http_version(request.http_version),
        headers=filter_pairs(headers, config),
        query_string=filtered_query,
        post_data=build_body_record(get_header(headers, "content-type"), body, config),
    )


def serialize_response(response: CapturedResponse, config: RedactionConfig) -> HarResponse:
    """Builds the filtered HAR response record. ``content.size`` counts the UTF-8 bytes of the filtered text."""
    headers = normalize_headers(response.headers)
    content_type = get_header(headers, "content-type")
    body = _decoded_body(response.body, get_header(headers, "content-encoding"), response.body_is_decoded)

    record = build_body_record(content_type, body, config)
    if record is None:
        content = HarContent(mime_type=content_type or DEFAULT_TEXT_MIME_TYPE, size=0)
    else:
        if record.kind is BodyKind.TEXT:
            text = record.text or ""
        else:
            # HAR response content is always text: filtered form fields are re-encoded.
            text = urlencode([(param.name, param.value) for param in record.params or []])
        content = HarContent(mime_type=record.mime_type, size=len(text.encode("utf-8")), text=text)

    return HarResponse(
        status=response.status_code,
        status_text=response.status_text or status_text_for(response.status_code),
        headers=filter_pairs(headers, config),
        content=content,
    )
