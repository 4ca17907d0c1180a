"""Converts framework-native headers and query strings into ordered name/value pairs."""

from collections.abc import Iterable, Mapping
from typing import Any, List, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlsplit

import httpx

from har_metrics.har.models import NameValuePair

HeaderInput = Union[
    httpx.Headers,
    Mapping[Any, Any],
    Iterable[Tuple[Union[str, bytes], Union[str, bytes]]],
    None,
]


def _to_str(value: Any) -> str:
    # HTTP header octets are latin-1 on the wire.
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("latin-1")
    return str(value)


def _raw_pairs(headers: HeaderInput) -> Iterable[Tuple[Any, Any]]:
    if headers is None:
        return []
    # httpx.Headers and starlette Headers both expose the received pairs, case preserved, via .raw
    raw = getattr(headers, "raw", None)
    if raw is not None and not isinstance(headers, (bytes, str)):
        return raw
    if isinstance(headers, Mapping):
        return headers.items()
    return headers


def normalize_headers(headers: HeaderInput) -> List[NameValuePair]:
    """Returns the headers as ordered name/value pairs, names case-preserved as received.

    Args:
        headers: ``httpx.Headers``, a Starlette ``Headers``, a mapping, or an iterable of pairs.
            Names and values may be ``str`` or ``bytes``.

    Returns:
        A list of NameValuePair, empty if there were no headers.
    """
    return [NameValuePair(name=_to_str(name), value=_to_str(value)) for name, value in _raw_pairs(headers)]


def parse_query_string(query: Optional[str]) -> List[NameValuePair]:
    """Parses a raw query string (without the leading ``?``) into ordered name/value pairs.

    Repeated keys are kept as separate pairs, and bracket names are kept verbatim
    after percent-decoding, so ``arr%5B1%5D=3&val=1`` becomes ``arr[1]=3`` and ``val=1``.
    """
    if not query:
        return []
    return [NameValuePair(name=name, value=value) for name, value in parse_qsl(query, keep_blank_values=True)]


def normalize_query(url: Optional[str]) -> List[NameValuePair]:
    """Parses the query component of a URL into ordered name/value pairs."""
    if not url:
        return []
    return parse_query_string(urlsplit(url).query)


def get_header(headers: List[NameValuePair], name: str) -> Optional[str]:
    """Case-insensitive lookup of the first header with the given name."""
    lowered = name.lower()
    for pair in headers:
        if pair.name.lower() == lowered:
            return pair.value
    return None
