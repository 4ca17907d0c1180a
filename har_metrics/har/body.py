"""Classification of raw bodies into HAR ``postData`` records.

The content type decides how a body is decomposed:

* ``application/json`` and vendored ``*/*+json`` types stay as text; malformed JSON
  degrades to plain text with the declared MIME type.
* ``application/x-www-form-urlencoded`` becomes ordered ``{name, value}`` params.
* ``multipart/form-data`` becomes ordered params; file parts carry a data URL of their bytes.
* Anything else (including a missing content type) is kept as text.

Classification only decomposes. Redaction of the decomposed fields happens afterwards
in ``filter_body``.
"""

import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qsl

from pydantic import PrivateAttr
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from har_metrics.exceptions import BodyDecodeError
from har_metrics.har.field_filter import RedactionConfig, filter_json, filter_pairs
from har_metrics.har.models import BodyKind, BodyRecord, PostParam

logger = logging.getLogger(__name__)

DEFAULT_TEXT_MIME_TYPE = "text/plain"
FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART_FORM_DATA = "multipart/form-data"
DEFAULT_FILE_CONTENT_TYPE = "application/octet-stream"

_UNSAFE_FIELD_CHARS = re.compile(r"[^A-Za-z0-9_]")


class ClassifiedBody(BodyRecord):
    """A BodyRecord that remembers the decoded JSON document it was built from, if any."""

    _document: Any = PrivateAttr(default=None)
    _has_document: bool = PrivateAttr(default=False)

    def with_document(self, document: Any) -> "ClassifiedBody":
        self._document = document
        self._has_document = True
        return self


def base_mime_type(content_type: Optional[str]) -> str:
    """``Application/JSON; charset=utf-8`` -> ``application/json``."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_json_type(content_type: Optional[str]) -> bool:
    base = base_mime_type(content_type)
    return base == "application/json" or base.endswith("+json")


def sanitize_field_name(name: str) -> str:
    """Replaces every character outside ``[A-Za-z0-9_]`` with ``_``: ``owlbert.png`` -> ``owlbert_png``."""
    return _UNSAFE_FIELD_CHARS.sub("_", name)


def to_data_url(content: bytes, content_type: str, file_name: Optional[str] = None) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    if file_name:
        return f"data:{content_type};name={file_name};base64,{encoded}"
    return f"data:{content_type};base64,{encoded}"


def _decode_text(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


class _MultipartCollector:
    """Collects the parts emitted by python-multipart's callback parser."""

    def __init__(self) -> None:
        self.parts: List[Dict[str, Any]] = []
        self._headers: Dict[bytes, bytes] = {}
        self._data = bytearray()
        self._header_field = bytearray()
        self._header_value = bytearray()

    def on_part_begin(self) -> None:
        self._headers = {}
        self._data = bytearray()

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data.extend(data[start:end])

    def on_part_end(self) -> None:
        self.parts.append({"headers": self._headers, "data": bytes(self._data)})

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field.extend(data[start:end])

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value.extend(data[start:end])

    def on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field.clear()
        self._header_value.clear()

    def callbacks(self) -> Dict[str, Any]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
        }


def _parse_multipart(content_type: str, body: bytes) -> List[PostParam]:
    _, options = parse_options_header(content_type)
    boundary = options.get(b"boundary")
    if not boundary:
        raise BodyDecodeError(content_type, "missing multipart boundary")

    collector = _MultipartCollector()
    parser = MultipartParser(boundary, collector.callbacks())
    try:
        parser.write(body)
        parser.finalize()
    except MultipartParseError as e:
        raise BodyDecodeError(content_type, str(e)) from e
    if not collector.parts:
        raise BodyDecodeError(content_type, "no parts found")

    params: List[PostParam] = []
    scalar_positions: Dict[str, int] = {}
    for part in collector.parts:
        _, disposition = parse_options_header(part["headers"].get(b"content-disposition", b""))
        name = _decode_text(disposition.get(b"name", b""))
        raw_file_name = disposition.get(b"filename")

        if raw_file_name is not None:
            file_name = _decode_text(raw_file_name)
            part_type = _decode_text(part["headers"].get(b"content-type", b"")) or DEFAULT_FILE_CONTENT_TYPE
            sanitized = sanitize_field_name(name)
            params.append(
                PostParam(
                    name=sanitized,
                    value=to_data_url(part["data"], part_type, file_name),
                    file_name=file_name,
                    content_type=part_type,
                    raw_name=name if sanitized != name else None,
                )
            )
            continue

        value = _decode_text(part["data"])
        if name in scalar_positions:
            # Repeated scalar fields collapse into one comma-separated value at the first position.
            index = scalar_positions[name]
            params[index] = params[index].model_copy(update={"value": f"{params[index].value},{value}"})
        else:
            scalar_positions[name] = len(params)
            params.append(PostParam(name=name, value=value))
    return params


def _parse_urlencoded(body: bytes) -> List[PostParam]:
    pairs = parse_qsl(_decode_text(body), keep_blank_values=True)
    return [PostParam(name=name, value=value) for name, value in pairs]


def classify_body(content_type: Optional[str], body: Union[bytes, str, None]) -> Optional[ClassifiedBody]:
    """Decomposes a raw body according to its content type.

    Args:
        content_type: The full Content-Type header value, or None if the header was absent.
        body: The raw (already content-decoded) body.

    Returns:
        A text-form or params-form record, or None for an empty body. Never raises for
        malformed bodies; those degrade to the text form with the declared MIME type.
    """
    if body is None or len(body) == 0:
        return None
    if isinstance(body, str):
        body = body.encode("utf-8")

    mime_type = content_type or DEFAULT_TEXT_MIME_TYPE
    base = base_mime_type(content_type)

    try:
        if is_json_type(content_type):
            text = _decode_text(body)
            try:
                document = json.loads(text)
            except json.JSONDecodeError as e:
                raise BodyDecodeError(mime_type, str(e)) from e
            return ClassifiedBody(kind=BodyKind.TEXT, mime_type=mime_type, text=text).with_document(document)
        if base == FORM_URLENCODED:
            return ClassifiedBody(kind=BodyKind.PARAMS, mime_type=mime_type, params=_parse_urlencoded(body))
        if base == MULTIPART_FORM_DATA:
            return ClassifiedBody(kind=BodyKind.PARAMS, mime_type=mime_type, params=_parse_multipart(mime_type, body))
    except BodyDecodeError as e:
        logger.debug(f"Falling back to text body: {e}")

    return ClassifiedBody(kind=BodyKind.TEXT, mime_type=mime_type, text=_decode_text(body))


def filter_body(record: Optional[BodyRecord], config: RedactionConfig) -> Optional[BodyRecord]:
    """Redacts the decomposed fields of a classified body.

    Params have their values redacted in place. JSON text is re-serialized compactly,
    keeping key order, only if redaction changed the document; otherwise the original
    text is returned untouched. Other text bodies have no fields and pass through.
    """
    if record is None or not config.is_active:
        return record
    if record.kind is BodyKind.PARAMS:
        return record.model_copy(update={"params": filter_pairs(record.params or [], config)})
    if isinstance(record, ClassifiedBody) and record._has_document:
        filtered = filter_json(record._document, config)
        if filtered != record._document:
            text = json.dumps(filtered, separators=(",", ":"), ensure_ascii=False)
            return ClassifiedBody(kind=BodyKind.TEXT, mime_type=record.mime_type, text=text).with_document(filtered)
    return record


def build_body_record(
    content_type: Optional[str], body: Union[bytes, str, None], config: RedactionConfig
) -> Optional[BodyRecord]:
    """Classifies then filters a body."""
    return filter_body(classify_body(content_type, body), config)
