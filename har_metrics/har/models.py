"""Pydantic models for the HAR log entries sent to the metrics collector.

Field names follow Python conventions; the wire names used by the collector are
declared as aliases, so ``model_dump(by_alias=True)`` (see ``LogEntry.to_wire``)
produces the exact JSON shape the collector expects.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

HAR_VERSION = "1.2"


def format_timestamp(value: datetime) -> str:
    """Formats a datetime as ISO-8601 UTC with millisecond precision and a trailing ``Z``.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class HarModel(BaseModel):
    """Base class for every wire model: aliases on the wire, field names in Python."""

    model_config = ConfigDict(populate_by_name=True)


class NameValuePair(HarModel):
    """A single header or query string entry."""

    name: str
    value: str


class PostParam(HarModel):
    """A decomposed form field. File parts also carry ``fileName`` and ``contentType``."""

    name: str
    value: str
    file_name: Optional[str] = Field(default=None, alias="fileName")
    content_type: Optional[str] = Field(default=None, alias="contentType")
    # The field name exactly as it appeared in the multipart body, when it differs from ``name``.
    raw_name: Optional[str] = Field(default=None, exclude=True)

    @property
    def is_file(self) -> bool:
        return self.file_name is not None


class BodyKind(str, Enum):
    """How a body was decomposed by the classifier."""

    TEXT = "text"
    PARAMS = "params"


class BodyRecord(HarModel):
    """A classified body: either raw ``text`` or a list of ``params``, never both."""

    kind: BodyKind = Field(exclude=True)
    mime_type: str = Field(alias="mimeType")
    text: Optional[str] = None
    params: Optional[List[PostParam]] = None

    @model_validator(mode="after")
    def _check_kind_matches_payload(self) -> "BodyRecord":
        if self.kind is BodyKind.TEXT and (self.text is None or self.params is not None):
            raise ValueError("A text body record must carry text and no params")
        if self.kind is BodyKind.PARAMS and (self.params is None or self.text is not None):
            raise ValueError("A params body record must carry params and no text")
        return self

    @classmethod
    def text_form(cls, mime_type: str, text: str) -> "BodyRecord":
        return cls(kind=BodyKind.TEXT, mime_type=mime_type, text=text)

    @classmethod
    def params_form(cls, mime_type: str, params: List[PostParam]) -> "BodyRecord":
        return cls(kind=BodyKind.PARAMS, mime_type=mime_type, params=params)


class HarContent(HarModel):
    """Response body. ``size`` is the UTF-8 byte length of ``text``."""

    mime_type: str = Field(alias="mimeType")
    size: int = 0
    text: Optional[str] = None


class HarRequest(HarModel):
    method: str
    url: str
    http_version: str = Field(default="HTTP/1.1", alias="httpVersion")
    headers: List[NameValuePair] = Field(default_factory=list)
    query_string: List[NameValuePair] = Field(default_factory=list, alias="queryString")
    post_data: Optional[BodyRecord] = Field(default=None, alias="postData")
    cookies: List[Dict[str, Any]] = Field(default_factory=list)
    headers_size: int = Field(default=-1, alias="headersSize")
    body_size: int = Field(default=-1, alias="bodySize")


class HarResponse(HarModel):
    status: int
    status_text: str = Field(alias="statusText")
    headers: List[NameValuePair] = Field(default_factory=list)
    content: HarContent
    cookies: List[Dict[str, Any]] = Field(default_factory=list)
    redirect_url: str = Field(default="", alias="redirectURL")
    headers_size: int = Field(default=-1, alias="headersSize")
    body_size: int = Field(default=-1, alias="bodySize")


class Creator(HarModel):
    """Identifies the library (and host runtime) that produced the archive."""

    name: str
    version: str
    comment: str


class HarTimings(HarModel):
    wait: int = 0
    receive: int = 0


class HarEntry(HarModel):
    pageref: str
    started_date_time: datetime = Field(alias="startedDateTime")
    time: int
    request: HarRequest
    response: HarResponse
    cache: Dict[str, Any] = Field(default_factory=dict)
    timings: HarTimings = Field(default_factory=HarTimings)

    @field_serializer("started_date_time")
    def _serialize_started(self, value: datetime) -> str:
        return format_timestamp(value)


class HarLog(HarModel):
    version: str = HAR_VERSION
    creator: Creator
    entries: List[HarEntry]


class HarArchive(HarModel):
    log: HarLog


class Group(HarModel):
    """The end customer a logged request is attributed to."""

    id: str
    label: Optional[str] = None
    email: Optional[str] = None


class LogEntry(HarModel):
    """The unit submitted to the metrics collector."""

    id: str = Field(alias="_id")
    group: Group
    client_address: Optional[str] = Field(default=None, alias="clientIPAddress")
    is_development: bool = Field(default=False, alias="development")
    request: HarArchive

    @property
    def entry(self) -> HarEntry:
        return self.request.log.entries[0]

    @property
    def duration_ms(self) -> int:
        return self.entry.time

    def to_wire(self) -> Dict[str, Any]:
        """Returns the JSON-ready dictionary sent to the collector."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
