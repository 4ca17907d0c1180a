"""Assembles the complete log entry for one request/response cycle."""

import logging
import platform
import sys
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from importlib import metadata
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from har_metrics.core.capture import CapturedRequest, CapturedResponse
from har_metrics.exceptions import ConfigurationError
from har_metrics.har.field_filter import NO_REDACTION, RedactionConfig
from har_metrics.har.models import Creator, Group, HarArchive, HarEntry, HarLog, HarTimings, LogEntry
from har_metrics.har.serializers import serialize_request, serialize_response

logger = logging.getLogger(__name__)

CREATOR_NAME = "har-metrics (python)"


def _package_version() -> str:
    try:
        return metadata.version("har-metrics")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def build_creator() -> Creator:
    """Describes this library and the host runtime, e.g. ``x86_64-linux6.1.0/3.12.4``."""
    return Creator(
        name=CREATOR_NAME,
        version=_package_version(),
        comment=f"{platform.machine()}-{sys.platform}{platform.release()}/{platform.python_version()}",
    )


# Computed once per process.
CREATOR: Creator = build_creator()


class GroupIdentity(BaseModel):
    """Who a request is attributed to. ``api_key`` identifies the end customer, not the collector key."""

    # Numeric keys and labels (e.g. a database id) are logged as strings.
    model_config = ConfigDict(coerce_numbers_to_str=True)

    api_key: Optional[str] = Field(default=None)
    label: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)


IdentityInput = Union[GroupIdentity, Mapping[str, Any], None]


def resolve_group(identity: IdentityInput) -> Group:
    """Turns the caller's identity into the wire ``group``.

    Mappings may use ``api_key`` or the older ``id`` key.

    Raises:
        ConfigurationError: If there is no identity, its API key is missing or empty, or one of
            its values cannot be logged as a string.
    """
    if identity is None:
        raise ConfigurationError("No group identity was provided for this request", option="api_key")
    if isinstance(identity, Mapping):
        try:
            identity = GroupIdentity(
                api_key=identity.get("api_key") or identity.get("id"),
                label=identity.get("label"),
                email=identity.get("email"),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid group identity: {e}", option=str(e.errors()[0]["loc"][0])) from e
    elif not isinstance(identity, GroupIdentity):
        raise ConfigurationError(
            f"Group identity must be a mapping or GroupIdentity, got {type(identity).__name__}", option="api_key"
        )
    api_key = identity.api_key.strip() if isinstance(identity.api_key, str) else identity.api_key
    if not api_key:
        raise ConfigurationError("The group API key is missing or empty", option="api_key")
    return Group(id=identity.api_key, label=identity.label, email=identity.email)


def compute_duration_ms(started_at: datetime, finished_at: datetime) -> int:
    """Milliseconds between two timestamps, clamped to 0 if they are inverted."""
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=UTC)
    if finished_at.tzinfo is None:
        finished_at = finished_at.replace(tzinfo=UTC)
    duration = round((finished_at - started_at).total_seconds() * 1000)
    if duration < 0:
        logger.warning(
            f"Request finished ({finished_at.isoformat()}) before it started ({started_at.isoformat()}); "
            "reporting a duration of 0ms."
        )
        return 0
    return duration


class PayloadAssembler:
    """Builds one LogEntry per request/response cycle. Holds no per-request state."""

    def __init__(self, creator: Creator = CREATOR):
        self.creator = creator

    def build(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        identity: IdentityInput,
        started_at: datetime,
        finished_at: datetime,
        config: RedactionConfig = NO_REDACTION,
        development: bool = False,
        log_id: Optional[str] = None,
        route_path: Optional[str] = None,
    ) -> LogEntry:
        """Runs the full pipeline and returns the log entry.

        Args:
            request: The captured incoming request.
            response: The captured outgoing response.
            identity: The group the request is attributed to. Its API key is required.
            started_at: When the server received the request.
            finished_at: When the server finished sending the response.
            config: Which fields to redact.
            development: Marks the entry as development traffic.
            log_id: Identifier for the entry; a UUID4 is generated when omitted.
            route_path: Logical path (e.g. ``/users/{user_id}``) used as ``pageref`` instead of the URL.

        Returns:
            The assembled LogEntry.

        Raises:
            ConfigurationError: If the identity has no API key. Raised before any other work.
        """
        group = resolve_group(identity)

        duration = compute_duration_ms(started_at, finished_at)
        har_request = serialize_request(request, config)
        har_response = serialize_response(response, config)

        entry = HarEntry(
            pageref=route_path or har_request.url,
            started_date_time=started_at,
            time=duration,
            request=har_request,
            response=har_response,
            timings=HarTimings(wait=0, receive=duration),
        )
        return LogEntry(
            id=log_id or str(uuid.uuid4()),
            group=group,
            client_address=request.client_address,
            is_development=development,
            request=HarArchive(log=HarLog(creator=self.creator, entries=[entry])),
        )
