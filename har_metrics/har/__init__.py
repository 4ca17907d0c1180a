"""HAR payload construction and redaction pipeline."""

from .body import build_body_record, classify_body, filter_body
from .field_filter import NO_REDACTION, REDACTED, RedactionConfig, filter_json, filter_mapping, filter_pairs
from .models import BodyKind, BodyRecord, LogEntry
from .payload import CREATOR, GroupIdentity, PayloadAssembler

__all__ = [
    "BodyKind",
    "BodyRecord",
    "CREATOR",
    "GroupIdentity",
    "LogEntry",
    "NO_REDACTION",
    "PayloadAssembler",
    "REDACTED",
    "RedactionConfig",
    "build_body_record",
    "classify_body",
    "filter_body",
    "filter_json",
    "filter_mapping",
    "filter_pairs",
]
