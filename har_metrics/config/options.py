"""Caller-facing logging options and their normalization into a RedactionConfig."""

import logging
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from har_metrics.exceptions import FilterConfigError
from har_metrics.har.field_filter import RedactionConfig

logger = logging.getLogger(__name__)

DEPRECATED_ALIASES = {"blacklist": "denylist", "whitelist": "allowlist"}


def _check_field_names(option: str, value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        raise FilterConfigError(
            f"'{option}' must be a list of field names, got {type(value).__name__}", option=option
        )
    bad = [entry for entry in value if not isinstance(entry, str)]
    if bad:
        raise FilterConfigError(f"'{option}' entries must be strings, got: {bad!r}", option=option)
    return list(value)


class MetricsOptions(BaseModel):
    """Options for logging a request.

    ``blacklist`` and ``whitelist`` are deprecated spellings of ``denylist`` and ``allowlist``.
    If an allow-list ends up non-empty, the deny-list is ignored.
    """

    # Entries are checked by to_redaction_config so that bad values raise FilterConfigError.
    denylist: Optional[Any] = Field(default=None)
    allowlist: Optional[Any] = Field(default=None)
    blacklist: Optional[Any] = Field(default=None)
    whitelist: Optional[Any] = Field(default=None)
    development: bool = Field(default=False)
    fire_and_forget: bool = Field(default=True)

    def to_redaction_config(self) -> RedactionConfig:
        """Merges the deprecated aliases into the canonical deny/allow sets.

        Raises:
            FilterConfigError: If any list is not a list of strings.
        """
        deny = set(_check_field_names("denylist", self.denylist) or [])
        allow = set(_check_field_names("allowlist", self.allowlist) or [])
        for alias, canonical in DEPRECATED_ALIASES.items():
            values = _check_field_names(alias, getattr(self, alias))
            if values is None:
                continue
            logger.warning(f"The '{alias}' option is deprecated, use '{canonical}' instead.")
            (deny if canonical == "denylist" else allow).update(values)
        return RedactionConfig(deny_list=deny, allow_list=allow)
