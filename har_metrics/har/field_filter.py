"""Allow-list / deny-list redaction of headers, query parameters and body fields.

Filtering only ever substitutes values with ``REDACTED``; it never drops, renames
or reorders fields, so the redacted record has the same shape as the original.
"""

import re
from collections.abc import Iterable, Mapping
from functools import cached_property
from typing import Any, Dict, FrozenSet, List, Sequence, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from har_metrics.har.models import NameValuePair, PostParam

REDACTED: str = "[REDACTED]"

_BRACKET_SEGMENT = re.compile(r"\[([^\[\]]*)\]")

PairT = TypeVar("PairT", NameValuePair, PostParam)
PathSegment = Union[str, int]


def normalize_field_path(name: str) -> str:
    """Normalizes bracket notation to a dotted path: ``user[email]`` -> ``user.email``."""
    return _BRACKET_SEGMENT.sub(r".\1", name).strip(".")


class RedactionConfig(BaseModel):
    """Which fields to redact.

    If ``allow_list`` is non-empty, only allowed fields are kept and ``deny_list`` is ignored
    entirely. Otherwise fields in ``deny_list`` are redacted. Matching is case-sensitive.
    """

    model_config = ConfigDict(frozen=True)

    deny_list: FrozenSet[str] = Field(default_factory=frozenset)
    allow_list: FrozenSet[str] = Field(default_factory=frozenset)

    @field_validator("deny_list", "allow_list", mode="before")
    @classmethod
    def _to_frozenset(cls, value: Any) -> FrozenSet[str]:
        if value is None:
            return frozenset()
        return frozenset(value)

    @property
    def is_active(self) -> bool:
        """True if this config could redact anything at all."""
        return bool(self.allow_list or self.deny_list)

    @staticmethod
    def _expand(names: Iterable[str]) -> FrozenSet[str]:
        expanded = set()
        for name in names:
            expanded.add(name)
            expanded.add(normalize_field_path(name))
        return frozenset(expanded)

    # Expanded once per config; the model is frozen.
    @cached_property
    def allowed_names(self) -> FrozenSet[str]:
        """The allow-list plus the dotted spelling of every bracketed entry."""
        return self._expand(self.allow_list)

    @cached_property
    def denied_names(self) -> FrozenSet[str]:
        return self._expand(self.deny_list)

    def is_redacted(self, *names: str) -> bool:
        """Decides whether a field known by any of ``names`` must be redacted."""
        candidates = self._expand(names)
        if self.allow_list:
            return not (candidates & self.allowed_names)
        return bool(candidates & self.denied_names)

    def is_allowed(self, *names: str) -> bool:
        """True if an allow-list is in effect and explicitly names one of ``names``."""
        return bool(self.allow_list) and bool(self._expand(names) & self.allowed_names)

    def is_denied(self, *names: str) -> bool:
        """True if no allow-list is in effect and the deny-list names one of ``names``."""
        return not self.allow_list and bool(self._expand(names) & self.denied_names)


NO_REDACTION = RedactionConfig()


def _names_for(pair: Union[NameValuePair, PostParam]) -> Tuple[str, ...]:
    raw_name = getattr(pair, "raw_name", None)
    if raw_name and raw_name != pair.name:
        return (pair.name, raw_name)
    return (pair.name,)


def filter_pairs(pairs: Sequence[PairT], config: RedactionConfig) -> List[PairT]:
    """Returns copies of ``pairs`` with the value of every redacted field replaced.

    Only ``value`` is ever replaced. ``name``, ``fileName`` and ``contentType`` stay visible.
    """
    if not config.is_active:
        return list(pairs)
    return [
        pair.model_copy(update={"value": REDACTED}) if config.is_redacted(*_names_for(pair)) else pair
        for pair in pairs
    ]


def filter_mapping(mapping: Mapping[str, Any], config: RedactionConfig) -> Dict[str, Any]:
    """Filters a flat mapping, keeping every key in its original order."""
    return {key: REDACTED if config.is_redacted(key) else value for key, value in mapping.items()}


def _path_names(path: Sequence[PathSegment]) -> Tuple[str, ...]:
    leaf = str(path[-1])
    dotted = ".".join(str(segment) for segment in path)
    return (leaf, dotted)


def _filter_json_value(value: Any, path: List[PathSegment], config: RedactionConfig) -> Any:
    if path:
        names = _path_names(path)
        if config.is_denied(*names):
            return REDACTED
        if config.is_allowed(*names):
            return value
    if isinstance(value, dict):
        return {key: _filter_json_value(item, path + [key], config) for key, item in value.items()}
    if isinstance(value, list):
        return [_filter_json_value(item, path + [index], config) for index, item in enumerate(value)]
    # Under an allow-list, a scalar that no allowed key covers is redacted.
    if config.allow_list:
        return REDACTED
    return value


def filter_json(document: Any, config: RedactionConfig) -> Any:
    """Filters a decoded JSON document, recursing through objects and arrays.

    The candidate names of a value are its own key and its full dotted path
    (``user.email``, ``items.0.token``). A denied key redacts its whole subtree and an
    allowed key keeps its whole subtree. Under an allow-list, containers are recursed
    into and every scalar not covered by an allowed key is redacted.
    """
    if not config.is_active:
        return document
    return _filter_json_value(document, [], config)
