"""In-place redaction of dataclass fields marked as secret."""

from __future__ import annotations

import dataclasses
from typing import Any, Mapping, TypeVar

DATA_POLICY = "datapolicy"
REDACTED = "**REDACTED**"

T = TypeVar("T")

_MISSING = object()


def secret_field(**kwargs: Any) -> Any:
    """A dataclass field whose value is replaced by :func:`redact`."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[DATA_POLICY] = "secret"
    return dataclasses.field(metadata=metadata, **kwargs)


def redact(value: T) -> T:
    """Replace every non-empty secret string or bytes field reachable from value.

    Dataclasses, mappings and sequences are walked; the value is changed
    in place and returned.
    """
    _walk(value, set())
    return value


def _is_secret(field: dataclasses.Field) -> bool:
    return str(field.metadata.get(DATA_POLICY, "")).split(",")[0] == "secret"


def _replacement(value: Any) -> Any:
    if isinstance(value, str):
        return REDACTED if value else _MISSING
    if isinstance(value, (bytes, bytearray)):
        return type(value)(REDACTED.encode())
    return _MISSING


def _walk(value: Any, seen: set[int]) -> None:
    if value is None or isinstance(value, (str, bytes, bytearray)):
        return
    if id(value) in seen:
        return
    seen.add(id(value))

    if isinstance(value, Mapping):
        for item in value.values():
            _walk(item, seen)
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        for field in dataclasses.fields(value):
            current = getattr(value, field.name, _MISSING)
            if current is _MISSING:
                continue
            if _is_secret(field):
                replacement = _replacement(current)
                if replacement is not _MISSING:
                    object.__setattr__(value, field.name, replacement)
                    continue
            _walk(current, seen)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            _walk(item, seen)