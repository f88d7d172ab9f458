"""Parsing of resource selectors such as ``dashboards.v1.dashboard.grafana.app/a,b``."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable


class InvalidSelectorError(ValueError):
    """Raised when a selector string cannot be parsed."""

    def __init__(self, command: str, err: str) -> None:
        super().__init__(f"invalid command '{command}': {err}")
        self.command = command
        self.err = err


class SelectorType(enum.Enum):
    """How many resources a selector targets."""

    ALL = "all"
    MULTIPLE = "multiple"
    SINGLE = "single"


@dataclass
class PartialGVK:
    """A partial identifier of an API resource; group and version may be empty."""

    group: str = ""
    version: str = ""
    resource: str = ""

    def __str__(self) -> str:
        text = self.resource
        if self.version:
            text += "." + self.version
        if self.group:
            text += "." + self.group
        return text


def parse_partial_gvk(src: str) -> PartialGVK:
    """Parse ``resource[.version].group`` into a PartialGVK."""
    parts = src.split(".", 2)
    if not parts[0]:
        raise ValueError("must specify API resource identifier")
    if len(parts) == 1:
        return PartialGVK(resource=parts[0])
    if len(parts) == 2:
        if not parts[1]:
            raise ValueError("must specify API resource group")
        return PartialGVK(group=parts[1], resource=parts[0])
    if not parts[1]:
        raise ValueError("must specify API resource version")
    if not parts[2]:
        raise ValueError("must specify API resource group")
    return PartialGVK(group=parts[2], version=parts[1], resource=parts[0])


@dataclass
class Selector:
    """Selects resources of a partially known type, optionally by UID."""

    type: SelectorType = SelectorType.ALL
    group_version_kind: PartialGVK = field(default_factory=PartialGVK)
    resource_uids: list[str] = field(default_factory=list)

    def is_named_selector(self) -> bool:
        return bool(self.resource_uids)

    def __str__(self) -> str:
        text = str(self.group_version_kind)
        if self.resource_uids:
            text += "/" + ",".join(self.resource_uids)
        return text


def _parse_uids(uids: str) -> list[str]:
    if not uids:
        raise ValueError("missing resource UID(s)")
    result = uids.split(",")
    if any(not uid for uid in result):
        raise ValueError("missing resource UID")
    return result


def _parse_gvk(src: str, part: str) -> PartialGVK:
    try:
        return parse_partial_gvk(part)
    except ValueError as exc:
        raise InvalidSelectorError(src, str(exc)) from exc


def parse_selector(src: str) -> Selector:
    """Parse a single selector string."""
    parts = src.split("/")
    if len(parts) == 1:
        return Selector(SelectorType.ALL, _parse_gvk(src, parts[0]), [])
    if len(parts) == 2:
        if not parts[1]:
            raise InvalidSelectorError(src, "missing resource UID(s)")
        gvk = _parse_gvk(src, parts[0])
        try:
            uids = _parse_uids(parts[1])
        except ValueError as exc:
            raise InvalidSelectorError(src, str(exc)) from exc
        kind = SelectorType.MULTIPLE if len(uids) > 1 else SelectorType.SINGLE
        return Selector(kind, gvk, uids)
    raise InvalidSelectorError(src, f"invalid command '[{' '.join(parts)}]'")


class Selectors(list):
    """A list of selectors."""

    def has_named_selectors_only(self) -> bool:
        return bool(self) and all(sel.is_named_selector() for sel in self)

    def is_single_target(self) -> bool:
        return len(self) == 1 and self[0].type is SelectorType.SINGLE


def parse_selectors(sels: Iterable[str]) -> Selectors:
    """Parse selector strings, failing on the first invalid one."""
    return Selectors(parse_selector(sel) for sel in sels)