"""Grafana API resources and in-memory collections of them."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Iterator, Mapping, Optional

RESOURCE_MANAGER_KIND = "kubectl"
ANNOTATION_SAVED_FROM_UI = "grafana.app/saved-from-ui"
ANNOTATION_FOLDER = "grafana.app/folder"
ANNOTATION_MANAGER_KIND = "grafana.app/managedBy"
ANNOTATION_MANAGER_IDENTITY = "grafana.app/managerId"

FOLDER_GROUP = "folder.grafana.app"
FOLDER_KIND = "Folder"


class ResourceInvalidError(ValueError):
    """Raised when an object cannot be read as a Grafana resource."""


@dataclass(frozen=True)
class GroupVersionKind:
    """Identifies the API group, version and kind of a resource."""

    group: str = ""
    version: str = ""
    kind: str = ""

    def __str__(self) -> str:
        return f"{self.group}/{self.version}, Kind={self.kind}"


@dataclass(frozen=True)
class SourceInfo:
    """Where a resource was read from."""

    path: str = ""
    format: str = ""

    def __str__(self) -> str:
        return "file://" + self.path


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def _gvk_of(obj: Mapping[str, Any]) -> GroupVersionKind:
    api_version = _str(obj.get("apiVersion"))
    kind = _str(obj.get("kind"))
    if "/" not in api_version:
        return GroupVersionKind("", api_version, kind)
    if api_version.count("/") > 1:
        return GroupVersionKind()
    group, version = api_version.split("/")
    return GroupVersionKind(group, version, kind)


def _name_of(obj: Mapping[str, Any]) -> str:
    metadata = obj.get("metadata")
    if not isinstance(metadata, Mapping):
        return ""
    return _str(metadata.get("name"))


def _validate(obj: Any) -> None:
    if not isinstance(obj, dict):
        raise ResourceInvalidError(f"object is not a mapping: {type(obj).__name__}")
    metadata = obj.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ResourceInvalidError("object metadata is not a mapping")


class Resource:
    """A resource in the Grafana API, backed by its unstructured object."""

    def __init__(self, obj: dict[str, Any], source: Optional[SourceInfo] = None) -> None:
        self.object: dict[str, Any] = {}
        self.source = source if source is not None else SourceInfo()
        self.set_object(obj)

    def __repr__(self) -> str:
        return f"Resource({self.ref()!r})"

    def set_object(self, obj: dict[str, Any]) -> None:
        """Replace the underlying object after checking it."""
        _validate(obj)
        self.object = obj

    def to_unstructured(self) -> dict[str, Any]:
        return self.object

    def _metadata(self) -> Mapping[str, Any]:
        metadata = self.object.get("metadata")
        return metadata if isinstance(metadata, Mapping) else {}

    def ref(self) -> str:
        """A unique identifier for the resource."""
        return f"{self.group_version_kind()}/{self.namespace()}-{self.name()}"

    def group_version_kind(self) -> GroupVersionKind:
        return _gvk_of(self.object)

    def namespace(self) -> str:
        return _str(self._metadata().get("namespace"))

    def name(self) -> str:
        return _str(self._metadata().get("name"))

    def labels(self) -> dict[str, str]:
        return _string_map(self._metadata().get("labels"))

    def annotations(self) -> dict[str, str]:
        return _string_map(self._metadata().get("annotations"))

    def spec(self) -> Any:
        return self.object.get("spec")

    def group(self) -> str:
        return self.group_version_kind().group

    def kind(self) -> str:
        return self.group_version_kind().kind

    def version(self) -> str:
        return self.group_version_kind().version

    def api_version(self) -> str:
        return self.group() + "/" + self.version()

    def source_path(self) -> str:
        return self.source.path

    def source_format(self) -> str:
        return self.source.format

    def is_managed(self) -> bool:
        """True when the resource is managed by this tool."""
        return self.manager_kind() == RESOURCE_MANAGER_KIND

    def manager_kind(self) -> str:
        """The kind of manager that owns the resource.

        Resources without manager properties are assumed to be ours.
        """
        annotations = self.annotations()
        if not annotations.get(ANNOTATION_MANAGER_IDENTITY):
            return RESOURCE_MANAGER_KIND
        return annotations.get(ANNOTATION_MANAGER_KIND, "")

    def is_folder(self) -> bool:
        gvk = self.group_version_kind()
        return gvk.group == FOLDER_GROUP and gvk.kind == FOLDER_KIND

    def folder(self) -> str:
        """The parent folder UID, or an empty string for root resources."""
        return self.annotations().get(ANNOTATION_FOLDER, "")


def from_object(obj: dict[str, Any], source: SourceInfo) -> Resource:
    """Build a resource from an object and record where it came from."""
    return Resource(obj, source)


def from_unstructured(obj: dict[str, Any]) -> Resource:
    """Build a resource from an unstructured object."""
    return Resource(obj)


class Resources:
    """A collection of resources keyed by their reference."""

    def __init__(self, *resources: Resource) -> None:
        self._collection: dict[str, Resource] = {}
        self._on_change: list[Callable[[Resource], None]] = []
        self.add(*resources)

    def __len__(self) -> int:
        return len(self._collection)

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._collection.values()))

    def clear(self) -> None:
        self._collection = {}

    def add(self, *resources: Resource) -> None:
        """Add resources, replacing any with the same reference."""
        for resource in resources:
            self._collection[resource.ref()] = resource
            for callback in self._on_change:
                callback(resource)

    def on_change(self, callback: Callable[[Resource], None]) -> None:
        """Register a callback run whenever a resource is added."""
        self._on_change.append(callback)

    def find(self, kind: str, name: str) -> Optional[Resource]:
        """Find a resource by kind and name, or return None."""
        return next(
            (r for r in self._collection.values() if r.kind() == kind and r.name() == name),
            None,
        )

    def merge(self, other: Resources) -> None:
        self.add(*other)

    def for_each(self, callback: Callable[[Resource], Any]) -> None:
        """Call the callback for each resource; the first exception stops the walk."""
        for resource in self:
            callback(resource)

    async def for_each_concurrently(
        self, max_inflight: int, callback: Callable[[Resource], Awaitable[Any]]
    ) -> None:
        """Await the callback for every resource, at most max_inflight at a time.

        A negative limit means no limit. The first failure cancels the
        callbacks still running and is raised once they have stopped.
        """
        if max_inflight == 0:
            raise ValueError("max_inflight must not be zero")
        limit = asyncio.Semaphore(max_inflight) if max_inflight > 0 else None

        async def run(resource: Resource) -> None:
            if limit is None:
                await callback(resource)
                return
            async with limit:
                await callback(resource)

        tasks = [asyncio.ensure_future(run(resource)) for resource in self]
        if not tasks:
            return

        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is not None:
                raise task.exception()

    def as_list(self) -> list[Resource]:
        return list(self._collection.values())

    def group_by_kind(self) -> dict[str, Resources]:
        grouped: dict[str, Resources] = {}
        for resource in self:
            grouped.setdefault(resource.kind(), Resources()).add(resource)
        return grouped

    def to_unstructured_list(self) -> list[dict[str, Any]]:
        return [resource.to_unstructured() for resource in self]


def resources_from_unstructured(items: Iterable[dict[str, Any]]) -> Resources:
    """Build a collection from unstructured objects."""
    return Resources(*(from_unstructured(item) for item in items))


def sort_unstructured(items: list[dict[str, Any]]) -> None:
    """Sort objects in place by group, version, kind and name."""

    def key(obj: dict[str, Any]) -> tuple[str, str, str, str]:
        gvk = _gvk_of(obj)
        return gvk.group, gvk.version, gvk.kind, _name_of(obj)

    items.sort(key=key)