"""Pushing resources to the Grafana API, folders first."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, runtime_checkable

from grafanactl.folder_hierarchy import sort_folders_by_dependency
from grafanactl.resources import GroupVersionKind, Resource, Resources

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """Raised by a client when the requested resource does not exist."""

    def __init__(self, name: str = "", message: str = "") -> None:
        super().__init__(message or f"resource {name!r} not found")
        self.name = name


@runtime_checkable
class Processor(Protocol):
    """Modifies a resource in place before it is pushed or after it is read."""

    def process(self, resource: Resource) -> None:
        """Change the resource; raise to reject it."""


@dataclass
class PushRequest:
    """What to push and how."""

    resources: Resources = field(default_factory=Resources)
    processors: list[Processor] = field(default_factory=list)
    max_concurrency: int = 0
    stop_on_error: bool = False
    dry_run: bool = False
    no_push_failure_log: bool = False
    include_managed: bool = False


@dataclass
class PushFailure:
    """A resource that could not be pushed and why."""

    resource: Resource
    error: BaseException


@dataclass
class PushSummary:
    """Counts and failures of a push operation."""

    pushed_count: int = 0
    failed_count: int = 0
    failures: list[PushFailure] = field(default_factory=list)

    def record_failure(self, resource: Resource, error: BaseException) -> None:
        self.failed_count += 1
        self.failures.append(PushFailure(resource, error))


def _descriptor_gvk(descriptor: Any) -> GroupVersionKind:
    if isinstance(descriptor, GroupVersionKind):
        return descriptor
    gvk = descriptor.group_version_kind
    return gvk() if callable(gvk) else gvk


async def _call(func: Any, *args: Any, **kwargs: Any) -> Any:
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


class Pusher:
    """Pushes resources to Grafana through a client.

    The client provides ``get(descriptor, name)``, ``create(descriptor, obj,
    dry_run=...)`` and ``update(descriptor, obj, dry_run=...)``, plain or
    async; ``get`` raises :class:`NotFoundError` for missing resources. The
    registry provides ``supported_resources()``.
    """

    def __init__(self, client: Any, registry: Any) -> None:
        self.client = client
        self.registry = registry

    def _supported_descriptors(self) -> dict[GroupVersionKind, Any]:
        return {_descriptor_gvk(desc): desc for desc in self.registry.supported_resources()}

    async def push(self, request: PushRequest) -> PushSummary:
        """Push folders level by level, then every other resource.

        With ``stop_on_error`` the first failure is raised; otherwise
        failures are recorded in the returned summary.
        """
        summary = PushSummary()
        supported = self._supported_descriptors()
        limit = max(request.max_concurrency, 1)

        async def push_one(resource: Resource) -> None:
            await self._push_single(resource, supported, summary, request)

        folders = [res for res in request.resources if res.is_folder()]
        for level in sort_folders_by_dependency(folders):
            await Resources(*level).for_each_concurrently(limit, push_one)

        if summary.pushed_count + summary.failed_count >= len(request.resources):
            return summary

        async def push_non_folder(resource: Resource) -> None:
            if not resource.is_folder():
                await push_one(resource)

        await request.resources.for_each_concurrently(limit, push_non_folder)
        return summary

    async def _push_single(
        self,
        resource: Resource,
        supported: dict[GroupVersionKind, Any],
        summary: PushSummary,
        request: PushRequest,
    ) -> None:
        name = resource.name()
        gvk = resource.group_version_kind()
        context = f"gvk={gvk} name={name} dryRun={request.dry_run}"

        descriptor = supported.get(gvk)
        if descriptor is None:
            error = LookupError(f"resource not supported by the API: {gvk}/{name}")
            summary.record_failure(resource, error)
            if request.stop_on_error:
                raise error
            if not request.no_push_failure_log:
                logger.warning("Skipping resource not supported by the API (%s)", context)
            return

        for processor in request.processors:
            try:
                processor.process(resource)
            except Exception as error:
                summary.record_failure(resource, error)
                if request.stop_on_error:
                    raise
                if not request.no_push_failure_log:
                    logger.warning("Failed to process resource (%s): %s", context, error)
                return

        if not resource.is_managed() and not request.include_managed:
            logger.info("Skipping resource managed by %s (%s)", resource.manager_kind(), context)
            return

        try:
            await self._upsert(descriptor, name, resource, request.dry_run, context)
        except Exception as error:
            summary.record_failure(resource, error)
            if request.stop_on_error:
                raise
            if not request.no_push_failure_log:
                logger.warning("Failed to push resource (%s): %s", context, error)
            return

        logger.info("Resource pushed (%s)", context)
        summary.pushed_count += 1

    async def _upsert(
        self, descriptor: Any, name: str, resource: Resource, dry_run: bool, context: str
    ) -> None:
        try:
            await _call(self.client.get, descriptor, name)
        except NotFoundError:
            await _call(self.client.create, descriptor, resource.to_unstructured(), dry_run=dry_run)
            logger.info("Resource created (%s)", context)
            return

        await _call(self.client.update, descriptor, resource.to_unstructured(), dry_run=dry_run)
        logger.info("Resource updated (%s)", context)


def supported_kinds(descriptors: Iterable[Any]) -> set[GroupVersionKind]:
    """The group/version/kinds covered by the given descriptors."""
    return {_descriptor_gvk(desc) for desc in descriptors}