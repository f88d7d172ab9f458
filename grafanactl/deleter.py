"""Deleting resources from the Grafana API."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any

from grafanactl.resources import GroupVersionKind, Resource, Resources

logger = logging.getLogger(__name__)


@dataclass
class DeleteRequest:
    """What to delete and how."""

    resources: Resources = field(default_factory=Resources)
    max_concurrency: int = 0
    stop_on_error: bool = False
    dry_run: bool = False


@dataclass
class DeleteSummary:
    """Counts of a delete operation."""

    deleted_count: int = 0
    failed_count: int = 0


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


class Deleter:
    """Deletes resources from Grafana through a client.

    The client provides ``delete(descriptor, name, dry_run=...)``, plain or
    async. The registry provides ``supported_resources()``.
    """

    def __init__(self, client: Any, registry: Any) -> None:
        self.client = client
        self.registry = registry

    def _supported_descriptors(self) -> dict[GroupVersionKind, Any]:
        return {_descriptor_gvk(desc): desc for desc in self.registry.supported_resources()}

    async def delete(self, request: DeleteRequest) -> DeleteSummary:
        """Delete every resource of the request.

        With ``stop_on_error`` the first failure is raised; otherwise
        unsupported resources are skipped and failures are counted.
        """
        summary = DeleteSummary()
        supported = self._supported_descriptors()
        limit = max(request.max_concurrency, 1)

        async def delete_one(resource: Resource) -> None:
            name = resource.name()
            gvk = resource.group_version_kind()

            descriptor = supported.get(gvk)
            if descriptor is None:
                if request.stop_on_error:
                    raise LookupError(f"resource not supported by the API: {gvk}/{name}")
                logger.warning("Skipping resource not supported by the API (gvk=%s name=%s)", gvk, name)
                return

            try:
                await _call(self.client.delete, descriptor, name, dry_run=request.dry_run)
            except Exception as error:
                summary.failed_count += 1
                if request.stop_on_error:
                    raise
                logger.warning("Failed to delete resource (gvk=%s name=%s): %s", gvk, name, error)
                return

            summary.deleted_count += 1
            logger.info("Resource deleted (gvk=%s name=%s)", gvk, name)

        await request.resources.for_each_concurrently(limit, delete_one)
        return summary