"""Pulling resources from the Grafana API."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Iterable

from grafanactl.pusher import Processor
from grafanactl.resources import Resource, Resources, from_unstructured
from grafanactl.selector import SelectorType

logger = logging.getLogger(__name__)


@dataclass
class Filter:
    """Selects resources of a fully known, supported type."""

    type: SelectorType
    descriptor: Any
    resource_uids: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        text = getattr(self.descriptor, "plural", "") or str(self.descriptor)
        if self.resource_uids:
            text += "/" + ",".join(self.resource_uids)
        return text


@dataclass
class PullRequest:
    """What to pull and where to put it."""

    filters: list[Filter] = field(default_factory=list)
    processors: list[Processor] = field(default_factory=list)
    resources: Resources = field(default_factory=Resources)
    exclude_managed: bool = False
    stop_on_error: bool = False


async def _call(func: Any, *args: Any) -> Any:
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _items(listing: Any) -> list[dict[str, Any]]:
    if isinstance(listing, dict):
        return list(listing.get("items") or [])
    return list(listing or [])


async def _gather_first_error(coros: Iterable[Awaitable[Any]]) -> list[Any]:
    """Run the coroutines together; the first failure cancels the rest and is raised."""
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    if not tasks:
        return []

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
    return [task.result() for task in tasks]


class Puller:
    """Pulls resources from Grafana through a client.

    The client provides ``get(descriptor, name)``, ``get_multiple(descriptor,
    names)`` and ``list(descriptor)``, plain or async. The registry provides
    ``preferred_resources()``.
    """

    def __init__(self, client: Any, registry: Any) -> None:
        self.client = client
        self.registry = registry

    async def pull(self, request: PullRequest) -> None:
        """Fetch the filtered resources into ``request.resources``.

        Without filters, every preferred resource type is pulled. With
        ``stop_on_error`` the first failure is raised; otherwise failing
        fetches and processors are logged and skipped.
        """
        filters = list(request.filters)
        if not filters:
            filters = [
                Filter(SelectorType.ALL, descriptor)
                for descriptor in self.registry.preferred_resources()
            ]

        logger.debug("Pulling resources")
        partial = await _gather_first_error(
            self._fetch(filt, request.stop_on_error) for filt in filters
        )

        request.resources.clear()
        for items in partial:
            for item in items:
                resource = from_unstructured(item)
                if request.exclude_managed and not resource.is_managed():
                    continue
                try:
                    self._process(resource, request.processors)
                except Exception as error:
                    if request.stop_on_error:
                        raise
                    logger.warning("Failed to process resource: %s", error)
                else:
                    request.resources.add(resource)

    async def _fetch(self, filt: Filter, stop_on_error: bool) -> list[dict[str, Any]]:
        try:
            if filt.type is SelectorType.ALL:
                return _items(await _call(self.client.list, filt.descriptor))
            if filt.type is SelectorType.MULTIPLE:
                return _items(
                    await _call(self.client.get_multiple, filt.descriptor, filt.resource_uids)
                )
            return [await _call(self.client.get, filt.descriptor, filt.resource_uids[0])]
        except Exception as error:
            if stop_on_error:
                raise
            logger.warning("Could not pull resources (cmd=%s): %s", filt, error)
            return []

    @staticmethod
    def _process(resource: Resource, processors: Iterable[Processor]) -> None:
        for processor in processors:
            processor.process(resource)