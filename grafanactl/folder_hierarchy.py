"""Ordering of folders so that parents always come before their children.

Folders are grouped into levels: level 0 holds folders without a parent in
the set (roots and orphans), level 1 their children, and so on. Folders in
the same level do not depend on each other and can be pushed concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from grafanactl.resources import Resource


class FolderHierarchyError(ValueError):
    """Raised when folders cannot be ordered, e.g. because of a cycle."""


@dataclass(eq=False)
class _FolderNode:
    resource: Resource
    children: list[_FolderNode] = field(default_factory=list)
    level: int = -1


def _build_hierarchy(folders: Iterable[Resource]) -> tuple[dict[str, _FolderNode], list[str]]:
    nodes = {folder.name(): _FolderNode(folder) for folder in folders}

    root_uids: list[str] = []
    for uid, node in nodes.items():
        parent = nodes.get(node.resource.folder()) if node.resource.folder() else None
        if parent is None:
            # No parent, or a parent outside the set: treat it as a root.
            root_uids.append(uid)
        else:
            parent.children.append(node)

    return nodes, root_uids


def _assign_levels(nodes: dict[str, _FolderNode], root_uids: list[str]) -> None:
    for root_uid in root_uids:
        stack = [(nodes[root_uid], 0)]
        while stack:
            node, level = stack.pop()
            node.level = level
            stack.extend((child, level + 1) for child in reversed(node.children))


def sort_folders_by_dependency(folders: Iterable[Resource]) -> list[list[Resource]]:
    """Group folders by their depth in the folder hierarchy.

    Returns one list per level, starting with the root level; an empty
    input gives an empty list.
    """
    folders = list(folders)
    if not folders:
        return []

    nodes, root_uids = _build_hierarchy(folders)
    _assign_levels(nodes, root_uids)

    max_level = max(node.level for node in nodes.values())
    levels: list[list[Resource]] = [[] for _ in range(max(max_level, 0) + 1)]
    for node in nodes.values():
        if node.level < 0:
            raise FolderHierarchyError(
                f"folder {node.resource.name()} has invalid level (circular dependency?)"
            )
        levels[node.level].append(node.resource)

    return levels