"""Traversal helpers over a deployment tree, and the per-unit run report."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .completion import CompletionHandle, UnitState
from .exceptions import InvalidConfiguration
from .models import DependentGroup, UnitDescriptor


@dataclass(frozen=True)
class TreeNode:
    """A descriptor together with its position in the tree."""

    descriptor: UnitDescriptor
    path: str
    parent: TreeNode | None = None

    @property
    def depth(self) -> int:
        return 0 if self.parent is None else self.parent.depth + 1


@dataclass(frozen=True)
class UnitReport:
    path: str
    identifier: str
    status: str
    instance_id: str | None = None
    cause: str | None = None


def walk(group: DependentGroup) -> Iterator[TreeNode]:
    """
    Yield every descriptor of the tree, depth first, in declaration order.

    Paths look like ``/web/0/cache``: unit names separated by the index of the
    dependent group they belong to. A descriptor object reachable twice (shared
    or cyclic) raises InvalidConfiguration.
    """
    seen: set[int] = set()

    def _walk(units: list[UnitDescriptor], base: str, parent: TreeNode | None) -> Iterator[TreeNode]:
        for descriptor in units:
            if id(descriptor) in seen:
                raise InvalidConfiguration(f"Unit {descriptor.identifier!r} appears more than once in the tree")
            seen.add(id(descriptor))
            node = TreeNode(descriptor, f"{base}/{descriptor.identifier}", parent)
            yield node
            for index, dependents in enumerate(descriptor.dependent_groups):
                yield from _walk(dependents.units, f"{node.path}/{index}", node)

    yield from _walk(group.units, "", None)


def collect_handles(group: DependentGroup) -> list[CompletionHandle]:
    """Completion handle of every descriptor in the tree, launched or not."""
    return [node.descriptor.completion for node in walk(group)]


def _status(node: TreeNode) -> str:
    handle = node.descriptor.completion
    if handle.settled or handle.launched:
        return handle.state.value
    ancestor = node.parent
    while ancestor is not None:
        if ancestor.descriptor.completion.failed:
            return "skipped"
        ancestor = ancestor.parent
    return UnitState.PENDING.value


def report(group: DependentGroup) -> list[UnitReport]:
    """Snapshot of every unit's outcome, in tree order."""
    rows = []
    for node in walk(group):
        handle = node.descriptor.completion
        rows.append(
            UnitReport(
                path=node.path,
                identifier=node.descriptor.identifier,
                status=_status(node),
                instance_id=handle.instance_id,
                cause=str(handle.cause) if handle.cause is not None else None,
            )
        )
    return rows


__all__ = ["TreeNode", "UnitReport", "collect_handles", "report", "walk"]
