"""Import ordering for multi-journey bundles.

A journey that evaluates another journey (inner tree evaluator nodes) can only
be imported once the referenced journey exists in the target, either because
it is already installed or because it was imported earlier in the batch.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping

from app.domain.entities import SingleTreeExport
from app.domain.specifications import InnerTreeNode


def referenced_trees(bundle: SingleTreeExport) -> List[str]:
    """Names of journeys this journey evaluates, in node order, without duplicates."""
    names: List[str] = []
    for node in (bundle.get("nodes") or {}).values():
        if InnerTreeNode.is_satisfied_by(node):
            name = node.get("tree")
            if name and name not in names:
                names.append(name)
    return names


@dataclass
class Resolution:
    """Import order plus the journeys that could not be placed in it."""
    order: List[str] = field(default_factory=list)
    unresolved: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.unresolved


def resolve_dependencies(
    trees: Mapping[str, SingleTreeExport], installed: Iterable[str] = ()
) -> Resolution:
    """Topologically order ``trees`` by their cross-journey references.

    References to installed journeys impose no ordering. Journeys whose
    references are missing from both the batch and the installed set, or that
    sit on (or behind) a cycle, are reported in ``unresolved`` with their
    unmet references; no order is guessed for them.
    """
    installed_set = set(installed)
    batch = list(trees)
    dependencies = {name: referenced_trees(trees[name]) for name in batch}

    pending: Dict[str, int] = {}
    dependents: Dict[str, List[str]] = {name: [] for name in batch}
    for name in batch:
        waiting_on = [d for d in dependencies[name] if d not in installed_set]
        pending[name] = len(waiting_on)
        for dependency in waiting_on:
            if dependency in dependents:
                dependents[dependency].append(name)

    ready = deque(name for name in batch if pending[name] == 0)
    resolution = Resolution()
    while ready:
        name = ready.popleft()
        resolution.order.append(name)
        for dependent in dependents[name]:
            pending[dependent] -= 1
            if pending[dependent] == 0:
                ready.append(dependent)

    resolved = set(resolution.order) | installed_set
    for name in batch:
        if name not in resolved:
            resolution.unresolved[name] = [d for d in dependencies[name] if d not in resolved]
    return resolution
