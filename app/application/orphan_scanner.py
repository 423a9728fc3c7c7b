"""Orphaned node detection: inventory minus nodes reachable from any tree."""
from __future__ import annotations

import logging
from typing import Dict, List, Set

from app.domain.entities import NodeEntity
from app.domain.errors import DomainError, FatalError
from app.domain.ports import RepositoryPort
from app.domain.results import Result
from app.domain.specifications import ContainerNode, node_type_of

logger = logging.getLogger(__name__)


class OrphanScanner:
    """Reconciles the realm's node inventory against what trees reference."""

    def __init__(self, repository: RepositoryPort) -> None:
        self._repository = repository

    def inventory(self, result: Result[List[NodeEntity]]) -> Dict[str, NodeEntity]:
        """Every node instance of every type; unreadable types are recorded and skipped."""
        nodes: Dict[str, NodeEntity] = {}
        for node_type in self._repository.get_node_types():
            type_id = node_type["_id"]
            try:
                for node in self._repository.get_nodes_by_type(type_id):
                    nodes[node["_id"]] = node
            except DomainError as e:
                logger.warning(f"Skipped node type {type_id}: {e}")
                result.add_error("node type", type_id, e)
        logger.info(f"{len(nodes)} total nodes")
        return nodes

    def active_node_ids(self) -> Set[str]:
        """Ids of every node a tree references, including inner nodes of its containers.

        Raises FatalError when a container cannot be read, since its inner
        nodes would otherwise be reported as orphaned.
        """
        active: Set[str] = set()
        for tree in self._repository.get_trees():
            for node_id, node_ref in (tree.get("nodes") or {}).items():
                active.add(node_id)
                if not ContainerNode.is_satisfied_by(node_ref):
                    continue
                try:
                    container = self._repository.get_node(node_id, node_type_of(node_ref))
                except DomainError as e:
                    logger.error(f"Unable to read container node {node_id} of {tree['_id']}: {e}")
                    raise FatalError(
                        f"Cannot determine orphaned nodes: container node {node_id} of {tree['_id']} is unreadable"
                    ) from e
                for inner_ref in container.get("nodes") or []:
                    active.add(inner_ref["_id"])
        logger.info(f"{len(active)} active nodes")
        return active

    def find_orphaned_nodes(self) -> Result[List[NodeEntity]]:
        """Nodes present in the inventory but unreachable from every tree, ordered by id."""
        result: Result[List[NodeEntity]] = Result([])
        inventory = self.inventory(result)
        active = self.active_node_ids()
        result.value = [inventory[node_id] for node_id in sorted(set(inventory) - active)]
        logger.info(f"{len(result.value)} orphaned nodes")
        return result

    def remove_orphaned_nodes(self, orphaned_nodes: List[NodeEntity]) -> Result[List[NodeEntity]]:
        """Delete each node independently; the result value lists the nodes that failed."""
        result: Result[List[NodeEntity]] = Result([])
        for node in orphaned_nodes:
            try:
                self._repository.delete_node(node["_id"], node_type_of(node))
            except DomainError as e:
                logger.error(f"Unable to remove orphaned node {node['_id']}: {e}")
                result.value.append(node)
                result.add_error("node", node["_id"], e)
        logger.info(f"Removed {len(orphaned_nodes) - len(result.value)}/{len(orphaned_nodes)} orphaned nodes")
        return result
