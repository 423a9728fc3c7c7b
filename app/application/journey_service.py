"""Application service for journeys: export, import, orphan cleanup, lifecycle."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from app.application.bundle_builder import BundleBuilder
from app.application.dependency_resolver import referenced_trees
from app.application.import_engine import ImportEngine
from app.application.options import CancellationToken, ExportOptions, ImportOptions
from app.application.orphan_scanner import OrphanScanner
from app.domain.entities import (
    InnerNodeRefEntity,
    MultiTreeExport,
    NodeEntity,
    NodeRefEntity,
    SingleTreeExport,
    TreeEntity,
)
from app.domain.errors import DomainError, NotFoundError
from app.domain.events import (
    JourneyDeleted,
    JourneyExported,
    JourneyStatusChanged,
    OrphanedNodesRemoved,
    event_publisher,
)
from app.domain.ports import RepositoryPort
from app.domain.specifications import (
    CloudOnlyNode,
    ContainerNode,
    PremiumNode,
    node_type_of,
)

logger = logging.getLogger(__name__)

TreeExportResolver = Callable[[str], SingleTreeExport]


class JourneyClassification(str, Enum):
    STANDARD = "standard"
    CLOUD = "cloud"
    PREMIUM = "premium"


def get_node_ref(node: NodeEntity, bundle: SingleTreeExport) -> Optional[NodeRefEntity | InnerNodeRefEntity]:
    """The tree-level reference of a node, or its reference inside a container."""
    tree_nodes = bundle["tree"].get("nodes") or {}
    if node["_id"] in tree_nodes:
        return tree_nodes[node["_id"]]
    for container in (bundle.get("nodes") or {}).values():
        if ContainerNode.is_satisfied_by(container):
            for inner_ref in container.get("nodes") or []:
                if inner_ref["_id"] == node["_id"]:
                    return inner_ref
    return None


def get_journey_classification(bundle: SingleTreeExport) -> List[JourneyClassification]:
    """``cloud`` or ``standard``, plus ``premium`` when premium nodes are used."""
    nodes = list((bundle.get("nodes") or {}).values()) + list((bundle.get("innerNodes") or {}).values())
    classifications = []
    if any(CloudOnlyNode.is_satisfied_by(node) for node in nodes):
        classifications.append(JourneyClassification.CLOUD)
    else:
        classifications.append(JourneyClassification.STANDARD)
    if any(PremiumNode.is_satisfied_by(node) for node in nodes):
        classifications.append(JourneyClassification.PREMIUM)
    return classifications


def bundle_tree_export_resolver(multi: MultiTreeExport) -> TreeExportResolver:
    """Resolve journey names against the trees of a multi-tree bundle."""
    def resolve(tree_id: str) -> SingleTreeExport:
        if tree_id not in multi["trees"]:
            raise NotFoundError(f"Journey not found in bundle: {tree_id}")
        return multi["trees"][tree_id]
    return resolve


class JourneyService:
    """Entry points of the journey engine.

    Export and import return what succeeded and raise one
    ``PartialBatchFailure`` (carrying the partial value) listing every failure.
    """

    def __init__(
        self,
        repository: RepositoryPort,
        builder: BundleBuilder,
        importer: ImportEngine,
        scanner: OrphanScanner,
    ) -> None:
        self._repository = repository
        self._builder = builder
        self._importer = importer
        self._scanner = scanner

    # Reads

    def get_journeys(self) -> List[TreeEntity]:
        return sorted(self._repository.get_trees(), key=lambda tree: tree["_id"])

    def get_journey(self, journey_id: str) -> TreeEntity:
        return self._repository.get_tree(journey_id)

    # Export

    def export_journey(self, tree_id: str, options: ExportOptions = ExportOptions()) -> SingleTreeExport:
        result = self._builder.export_single(tree_id, options)
        bundle = result.value
        dependency_count = (
            len(bundle["scripts"]) + len(bundle["emailTemplates"]) + len(bundle["themes"])
            + len(bundle["socialIdentityProviders"]) + len(bundle["saml2Entities"])
            + len(bundle["circlesOfTrust"])
        )
        event_publisher.publish(JourneyExported(
            event_id="",
            timestamp=None,
            aggregate_id=tree_id,
            node_count=len(bundle["nodes"]) + len(bundle["innerNodes"]),
            dependency_count=dependency_count,
            error_count=len(result.errors),
        ))
        return result.unwrap(f"Journey {tree_id} exported with errors")

    def export_journeys(
        self, options: ExportOptions = ExportOptions(), cancel: Optional[CancellationToken] = None
    ) -> MultiTreeExport:
        result = self._builder.export_many(options, cancel)
        return result.unwrap("Journeys exported with errors")

    # Import

    def import_journey(self, bundle: SingleTreeExport, options: ImportOptions = ImportOptions()) -> TreeEntity:
        result = self._importer.import_journey(bundle, options)
        return result.unwrap(f"Journey {bundle['tree'].get('_id')} imported with errors")

    def import_journeys(
        self,
        multi: MultiTreeExport,
        options: ImportOptions = ImportOptions(),
        cancel: Optional[CancellationToken] = None,
    ) -> List[TreeEntity]:
        result = self._importer.import_journeys(multi.get("trees") or {}, options, cancel)
        return result.unwrap("Journeys imported with errors")

    # Orphans

    def find_orphaned_nodes(self) -> List[NodeEntity]:
        return self._scanner.find_orphaned_nodes().unwrap("Orphaned node scan incomplete")

    def remove_orphaned_nodes(self, nodes: List[NodeEntity]) -> List[NodeEntity]:
        """Remove the given nodes; returns the nodes that failed to delete."""
        result = self._scanner.remove_orphaned_nodes(nodes)
        event_publisher.publish(OrphanedNodesRemoved(
            event_id="",
            timestamp=None,
            aggregate_id="orphaned-nodes",
            removed=len(nodes) - len(result.value),
            failed=len(result.value),
        ))
        return result.value

    # Lifecycle

    def _set_enabled(self, journey_id: str, enabled: bool) -> bool:
        tree = dict(self._repository.get_tree(journey_id))
        tree["enabled"] = enabled
        tree.pop("_rev", None)
        updated = self._repository.put_tree(journey_id, tree)
        event_publisher.publish(JourneyStatusChanged(
            event_id="", timestamp=None, aggregate_id=journey_id, enabled=enabled,
        ))
        return updated.get("enabled") is enabled

    def enable_journey(self, journey_id: str) -> bool:
        return self._set_enabled(journey_id, True)

    def disable_journey(self, journey_id: str) -> bool:
        return self._set_enabled(journey_id, False)

    def _delete_node(self, status: Dict[str, Any], node_id: str, node_type: str) -> None:
        try:
            self._repository.delete_node(node_id, node_type)
            status["nodes"][node_id] = {"status": "success"}
        except DomainError as e:
            logger.error(f"Error deleting node {node_id} ({node_type}): {e}")
            status["nodes"][node_id] = {"status": "error", "error": str(e)}

    def delete_journey(self, journey_id: str, deep: bool = False) -> Dict[str, Any]:
        """Delete a journey; ``deep`` also deletes its nodes, inner nodes and containers."""
        status: Dict[str, Any] = {"status": "success", "nodes": {}}
        try:
            deleted = self._repository.delete_tree(journey_id)
        except DomainError as e:
            logger.error(f"Error deleting journey {journey_id}: {e}")
            return {"status": "error", "error": str(e), "nodes": {}}

        if deep:
            for node_id, node_ref in (deleted.get("nodes") or {}).items():
                node_type = node_type_of(node_ref)
                if ContainerNode.is_satisfied_by(node_ref):
                    try:
                        container = self._repository.get_node(node_id, node_type)
                    except DomainError as e:
                        logger.error(f"Error reading container node {node_id} of {journey_id}: {e}")
                        status["nodes"][node_id] = {"status": "error", "error": str(e)}
                        continue
                    for inner_ref in container.get("nodes") or []:
                        self._delete_node(status, inner_ref["_id"], node_type_of(inner_ref))
                self._delete_node(status, node_id, node_type)

        event_publisher.publish(JourneyDeleted(
            event_id="", timestamp=None, aggregate_id=journey_id, deep=deep, node_count=len(status["nodes"]),
        ))
        return status

    def delete_journeys(self, deep: bool = False) -> Dict[str, Dict[str, Any]]:
        return {tree["_id"]: self.delete_journey(tree["_id"], deep) for tree in self.get_journeys()}

    # Analysis

    def online_tree_export_resolver(self, tree_id: str) -> SingleTreeExport:
        """Resolve a journey name to its export, without dependencies, from the realm."""
        return self._builder.export_single(tree_id, ExportOptions(include_dependencies=False)).value

    def get_tree_descendents(
        self,
        bundle: SingleTreeExport,
        resolve: Optional[TreeExportResolver] = None,
        resolved_tree_ids: Optional[List[str]] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Nested map of the journeys a journey evaluates, each visited once."""
        resolve = resolve or self.online_tree_export_resolver
        resolved_tree_ids = resolved_tree_ids if resolved_tree_ids is not None else []
        tree_id = bundle["tree"]["_id"]
        if tree_id not in resolved_tree_ids:
            resolved_tree_ids.append(tree_id)
        descendents = []
        for inner_tree_id in referenced_trees(bundle):
            if inner_tree_id in resolved_tree_ids:
                continue
            try:
                inner_bundle = resolve(inner_tree_id)
            except DomainError as e:
                raise NotFoundError(f"Unable to resolve journey {inner_tree_id} used by {tree_id}: {e}") from e
            descendents.append(self.get_tree_descendents(inner_bundle, resolve, resolved_tree_ids))
        return {tree_id: descendents}
