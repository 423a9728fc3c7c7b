"""Bundle building: single- and multi-tree export artifacts."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from app.application.dependency_collector import DependencyCollector
from app.application.options import CancellationToken, ExportOptions
from app.domain.entities import ExportMetadata, MultiTreeExport, SingleTreeExport
from app.domain.errors import DomainError, FatalError
from app.domain.ports import RepositoryPort
from app.domain.results import Result

logger = logging.getLogger(__name__)

EXPORT_TOOL = "journey-transfer-api"


def create_metadata(origin: str = "", realm: str = "", exported_by: str = "", version: str = "") -> ExportMetadata:
    """Provenance block for a bundle. Informational only."""
    return ExportMetadata(
        origin=origin,
        realm=realm,
        exportedBy=exported_by,
        exportDate=datetime.now(timezone.utc).isoformat(),
        exportTool=EXPORT_TOOL,
        exportToolVersion=version,
    )


def create_single_tree_export(meta: ExportMetadata) -> SingleTreeExport:
    return SingleTreeExport(
        meta=meta,
        tree={},
        nodes={},
        innerNodes={},
        scripts={},
        emailTemplates={},
        themes=[],
        socialIdentityProviders={},
        saml2Entities={},
        circlesOfTrust={},
    )


def create_multi_tree_export(meta: ExportMetadata) -> MultiTreeExport:
    return MultiTreeExport(meta=meta, trees={})


class BundleBuilder:
    """Assembles trees, their node closure and their dependencies into bundles."""

    def __init__(
        self,
        repository: RepositoryPort,
        collector_factory: Callable[[], DependencyCollector],
        metadata_factory: Callable[[], ExportMetadata] = create_metadata,
    ) -> None:
        self._repository = repository
        self._collector_factory = collector_factory
        self._metadata_factory = metadata_factory

    def export_single(self, tree_id: str, options: ExportOptions = ExportOptions()) -> Result[SingleTreeExport]:
        """Build the bundle for one tree.

        Raises FatalError when the tree itself cannot be read; every other
        failure is recorded on the returned result.
        """
        result: Result[SingleTreeExport] = Result(create_single_tree_export(self._metadata_factory()))
        try:
            tree = self._repository.get_tree(tree_id)
        except DomainError as e:
            raise FatalError(f"Unable to read journey {tree_id}: {e}") from e

        logger.info(f"Exporting journey {tree_id}")
        result.value["tree"] = tree
        collector = self._collector_factory()
        collector.collect_nodes(tree, result)
        if options.include_dependencies:
            collector.collect(tree, result, options.multiline_scripts_as_arrays)
        return result

    def export_many(
        self,
        options: ExportOptions = ExportOptions(),
        cancel: Optional[CancellationToken] = None,
    ) -> Result[MultiTreeExport]:
        """Build a bundle for every tree in the realm.

        One tree's failures never stop the others; on cancellation the trees
        exported so far are returned with ``cancelled`` set.
        """
        result: Result[MultiTreeExport] = Result(create_multi_tree_export(self._metadata_factory()))
        trees = sorted(self._repository.get_trees(), key=lambda t: t["_id"])
        for tree in trees:
            if cancel is not None and cancel.cancelled:
                logger.info("Export cancelled after %d journeys", len(result.value["trees"]))
                result.cancelled = True
                break
            tree_id = tree["_id"]
            try:
                single = self.export_single(tree_id, options)
            except FatalError as e:
                result.add_error("journey", tree_id, e)
                continue
            result.value["trees"][tree_id] = single.value
            for error in single.errors:
                result.add_error(error.entity_type, f"{tree_id}/{error.entity_id}", error.error)
        return result
