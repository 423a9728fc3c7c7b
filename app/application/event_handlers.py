"""Event handlers for domain events."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.domain.events import (
        JourneyExported,
        JourneyImported,
        JourneyDeleted,
        JourneyStatusChanged,
        DependenciesUnresolved,
        OrphanedNodesRemoved,
    )

logger = logging.getLogger(__name__)


class AuditLogHandler:
    """Logs all domain events for audit trail."""
    
    def handle_journey_exported(self, event: JourneyExported) -> None:
        logger.info(
            f"[AUDIT] Journey exported: {event.aggregate_id} - {event.node_count} nodes, "
            f"{event.dependency_count} dependencies, {event.error_count} errors"
        )
    
    def handle_journey_imported(self, event: JourneyImported) -> None:
        suffix = f" (from {event.source_tree_id}, new ids)" if event.regenerated_ids else ""
        logger.info(f"[AUDIT] Journey imported: {event.aggregate_id}{suffix} - {event.node_count} nodes")
    
    def handle_journey_deleted(self, event: JourneyDeleted) -> None:
        mode = "deep" if event.deep else "shallow"
        logger.info(f"[AUDIT] Journey deleted ({mode}): {event.aggregate_id} - {event.node_count} nodes")
    
    def handle_journey_status_changed(self, event: JourneyStatusChanged) -> None:
        state = "enabled" if event.enabled else "disabled"
        logger.info(f"[AUDIT] Journey {state}: {event.aggregate_id}")
    
    def handle_orphaned_nodes_removed(self, event: OrphanedNodesRemoved) -> None:
        logger.info(f"[AUDIT] Orphaned nodes removed: {event.removed} ({event.failed} failed)")


class DependencyAlertHandler:
    """Surfaces journeys an import batch could not place."""
    
    def handle_dependencies_unresolved(self, event: DependenciesUnresolved) -> None:
        for tree_id, missing in event.unresolved.items():
            logger.warning(f"[DEPENDENCIES] {tree_id} requires {', '.join(missing)}")


def register_event_handlers():
    """Register all event handlers with the publisher."""
    from app.domain.events import (
        event_publisher,
        JourneyExported,
        JourneyImported,
        JourneyDeleted,
        JourneyStatusChanged,
        DependenciesUnresolved,
        OrphanedNodesRemoved,
    )
    
    audit = AuditLogHandler()
    alerts = DependencyAlertHandler()
    
    # Audit handlers
    event_publisher.subscribe(JourneyExported, audit.handle_journey_exported)
    event_publisher.subscribe(JourneyImported, audit.handle_journey_imported)
    event_publisher.subscribe(JourneyDeleted, audit.handle_journey_deleted)
    event_publisher.subscribe(JourneyStatusChanged, audit.handle_journey_status_changed)
    event_publisher.subscribe(OrphanedNodesRemoved, audit.handle_orphaned_nodes_removed)
    
    # Dependency alerts
    event_publisher.subscribe(DependenciesUnresolved, alerts.handle_dependencies_unresolved)
