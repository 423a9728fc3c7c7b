"""Domain events for decoupled side effects and integrations."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List
from uuid import uuid4

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for all domain events."""
    event_id: str
    timestamp: datetime
    aggregate_id: str
    
    def __post_init__(self):
        if not hasattr(self, 'event_id') or not self.event_id:
            object.__setattr__(self, 'event_id', str(uuid4()))
        if not hasattr(self, 'timestamp') or not self.timestamp:
            object.__setattr__(self, 'timestamp', datetime.now())


@dataclass
class JourneyExported(DomainEvent):
    """Raised when a journey bundle has been built."""
    node_count: int
    dependency_count: int
    error_count: int


@dataclass
class JourneyImported(DomainEvent):
    """Raised when a journey has been written to the target realm."""
    source_tree_id: str
    regenerated_ids: bool
    node_count: int


@dataclass
class JourneyDeleted(DomainEvent):
    """Raised when a journey is deleted."""
    deep: bool
    node_count: int


@dataclass
class JourneyStatusChanged(DomainEvent):
    """Raised when a journey is enabled or disabled."""
    enabled: bool


@dataclass
class DependenciesUnresolved(DomainEvent):
    """Raised when a multi-journey import leaves journeys unresolved."""
    unresolved: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class OrphanedNodesRemoved(DomainEvent):
    """Raised after a bulk removal of orphaned nodes."""
    removed: int
    failed: int


class DomainEventPublisher:
    """Singleton publisher for domain events."""
    
    _instance: DomainEventPublisher | None = None
    _subscribers: Dict[type, List[Callable[[DomainEvent], None]]]
    
    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._subscribers = {}
        return cls._instance
    
    def subscribe(self, event_type: type[DomainEvent], handler: Callable[[DomainEvent], None]) -> None:
        """Subscribe a handler to an event type."""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)
    
    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers."""
        event_type = type(event)
        if event_type in self._subscribers:
            for handler in self._subscribers[event_type]:
                try:
                    handler(event)
                except Exception as e:
                    # Log error but don't fail the main operation
                    logger.error(f"Event handler error: {e}")
    
    def clear_subscribers(self) -> None:
        """Clear all subscribers (useful for testing)."""
        self._subscribers = {}


# Singleton instance
event_publisher = DomainEventPublisher()
