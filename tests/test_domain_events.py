"""Tests for domain events and event handling."""
from __future__ import annotations

import logging
from datetime import datetime
from unittest.mock import Mock

from app.application.event_handlers import register_event_handlers
from app.domain.events import (
    DependenciesUnresolved,
    DomainEvent,
    DomainEventPublisher,
    JourneyExported,
    JourneyImported,
    JourneyStatusChanged,
    event_publisher,
)


class TestDomainEvent:
    """Test base domain event functionality."""

    def test_defaults_filled_in(self):
        """Empty id and timestamp are generated."""
        event = DomainEvent(event_id="", timestamp=None, aggregate_id="Login")

        assert event.event_id
        assert isinstance(event.timestamp, datetime)
        assert event.aggregate_id == "Login"

    def test_custom_values_kept(self):
        timestamp = datetime(2024, 1, 1, 12, 0, 0)
        event = JourneyStatusChanged(event_id="e-1", timestamp=timestamp, aggregate_id="Login", enabled=False)

        assert event.event_id == "e-1"
        assert event.timestamp == timestamp
        assert event.enabled is False

    def test_unresolved_defaults_to_empty(self):
        event = DependenciesUnresolved(event_id="", timestamp=None, aggregate_id="batch")
        assert event.unresolved == {}


class TestDomainEventPublisher:
    """Test event publisher."""

    def test_singleton(self):
        assert DomainEventPublisher() is event_publisher

    def test_publish_to_matching_handlers_only(self):
        exported = Mock()
        imported = Mock()
        event_publisher.subscribe(JourneyExported, exported)
        event_publisher.subscribe(JourneyImported, imported)

        event = JourneyExported(
            event_id="", timestamp=None, aggregate_id="Login", node_count=4, dependency_count=2, error_count=0
        )
        event_publisher.publish(event)

        exported.assert_called_once_with(event)
        imported.assert_not_called()

    def test_handler_failure_does_not_propagate(self):
        failing = Mock(side_effect=RuntimeError("handler broke"))
        following = Mock()
        event_publisher.subscribe(JourneyStatusChanged, failing)
        event_publisher.subscribe(JourneyStatusChanged, following)

        event_publisher.publish(JourneyStatusChanged(event_id="", timestamp=None, aggregate_id="Login", enabled=True))

        following.assert_called_once()


class TestEventHandlers:
    """Audit and dependency handlers log through the standard logger."""

    def test_audit_log(self, caplog):
        register_event_handlers()

        with caplog.at_level(logging.INFO, logger="app.application.event_handlers"):
            event_publisher.publish(JourneyImported(
                event_id="", timestamp=None, aggregate_id="Login",
                source_tree_id="Login", regenerated_ids=False, node_count=4,
            ))

        assert any("[AUDIT]" in record.message and "Login" in record.message for record in caplog.records)

    def test_dependency_warning(self, caplog):
        register_event_handlers()

        with caplog.at_level(logging.WARNING, logger="app.application.event_handlers"):
            event_publisher.publish(DependenciesUnresolved(
                event_id="", timestamp=None, aggregate_id="Outer", unresolved={"Outer": ["Missing"]},
            ))

        assert any("Outer requires Missing" in record.message for record in caplog.records)
