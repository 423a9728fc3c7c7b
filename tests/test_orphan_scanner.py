"""Tests for orphaned node detection and removal."""
from __future__ import annotations

import pytest

from app.application.orphan_scanner import OrphanScanner
from app.domain.errors import DomainError, FatalError, NotFoundError

from tests.conftest import DECISION_NODE_ID, PAGE_NODE_ID, PASSWORD_NODE_ID, USERNAME_NODE_ID


class TestFindOrphanedNodes:

    def test_inventory_minus_active(self, mock_repository):
        """Inventory {A, B, C, D}, tree uses A and B, page A holds D: C is orphaned."""
        mock_repository.get_node_types.return_value = [{"_id": "PageNode"}, {"_id": "DataStoreDecisionNode"}]
        mock_repository.get_nodes_by_type.side_effect = lambda node_type: {
            "PageNode": [{"_id": "A", "_type": {"_id": "PageNode"}}],
            "DataStoreDecisionNode": [
                {"_id": "B", "_type": {"_id": "DataStoreDecisionNode"}},
                {"_id": "C", "_type": {"_id": "DataStoreDecisionNode"}},
                {"_id": "D", "_type": {"_id": "DataStoreDecisionNode"}},
            ],
        }[node_type]
        mock_repository.get_trees.return_value = [{
            "_id": "Login",
            "nodes": {"A": {"nodeType": "PageNode"}, "B": {"nodeType": "DataStoreDecisionNode"}},
        }]
        mock_repository.get_node.return_value = {
            "_id": "A", "_type": {"_id": "PageNode"}, "nodes": [{"_id": "D", "nodeType": "DataStoreDecisionNode"}],
        }

        result = OrphanScanner(mock_repository).find_orphaned_nodes()

        assert result.ok
        assert [node["_id"] for node in result.value] == ["C"]

    def test_unreadable_type_is_skipped(self, mock_repository):
        mock_repository.get_node_types.return_value = [{"_id": "BrokenNode"}, {"_id": "DataStoreDecisionNode"}]

        def nodes_by_type(node_type):
            if node_type == "BrokenNode":
                raise DomainError("500 Internal Server Error")
            return [{"_id": "X", "_type": {"_id": node_type}}]

        mock_repository.get_nodes_by_type.side_effect = nodes_by_type

        result = OrphanScanner(mock_repository).find_orphaned_nodes()

        assert [node["_id"] for node in result.value] == ["X"]
        assert [error.entity_id for error in result.errors] == ["BrokenNode"]

    def test_unreadable_container_aborts_scan(self, mock_repository):
        """Page A holds D; if A cannot be read, D must not be reported as orphaned."""
        mock_repository.get_node_types.return_value = [{"_id": "PageNode"}, {"_id": "DataStoreDecisionNode"}]
        mock_repository.get_nodes_by_type.side_effect = lambda node_type: {
            "PageNode": [{"_id": "A", "_type": {"_id": "PageNode"}}],
            "DataStoreDecisionNode": [{"_id": "D", "_type": {"_id": "DataStoreDecisionNode"}}],
        }[node_type]
        mock_repository.get_trees.return_value = [{"_id": "Login", "nodes": {"A": {"nodeType": "PageNode"}}}]
        mock_repository.get_node.side_effect = DomainError("503 Service Unavailable")

        with pytest.raises(FatalError):
            OrphanScanner(mock_repository).find_orphaned_nodes()

    def test_local_realm_without_orphans(self, login_realm):
        result = OrphanScanner(login_realm).find_orphaned_nodes()
        assert result.ok
        assert result.value == []

    def test_local_realm_with_orphan(self, login_realm):
        login_realm.put_node("orphan-1", "DataStoreDecisionNode", {})
        result = OrphanScanner(login_realm).find_orphaned_nodes()
        assert [node["_id"] for node in result.value] == ["orphan-1"]


class TestRemoveOrphanedNodes:

    def test_removal_continues_past_failures(self, mock_repository):
        def delete_node(node_id, node_type):
            if node_id == "bad":
                raise NotFoundError("bad not found")
            return {"_id": node_id}

        mock_repository.delete_node.side_effect = delete_node
        nodes = [
            {"_id": "one", "_type": {"_id": "DataStoreDecisionNode"}},
            {"_id": "bad", "_type": {"_id": "DataStoreDecisionNode"}},
            {"_id": "two", "_type": {"_id": "PageNode"}},
        ]

        result = OrphanScanner(mock_repository).remove_orphaned_nodes(nodes)

        assert [node["_id"] for node in result.value] == ["bad"]
        assert mock_repository.delete_node.call_count == 3
        mock_repository.delete_node.assert_any_call("two", "PageNode")

    def test_removal_leaves_journey_nodes(self, login_realm):
        login_realm.put_node("orphan-1", "DataStoreDecisionNode", {})
        scanner = OrphanScanner(login_realm)

        failed = scanner.remove_orphaned_nodes(scanner.find_orphaned_nodes().value).value

        assert failed == []
        assert scanner.find_orphaned_nodes().value == []
        for node_id, node_type in (
            (PAGE_NODE_ID, "PageNode"),
            (DECISION_NODE_ID, "ScriptedDecisionNode"),
            (USERNAME_NODE_ID, "ValidatedUsernameNode"),
            (PASSWORD_NODE_ID, "ValidatedPasswordNode"),
        ):
            assert login_realm.get_node(node_id, node_type)["_id"] == node_id
