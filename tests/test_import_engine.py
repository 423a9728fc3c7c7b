"""Tests for the import engine: ordering, retries, round trips."""
from __future__ import annotations

from unittest.mock import Mock

import pytest

from app.application.import_engine import ImportEngine, KeyedLocks, strip_rejected_attributes
from app.application.options import CancellationToken, ExportOptions, ImportOptions
from app.dependencies import build_journey_service
from app.domain.errors import ConflictError, FatalError, UnresolvedDependencyError, ValidationError
from app.domain.events import DependenciesUnresolved, JourneyImported, event_publisher
from app.domain.strategies import decode_base64, encode_base64url

from tests.conftest import (
    DECISION_NODE_ID,
    PAGE_NODE_ID,
    SCRIPT_ID,
    SCRIPT_SOURCE,
    THEME_ID,
    seed_inner_tree_journey,
)


def without_rev(document):
    return {key: value for key, value in document.items() if key != "_rev"}


def minimal_bundle(**overrides):
    bundle = {
        "tree": {
            "_id": "Simple",
            "entryNodeId": "n1",
            "identityResource": "managed/user",
            "nodes": {"n1": {"nodeType": "ScriptedDecisionNode", "connections": {}}},
        },
        "nodes": {"n1": {"_id": "n1", "_type": {"_id": "ScriptedDecisionNode"}, "script": "s1", "outcomes": []}},
        "innerNodes": {},
        "scripts": {},
        "emailTemplates": {},
        "themes": [],
        "socialIdentityProviders": {},
        "saml2Entities": {},
        "circlesOfTrust": {},
    }
    bundle.update(overrides)
    return bundle


@pytest.fixture
def exported(service):
    return service.export_journey("Login", ExportOptions())


@pytest.fixture
def engine(target_realm):
    return ImportEngine(target_realm, realm_managed_user="alpha_user")


class TestStripRejectedAttributes:

    def test_keeps_valid_attributes_and_id(self):
        error = ValidationError("Invalid attribute specified.", valid_attributes=["script"])
        assert strip_rejected_attributes({"_id": "n1", "script": "s", "bogus": 1}, error) == {
            "_id": "n1", "script": "s",
        }

    def test_drops_invalid_attributes(self):
        error = ValidationError("Invalid attribute specified.", invalid_attributes=["bogus"])
        assert strip_rejected_attributes({"_id": "n1", "bogus": 1}, error) == {"_id": "n1"}

    def test_unknown_rejection(self):
        assert strip_rejected_attributes({"_id": "n1"}, ValidationError("nope")) is None


class TestRoundTrip:
    """Export from one local realm, import into another."""

    def test_tree_and_nodes_equal_after_import(self, login_realm, target_realm, engine, exported):
        result = engine.import_journey(exported, ImportOptions())

        assert result.ok
        assert without_rev(target_realm.get_tree("Login")) == without_rev(login_realm.get_tree("Login"))
        for node_id, node_type in ((PAGE_NODE_ID, "PageNode"), (DECISION_NODE_ID, "ScriptedDecisionNode")):
            assert without_rev(target_realm.get_node(node_id, node_type)) == without_rev(
                login_realm.get_node(node_id, node_type)
            )

    def test_dependencies_written(self, target_realm, engine, exported):
        engine.import_journey(exported, ImportOptions())

        script = target_realm.get_script(SCRIPT_ID)
        assert decode_base64(script["script"]) == SCRIPT_SOURCE.replace("\t", "    ")
        assert [theme["_id"] for theme in target_realm.get_themes()] == [THEME_ID]

    def test_without_dependencies(self, target_realm, engine, exported):
        engine.import_journey(exported, ImportOptions(include_dependencies=False))
        assert target_realm.get_themes() == []
        assert target_realm.get_tree("Login")["_id"] == "Login"

    def test_import_is_idempotent(self, target_realm, engine, exported):
        engine.import_journey(exported, ImportOptions())
        first = {node["_id"] for node in target_realm.get_nodes_by_type("PageNode")}

        result = engine.import_journey(exported, ImportOptions())

        assert result.ok
        assert [tree["_id"] for tree in target_realm.get_trees()] == ["Login"]
        assert {node["_id"] for node in target_realm.get_nodes_by_type("PageNode")} == first
        assert target_realm.get_tree("Login")["_rev"] == "2"

    def test_bundle_not_modified(self, engine, exported):
        before = repr(exported)
        engine.import_journey(exported, ImportOptions(regenerate_ids=True))
        assert repr(exported) == before

    def test_regenerated_imports_use_fresh_ids(self, target_realm, engine, exported):
        engine.import_journey(exported, ImportOptions(regenerate_ids=True))
        first = set(target_realm.get_tree("Login")["nodes"])
        engine.import_journey(exported, ImportOptions(regenerate_ids=True))
        second = set(target_realm.get_tree("Login")["nodes"])

        assert first.isdisjoint(second)
        assert first.isdisjoint({PAGE_NODE_ID, DECISION_NODE_ID})
        assert len(target_realm.get_nodes_by_type("PageNode")) == 2

    def test_imported_event_published(self, engine, exported):
        handler = Mock()
        event_publisher.subscribe(JourneyImported, handler)

        engine.import_journey(exported, ImportOptions())

        event = handler.call_args[0][0]
        assert event.aggregate_id == "Login"
        assert event.node_count == 4


class TestImportJourneyWithMockRepository:

    def test_bundle_without_tree_is_fatal(self, mock_repository):
        with pytest.raises(FatalError):
            ImportEngine(mock_repository).import_journey(minimal_bundle(tree={}))

    def test_satellites_before_nodes_before_tree(self, mock_repository):
        calls = []
        mock_repository.put_script.side_effect = lambda *args: calls.append("script")
        mock_repository.put_node.side_effect = lambda *args: calls.append("node")
        mock_repository.put_tree.side_effect = lambda *args: calls.append("tree") or args[1]
        bundle = minimal_bundle(scripts={"s1": {"_id": "s1", "script": ["x"]}})

        ImportEngine(mock_repository).import_journey(bundle)

        assert calls == ["script", "node", "tree"]

    def test_invalid_node_attributes_stripped_once(self, mock_repository):
        mock_repository.put_node.side_effect = [
            ValidationError("Invalid attribute specified.", valid_attributes=["script"]),
            {"_id": "n1"},
        ]
        result = ImportEngine(mock_repository).import_journey(minimal_bundle())

        assert result.ok
        assert mock_repository.put_node.call_count == 2
        retried = mock_repository.put_node.call_args_list[1][0][2]
        assert retried == {"_id": "n1", "script": "s1"}

    def test_missing_script_reported(self, mock_repository):
        mock_repository.put_node.side_effect = ValidationError("Invalid script", invalid_attributes=["script"])

        result = ImportEngine(mock_repository).import_journey(minimal_bundle())

        assert len(result.errors) == 1
        assert "Missing script s1" in str(result.errors[0])
        # the tree write is still attempted
        mock_repository.put_tree.assert_called_once()

    def test_tree_identity_resource_rewritten(self, mock_repository):
        mock_repository.put_tree.side_effect = lambda tree_id, tree: tree

        result = ImportEngine(mock_repository, realm_managed_user="bravo_user").import_journey(minimal_bundle())

        assert result.value["identityResource"] == "managed/bravo_user"

    def test_tree_write_failure_leaves_no_value(self, mock_repository):
        mock_repository.put_tree.side_effect = ValidationError("rejected")
        result = ImportEngine(mock_repository).import_journey(minimal_bundle())
        assert result.value is None
        assert result.errors[0].entity_type == "journey"


class TestImportDependencies:

    def test_circle_of_trust_conflict_falls_back_to_update(self, mock_repository):
        mock_repository.create_circle_of_trust.side_effect = ConflictError("exists")
        bundle = minimal_bundle(circlesOfTrust={"cot1": {"_id": "cot1", "_rev": "3", "trustedProviders": []}})

        result = ImportEngine(mock_repository).import_journey(bundle)

        assert result.ok
        mock_repository.update_circle_of_trust.assert_called_once_with("cot1", {"_id": "cot1", "trustedProviders": []})

    def test_social_provider_invalid_attributes_blanked(self, mock_repository):
        mock_repository.put_social_identity_provider.side_effect = [
            ValidationError("Invalid attribute specified.", invalid_attributes=["clientSecret"]),
            {"_id": "google"},
        ]
        provider = {"_id": "google", "_type": {"_id": "googleConfig"}, "clientSecret": "s3cr3t"}

        result = ImportEngine(mock_repository).import_journey(minimal_bundle(socialIdentityProviders={"google": provider}))

        assert result.ok
        provider_type, provider_id, data = mock_repository.put_social_identity_provider.call_args[0]
        assert (provider_type, provider_id) == ("googleConfig", "google")
        assert data["clientSecret"] == ""

    def test_remote_saml2_entity_created_with_metadata(self, mock_repository):
        provider = {
            "_id": "aWRwMQ",
            "entityId": "idp1",
            "entityLocation": "remote",
            "base64EntityXML": ["<EntityDescriptor>", "</EntityDescriptor>"],
        }

        ImportEngine(mock_repository).import_journey(minimal_bundle(saml2Entities={"aWRwMQ": provider}))

        location, data, metadata = mock_repository.create_saml2_provider.call_args[0]
        assert location == "remote"
        assert "entityLocation" not in data and "base64EntityXML" not in data
        assert metadata == encode_base64url("<EntityDescriptor>\n</EntityDescriptor>")

    def test_existing_saml2_entity_updated(self, mock_repository):
        mock_repository.find_saml2_providers.return_value = [{"_id": "c3Ax", "location": "hosted"}]
        provider = {"_id": "c3Ax", "entityId": "sp1", "entityLocation": "hosted"}

        ImportEngine(mock_repository).import_journey(minimal_bundle(saml2Entities={"c3Ax": provider}))

        mock_repository.update_saml2_provider.assert_called_once_with("hosted", {"_id": "c3Ax", "entityId": "sp1"})
        mock_repository.create_saml2_provider.assert_not_called()


class TestMalformedBundleEntities:
    """A bad entity is recorded; the rest of the journey is still written."""

    def test_plain_text_script_body(self, mock_repository):
        mock_repository.put_tree.side_effect = lambda tree_id, tree: tree
        bundle = minimal_bundle(scripts={
            "s1": {"_id": "s1", "script": "var a = 1;"},
            "s2": {"_id": "s2", "script": ["var b = 2;"]},
        })

        result = ImportEngine(mock_repository).import_journey(bundle)

        assert [(error.entity_type, error.entity_id) for error in result.errors] == [("script", "s1")]
        assert isinstance(result.errors[0].error, ValidationError)
        mock_repository.put_script.assert_called_once()
        mock_repository.put_node.assert_called_once()
        assert result.value["_id"] == "Simple"

    def test_entities_missing_required_attributes(self, mock_repository):
        mock_repository.put_tree.side_effect = lambda tree_id, tree: tree
        bundle = minimal_bundle(
            socialIdentityProviders={"google": {"_id": "google", "clientId": "x"}},
            saml2Entities={"aWRwMQ": {"_id": "aWRwMQ", "entityLocation": "remote"}},
            themes=[{"name": "No id"}],
        )

        result = ImportEngine(mock_repository).import_journey(bundle)

        assert sorted(error.entity_type for error in result.errors) == [
            "saml2 provider", "social identity provider", "theme",
        ]
        assert all(isinstance(error.error, ValidationError) for error in result.errors)
        mock_repository.put_social_identity_provider.assert_not_called()
        mock_repository.create_saml2_provider.assert_not_called()
        mock_repository.put_tree.assert_called_once()

    def test_node_without_type(self, mock_repository):
        bundle = minimal_bundle(nodes={"n1": {"_id": "n1", "script": "s1"}})

        result = ImportEngine(mock_repository).import_journey(bundle)

        assert [(error.entity_type, error.entity_id) for error in result.errors] == [("node", "n1")]
        mock_repository.put_node.assert_not_called()
        mock_repository.put_tree.assert_called_once()


class TestKeyedLocks:

    def test_locks_released_after_import(self, target_realm, exported):
        locks = KeyedLocks()

        ImportEngine(target_realm, locks=locks).import_journey(exported, ImportOptions())

        assert len(locks) == 0

    def test_lock_shared_while_held(self):
        locks = KeyedLocks()
        with locks.hold("n1"):
            with locks.hold("n2"):
                assert len(locks) == 2
            assert len(locks) == 1
        assert len(locks) == 0


class TestImportJourneys:

    def test_inner_journeys_imported_first(self, realm, target_realm):
        seed_inner_tree_journey(realm, "Outer", "Inner", "outer-node")
        seed_inner_tree_journey(realm, "Inner", "Leaf", "inner-node")
        seed_inner_tree_journey(realm, "Leaf", "Installed", "leaf-node")
        target_realm.put_tree("Installed", {"_id": "Installed", "nodes": {}})
        multi = build_journey_service(realm).export_journeys(ExportOptions(include_dependencies=False))

        result = ImportEngine(target_realm).import_journeys(multi["trees"])

        assert result.ok
        assert [tree["_id"] for tree in result.value] == ["Leaf", "Inner", "Outer"]

    def test_unresolved_journeys_reported(self, realm, target_realm):
        seed_inner_tree_journey(realm, "Outer", "Missing", "outer-node")
        seed_inner_tree_journey(realm, "Standalone", "Standalone", "self-node")
        multi = build_journey_service(realm).export_journeys(ExportOptions(include_dependencies=False))
        handler = Mock()
        event_publisher.subscribe(DependenciesUnresolved, handler)

        result = ImportEngine(target_realm).import_journeys(multi["trees"])

        assert result.value == []
        assert {error.entity_id for error in result.errors} == {"Outer", "Standalone"}
        assert all(isinstance(error.error, UnresolvedDependencyError) for error in result.errors)
        assert handler.call_args[0][0].unresolved == {"Outer": ["Missing"], "Standalone": ["Standalone"]}

    def test_cancellation_stops_between_journeys(self, realm, target_realm):
        seed_inner_tree_journey(realm, "A", "Installed", "a-node")
        seed_inner_tree_journey(realm, "B", "Installed", "b-node")
        target_realm.put_tree("Installed", {"_id": "Installed", "nodes": {}})
        multi = build_journey_service(realm).export_journeys(ExportOptions(include_dependencies=False))
        cancel = CancellationToken()
        cancel.cancel()

        result = ImportEngine(target_realm).import_journeys(multi["trees"], cancel=cancel)

        assert result.cancelled
        assert result.value == []
