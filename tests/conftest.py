"""
Test configuration and fixtures for journey-transfer-api tests.
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock

from app.main import app
from app.localstore import LocalRealmStorage
from app.storage.filesystem import FilesystemStorage
from app.dependencies import build_journey_service, get_bundle_storage, get_journey_service, get_repository
from app.domain.events import event_publisher
from app.domain.strategies import encode_base64

SUCCESS_NODE_ID = "70e691a5-1e33-4ac3-a356-e7b6d60d92e0"
FAILURE_NODE_ID = "e301438c-0bd0-429c-ab0c-66126501069a"

PAGE_NODE_ID = "a1b2c3d4-0000-4000-8000-000000000001"
USERNAME_NODE_ID = "a1b2c3d4-0000-4000-8000-000000000002"
PASSWORD_NODE_ID = "a1b2c3d4-0000-4000-8000-000000000003"
DECISION_NODE_ID = "a1b2c3d4-0000-4000-8000-000000000004"
SCRIPT_ID = "5e3a0b51-3e0c-4b7e-9f29-6cb34a5e1c01"
THEME_ID = "b7a3c8a1-0f3e-4c1a-9f12-44a0c1d2e3f4"

SCRIPT_SOURCE = "var user = sharedState.get('username');\n\toutcome = 'true';"


def seed_login_journey(realm, tree_id: str = "Login") -> None:
    """Write a page node with two collectors, a scripted decision, its script and a theme."""
    realm.put_script(SCRIPT_ID, {
        "_id": SCRIPT_ID,
        "name": "Login Decision",
        "language": "JAVASCRIPT",
        "context": "AUTHENTICATION_TREE_DECISION_NODE",
        "script": encode_base64(SCRIPT_SOURCE),
    })
    realm.put_themes({THEME_ID: {"_id": THEME_ID, "name": "Starter Theme", "linkedTrees": []}})
    realm.put_node(USERNAME_NODE_ID, "ValidatedUsernameNode", {
        "usernameAttribute": "userName",
        "validateInput": False,
    })
    realm.put_node(PASSWORD_NODE_ID, "ValidatedPasswordNode", {
        "passwordAttribute": "password",
        "validateInput": False,
    })
    realm.put_node(PAGE_NODE_ID, "PageNode", {
        "nodes": [
            {"_id": USERNAME_NODE_ID, "nodeType": "ValidatedUsernameNode", "displayName": "Platform Username"},
            {"_id": PASSWORD_NODE_ID, "nodeType": "ValidatedPasswordNode", "displayName": "Platform Password"},
        ],
        "pageDescription": {},
        "pageHeader": {"en": "Sign In"},
        "stage": '{"themeId": "%s"}' % THEME_ID,
    })
    realm.put_node(DECISION_NODE_ID, "ScriptedDecisionNode", {
        "script": SCRIPT_ID,
        "outcomes": ["true", "false"],
        "outputs": ["*"],
        "inputs": ["*"],
    })
    realm.put_tree(tree_id, {
        "_id": tree_id,
        "identityResource": "managed/alpha_user",
        "uiConfig": {"categories": "[]"},
        "entryNodeId": PAGE_NODE_ID,
        "enabled": True,
        "nodes": {
            PAGE_NODE_ID: {
                "connections": {"outcome": DECISION_NODE_ID},
                "displayName": "Login Page",
                "nodeType": "PageNode",
            },
            DECISION_NODE_ID: {
                "connections": {"true": SUCCESS_NODE_ID, "false": FAILURE_NODE_ID},
                "displayName": "Check User",
                "nodeType": "ScriptedDecisionNode",
            },
        },
        "staticNodes": {
            "startNode": {"x": 50, "y": 250},
            SUCCESS_NODE_ID: {"x": 600, "y": 100},
            FAILURE_NODE_ID: {"x": 600, "y": 400},
        },
    })


def seed_inner_tree_journey(realm, tree_id: str, inner_tree_id: str, node_id: str) -> None:
    """Write a journey whose only node evaluates ``inner_tree_id``."""
    realm.put_node(node_id, "InnerTreeEvaluatorNode", {"tree": inner_tree_id})
    realm.put_tree(tree_id, {
        "_id": tree_id,
        "identityResource": "managed/alpha_user",
        "entryNodeId": node_id,
        "enabled": True,
        "nodes": {
            node_id: {
                "connections": {"true": SUCCESS_NODE_ID, "false": FAILURE_NODE_ID},
                "displayName": f"Run {inner_tree_id}",
                "nodeType": "InnerTreeEvaluatorNode",
            },
        },
        "staticNodes": {"startNode": {"x": 0, "y": 0}},
    })


@pytest.fixture(autouse=True)
def clean_event_publisher():
    """Every test starts and ends without event subscribers."""
    event_publisher.clear_subscribers()
    yield
    event_publisher.clear_subscribers()


@pytest.fixture
def realm(tmp_path):
    """Empty local source realm."""
    return LocalRealmStorage(base_path=str(tmp_path / "source"), realm="alpha")


@pytest.fixture
def target_realm(tmp_path):
    """Empty local target realm."""
    return LocalRealmStorage(base_path=str(tmp_path / "target"), realm="alpha")


@pytest.fixture
def login_realm(realm):
    """Source realm holding the Login journey."""
    seed_login_journey(realm)
    return realm


@pytest.fixture
def mock_repository():
    """Repository double; every read returns an empty collection by default."""
    repository = Mock()
    repository.get_trees.return_value = []
    repository.get_themes.return_value = []
    repository.get_saml2_provider_stubs.return_value = []
    repository.get_circles_of_trust.return_value = []
    repository.get_social_identity_providers.return_value = []
    repository.get_node_types.return_value = []
    repository.find_saml2_providers.return_value = []
    return repository


@pytest.fixture
def service(login_realm):
    """Journey service over the seeded source realm."""
    return build_journey_service(login_realm)


@pytest.fixture
def bundle_storage(tmp_path):
    return FilesystemStorage(base_dir=str(tmp_path / "bundles"))


@pytest.fixture
def client(login_realm, bundle_storage):
    """Create test client wired to the seeded local realm."""
    app.dependency_overrides[get_repository] = lambda: login_realm
    app.dependency_overrides[get_bundle_storage] = lambda: bundle_storage
    app.dependency_overrides[get_journey_service] = lambda: build_journey_service(login_realm)
    yield TestClient(app)
    app.dependency_overrides.clear()
