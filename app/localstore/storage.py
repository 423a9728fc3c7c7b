"""
Local realm storage - composed façade over JSON document repositories.

Implements the same repository contract as the HTTP client so journeys can be
exported from and imported into a realm directory on disk.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.domain.errors import ConflictError, NotFoundError
from app.domain.strategies import decode_base64url, encode_base64url

from .metadata import MetadataStore
from .repositories import DocumentRepository, ThemesRepository, TypedDocumentRepository

logger = logging.getLogger(__name__)


def _require(document: Optional[Dict[str, Any]], kind: str, entity_id: str) -> Dict[str, Any]:
    if document is None:
        raise NotFoundError(f"{kind} {entity_id} not found")
    return document


class LocalRealmStorage:
    """File-based realm, composed of one repository per entity kind."""

    def __init__(self, base_path: str = "data/realm", realm: str = "alpha"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

        self._metadata = MetadataStore(self.base_path / "metadata.json", realm)
        self._trees = DocumentRepository(self.base_path, "trees")
        self._nodes = TypedDocumentRepository(self.base_path, "nodes")
        self._scripts = DocumentRepository(self.base_path, "scripts")
        self._email_templates = DocumentRepository(self.base_path, "emailTemplates")
        self._themes = ThemesRepository(self.base_path)
        self._saml2 = TypedDocumentRepository(self.base_path, "saml2")
        self._saml2_metadata = DocumentRepository(self.base_path, "saml2Metadata")
        self._circles_of_trust = DocumentRepository(self.base_path, "circlesOfTrust")
        self._social_providers = TypedDocumentRepository(self.base_path, "socialIdentityProviders")

    @property
    def realm(self) -> str:
        return self._metadata.data["realm"]

    # Trees
    def get_trees(self) -> List[Dict[str, Any]]:
        return self._trees.all()

    def get_tree(self, tree_id: str) -> Dict[str, Any]:
        return _require(self._trees.get(tree_id), "journey", tree_id)

    def put_tree(self, tree_id: str, tree_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._trees.put(tree_id, tree_data)

    def delete_tree(self, tree_id: str) -> Dict[str, Any]:
        return _require(self._trees.delete(tree_id), "journey", tree_id)

    # Nodes
    def get_node_types(self) -> List[Dict[str, Any]]:
        return list(self._metadata.data["nodeTypes"].values())

    def get_nodes_by_type(self, node_type: str) -> List[Dict[str, Any]]:
        return self._nodes.partition(node_type).all()

    def get_node(self, node_id: str, node_type: str) -> Dict[str, Any]:
        return _require(self._nodes.partition(node_type).get(node_id), node_type, node_id)

    def put_node(self, node_id: str, node_type: str, node_data: Dict[str, Any]) -> Dict[str, Any]:
        self._metadata.register_node_type(node_type)
        node = dict(node_data)
        node["_type"] = {"_id": node_type, "name": node_type}
        return self._nodes.partition(node_type).put(node_id, node)

    def delete_node(self, node_id: str, node_type: str) -> Dict[str, Any]:
        return _require(self._nodes.partition(node_type).delete(node_id), node_type, node_id)

    # Scripts
    def get_script(self, script_id: str) -> Dict[str, Any]:
        return _require(self._scripts.get(script_id), "script", script_id)

    def put_script(self, script_id: str, script_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._scripts.put(script_id, script_data)

    def delete_script(self, script_id: str) -> Dict[str, Any]:
        return _require(self._scripts.delete(script_id), "script", script_id)

    # Email templates
    def get_email_template(self, template_id: str) -> Dict[str, Any]:
        return _require(self._email_templates.get(template_id), "email template", template_id)

    def put_email_template(self, template_id: str, template_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._email_templates.put(template_id, template_data)

    def delete_email_template(self, template_id: str) -> Dict[str, Any]:
        return _require(self._email_templates.delete(template_id), "email template", template_id)

    # Themes
    def get_themes(self) -> List[Dict[str, Any]]:
        return self._themes.all()

    def put_themes(self, themes: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self._themes.put_many(themes)

    def delete_theme(self, theme_id: str) -> Dict[str, Any]:
        return _require(self._themes.delete(theme_id), "theme", theme_id)

    # SAML2 entity providers
    def get_saml2_provider_stubs(self) -> List[Dict[str, Any]]:
        stubs = []
        for location in self._saml2.type_keys():
            for provider in self._saml2.partition(location).all():
                stubs.append({"_id": provider["_id"], "entityId": provider["entityId"], "location": location})
        return stubs

    def find_saml2_providers(self, entity_id: str) -> List[Dict[str, Any]]:
        return [stub for stub in self.get_saml2_provider_stubs() if stub["entityId"] == entity_id]

    def get_saml2_provider(self, location: str, entity_id64: str) -> Dict[str, Any]:
        return _require(self._saml2.partition(location).get(entity_id64), "saml2 provider", entity_id64)

    def get_saml2_metadata(self, entity_id: str) -> str:
        document = _require(self._saml2_metadata.get(encode_base64url(entity_id)), "saml2 metadata", entity_id)
        return document["xml"]

    def create_saml2_provider(
        self, location: str, provider_data: Dict[str, Any], metadata: Optional[str] = None
    ) -> Dict[str, Any]:
        entity_id64 = encode_base64url(provider_data["entityId"])
        repository = self._saml2.partition(location)
        if repository.exists(entity_id64):
            raise ConflictError(f"saml2 provider {provider_data['entityId']} already exists")
        if metadata is not None:
            self._saml2_metadata.put(entity_id64, {"xml": decode_base64url(metadata)})
        return repository.put(entity_id64, provider_data)

    def update_saml2_provider(self, location: str, provider_data: Dict[str, Any]) -> Dict[str, Any]:
        entity_id64 = encode_base64url(provider_data["entityId"])
        repository = self._saml2.partition(location)
        _require(repository.get(entity_id64), "saml2 provider", provider_data["entityId"])
        return repository.put(entity_id64, provider_data)

    def delete_saml2_provider(self, location: str, entity_id64: str) -> Dict[str, Any]:
        self._saml2_metadata.delete(entity_id64)
        return _require(self._saml2.partition(location).delete(entity_id64), "saml2 provider", entity_id64)

    # Circles of trust
    def get_circles_of_trust(self) -> List[Dict[str, Any]]:
        return self._circles_of_trust.all()

    def create_circle_of_trust(self, cot_data: Dict[str, Any]) -> Dict[str, Any]:
        cot_id = cot_data["_id"]
        if self._circles_of_trust.exists(cot_id):
            raise ConflictError(f"circle of trust {cot_id} already exists")
        return self._circles_of_trust.put(cot_id, cot_data)

    def update_circle_of_trust(self, cot_id: str, cot_data: Dict[str, Any]) -> Dict[str, Any]:
        _require(self._circles_of_trust.get(cot_id), "circle of trust", cot_id)
        return self._circles_of_trust.put(cot_id, cot_data)

    def delete_circle_of_trust(self, cot_id: str) -> Dict[str, Any]:
        return _require(self._circles_of_trust.delete(cot_id), "circle of trust", cot_id)

    # Social identity providers
    def get_social_identity_providers(self) -> List[Dict[str, Any]]:
        providers = []
        for provider_type in self._social_providers.type_keys():
            for provider in self._social_providers.partition(provider_type).all():
                provider["_type"] = {"_id": provider_type, "name": provider_type}
                providers.append(provider)
        return providers

    def put_social_identity_provider(
        self, provider_type: str, provider_id: str, provider_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        provider = {k: v for k, v in provider_data.items() if k != "_type"}
        return self._social_providers.partition(provider_type).put(provider_id, provider)

    def delete_social_identity_provider(self, provider_type: str, provider_id: str) -> Dict[str, Any]:
        return _require(
            self._social_providers.partition(provider_type).delete(provider_id), "social provider", provider_id
        )

