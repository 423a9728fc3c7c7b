"""Ports (abstractions) the application layer depends on.

Every read raises ``NotFoundError`` when the entity is absent; writes raise
``ConflictError`` on duplicate create and ``ValidationError`` when the backend
rejects specific attributes.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from app.domain.entities import (
    CircleOfTrustEntity,
    NodeEntity,
    Saml2ProviderStub,
    ScriptEntity,
    SocialIdpEntity,
    ThemeEntity,
    TreeEntity,
)


class RepositoryPort(Protocol):
    """CRUD access to one realm of the identity platform."""

    # Trees
    def get_trees(self) -> List[TreeEntity]: ...

    def get_tree(self, tree_id: str) -> TreeEntity: ...

    def put_tree(self, tree_id: str, tree_data: TreeEntity) -> TreeEntity: ...

    def delete_tree(self, tree_id: str) -> TreeEntity: ...

    # Nodes
    def get_node_types(self) -> List[Dict[str, Any]]: ...

    def get_nodes_by_type(self, node_type: str) -> List[NodeEntity]: ...

    def get_node(self, node_id: str, node_type: str) -> NodeEntity: ...

    def put_node(self, node_id: str, node_type: str, node_data: NodeEntity) -> NodeEntity: ...

    def delete_node(self, node_id: str, node_type: str) -> NodeEntity: ...

    # Scripts
    def get_script(self, script_id: str) -> ScriptEntity: ...

    def put_script(self, script_id: str, script_data: ScriptEntity) -> ScriptEntity: ...

    def delete_script(self, script_id: str) -> ScriptEntity: ...

    # Email templates
    def get_email_template(self, template_id: str) -> Dict[str, Any]: ...

    def put_email_template(self, template_id: str, template_data: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_email_template(self, template_id: str) -> Dict[str, Any]: ...

    # Themes
    def get_themes(self) -> List[ThemeEntity]: ...

    def put_themes(self, themes: Dict[str, ThemeEntity]) -> List[ThemeEntity]: ...

    def delete_theme(self, theme_id: str) -> ThemeEntity: ...

    # SAML2 entity providers
    def get_saml2_provider_stubs(self) -> List[Saml2ProviderStub]: ...

    def find_saml2_providers(self, entity_id: str) -> List[Saml2ProviderStub]: ...

    def get_saml2_provider(self, location: str, entity_id64: str) -> Dict[str, Any]: ...

    def get_saml2_metadata(self, entity_id: str) -> str: ...

    def create_saml2_provider(
        self, location: str, provider_data: Dict[str, Any], metadata: Optional[str] = None
    ) -> Dict[str, Any]: ...

    def update_saml2_provider(self, location: str, provider_data: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_saml2_provider(self, location: str, entity_id64: str) -> Dict[str, Any]: ...

    # Circles of trust
    def get_circles_of_trust(self) -> List[CircleOfTrustEntity]: ...

    def create_circle_of_trust(self, cot_data: CircleOfTrustEntity) -> CircleOfTrustEntity: ...

    def update_circle_of_trust(self, cot_id: str, cot_data: CircleOfTrustEntity) -> CircleOfTrustEntity: ...

    def delete_circle_of_trust(self, cot_id: str) -> CircleOfTrustEntity: ...

    # Social identity providers
    def get_social_identity_providers(self) -> List[SocialIdpEntity]: ...

    def put_social_identity_provider(
        self, provider_type: str, provider_id: str, provider_data: SocialIdpEntity
    ) -> SocialIdpEntity: ...

    def delete_social_identity_provider(self, provider_type: str, provider_id: str) -> SocialIdpEntity: ...
