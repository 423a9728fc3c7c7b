"""Dependency collection: walks a tree and gathers every entity it references."""
from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from app.domain.entities import NodeEntity, SingleTreeExport, TreeEntity
from app.domain.errors import DomainError
from app.domain.ports import RepositoryPort
from app.domain.results import Result
from app.domain.specifications import (
    ContainerNode,
    EmailTemplateNode,
    Saml2Node,
    ScriptedNode,
    SelectIdPNode,
    SocialProviderHandlerNode,
    filter_by_specification,
    node_type_of,
)
from app.domain.strategies import ScriptEncodingStrategyFactory, encode_base64url

logger = logging.getLogger(__name__)

SAML2_NODE_PROPERTIES = ("metaAlias", "idpEntityId")


def _label(key: Any) -> str:
    if isinstance(key, tuple):
        return str(key[0])
    if isinstance(key, dict):
        return str(key.get("entityId") or key.get("_id"))
    return str(key)


def theme_id_from_stage(stage: Optional[str]) -> Optional[str]:
    """Theme id a container node's ``stage`` points at, if any.

    Current format is a JSON object with a ``themeId`` key; older exports
    used the bare form ``themeId=<id>``.
    """
    if not stage:
        return None
    theme_id = None
    try:
        parsed = json.loads(stage)
        if isinstance(parsed, dict):
            theme_id = parsed.get("themeId")
    except ValueError:
        theme_id = None
    if not theme_id and stage.startswith("themeId="):
        theme_id = stage.split("=")[1]
    return theme_id or None


@dataclass
class DependencyScan:
    """Foreign keys discovered on a set of nodes, before any satellite fetch."""
    script_ids: List[str] = field(default_factory=list)
    email_template_ids: List[str] = field(default_factory=list)
    saml2_nodes: List[NodeEntity] = field(default_factory=list)
    theme_ids: List[str] = field(default_factory=list)
    needs_social_providers: bool = False
    allowed_social_providers: List[str] = field(default_factory=list)

    def add_unique(self, values: List[str], value: str) -> None:
        if value not in values:
            values.append(value)


class DependencyCollector:
    """Discovers and fetches every satellite entity a tree depends on.

    Per-entity reads are independent and are issued on a bounded worker
    pool; results are merged into id-keyed maps in submission order.
    """

    def __init__(self, repository: RepositoryPort, supports_themes: bool, workers: int = 8) -> None:
        self._repository = repository
        self._supports_themes = supports_themes
        self._workers = max(1, workers)
        self._saml2_stubs: Optional[List[Dict[str, Any]]] = None
        self._circles_of_trust: Optional[List[Dict[str, Any]]] = None

    def _fetch_all(
        self,
        keys: List[Any],
        fetch: Callable[[Any], Any],
        entity_type: str,
        result: Result[Any],
    ) -> List[Tuple[Any, Any]]:
        """Fetch each key concurrently; failures are recorded on ``result``."""
        if not keys:
            return []
        fetched: List[Tuple[Any, Any]] = []
        with ThreadPoolExecutor(max_workers=self._workers) as pool:
            futures = [(key, pool.submit(fetch, key)) for key in keys]
            for key, future in futures:
                try:
                    fetched.append((key, future.result()))
                except DomainError as e:
                    label = _label(key)
                    logger.warning(f"Unable to read {entity_type} {label}: {e}")
                    result.add_error(entity_type, str(label), e)
        return fetched

    # Node closure

    def collect_nodes(self, tree: TreeEntity, result: Result[SingleTreeExport]) -> None:
        """Fetch the tree's nodes and the inner nodes of its containers into the bundle."""
        bundle = result.value
        node_keys = [
            (node_id, node_ref.get("nodeType", ""))
            for node_id, node_ref in (tree.get("nodes") or {}).items()
        ]
        for key, node in self._fetch_all(
            node_keys, lambda key: self._repository.get_node(*key), "node", result
        ):
            bundle["nodes"][node.get("_id") or key[0]] = node

        inner_keys = []
        for container in filter_by_specification(list(bundle["nodes"].values()), ContainerNode):
            for inner_ref in container.get("nodes") or []:
                inner_keys.append((inner_ref["_id"], inner_ref.get("nodeType", "")))
        for key, inner_node in self._fetch_all(
            inner_keys, lambda key: self._repository.get_node(*key), "inner node", result
        ):
            bundle["innerNodes"][inner_node.get("_id") or key[0]] = inner_node

    # Satellites

    def scan(self, nodes: List[NodeEntity]) -> DependencyScan:
        """Classify nodes by type tag and collect the ids they reference."""
        found = DependencyScan()
        for node in nodes:
            if ScriptedNode.is_satisfied_by(node):
                found.add_unique(found.script_ids, node["script"])
            if self._supports_themes and EmailTemplateNode.is_satisfied_by(node):
                template_id = node.get("emailTemplateName")
                if template_id:
                    found.add_unique(found.email_template_ids, template_id)
            if Saml2Node.is_satisfied_by(node):
                found.saml2_nodes.append(node)
            if SocialProviderHandlerNode.is_satisfied_by(node):
                found.needs_social_providers = True
            if SelectIdPNode.is_satisfied_by(node):
                for provider_id in node["filteredProviders"]:
                    found.add_unique(found.allowed_social_providers, provider_id)
            if self._supports_themes and ContainerNode.is_satisfied_by(node):
                theme_id = theme_id_from_stage(node.get("stage"))
                if theme_id:
                    found.add_unique(found.theme_ids, theme_id)
        return found

    def collect(
        self,
        tree: TreeEntity,
        result: Result[SingleTreeExport],
        multiline_scripts_as_arrays: bool = True,
    ) -> None:
        """Populate the satellite maps of the bundle held by ``result``."""
        bundle = result.value
        nodes = list(bundle["nodes"].values()) + list(bundle["innerNodes"].values())
        found = self.scan(nodes)
        for node in nodes:
            logger.debug(f"    - {node.get('_id')} ({node_type_of(node)})")

        for template_id, template in self._fetch_all(
            found.email_template_ids, self._repository.get_email_template, "email template", result
        ):
            bundle["emailTemplates"][template_id] = template

        if found.saml2_nodes:
            self._collect_saml2(found.saml2_nodes, result)

        if found.needs_social_providers:
            self._collect_social_providers(found, result)

        self._collect_scripts(found.script_ids, result, multiline_scripts_as_arrays)

        if self._supports_themes:
            self._collect_themes(tree, found.theme_ids, result)

    def _collect_scripts(
        self, script_ids: List[str], result: Result[SingleTreeExport], as_arrays: bool
    ) -> None:
        strategy = ScriptEncodingStrategyFactory.get_strategy(as_arrays)
        bundle = result.value
        for script_id, script in self._fetch_all(
            script_ids, self._repository.get_script, "script", result
        ):
            script = dict(script)
            if isinstance(script.get("script"), str):
                try:
                    script["script"] = strategy.to_bundle(script["script"])
                except DomainError as e:
                    logger.warning(f"Unable to decode script {script_id}: {e}")
                    result.add_error("script", script_id, e)
                    continue
            bundle["scripts"][script.get("_id", script_id)] = script

    def _saml2_provider_stubs(self) -> List[Dict[str, Any]]:
        if self._saml2_stubs is None:
            self._saml2_stubs = self._repository.get_saml2_provider_stubs()
        return self._saml2_stubs

    def _all_circles_of_trust(self) -> List[Dict[str, Any]]:
        if self._circles_of_trust is None:
            self._circles_of_trust = self._repository.get_circles_of_trust()
        return self._circles_of_trust

    def _fetch_saml2_provider(self, stub: Dict[str, Any]) -> Dict[str, Any]:
        provider = dict(self._repository.get_saml2_provider(stub["location"], stub["_id"]))
        # the importer needs to know whether to create a hosted or a remote entity
        provider["entityLocation"] = stub["location"]
        if stub["location"] == "remote":
            metadata = self._repository.get_saml2_metadata(provider.get("entityId", stub["entityId"]))
            provider["base64EntityXML"] = encode_base64url(metadata)
        return provider

    def _collect_saml2(self, saml2_nodes: List[NodeEntity], result: Result[SingleTreeExport]) -> None:
        bundle = result.value
        try:
            stubs = self._saml2_provider_stubs()
            circles = self._all_circles_of_trust()
        except DomainError as e:
            logger.warning(f"Unable to list SAML2 providers or circles of trust: {e}")
            result.add_error("saml2 provider list", "*", e)
            return

        matched: List[Dict[str, Any]] = []
        for node in saml2_nodes:
            for prop in SAML2_NODE_PROPERTIES:
                value = node.get(prop)
                if not value:
                    continue
                # metaAlias looks like '/alpha/iSPAzure'
                entity_id = value.split("/")[-1] if prop == "metaAlias" else value
                stub = next((s for s in stubs if s.get("entityId") == entity_id), None)
                if stub and stub not in matched:
                    matched.append(stub)

        providers = self._fetch_all(matched, self._fetch_saml2_provider, "saml2 provider", result)
        trusted_keys = set()
        for stub, provider in providers:
            bundle["saml2Entities"][provider.get("_id", stub["_id"])] = provider
            trusted_keys.add(f"{provider.get('entityId', stub['entityId'])}|saml2")

        for circle in circles:
            if trusted_keys.intersection(circle.get("trustedProviders") or []):
                bundle["circlesOfTrust"][circle["_id"]] = circle

    def _collect_social_providers(self, found: DependencyScan, result: Result[SingleTreeExport]) -> None:
        bundle = result.value
        try:
            providers = self._repository.get_social_identity_providers()
        except DomainError as e:
            logger.warning(f"Unable to list social identity providers: {e}")
            result.add_error("social identity provider list", "*", e)
            return
        allowed: Set[str] = set(found.allowed_social_providers)
        for provider in providers:
            if not provider:
                continue
            if allowed and provider["_id"] not in allowed:
                continue
            bundle["socialIdentityProviders"][provider["_id"]] = provider
            transform = provider.get("transform")
            if transform:
                found.add_unique(found.script_ids, transform)

    def _collect_themes(self, tree: TreeEntity, theme_ids: List[str], result: Result[SingleTreeExport]) -> None:
        bundle = result.value
        try:
            themes = self._repository.get_themes()
        except DomainError as e:
            logger.warning(f"Unable to read themes: {e}")
            result.add_error("theme list", "*", e)
            return
        for theme in themes:
            if not theme:
                continue
            # referenced by id or name from a page node, or linked to this journey
            if (
                theme.get("_id") in theme_ids
                or theme.get("name") in theme_ids
                or tree.get("_id") in (theme.get("linkedTrees") or [])
            ):
                bundle["themes"].append(theme)
