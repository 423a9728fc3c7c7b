"""Import engine: restores a bundle into a realm, satellites first, tree last."""
from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Hashable, Iterator, List, Mapping, Optional, Tuple

from app.application.dependency_resolver import resolve_dependencies
from app.application.id_remapper import IdRemapper
from app.application.options import CancellationToken, ImportOptions
from app.domain.entities import NodeEntity, SingleTreeExport, TreeEntity
from app.domain.errors import (
    ConflictError,
    DomainError,
    FatalError,
    UnresolvedDependencyError,
    ValidationError,
)
from app.domain.events import DependenciesUnresolved, JourneyImported, event_publisher
from app.domain.ports import RepositoryPort
from app.domain.results import Result
from app.domain.specifications import node_type_of
from app.domain.strategies import ScriptEncodingStrategyFactory, encode_base64url

logger = logging.getLogger(__name__)


class KeyedLocks:
    """One lock per target entity so concurrent writes to the same entity serialize.

    A key's lock only lives while some writer holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, List[Any]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


def require(entity: Mapping[str, Any], key: str, kind: str, entity_id: str) -> Any:
    """Value of a mandatory bundle attribute; ValidationError when it is absent."""
    value = entity.get(key) if isinstance(entity, Mapping) else None
    if value in (None, ""):
        raise ValidationError(f"{kind} {entity_id} is missing required attribute {key}")
    return value


def strip_rejected_attributes(data: Dict[str, Any], error: ValidationError) -> Optional[Dict[str, Any]]:
    """Copy of ``data`` without the attributes the backend rejected, or None if unknown."""
    if error.valid_attributes:
        allowed = set(error.valid_attributes) | {"_id"}
        return {key: value for key, value in data.items() if key in allowed}
    if error.invalid_attributes:
        return {key: value for key, value in data.items() if key not in error.invalid_attributes}
    return None


class ImportEngine:
    """Writes bundles to a realm with best-effort, per-entity diagnostics."""

    def __init__(
        self,
        repository: RepositoryPort,
        realm_managed_user: str = "user",
        rewrite_tree_identity_resource: bool = False,
        workers: int = 8,
        remapper: Optional[IdRemapper] = None,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        self._repository = repository
        self._managed_identity = f"managed/{realm_managed_user}"
        self._rewrite_tree_identity_resource = rewrite_tree_identity_resource
        self._workers = max(1, workers)
        self._remapper = remapper or IdRemapper()
        self._locks = locks or KeyedLocks()

    def _write_all(
        self,
        kind: str,
        items: List[Tuple[str, Any]],
        write: Callable[[str, Any], Any],
        result: Result[Any],
    ) -> List[Any]:
        """Write unrelated entities of one kind concurrently; failures go to ``result``."""
        if not items:
            return []

        def locked_write(entity_id: str, data: Any) -> Any:
            with self._locks.hold((kind, entity_id)):
                return write(entity_id, data)

        written = []
        with ThreadPoolExecutor(max_workers=self._workers) as pool:
            futures = [(entity_id, pool.submit(locked_write, entity_id, data)) for entity_id, data in items]
            for entity_id, future in futures:
                try:
                    written.append(future.result())
                    logger.debug(f"    - {kind} {entity_id}")
                except DomainError as e:
                    logger.error(f"Error importing {kind} {entity_id}: {e}")
                    result.add_error(kind, entity_id, e)
        return written

    # Satellites

    def _put_script(self, script_id: str, script: Dict[str, Any]) -> Any:
        body = require(script, "script", "script", script_id)
        script = dict(script)
        script.pop("_rev", None)
        script["script"] = ScriptEncodingStrategyFactory.from_bundle(body)
        return self._repository.put_script(script_id, script)

    def _put_email_template(self, template_id: str, template: Dict[str, Any]) -> Any:
        if not isinstance(template, Mapping):
            raise ValidationError(f"email template {template_id} is not an object")
        template = dict(template)
        template.pop("_rev", None)
        return self._repository.put_email_template(template_id, template)

    def _put_social_provider(self, provider_id: str, provider: Dict[str, Any]) -> Any:
        type_ref = require(provider, "_type", "social identity provider", provider_id)
        provider_type = require(type_ref, "_id", "social identity provider", provider_id)
        provider = dict(provider)
        provider.pop("_rev", None)
        try:
            return self._repository.put_social_identity_provider(provider_type, provider_id, provider)
        except ValidationError as e:
            if not e.invalid_attributes:
                raise
            for attribute in e.invalid_attributes:
                provider[attribute] = ""
            return self._repository.put_social_identity_provider(provider_type, provider_id, provider)

    def _put_saml2_entity(self, provider_id: str, provider: Dict[str, Any]) -> Any:
        entity_id = require(provider, "entityId", "saml2 provider", provider_id)
        provider = dict(provider)
        provider.pop("_rev", None)
        location = provider.pop("entityLocation", "hosted")
        encoded_metadata = provider.pop("base64EntityXML", None)
        metadata = None
        if location == "remote" and encoded_metadata is not None:
            if isinstance(encoded_metadata, list):
                metadata = encode_base64url("\n".join(encoded_metadata))
            else:
                metadata = encoded_metadata
        if self._repository.find_saml2_providers(entity_id):
            return self._repository.update_saml2_provider(location, provider)
        return self._repository.create_saml2_provider(location, provider, metadata)

    def _put_circle_of_trust(self, cot_id: str, cot: Dict[str, Any]) -> Any:
        require(cot, "_id", "circle of trust", cot_id)
        cot = dict(cot)
        cot.pop("_rev", None)
        try:
            return self._repository.create_circle_of_trust(cot)
        except ConflictError:
            return self._repository.update_circle_of_trust(cot_id, cot)

    def import_dependencies(self, bundle: SingleTreeExport, result: Result[Any]) -> None:
        self._write_all("script", list((bundle.get("scripts") or {}).items()), self._put_script, result)
        self._write_all(
            "email template", list((bundle.get("emailTemplates") or {}).items()), self._put_email_template, result
        )
        themes = {}
        for index, theme in enumerate(bundle.get("themes") or []):
            try:
                themes[require(theme, "_id", "theme", f"#{index}")] = theme
            except ValidationError as e:
                result.add_error("theme", f"#{index}", e)
        if themes:
            try:
                self._repository.put_themes(themes)
            except DomainError as e:
                logger.error(f"Error importing themes: {e}")
                result.add_error("themes", ", ".join(themes), e)
        self._write_all(
            "social identity provider",
            list((bundle.get("socialIdentityProviders") or {}).items()),
            self._put_social_provider,
            result,
        )
        self._write_all(
            "saml2 provider", list((bundle.get("saml2Entities") or {}).items()), self._put_saml2_entity, result
        )
        self._write_all(
            "circle of trust", list((bundle.get("circlesOfTrust") or {}).items()), self._put_circle_of_trust, result
        )

    # Graph

    def _managed_identity_resource(self, node: Dict[str, Any], tree_identity_resource: Optional[str]) -> None:
        identity_resource = node.get("identityResource")
        if identity_resource and identity_resource.endswith("user") and identity_resource == tree_identity_resource:
            node["identityResource"] = self._managed_identity

    def _put_node(self, node_id: str, node: NodeEntity) -> NodeEntity:
        node_type = node_type_of(node)
        if not node_type:
            raise ValidationError(f"node {node_id} is missing its node type")
        try:
            return self._repository.put_node(node_id, node_type, node)
        except ValidationError as e:
            if "script" in e.invalid_attributes:
                raise ValidationError(
                    f"Missing script {node.get('script')} referenced by node {node_id} ({node_type})"
                ) from e
            stripped = strip_rejected_attributes(node, e)
            if stripped is None:
                raise
            for attribute in sorted(set(node) - set(stripped)):
                logger.warning(f"Removing invalid attribute {attribute} from node {node_id}")
            return self._repository.put_node(node_id, node_type, stripped)

    def _put_tree(self, tree: TreeEntity) -> TreeEntity:
        tree_id = tree["_id"]
        try:
            return self._repository.put_tree(tree_id, tree)
        except ValidationError as e:
            stripped = strip_rejected_attributes(tree, e)
            if stripped is None:
                raise
            for attribute in sorted(set(tree) - set(stripped)):
                logger.warning(f"Removing invalid attribute {attribute} from journey {tree_id}")
            return self._repository.put_tree(tree_id, stripped)

    def import_journey(self, bundle: SingleTreeExport, options: ImportOptions = ImportOptions()) -> Result[Optional[TreeEntity]]:
        """Import one journey bundle.

        The result value is the written tree, or None when the tree write
        itself failed. Raises FatalError for a bundle without a tree.
        """
        source_tree = bundle.get("tree") or {}
        if not source_tree.get("_id"):
            raise FatalError("Bundle does not contain a journey tree")
        tree_id = source_tree["_id"]
        logger.info(f"Importing journey {tree_id}")

        result: Result[Optional[TreeEntity]] = Result(None)
        if options.include_dependencies:
            self.import_dependencies(bundle, result)

        remapped = self._remapper.remap(bundle, options.regenerate_ids).bundle
        tree_identity_resource = source_tree.get("identityResource")

        for nodes_key, kind in (("innerNodes", "inner node"), ("nodes", "node")):
            items = []
            for node_id, node in (remapped.get(nodes_key) or {}).items():
                if not isinstance(node, dict):
                    result.add_error(kind, node_id, ValidationError(f"{kind} {node_id} is not an object"))
                    continue
                node.pop("_rev", None)
                node["_id"] = node_id
                self._managed_identity_resource(node, tree_identity_resource)
                items.append((node_id, node))
            self._write_all(kind, items, self._put_node, result)

        tree = remapped["tree"]
        tree.pop("_rev", None)
        identity_resource = tree.get("identityResource")
        if (identity_resource and identity_resource.endswith("user")) or self._rewrite_tree_identity_resource:
            tree["identityResource"] = self._managed_identity
        try:
            with self._locks.hold(("journey", tree["_id"])):
                result.value = self._put_tree(tree)
        except DomainError as e:
            logger.error(f"Error importing journey flow {tree_id}: {e}")
            result.add_error("journey", tree_id, e)
            return result

        event_publisher.publish(JourneyImported(
            event_id="",
            timestamp=None,
            aggregate_id=tree["_id"],
            source_tree_id=tree_id,
            regenerated_ids=options.regenerate_ids,
            node_count=len(remapped.get("nodes") or {}) + len(remapped.get("innerNodes") or {}),
        ))
        return result

    def import_journeys(
        self,
        trees: Mapping[str, SingleTreeExport],
        options: ImportOptions = ImportOptions(),
        cancel: Optional[CancellationToken] = None,
    ) -> Result[List[TreeEntity]]:
        """Import a batch in dependency order; unresolved journeys are reported, not imported."""
        result: Result[List[TreeEntity]] = Result([])
        installed = [tree["_id"] for tree in self._repository.get_trees()]
        resolution = resolve_dependencies(trees, installed)

        if resolution.unresolved:
            logger.error(f"{len(resolution.unresolved)} journeys with unresolved dependencies")
            for tree_id, missing in resolution.unresolved.items():
                logger.error(f"  - {tree_id} requires {', '.join(missing)}")
                result.add_error("journey", tree_id, UnresolvedDependencyError(tree_id, missing))
            event_publisher.publish(DependenciesUnresolved(
                event_id="",
                timestamp=None,
                aggregate_id=",".join(resolution.unresolved),
                unresolved=dict(resolution.unresolved),
            ))
        else:
            logger.info("Resolved all dependencies")

        for tree_id in resolution.order:
            if cancel is not None and cancel.cancelled:
                logger.info("Import cancelled after %d journeys", len(result.value))
                result.cancelled = True
                break
            try:
                single = self.import_journey(copy.deepcopy(trees[tree_id]), options)
            except FatalError as e:
                result.add_error("journey", tree_id, e)
                continue
            if single.value is not None:
                result.value.append(single.value)
            for error in single.errors:
                result.add_error(error.entity_type, f"{tree_id}/{error.entity_id}", error.error)
        return result
