"""Identifier regeneration for "clone" imports.

Node ids appear as map keys, as connection targets, and embedded in free-form
configuration (inner node references inside container payloads). The remap
therefore serializes the tree and each container node to JSON text, replaces
every literal occurrence of each old id with its new id, and parses the text
back.

Known limitation: any unrelated string value that happens to contain an old
id as a substring is rewritten too. Node ids are UUIDs, so this requires an
accidental UUID inside configuration text; such values are not protected.
"""
from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Set, Tuple
from uuid import uuid4

from app.domain.entities import SingleTreeExport, TreeEntity
from app.domain.specifications import ContainerNode

logger = logging.getLogger(__name__)


def graph_edges(tree: TreeEntity) -> Set[Tuple[str, str, str]]:
    """All ``(source, outcome, target)`` edges of a tree's flow graph."""
    edges = set()
    for source, node_ref in (tree.get("nodes") or {}).items():
        for outcome, target in (node_ref.get("connections") or {}).items():
            edges.add((source, outcome, target))
    return edges


def substitute_ids(text: str, id_map: Dict[str, str]) -> str:
    """Replace every occurrence of each old id in ``text``.

    Longer ids go first, ties in lexical order, so results are reproducible.
    """
    for old_id in sorted(id_map, key=lambda i: (-len(i), i)):
        text = text.replace(old_id, id_map[old_id])
    return text


def _remap_document(document: Any, id_map: Dict[str, str]) -> Any:
    return json.loads(substitute_ids(json.dumps(document), id_map))


@dataclass
class RemappedBundle:
    bundle: SingleTreeExport
    id_map: Dict[str, str] = field(default_factory=dict)


class IdRemapper:
    """Produces a copy of a bundle with fresh node and inner node ids."""

    def __init__(self, id_factory: Callable[[], str] = lambda: str(uuid4())) -> None:
        self._id_factory = id_factory

    def build_id_map(self, bundle: SingleTreeExport) -> Dict[str, str]:
        id_map: Dict[str, str] = {}
        for old_id in list(bundle.get("innerNodes") or {}) + list(bundle.get("nodes") or {}):
            if old_id not in id_map:
                id_map[old_id] = self._id_factory()
        return id_map

    def remap(self, bundle: SingleTreeExport, regenerate_ids: bool) -> RemappedBundle:
        """Return a new bundle; the input bundle is never modified."""
        remapped: SingleTreeExport = copy.deepcopy(bundle)
        if not regenerate_ids:
            return RemappedBundle(remapped)

        id_map = self.build_id_map(bundle)

        inner_nodes = {}
        for old_id, inner_node in (remapped.get("innerNodes") or {}).items():
            inner_node["_id"] = id_map[old_id]
            inner_nodes[id_map[old_id]] = inner_node
        remapped["innerNodes"] = inner_nodes

        nodes = {}
        for old_id, node in (remapped.get("nodes") or {}).items():
            if ContainerNode.is_satisfied_by(node):
                node = _remap_document(node, id_map)
            node["_id"] = id_map[old_id]
            nodes[id_map[old_id]] = node
        remapped["nodes"] = nodes

        remapped["tree"] = _remap_document(remapped["tree"], id_map)
        logger.debug(f"Regenerated {len(id_map)} node ids for journey {remapped['tree'].get('_id')}")
        return RemappedBundle(remapped, id_map)
