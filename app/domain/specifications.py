"""Specification pattern for classifying nodes by their type tag.

Nodes are classified by ``_type._id`` (full node objects) or ``nodeType``
(node references inside trees and containers); both shapes satisfy the same
specifications.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List


CONTAINER_NODE_TYPES = ("PageNode", "CustomPageNode")

SCRIPTED_NODE_TYPES = (
    "ConfigProviderNode",
    "ScriptedDecisionNode",
    "ClientScriptNode",
    "SocialProviderHandlerNode",
    "CustomScriptNode",
)

EMAIL_TEMPLATE_NODE_TYPES = ("EmailSuspendNode", "EmailTemplateNode")

SAML2_NODE_TYPES = ("product-Saml2Node",)

SOCIAL_PROVIDER_HANDLER_NODE_TYPES = ("SocialProviderHandlerNode",)

SELECT_IDP_NODE_TYPES = ("SelectIdPNode",)

INNER_TREE_NODE_TYPES = ("InnerTreeEvaluatorNode",)

PREMIUM_NODE_TYPES = (
    "AutonomousAccessSignalNode",
    "AutonomousAccessDecisionNode",
    "AutonomousAccessResultNode",
)

CLOUD_ONLY_NODE_TYPES = ("IdentityStoreDecisionNode",) + PREMIUM_NODE_TYPES

# Sentinel a scripted node carries when no script is selected
EMPTY_SCRIPT_PLACEHOLDER = "[Empty]"


def node_type_of(candidate: Dict[str, Any]) -> str:
    """Type tag of a node object or node reference."""
    type_ref = candidate.get("_type")
    if isinstance(type_ref, dict) and type_ref.get("_id"):
        return type_ref["_id"]
    return candidate.get("nodeType", "")


class Specification(ABC):
    """Abstract base for specifications (query filters)."""
    
    @abstractmethod
    def is_satisfied_by(self, candidate: Dict[str, Any]) -> bool:
        """Check if candidate satisfies this specification."""
        pass
    
    def and_(self, other: Specification) -> Specification:
        """Combine with AND logic."""
        return AndSpecification(self, other)
    
    def or_(self, other: Specification) -> Specification:
        """Combine with OR logic."""
        return OrSpecification(self, other)
    
    def not_(self) -> Specification:
        """Negate this specification."""
        return NotSpecification(self)


class AndSpecification(Specification):
    """AND composite specification."""
    
    def __init__(self, left: Specification, right: Specification):
        self.left = left
        self.right = right
    
    def is_satisfied_by(self, candidate: Dict[str, Any]) -> bool:
        return self.left.is_satisfied_by(candidate) and self.right.is_satisfied_by(candidate)


class OrSpecification(Specification):
    """OR composite specification."""
    
    def __init__(self, left: Specification, right: Specification):
        self.left = left
        self.right = right
    
    def is_satisfied_by(self, candidate: Dict[str, Any]) -> bool:
        return self.left.is_satisfied_by(candidate) or self.right.is_satisfied_by(candidate)


class NotSpecification(Specification):
    """NOT specification."""
    
    def __init__(self, spec: Specification):
        self.spec = spec
    
    def is_satisfied_by(self, candidate: Dict[str, Any]) -> bool:
        return not self.spec.is_satisfied_by(candidate)


# Node Specifications

class NodeOfType(Specification):
    """Nodes whose type tag is one of the given types."""
    
    def __init__(self, node_types: Iterable[str]):
        self.node_types = frozenset(node_types)
    
    def is_satisfied_by(self, node: Dict[str, Any]) -> bool:
        return node_type_of(node) in self.node_types


class NodeWithScript(Specification):
    """Nodes that reference a script (not the empty placeholder)."""
    
    def is_satisfied_by(self, node: Dict[str, Any]) -> bool:
        script_id = node.get("script")
        return bool(script_id) and script_id != EMPTY_SCRIPT_PLACEHOLDER


class NodeWithFilteredProviders(Specification):
    """Selection nodes that carry a non-empty provider allow-list."""
    
    def is_satisfied_by(self, node: Dict[str, Any]) -> bool:
        return bool(node.get("filteredProviders"))


ContainerNode = NodeOfType(CONTAINER_NODE_TYPES)
ScriptedNode = NodeOfType(SCRIPTED_NODE_TYPES).and_(NodeWithScript())
EmailTemplateNode = NodeOfType(EMAIL_TEMPLATE_NODE_TYPES)
Saml2Node = NodeOfType(SAML2_NODE_TYPES)
SocialProviderHandlerNode = NodeOfType(SOCIAL_PROVIDER_HANDLER_NODE_TYPES)
SelectIdPNode = NodeOfType(SELECT_IDP_NODE_TYPES).and_(NodeWithFilteredProviders())
InnerTreeNode = NodeOfType(INNER_TREE_NODE_TYPES)
PremiumNode = NodeOfType(PREMIUM_NODE_TYPES)
CloudOnlyNode = NodeOfType(CLOUD_ONLY_NODE_TYPES)


# Helper function to filter collections

def filter_by_specification(items: List[Dict[str, Any]], spec: Specification) -> List[Dict[str, Any]]:
    """Filter a collection using a specification."""
    return [item for item in items if spec.is_satisfied_by(item)]
