"""Internal domain entities as TypedDicts for type safety at boundaries.

Entities mirror the platform's JSON documents; keys prefixed with an
underscore (``_id``, ``_rev``, ``_type``) are the platform's own.
"""
from __future__ import annotations

from typing import Any, Dict, List, TypedDict


class TypeRef(TypedDict, total=False):
    _id: str
    name: str
    collection: bool


class NodeRefEntity(TypedDict, total=False):
    displayName: str
    nodeType: str
    x: int
    y: int
    connections: Dict[str, str]


class InnerNodeRefEntity(TypedDict, total=False):
    _id: str
    displayName: str
    nodeType: str


class TreeEntity(TypedDict, total=False):
    _id: str
    _rev: str
    entryNodeId: str
    nodes: Dict[str, NodeRefEntity]
    enabled: bool
    identityResource: str
    uiConfig: Dict[str, Any]
    staticNodes: Dict[str, Any]


class NodeEntity(TypedDict, total=False):
    _id: str
    _rev: str
    _type: TypeRef
    # type-specific configuration travels as extra keys
    nodes: List[InnerNodeRefEntity]
    stage: str
    script: str
    emailTemplateName: str
    metaAlias: str
    idpEntityId: str
    filteredProviders: List[str]
    tree: str
    identityResource: str


class ScriptEntity(TypedDict, total=False):
    _id: str
    name: str
    language: str
    context: str
    script: Any


class ThemeEntity(TypedDict, total=False):
    _id: str
    name: str
    linkedTrees: List[str]
    isDefault: bool


class Saml2ProviderStub(TypedDict, total=False):
    _id: str
    entityId: str
    location: str


class CircleOfTrustEntity(TypedDict, total=False):
    _id: str
    _rev: str
    trustedProviders: List[str]


class SocialIdpEntity(TypedDict, total=False):
    _id: str
    _type: TypeRef
    enabled: bool
    transform: str


class ExportMetadata(TypedDict, total=False):
    origin: str
    realm: str
    exportedBy: str
    exportDate: str
    exportTool: str
    exportToolVersion: str


class SingleTreeExport(TypedDict):
    meta: ExportMetadata
    tree: TreeEntity
    nodes: Dict[str, NodeEntity]
    innerNodes: Dict[str, NodeEntity]
    scripts: Dict[str, ScriptEntity]
    emailTemplates: Dict[str, Dict[str, Any]]
    themes: List[ThemeEntity]
    socialIdentityProviders: Dict[str, SocialIdpEntity]
    saml2Entities: Dict[str, Dict[str, Any]]
    circlesOfTrust: Dict[str, CircleOfTrustEntity]


class MultiTreeExport(TypedDict):
    meta: ExportMetadata
    trees: Dict[str, SingleTreeExport]
