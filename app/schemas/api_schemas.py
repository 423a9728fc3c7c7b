"""
API Request/Response Schemas using Pydantic.

Structure of HTTP requests and responses for the journey transfer API.
Bundles themselves travel as free-form JSON documents.
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Any

# Journey schemas
class JourneySummary(BaseModel):
    journey_id: str = Field(..., description="Journey (tree) identifier")
    enabled: bool = Field(default=True, description="Whether the journey can be used for authentication")
    description: Optional[str] = Field(None, description="Journey description")
    node_count: int = Field(default=0, description="Number of top-level nodes")

class JourneyStatusResponse(BaseModel):
    journey_id: str = Field(..., description="Journey identifier")
    enabled: bool = Field(..., description="Enabled state after the change")
    success: bool = Field(default=True, description="Whether the platform reflected the change")

class ClassificationResponse(BaseModel):
    journey_id: str = Field(..., description="Journey identifier")
    classification: List[str] = Field(..., description="standard, cloud and/or premium")

class DescendentsResponse(BaseModel):
    descendents: Dict[str, List[Dict[str, Any]]] = Field(
        ..., description="Nested map of journey id to the journeys it evaluates"
    )

class NodeDeleteStatus(BaseModel):
    status: str = Field(..., description="success or error")
    error: Optional[str] = Field(None, description="Error message when the deletion failed")

class JourneyDeleteResponse(BaseModel):
    status: str = Field(..., description="success or error")
    error: Optional[str] = Field(None, description="Error message when the journey could not be deleted")
    nodes: Dict[str, NodeDeleteStatus] = Field(default_factory=dict, description="Per-node deletion status")

# Import schemas
class ImportRequest(BaseModel):
    bundle: Dict[str, Any] = Field(..., description="Single-tree export bundle")
    regenerate_ids: bool = Field(default=False, description="Import under fresh node identifiers")
    include_dependencies: bool = Field(default=True, description="Also import scripts, themes and providers")

class ImportAllRequest(BaseModel):
    bundle: Dict[str, Any] = Field(..., description="Multi-tree export bundle")
    regenerate_ids: bool = Field(default=False, description="Import under fresh node identifiers")
    include_dependencies: bool = Field(default=True, description="Also import scripts, themes and providers")

class ImportResponse(BaseModel):
    journey_id: str = Field(..., description="Identifier of the imported journey")
    tree: Dict[str, Any] = Field(..., description="Tree as stored by the target realm")

class ImportAllResponse(BaseModel):
    imported: List[str] = Field(..., description="Identifiers of the imported journeys, in import order")

# Orphaned node schemas
class OrphanedNodesResponse(BaseModel):
    count: int = Field(..., description="Number of orphaned nodes")
    nodes: List[Dict[str, Any]] = Field(..., description="Nodes not referenced by any journey")

class OrphanRemovalResponse(BaseModel):
    removed: int = Field(..., description="Number of nodes deleted")
    failed: List[Dict[str, Any]] = Field(default_factory=list, description="Nodes that could not be deleted")

# Stored bundle schemas
class BundleSaveResponse(BaseModel):
    name: str = Field(..., description="Name the bundle was stored under")
    path: str = Field(..., description="Storage path of the bundle")

class BundleListResponse(BaseModel):
    bundles: List[str] = Field(..., description="Names of stored bundles")

# Error schemas
class PartialFailureResponse(BaseModel):
    detail: str = Field(..., description="Summary of the failed operation")
    errors: List[str] = Field(..., description="One entry per failed item")
    partial: Optional[Any] = Field(None, description="What was materialized despite the failures")
