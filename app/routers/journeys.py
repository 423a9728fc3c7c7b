from fastapi import APIRouter, Path, Depends, Query
from typing import Any, Dict, List

from app.schemas.api_schemas import (
    ClassificationResponse,
    DescendentsResponse,
    ImportAllRequest,
    ImportAllResponse,
    ImportRequest,
    ImportResponse,
    JourneyDeleteResponse,
    JourneyStatusResponse,
    JourneySummary,
)
from app.dependencies import get_journey_service
from app.application.journey_service import JourneyService, get_journey_classification
from app.application.options import ExportOptions, ImportOptions
from app.domain.errors import ValidationError

router = APIRouter()


def _export_options(include_dependencies: bool, use_string_arrays: bool) -> ExportOptions:
    return ExportOptions(
        include_dependencies=include_dependencies,
        multiline_scripts_as_arrays=use_string_arrays,
    )


def _require_tree(bundle: Dict[str, Any]) -> None:
    if not (bundle.get("tree") or {}).get("_id"):
        raise ValidationError("Bundle does not contain a journey")


@router.get("/journeys", response_model=List[JourneySummary])
def get_journeys(service: JourneyService = Depends(get_journey_service)):
    """
    List all journeys of the realm.
    """
    return [
        JourneySummary(
            journey_id=tree["_id"],
            enabled=tree.get("enabled", True),
            description=tree.get("description"),
            node_count=len(tree.get("nodes") or {}),
        )
        for tree in service.get_journeys()
    ]

@router.get("/journeys/export")
def export_journeys(
    include_dependencies: bool = Query(True, description="Collect scripts, themes and providers"),
    use_string_arrays: bool = Query(True, description="Export scripts as arrays of lines"),
    service: JourneyService = Depends(get_journey_service)
) -> Dict[str, Any]:
    """
    Export every journey of the realm as one multi-tree bundle.
    """
    return service.export_journeys(_export_options(include_dependencies, use_string_arrays))

@router.post("/journeys/import", response_model=ImportResponse)
def import_journey(
    request: ImportRequest,
    service: JourneyService = Depends(get_journey_service)
):
    """
    Import a single-tree bundle.
    """
    _require_tree(request.bundle)
    tree = service.import_journey(
        request.bundle,
        ImportOptions(regenerate_ids=request.regenerate_ids, include_dependencies=request.include_dependencies),
    )
    return ImportResponse(journey_id=tree["_id"], tree=tree)

@router.post("/journeys/import-all", response_model=ImportAllResponse)
def import_journeys(
    request: ImportAllRequest,
    service: JourneyService = Depends(get_journey_service)
):
    """
    Import a multi-tree bundle, inner journeys before the journeys that use them.
    """
    if not isinstance(request.bundle.get("trees"), dict):
        raise ValidationError("Bundle does not contain a trees map")
    trees = service.import_journeys(
        request.bundle,
        ImportOptions(regenerate_ids=request.regenerate_ids, include_dependencies=request.include_dependencies),
    )
    return ImportAllResponse(imported=[tree["_id"] for tree in trees])

@router.delete("/journeys", response_model=Dict[str, JourneyDeleteResponse])
def delete_journeys(
    deep: bool = Query(False, description="Also delete nodes, inner nodes and containers"),
    service: JourneyService = Depends(get_journey_service)
):
    """
    Delete every journey of the realm.
    """
    return service.delete_journeys(deep)

@router.get("/journeys/{journey_id}")
def get_journey(
    journey_id: str = Path(..., title="The ID of the journey to retrieve"),
    service: JourneyService = Depends(get_journey_service)
) -> Dict[str, Any]:
    """
    Get a journey's tree document.
    """
    return service.get_journey(journey_id)

@router.get("/journeys/{journey_id}/export")
def export_journey(
    journey_id: str = Path(..., title="The ID of the journey to export"),
    include_dependencies: bool = Query(True, description="Collect scripts, themes and providers"),
    use_string_arrays: bool = Query(True, description="Export scripts as arrays of lines"),
    service: JourneyService = Depends(get_journey_service)
) -> Dict[str, Any]:
    """
    Export a journey, its nodes and (optionally) its dependencies as a single-tree bundle.
    """
    return service.export_journey(journey_id, _export_options(include_dependencies, use_string_arrays))

@router.delete("/journeys/{journey_id}", response_model=JourneyDeleteResponse)
def delete_journey(
    journey_id: str = Path(..., title="The ID of the journey to delete"),
    deep: bool = Query(False, description="Also delete nodes, inner nodes and containers"),
    service: JourneyService = Depends(get_journey_service)
):
    """
    Delete a journey and report per-node status.
    """
    return service.delete_journey(journey_id, deep)

@router.post("/journeys/{journey_id}/enable", response_model=JourneyStatusResponse)
def enable_journey(
    journey_id: str = Path(..., title="The ID of the journey to enable"),
    service: JourneyService = Depends(get_journey_service)
):
    return JourneyStatusResponse(journey_id=journey_id, enabled=True, success=service.enable_journey(journey_id))

@router.post("/journeys/{journey_id}/disable", response_model=JourneyStatusResponse)
def disable_journey(
    journey_id: str = Path(..., title="The ID of the journey to disable"),
    service: JourneyService = Depends(get_journey_service)
):
    return JourneyStatusResponse(journey_id=journey_id, enabled=False, success=service.disable_journey(journey_id))

@router.get("/journeys/{journey_id}/descendents", response_model=DescendentsResponse)
def get_journey_descendents(
    journey_id: str = Path(..., title="The ID of the journey to analyze"),
    service: JourneyService = Depends(get_journey_service)
):
    """
    Nested map of the inner journeys a journey evaluates.
    """
    bundle = service.online_tree_export_resolver(journey_id)
    return DescendentsResponse(descendents=service.get_tree_descendents(bundle))

@router.get("/journeys/{journey_id}/classification", response_model=ClassificationResponse)
def get_classification(
    journey_id: str = Path(..., title="The ID of the journey to classify"),
    service: JourneyService = Depends(get_journey_service)
):
    bundle = service.online_tree_export_resolver(journey_id)
    return ClassificationResponse(
        journey_id=journey_id,
        classification=[classification.value for classification in get_journey_classification(bundle)],
    )
