"""
Stored bundle endpoints: export journeys into bundle storage and import them back.
"""
import json
from fastapi import APIRouter, Depends, Path, Query
from typing import Any, Dict, Optional

from app.schemas.api_schemas import BundleListResponse, BundleSaveResponse, ImportAllResponse
from app.dependencies import get_bundle_storage, get_journey_service
from app.application.journey_service import JourneyService
from app.application.options import ExportOptions, ImportOptions
from app.domain.errors import NotFoundError, ValidationError
from app.storage.interface import BundleStorage

router = APIRouter()


def _load(storage: BundleStorage, name: str) -> Dict[str, Any]:
    try:
        return json.loads(storage.get_bundle(name))
    except FileNotFoundError:
        raise NotFoundError(f"Bundle not found: {name}")
    except ValueError as e:
        raise ValidationError(f"Bundle {name} is not valid JSON: {e}")

@router.get("/bundles", response_model=BundleListResponse)
def list_bundles(storage: BundleStorage = Depends(get_bundle_storage)):
    return BundleListResponse(bundles=storage.list_bundles())

@router.post("/bundles/{name}", response_model=BundleSaveResponse, status_code=201)
def save_bundle(
    name: str = Path(..., title="Name to store the bundle under"),
    journey_id: Optional[str] = Query(None, description="Export one journey; all journeys when omitted"),
    include_dependencies: bool = Query(True, description="Collect scripts, themes and providers"),
    service: JourneyService = Depends(get_journey_service),
    storage: BundleStorage = Depends(get_bundle_storage)
):
    """
    Export one or all journeys and persist the bundle to storage.
    """
    options = ExportOptions(include_dependencies=include_dependencies)
    if journey_id:
        bundle = service.export_journey(journey_id, options)
    else:
        bundle = service.export_journeys(options)
    path = storage.save_bundle(json.dumps(bundle, indent=2).encode("utf-8"), name)
    return BundleSaveResponse(name=name, path=path)

@router.get("/bundles/{name}")
def get_bundle(
    name: str = Path(..., title="Name of the stored bundle"),
    storage: BundleStorage = Depends(get_bundle_storage)
) -> Dict[str, Any]:
    return _load(storage, name)

@router.post("/bundles/{name}/import", response_model=ImportAllResponse)
def import_bundle(
    name: str = Path(..., title="Name of the stored bundle"),
    regenerate_ids: bool = Query(False, description="Import under fresh node identifiers"),
    include_dependencies: bool = Query(True, description="Also import scripts, themes and providers"),
    service: JourneyService = Depends(get_journey_service),
    storage: BundleStorage = Depends(get_bundle_storage)
):
    """
    Import a stored single- or multi-tree bundle.
    """
    bundle = _load(storage, name)
    options = ImportOptions(regenerate_ids=regenerate_ids, include_dependencies=include_dependencies)
    if isinstance(bundle.get("trees"), dict):
        trees = service.import_journeys(bundle, options)
    elif (bundle.get("tree") or {}).get("_id"):
        trees = [service.import_journey(bundle, options)]
    else:
        raise ValidationError(f"Bundle {name} contains no journeys")
    return ImportAllResponse(imported=[tree["_id"] for tree in trees])

@router.delete("/bundles/{name}")
def delete_bundle(
    name: str = Path(..., title="Name of the stored bundle"),
    storage: BundleStorage = Depends(get_bundle_storage)
) -> Dict[str, bool]:
    if not storage.delete_bundle(name):
        raise NotFoundError(f"Bundle not found: {name}")
    return {"success": True}
