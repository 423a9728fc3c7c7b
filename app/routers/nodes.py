from fastapi import APIRouter, Depends

from app.schemas.api_schemas import OrphanedNodesResponse, OrphanRemovalResponse
from app.dependencies import get_journey_service
from app.application.journey_service import JourneyService

router = APIRouter()

@router.get("/nodes/orphaned", response_model=OrphanedNodesResponse)
def get_orphaned_nodes(service: JourneyService = Depends(get_journey_service)):
    """
    List nodes that no journey references, directly or through a container.
    """
    nodes = service.find_orphaned_nodes()
    return OrphanedNodesResponse(count=len(nodes), nodes=nodes)

@router.delete("/nodes/orphaned", response_model=OrphanRemovalResponse)
def remove_orphaned_nodes(service: JourneyService = Depends(get_journey_service)):
    """
    Scan for orphaned nodes and delete them.
    """
    nodes = service.find_orphaned_nodes()
    failed = service.remove_orphaned_nodes(nodes)
    return OrphanRemovalResponse(removed=len(nodes) - len(failed), failed=failed)
