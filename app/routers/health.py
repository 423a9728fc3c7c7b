"""
Health check endpoints for the API.
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any
from datetime import datetime

from app.config import settings
from app.dependencies import get_repository
from app.domain.errors import DomainError
from app.domain.ports import RepositoryPort

router = APIRouter()

@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.
    Returns API status and version information.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }

@router.get("/health/realm")
def realm_health(
    repository: RepositoryPort = Depends(get_repository)
) -> Dict[str, Any]:
    """
    Check that the configured realm answers a journey listing.
    """
    try:
        journey_count = len(repository.get_trees())
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "repository_type": settings.REPOSITORY_TYPE,
            "realm": settings.REALM,
            "deployment_type": settings.DEPLOYMENT_TYPE,
            "journey_count": journey_count,
        }
    except DomainError as e:
        return {
            "status": "unhealthy",
            "timestamp": datetime.now().isoformat(),
            "error": str(e)
        }
