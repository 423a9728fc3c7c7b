from __future__ import annotations

from functools import lru_cache

from app.config import settings
from app.domain.ports import RepositoryPort
from app.infrastructure.http_repository import HttpRepository
from app.localstore import LocalRealmStorage
from app.storage.factory import get_storage
from app.storage.interface import BundleStorage
from app.application.bundle_builder import BundleBuilder, create_metadata
from app.application.dependency_collector import DependencyCollector
from app.application.import_engine import ImportEngine, KeyedLocks
from app.application.journey_service import JourneyService
from app.application.orphan_scanner import OrphanScanner

# Writes to the same entity must not interleave across requests
_import_locks = KeyedLocks()


@lru_cache()
def get_repository() -> RepositoryPort:
    if settings.REPOSITORY_TYPE.lower() == "http":
        if not settings.PLATFORM_HOST:
            raise ValueError("PLATFORM_HOST must be set when using the http repository")
        return HttpRepository(
            host=settings.PLATFORM_HOST,
            realm=settings.REALM,
            access_token=settings.ACCESS_TOKEN,
            timeout=settings.HTTP_TIMEOUT,
        )
    return LocalRealmStorage(base_path=settings.LOCAL_REALM_DIR, realm=settings.REALM)


def get_bundle_storage() -> BundleStorage:
    return get_storage()


def build_journey_service(repository: RepositoryPort) -> JourneyService:
    def metadata():
        return create_metadata(
            origin=settings.PLATFORM_HOST or settings.LOCAL_REALM_DIR,
            realm=settings.REALM,
            version=settings.VERSION,
        )

    builder = BundleBuilder(
        repository,
        collector_factory=lambda: DependencyCollector(
            repository, settings.supports_themes(), workers=settings.EXPORT_WORKERS
        ),
        metadata_factory=metadata,
    )
    importer = ImportEngine(
        repository,
        realm_managed_user=settings.realm_managed_user(),
        workers=settings.EXPORT_WORKERS,
        locks=_import_locks,
    )
    return JourneyService(repository, builder, importer, OrphanScanner(repository))


def get_journey_service() -> JourneyService:
    return build_journey_service(get_repository())
