from app.storage.interface import BundleStorage
from app.storage.filesystem import FilesystemStorage
from app.storage.s3 import S3Storage
from app.config import settings


def get_storage() -> BundleStorage:
    """
    Factory function to create the appropriate bundle storage implementation
    based on settings.

    Returns:
        A storage implementation (S3 or Filesystem)
    """
    storage_type = settings.BUNDLE_STORAGE_TYPE.lower()

    if storage_type == "s3":
        if not settings.S3_BUCKET:
            raise ValueError("S3_BUCKET must be set when using S3 storage")

        return S3Storage(
            bucket_name=settings.S3_BUCKET,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_REGION
        )
    else:
        return FilesystemStorage(base_dir=settings.BUNDLE_STORAGE_DIR)
