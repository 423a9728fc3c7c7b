import logging
import os
from typing import List

from app.storage.interface import BundleStorage

logger = logging.getLogger(__name__)

BUNDLE_SUFFIX = ".journey.json"


class FilesystemStorage(BundleStorage):
    """
    Implements bundle storage using the local filesystem.
    """

    def __init__(self, base_dir: str = None):
        """
        Initialize filesystem storage.

        Args:
            base_dir: Base directory for storing bundles.
                      If None, uses 'bundles' in the current working directory.
        """
        if base_dir is None:
            base_dir = os.path.join(os.getcwd(), "bundles")

        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)

    def _path(self, name: str) -> str:
        if os.sep in name or name.startswith("."):
            raise ValueError(f"Invalid bundle name: {name}")
        return os.path.join(self.base_dir, f"{name}{BUNDLE_SUFFIX}")

    def save_bundle(self, bundle_data: bytes, name: str) -> str:
        file_path = self._path(name)
        with open(file_path, "wb") as f:
            f.write(bundle_data)
        return file_path

    def get_bundle(self, name: str) -> bytes:
        file_path = self._path(name)
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"Bundle not found: {name}")

        with open(file_path, "rb") as f:
            return f.read()

    def delete_bundle(self, name: str) -> bool:
        try:
            file_path = self._path(name)
            if not os.path.exists(file_path):
                return False
            os.remove(file_path)
            return True
        except OSError as e:
            logger.error(f"Failed to delete bundle {name}: {e}")
            return False

    def list_bundles(self) -> List[str]:
        return sorted(
            entry[: -len(BUNDLE_SUFFIX)]
            for entry in os.listdir(self.base_dir)
            if entry.endswith(BUNDLE_SUFFIX)
        )
