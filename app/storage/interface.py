from abc import ABC, abstractmethod
from typing import List


class BundleStorage(ABC):
    """
    Abstract interface for exported bundle storage. Supports both S3 and local filesystem.
    """

    @abstractmethod
    def save_bundle(self, bundle_data: bytes, name: str) -> str:
        """
        Save a serialized bundle to storage and return the path.

        Args:
            bundle_data: JSON-encoded bundle
            name: Bundle name (usually the journey id)

        Returns:
            Storage path where the bundle was saved
        """
        pass

    @abstractmethod
    def get_bundle(self, name: str) -> bytes:
        """
        Retrieve a serialized bundle from storage.

        Raises:
            FileNotFoundError: if no bundle with this name exists
        """
        pass

    @abstractmethod
    def delete_bundle(self, name: str) -> bool:
        """
        Delete a bundle from storage.

        Returns:
            True if successfully deleted, False otherwise
        """
        pass

    @abstractmethod
    def list_bundles(self) -> List[str]:
        """Return the names of all stored bundles."""
        pass
