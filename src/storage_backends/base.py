from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class StorageError(Exception):
    """Raised when an object cannot be fetched from or written to storage"""


@dataclass
class StoredObject:
    data: bytes
    content_type: Optional[str] = None


class StorageBackend(ABC):
    """Abstract base class for object storage backends"""

    @abstractmethod
    def fetch(self, bucket: str, key: str) -> StoredObject:
        """
        Retrieve an object.

        Args:
            bucket: Bucket name
            key: Object key

        Returns:
            StoredObject with the raw bytes and the stored content-type hint
        """
        pass

    @abstractmethod
    def store(self, bucket: str, key: str, data: bytes, content_type: str, access_policy: str) -> None:
        """
        Persist an object.

        Args:
            bucket: Bucket name
            key: Object key to write
            data: Raw bytes
            content_type: MIME type recorded on the object
            access_policy: Canned ACL applied to the object (e.g. 'public-read')
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the name of this storage provider"""
        pass
