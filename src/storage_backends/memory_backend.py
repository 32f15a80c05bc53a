from typing import Dict, Optional, Tuple
from .base import StorageBackend, StorageError, StoredObject


class InMemoryStorageBackend(StorageBackend):
    """Dict-backed storage for tests and local development"""

    def __init__(self):
        self.objects: Dict[Tuple[str, str], StoredObject] = {}
        self.access_policies: Dict[Tuple[str, str], str] = {}

    def put_object(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None):
        """Seed an object without going through store()"""
        self.objects[(bucket, key)] = StoredObject(data=data, content_type=content_type)

    def fetch(self, bucket: str, key: str) -> StoredObject:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise StorageError(f"Object {key} not found in bucket {bucket}")

    def store(self, bucket: str, key: str, data: bytes, content_type: str, access_policy: str) -> None:
        self.objects[(bucket, key)] = StoredObject(data=data, content_type=content_type)
        self.access_policies[(bucket, key)] = access_policy

    def get_provider_name(self) -> str:
        return "memory_backend"
