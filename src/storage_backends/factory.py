import os
from .base import StorageBackend
from .memory_backend import InMemoryStorageBackend

def get_storage_backend() -> StorageBackend:
    """
    Factory function to get the storage backend based on configuration.

    Uses environment variable STORAGE_BACKEND:
    - 's3' (default): S3StorageBackend, part size from UPLOAD_PART_SIZE
    - 'memory', 'mock' or 'test': InMemoryStorageBackend

    Unknown values raise ValueError; resized images must never land in a
    throwaway store by accident.
    """
    backend_type = os.environ.get('STORAGE_BACKEND', 's3').lower()

    if backend_type == 's3':
        from .s3_backend import S3StorageBackend, DEFAULT_PART_SIZE
        part_size = int(os.environ.get('UPLOAD_PART_SIZE', DEFAULT_PART_SIZE))
        return S3StorageBackend(part_size=part_size)
    elif backend_type in ['memory', 'mock', 'test']:
        return InMemoryStorageBackend()
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND '{backend_type}'")
