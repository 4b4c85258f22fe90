"""
Storage backends for the point of sale.

- MemoryBlobStore: dict in memory (tests, throwaway sessions)
- FileBlobStore: one JSON document on disk (default)
- PostgresBlobStore: key/value table in PostgreSQL
"""

from ..config import PosConfig
from .base import BlobStore, MemoryBlobStore
from .file import FileBlobStore


def open_store(config: PosConfig) -> BlobStore:
    """Create the blob store selected by ``config.store_backend``."""
    backend = config.store_backend
    if backend == "memory":
        return MemoryBlobStore()
    if backend == "file":
        return FileBlobStore(config.store_file)
    if backend == "postgres":
        from .postgres import PostgresBlobStore

        return PostgresBlobStore(config)
    raise ValueError(f"Unknown store backend: {backend}. Valid: file, postgres, memory")


__all__ = [
    "BlobStore",
    "MemoryBlobStore",
    "FileBlobStore",
    "open_store",
]
