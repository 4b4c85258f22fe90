"""
Blob store interface and the in-memory backend.

The point of sale keeps each collection as one JSON string under a fixed key.
A backend only has to get and set strings; ``set_many`` must apply all of its
keys or none of them.
"""
from __future__ import annotations
from typing import Mapping, Optional, Protocol
from loguru import logger


class BlobStore(Protocol):
    """String-keyed store of string blobs."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def set_many(self, values: Mapping[str, str]) -> None: ...

    def close(self) -> None: ...


class MemoryBlobStore:
    """
    Blob store held in a dict.

    Used by the tests and by ``MOB_POS_STORE=memory`` for throwaway sessions.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        self._data.update(values)
        logger.debug(f"Stored keys {sorted(values)} in memory")

    def keys(self) -> list[str]:
        return sorted(self._data)

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
