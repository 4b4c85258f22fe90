"""
Typed access to the persisted collections.

Layout in the blob store (each value is a JSON document):
- inventory        -> array of InventoryItem
- removedBarcodes  -> array of barcode strings
- bills            -> array of Bill, append-only
- categories       -> array of category names

All writes go through ``PosRepository.mutation()``. It holds a lock for the
whole load/modify/persist cycle, so a second mutation queues until the first
has committed, and it commits every changed collection in one
``BlobStore.set_many`` call.
"""
from __future__ import annotations
import json
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

import pydantic
from pydantic import TypeAdapter
from loguru import logger

from .errors import StorageError
from .models import Bill, InventoryItem
from .store import BlobStore

INVENTORY_KEY = "inventory"
REMOVED_BARCODES_KEY = "removedBarcodes"
BILLS_KEY = "bills"
CATEGORIES_KEY = "categories"

_inventory_adapter = TypeAdapter(list[InventoryItem])
_bills_adapter = TypeAdapter(list[Bill])
_strings_adapter = TypeAdapter(list[str])

T = TypeVar("T")


def _decode(key: str, raw: Optional[str], adapter: TypeAdapter) -> list:
    if raw is None or not raw.strip():
        return []
    try:
        return adapter.validate_json(raw)
    except pydantic.ValidationError as e:
        logger.error(f"Stored {key} is not valid: {e}")
        raise StorageError(f"Stored {key} data is corrupt") from e


def _dump_models(models) -> str:
    return json.dumps(
        [m.model_dump(mode="json", by_alias=True, exclude_none=True) for m in models],
        ensure_ascii=False,
    )


class Mutation:
    """
    Working copy of the collections used inside one ``mutation()`` block.

    Collections load on first access. Callers mark what they changed with
    ``touch``; only touched collections are written back.
    """

    def __init__(self, repo: "PosRepository"):
        self._repo = repo
        self._loaded: dict[str, object] = {}
        self._dirty: set[str] = set()

    def _get(self, key: str, loader: Callable[[], T]) -> T:
        if key not in self._loaded:
            self._loaded[key] = loader()
        return self._loaded[key]  # type: ignore[return-value]

    @property
    def inventory(self) -> dict[str, InventoryItem]:
        return self._get(INVENTORY_KEY, self._repo.load_inventory)

    @property
    def removed_barcodes(self) -> list[str]:
        return self._get(REMOVED_BARCODES_KEY, self._repo.load_removed_barcodes)

    @property
    def bills(self) -> list[Bill]:
        return self._get(BILLS_KEY, self._repo.load_bills)

    @property
    def categories(self) -> list[str]:
        return self._get(CATEGORIES_KEY, self._repo.load_categories)

    def touch(self, *keys: str) -> None:
        for key in keys:
            if key not in self._loaded:
                raise KeyError(f"{key} was not loaded in this mutation")
            self._dirty.add(key)

    @property
    def dirty(self) -> frozenset[str]:
        return frozenset(self._dirty)

    def encode(self) -> dict[str, str]:
        """Serialize the touched collections for the blob store."""
        out: dict[str, str] = {}
        for key in sorted(self._dirty):
            if key == INVENTORY_KEY:
                out[key] = _dump_models(self.inventory.values())
            elif key == BILLS_KEY:
                out[key] = _dump_models(self.bills)
            else:
                out[key] = json.dumps(list(self._loaded[key]), ensure_ascii=False)
        return out


class PosRepository:
    """
    Loads and saves the point-of-sale collections in a BlobStore.

    Usage:
        repo = PosRepository(MemoryBlobStore())

        with repo.mutation() as work:
            work.inventory[item.barcode] = item
            work.touch(INVENTORY_KEY)
    """

    def __init__(self, store: BlobStore):
        self.store = store
        self._lock = threading.RLock()
        self._active: Optional[Mutation] = None

    def load_inventory(self) -> dict[str, InventoryItem]:
        with self._lock:
            items = _decode(INVENTORY_KEY, self.store.get(INVENTORY_KEY), _inventory_adapter)
        # Last record wins if an old document repeats a barcode
        return {item.barcode: item for item in items}

    def load_removed_barcodes(self) -> list[str]:
        with self._lock:
            codes = _decode(
                REMOVED_BARCODES_KEY, self.store.get(REMOVED_BARCODES_KEY), _strings_adapter
            )
        return list(dict.fromkeys(codes))

    def load_bills(self) -> list[Bill]:
        with self._lock:
            return _decode(BILLS_KEY, self.store.get(BILLS_KEY), _bills_adapter)

    def load_categories(self) -> list[str]:
        with self._lock:
            names = _decode(CATEGORIES_KEY, self.store.get(CATEGORIES_KEY), _strings_adapter)
        return list(dict.fromkeys(names))

    @contextmanager
    def mutation(self) -> Iterator[Mutation]:
        """
        Run one load/modify/persist cycle.

        Nested calls on the same thread join the outer mutation and commit with
        it. If the block raises, nothing is written.
        """
        with self._lock:
            if self._active is not None:
                yield self._active
                return

            work = Mutation(self)
            self._active = work
            try:
                yield work
                if work.dirty:
                    self.store.set_many(work.encode())
                    logger.debug(f"Committed {sorted(work.dirty)}")
            finally:
                self._active = None
