"""
Inventory ledger: the persisted barcode -> item mapping.

Re-scanning a stocked barcode adds the incoming quantity to the record and
overwrites its name, price and category. Deleting an item tombstones its
barcode; the next upsert of a tombstoned barcode starts a fresh record instead
of merging into stale data.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional
from loguru import logger

from .collaborators import ImageStore
from .errors import NotFoundError, ValidationError
from .models import InventoryItem, ScanResult
from .parsing import Number, require_barcode, require_name, require_price, require_quantity
from .repository import (
    CATEGORIES_KEY,
    INVENTORY_KEY,
    REMOVED_BARCODES_KEY,
    PosRepository,
)

ALL_CATEGORIES = "All"
UNCATEGORIZED = "Uncategorized"
DEFAULT_LOW_STOCK_THRESHOLD = 5


def _clean_category(category: Optional[str]) -> Optional[str]:
    if category is None:
        return None
    return category.strip() or None


@dataclass(frozen=True)
class ScanOutcome:
    """What the add-item form should do with a scanned barcode."""
    barcode: str
    existing: Optional[InventoryItem]
    was_removed: bool

    @property
    def is_new(self) -> bool:
        return self.existing is None


class InventoryLedger:
    """
    Inventory operations on top of a PosRepository.

    Usage:
        ledger = InventoryLedger(repo, images=FileImageStore("images"))
        ledger.upsert("8901234567890", "Soap", "2.00", 10)
        ledger.lookup("8901234567890").quantity  # 10
    """

    def __init__(self, repo: PosRepository, images: Optional[ImageStore] = None):
        self.repo = repo
        self.images = images

    # Reads

    def items(self) -> list[InventoryItem]:
        """All items in stored order."""
        return list(self.repo.load_inventory().values())

    def lookup(self, barcode: str) -> Optional[InventoryItem]:
        return self.repo.load_inventory().get(barcode)

    def was_removed(self, barcode: str) -> bool:
        return barcode in self.repo.load_removed_barcodes()

    def scan(self, result: ScanResult) -> ScanOutcome:
        """
        Resolve a scanned barcode for the add-item form.

        A tombstoned barcode is reported as new even if a record lingers.
        """
        barcode = require_barcode(result.data)
        removed = self.was_removed(barcode)
        existing = None if removed else self.lookup(barcode)
        if existing:
            logger.info(
                f'Scanned {barcode} ({result.symbology}): "{existing.name}" '
                f"already in stock with {existing.quantity} units"
            )
        else:
            logger.info(f"Scanned {barcode} ({result.symbology}): new product")
        return ScanOutcome(barcode=barcode, existing=existing, was_removed=removed)

    def search(self, query: str = "", category: Optional[str] = None) -> list[InventoryItem]:
        """
        Filter by name (case-insensitive) or barcode substring and category.

        ``category`` of None or "All" keeps every item; "Uncategorized" also
        matches items without a category. Results are sorted by name.
        """
        query = (query or "").strip()
        needle = query.lower()
        found = [
            item
            for item in self.items()
            if not query or needle in item.name.lower() or query in item.barcode
        ]
        if category and category != ALL_CATEGORIES:
            found = [
                item
                for item in found
                if item.category == category
                or (item.category is None and category == UNCATEGORIZED)
            ]
        return sorted(found, key=lambda item: item.name.casefold())

    def low_stock(self, threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> list[InventoryItem]:
        """Items at or below ``threshold`` units, emptiest first."""
        found = [item for item in self.items() if item.quantity <= threshold]
        return sorted(found, key=lambda item: (item.quantity, item.name.casefold()))

    # Writes

    def save_image(self, barcode: str, source: str | Path) -> str:
        """Store a product photo and return its image reference."""
        if self.images is None:
            raise ValidationError("No image store configured")
        return self.images.save(require_barcode(barcode), source)

    def upsert(
        self,
        barcode: str,
        name: str,
        price: Number,
        quantity: Number,
        category: Optional[str] = None,
        image_ref: Optional[str] = None,
        image_source: Optional[str | Path] = None,
    ) -> InventoryItem:
        """
        Add stock for a barcode.

        - Tombstoned barcode: tombstone cleared, inserted as a brand-new record
        - Known barcode: quantity added; name, price, category overwritten;
          image replaced only when a new one is given
        - Otherwise: inserted

        ``image_source`` is a photo to store for the barcode once the input is
        valid; its reference replaces ``image_ref``.

        Raises:
            ValidationError: empty name, price or quantity not a positive number
        """
        barcode = require_barcode(barcode)
        name = require_name(name)
        price_value: Decimal = require_price(price)
        quantity_value = require_quantity(quantity)
        category = _clean_category(category)
        if image_source is not None:
            image_ref = self.save_image(barcode, image_source)
        stale_image: Optional[str] = None

        with self.repo.mutation() as work:
            inventory = work.inventory
            removed = work.removed_barcodes
            existing = inventory.get(barcode)

            if barcode in removed:
                removed.remove(barcode)
                work.touch(REMOVED_BARCODES_KEY)
                leftover = inventory.pop(barcode, None)
                if leftover and leftover.image_ref and leftover.image_ref != image_ref:
                    stale_image = leftover.image_ref
                item = InventoryItem(
                    barcode=barcode,
                    name=name,
                    quantity=quantity_value,
                    price=price_value,
                    category=category,
                    image_ref=image_ref,
                )
                message = "Item added to inventory as new product"
            elif existing is not None:
                if image_ref and existing.image_ref and existing.image_ref != image_ref:
                    stale_image = existing.image_ref
                item = InventoryItem(
                    barcode=barcode,
                    name=name,
                    quantity=existing.quantity + quantity_value,
                    price=price_value,
                    category=category,
                    image_ref=image_ref or existing.image_ref,
                )
                message = "Item quantity updated in inventory"
            else:
                item = InventoryItem(
                    barcode=barcode,
                    name=name,
                    quantity=quantity_value,
                    price=price_value,
                    category=category,
                    image_ref=image_ref,
                )
                message = "New item added to inventory"

            inventory[barcode] = item
            work.touch(INVENTORY_KEY)

        logger.info(f"{message}: {barcode} {item.name!r} qty={item.quantity}")
        if stale_image:
            self._discard_image(stale_image)
        return item

    def edit(self, barcode: str, name: str, price: Number, quantity: Number) -> InventoryItem:
        """
        Overwrite name, price and quantity of an existing item (no merge).

        Raises:
            ValidationError: empty name, unparsable price or quantity
            NotFoundError: barcode not in the ledger
        """
        barcode = require_barcode(barcode)
        name = require_name(name)
        price_value = require_price(price)
        quantity_value = require_quantity(quantity, allow_zero=True)

        with self.repo.mutation() as work:
            current = work.inventory.get(barcode)
            if current is None:
                raise NotFoundError(f"Item {barcode} not found in inventory")
            item = InventoryItem(
                barcode=current.barcode,
                name=name,
                quantity=quantity_value,
                price=price_value,
                category=current.category,
                image_ref=current.image_ref,
            )
            work.inventory[barcode] = item
            work.touch(INVENTORY_KEY)

        logger.info(f"Edited {barcode}: {item.name!r} price={item.price} qty={item.quantity}")
        return item

    def delete(self, barcode: str) -> InventoryItem:
        """Remove an item, tombstone its barcode and drop its image."""
        removed = self.bulk_delete([barcode])
        if not removed:
            raise NotFoundError(f"Item {barcode} not found in inventory")
        return removed[0]

    def bulk_delete(self, barcodes: Iterable[str]) -> list[InventoryItem]:
        """
        Remove several items in one write.

        Every removed barcode is tombstoned, the same as ``delete``. Barcodes
        not in the ledger are skipped.
        """
        wanted = list(dict.fromkeys(barcodes))
        removed_items: list[InventoryItem] = []

        with self.repo.mutation() as work:
            inventory = work.inventory
            tombstones = work.removed_barcodes
            for barcode in wanted:
                item = inventory.pop(barcode, None)
                if item is None:
                    logger.debug(f"Skipping delete of unknown barcode {barcode}")
                    continue
                removed_items.append(item)
                if barcode not in tombstones:
                    tombstones.append(barcode)
            if removed_items:
                work.touch(INVENTORY_KEY, REMOVED_BARCODES_KEY)

        for item in removed_items:
            logger.info(f"Removed {item.barcode} {item.name!r} from inventory")
            if item.image_ref:
                self._discard_image(item.image_ref)
        return removed_items

    def _discard_image(self, image_ref: str) -> None:
        if self.images is None:
            return
        try:
            self.images.delete(image_ref)
        except Exception as e:
            logger.warning(f"Could not delete image {image_ref}: {e}")

    # Categories

    def categories(self) -> list[str]:
        return self.repo.load_categories()

    def add_category(self, name: str) -> str:
        name = require_name(name, what="category name")
        if name.casefold() in (ALL_CATEGORIES.casefold(), UNCATEGORIZED.casefold()):
            raise ValidationError(f"'{name}' is a reserved category name")
        with self.repo.mutation() as work:
            if any(c.casefold() == name.casefold() for c in work.categories):
                raise ValidationError(f"Category '{name}' already exists")
            work.categories.append(name)
            work.touch(CATEGORIES_KEY)
        logger.info(f"Added category {name!r}")
        return name

    def remove_category(self, name: str) -> None:
        """Forget a category name. Items keep the category they were saved with."""
        with self.repo.mutation() as work:
            matches = [c for c in work.categories if c.casefold() == (name or "").strip().casefold()]
            if not matches:
                raise NotFoundError(f"Category '{name}' not found")
            work.categories.remove(matches[0])
            work.touch(CATEGORIES_KEY)
        logger.info(f"Removed category {matches[0]!r}")
