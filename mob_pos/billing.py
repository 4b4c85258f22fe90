"""
Billing: the in-progress bill and the stored bill history.

A BillingSession lives in memory while the cashier scans. Checkout is the only
place stock goes down through a sale: it decrements the ledger and appends the
Bill in a single store commit, then clears the session.
"""
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from loguru import logger

from .errors import (
    EmptyBillError,
    InsufficientStockError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)
from .models import Bill, BillLineItem, PaymentMethod, ScanResult
from .parsing import parse_barcode, require_barcode
from .repository import BILLS_KEY, INVENTORY_KEY, PosRepository


def new_bill_id(timestamp: datetime, taken: set[str]) -> str:
    """``BILL-<epoch ms>``, bumped by a millisecond until unused."""
    millis = round(timestamp.timestamp() * 1000)
    bill_id = f"BILL-{millis}"
    while bill_id in taken:
        millis += 1
        bill_id = f"BILL-{millis}"
    return bill_id


class BillingSession:
    """
    The bill being built at the counter.

    Usage:
        session = BillingSession(repo)
        session.add_line("8901234567890")
        session.add_line("8901234567890")
        bill = session.checkout("Alice", PaymentMethod.CASH)
    """

    def __init__(self, repo: PosRepository, clock: Optional[Callable[[], datetime]] = None):
        self.repo = repo
        self.clock = clock or datetime.now
        self._lines: dict[str, BillLineItem] = {}

    @property
    def lines(self) -> list[BillLineItem]:
        return list(self._lines.values())

    def line(self, barcode: str) -> Optional[BillLineItem]:
        return self._lines.get(barcode)

    def __len__(self) -> int:
        return len(self._lines)

    def available(self, barcode: str) -> int:
        """Units of ``barcode`` in the ledger right now (0 if unknown)."""
        item = self.repo.load_inventory().get(barcode)
        return item.quantity if item else 0

    def add_line(self, barcode: str) -> BillLineItem:
        """
        Add one unit of ``barcode`` to the bill.

        Raises:
            NotFoundError: barcode not in the ledger
            OutOfStockError: ledger quantity is zero
            InsufficientStockError: one more unit would exceed the stock
        """
        barcode = require_barcode(barcode)
        item = self.repo.load_inventory().get(barcode)
        if item is None:
            raise NotFoundError("Item not found in inventory")
        if item.quantity <= 0:
            raise OutOfStockError(f"{item.name} is out of stock")

        current = self._lines.get(barcode)
        if current is None:
            line = BillLineItem.for_item(item, 1)
        else:
            if current.quantity + 1 > item.quantity:
                raise InsufficientStockError(f"Only {item.quantity} units available")
            line = current.with_quantity(current.quantity + 1)

        self._lines[barcode] = line
        logger.debug(f"Bill line {barcode}: {line.quantity} x {line.name}")
        return line

    def scan(self, result: ScanResult) -> BillLineItem:
        return self.add_line(result.data)

    def set_line_quantity(self, barcode: str, quantity: int) -> Optional[BillLineItem]:
        """
        Set a line's quantity; zero or less removes the line.

        Returns the updated line, or None when it was removed.
        """
        barcode = require_barcode(barcode)
        if quantity <= 0:
            self.remove_line(barcode)
            return None

        current = self._lines.get(barcode)
        if current is None:
            raise NotFoundError(f"{barcode} is not on the bill")
        stock = self.available(barcode)
        if quantity > stock:
            raise InsufficientStockError(f"Only {stock} units available")

        line = current.with_quantity(quantity)
        self._lines[barcode] = line
        return line

    def remove_line(self, barcode: str) -> None:
        self._lines.pop(parse_barcode(barcode), None)

    def total(self) -> Decimal:
        return sum((line.line_total for line in self._lines.values()), Decimal("0"))

    def clear(self) -> None:
        self._lines.clear()

    def checkout(
        self,
        customer_name: Optional[str] = None,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
    ) -> Bill:
        """
        Record the sale.

        Decrements the ledger by each line's quantity, appends the Bill to the
        history and clears the session. Both collections are written in one
        commit; on any error nothing is written and the session is kept.

        Raises:
            EmptyBillError: no lines on the bill
            InsufficientStockError: stock dropped below a line's quantity
            ValidationError: unknown payment method
        """
        if not self._lines:
            raise EmptyBillError("No items in the bill")
        try:
            method = PaymentMethod.parse(payment_method)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        lines = self.lines
        with self.repo.mutation() as work:
            inventory = work.inventory
            for line in lines:
                item = inventory.get(line.id)
                stock = item.quantity if item else 0
                if line.quantity > stock:
                    raise InsufficientStockError(
                        f"Only {stock} units of {line.name} available"
                    )
                inventory[line.id] = item.model_copy(
                    update={"quantity": item.quantity - line.quantity}
                )

            now = self.clock()
            # Stored bills keep millisecond precision
            now = now.replace(microsecond=now.microsecond // 1000 * 1000)
            bill = Bill(
                id=new_bill_id(now, {b.id for b in work.bills}),
                items=tuple(lines),
                total=self.total(),
                customer_name=customer_name or "",
                payment_method=method,
                timestamp=now,
            )
            work.bills.append(bill)
            work.touch(INVENTORY_KEY, BILLS_KEY)

        self.clear()
        logger.info(
            f"Recorded {bill.id}: {bill.item_count} items, total {bill.total}, "
            f"{bill.payment_method.value}"
        )
        return bill


class BillHistory:
    """Read access to completed bills."""

    def __init__(self, repo: PosRepository):
        self.repo = repo

    def all(self) -> list[Bill]:
        return self.repo.load_bills()

    def get(self, bill_id: str) -> Bill:
        for bill in self.repo.load_bills():
            if bill.id == bill_id:
                return bill
        raise NotFoundError("Receipt not found")

    def __len__(self) -> int:
        return len(self.repo.load_bills())
