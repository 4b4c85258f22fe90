"""
MOB POS - inventory, billing and sales reporting core for a mobile point of sale.

This package holds the data-management side of the point of sale: a barcode
keyed inventory ledger, a billing session that turns scans into bills, and
period-bucketed sales reports over the bill history. Everything persists in a
string-keyed blob store; images persist as files.

Key Features:
- Inventory upsert with quantity merge on re-scan and tombstoned deletes
- Billing with stock checks and an atomic checkout
- Daily, weekly, monthly and yearly sales reports
- HTML receipts and reports rendered from Jinja2 templates
- File, PostgreSQL and in-memory storage backends

Usage:
    # List inventory
    python -m mob_pos inventory list

    # Sell two items
    python -m mob_pos sell 8901234567890 8901234567890 --customer Alice

    # Today's report
    python -m mob_pos report --period daily
"""

__version__ = "1.0.0"
__author__ = "MOB"

from .config import PosConfig
from .repository import PosRepository
from .inventory import InventoryLedger
from .billing import BillingSession, BillHistory
from .reports import SalesReporter

__all__ = [
    "PosConfig",
    "PosRepository",
    "InventoryLedger",
    "BillingSession",
    "BillHistory",
    "SalesReporter",
    "__version__",
]
