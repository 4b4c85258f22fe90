"""
Command line front end for the point of sale.

Usage:
    # Stock a product (adds to the quantity if the barcode is known)
    python -m mob_pos inventory add 8901234567890 --name Soap --price 2.00 --quantity 10

    # Search inventory
    python -m mob_pos inventory list --search soap

    # Sell: one barcode per unit scanned
    python -m mob_pos sell 8901234567890 8901234567890 --customer Alice --payment upi

    # Weekly report around a date, opened in the browser
    python -m mob_pos report --period weekly --date 2024-03-05 --share

    # Show a receipt again
    python -m mob_pos receipt BILL-1709630400000
"""
from __future__ import annotations
import argparse
import sys
from datetime import date
from typing import Optional, Sequence
from loguru import logger

from .billing import BillHistory, BillingSession
from .collaborators import FileImageStore, FileShareSink, manual_entry
from .config import PosConfig
from .errors import PosError
from .inventory import InventoryLedger
from .models import Bill, InventoryItem, PaymentMethod, ReportPeriod, SalesReport
from .receipts import share_receipt, share_report
from .reports import SalesReporter
from .repository import PosRepository
from .store import open_store


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mob_pos",
        description="MOB - Mobile Oriented PoS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress output except errors")
    commands = parser.add_subparsers(dest="command", required=True)

    inventory = commands.add_parser("inventory", help="Manage stocked items")
    inv_cmds = inventory.add_subparsers(dest="action", required=True)

    inv_list = inv_cmds.add_parser("list", help="List items")
    inv_list.add_argument("--search", default="", help="Name or barcode fragment")
    inv_list.add_argument("--category", help='Category, "All" or "Uncategorized"')

    inv_add = inv_cmds.add_parser("add", help="Add stock for a barcode")
    inv_add.add_argument("barcode")
    inv_add.add_argument("--name", required=True)
    inv_add.add_argument("--price", required=True)
    inv_add.add_argument("--quantity", default="1")
    inv_add.add_argument("--category")
    inv_add.add_argument("--image", help="Path to a product photo")

    inv_edit = inv_cmds.add_parser("edit", help="Overwrite name, price and quantity")
    inv_edit.add_argument("barcode")
    inv_edit.add_argument("--name", required=True)
    inv_edit.add_argument("--price", required=True)
    inv_edit.add_argument("--quantity", required=True)

    inv_delete = inv_cmds.add_parser("delete", help="Remove one or more items")
    inv_delete.add_argument("barcodes", nargs="+")

    inv_low = inv_cmds.add_parser("low-stock", help="Items running out")
    inv_low.add_argument("--threshold", type=int, help="Default: MOB_POS_LOW_STOCK")

    categories = commands.add_parser("categories", help="Manage category names")
    cat_cmds = categories.add_subparsers(dest="action", required=True)
    cat_cmds.add_parser("list", help="List categories")
    cat_add = cat_cmds.add_parser("add", help="Add a category")
    cat_add.add_argument("name")
    cat_remove = cat_cmds.add_parser("remove", help="Remove a category")
    cat_remove.add_argument("name")

    sell = commands.add_parser("sell", help="Bill scanned barcodes and record the sale")
    sell.add_argument("barcodes", nargs="+", help="One barcode per unit")
    sell.add_argument("--customer", default="")
    sell.add_argument(
        "--payment",
        default=PaymentMethod.CASH.value,
        help="Cash, Credit Card, Debit Card or UPI",
    )
    sell.add_argument("--share", action="store_true", help="Open the receipt")

    report = commands.add_parser("report", help="Sales report for a period")
    report.add_argument(
        "--period",
        choices=[p.value for p in ReportPeriod],
        default=ReportPeriod.DAILY.value,
    )
    report.add_argument(
        "--date",
        type=lambda s: date.fromisoformat(s),
        help="Reference date (YYYY-MM-DD, default today)",
    )
    report.add_argument("--share", action="store_true", help="Open the report")

    receipt = commands.add_parser("receipt", help="Show a recorded bill")
    receipt.add_argument("bill_id")
    receipt.add_argument("--share", action="store_true", help="Open the receipt")

    return parser


def configure_logging(config: PosConfig, verbose: bool = False, quiet: bool = False) -> None:
    logger.remove()
    if quiet:
        logger.add(sys.stderr, level="ERROR")
    elif verbose:
        logger.add(sys.stderr, level="DEBUG")
    else:
        logger.add(sys.stderr, level=config.log_level.upper())
    if config.log_file:
        logger.add(config.log_file, level="DEBUG", rotation="10 MB")


def _print_items(items: list[InventoryItem], currency: str) -> None:
    if not items:
        print("No items found")
        return
    for item in items:
        category = f"  [{item.category}]" if item.category else ""
        print(f"{item.barcode:<16} {item.name:<30} {currency}{item.price:>9.2f}  qty {item.quantity}{category}")


def _print_bill(bill: Bill, currency: str) -> None:
    print(f"Receipt #{bill.id}")
    print(f"Date: {bill.timestamp:%Y-%m-%d %H:%M:%S}")
    if bill.customer_name:
        print(f"Customer: {bill.customer_name}")
    print(f"Payment Method: {bill.payment_method.value}")
    for line in bill.items:
        print(f"  {line.quantity} x {line.name:<30} {currency}{line.line_total:.2f}")
    print(f"TOTAL: {currency}{bill.total:.2f}")


def _print_report(report: SalesReport, currency: str) -> None:
    print(f"Sales Report: {report.period_label}")
    print(f"Total Sales: {currency}{report.total_sales:.2f}")
    print(f"Items Sold: {report.total_items}  Bills: {report.bill_count}")
    for item in report.items:
        print(f"  {item.name:<30} {item.quantity:>6}  {currency}{item.total_sales:.2f}")


def run_command(args: argparse.Namespace, config: PosConfig, repo: PosRepository) -> int:
    currency = config.currency_symbol
    ledger = InventoryLedger(repo, images=FileImageStore(config.image_dir))
    sink = FileShareSink(config.output_dir)

    if args.command == "inventory":
        if args.action == "list":
            _print_items(ledger.search(args.search, args.category), currency)
        elif args.action == "add":
            outcome = ledger.scan(manual_entry(args.barcode))
            item = ledger.upsert(
                outcome.barcode,
                args.name,
                args.price,
                args.quantity,
                category=args.category,
                image_source=args.image,
            )
            _print_items([item], currency)
        elif args.action == "edit":
            _print_items([ledger.edit(args.barcode, args.name, args.price, args.quantity)], currency)
        elif args.action == "delete":
            removed = ledger.bulk_delete(args.barcodes)
            print(f"Removed {len(removed)} item(s)")
            if len(removed) < len(set(args.barcodes)):
                return 1
        elif args.action == "low-stock":
            threshold = config.low_stock_threshold if args.threshold is None else args.threshold
            _print_items(ledger.low_stock(threshold), currency)

    elif args.command == "categories":
        if args.action == "list":
            for name in ledger.categories():
                print(name)
        elif args.action == "add":
            print(f"Added {ledger.add_category(args.name)}")
        elif args.action == "remove":
            ledger.remove_category(args.name)
            print(f"Removed {args.name}")

    elif args.command == "sell":
        session = BillingSession(repo)
        for barcode in args.barcodes:
            session.scan(manual_entry(barcode))
        bill = session.checkout(args.customer, args.payment)
        _print_bill(bill, currency)
        if args.share:
            share_receipt(bill, sink, currency)

    elif args.command == "report":
        report = SalesReporter(repo).generate_report(args.period, args.date)
        _print_report(report, currency)
        if args.share:
            share_report(report, sink, currency)

    elif args.command == "receipt":
        bill = BillHistory(repo).get(args.bill_id)
        _print_bill(bill, currency)
        if args.share:
            share_receipt(bill, sink, currency)

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = PosConfig.from_env()
    configure_logging(config, verbose=args.verbose, quiet=args.quiet)

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error(f"Configuration error: {err}")
        return 1

    store = open_store(config)
    try:
        return run_command(args, config, PosRepository(store))
    except PosError as e:
        logger.error(str(e))
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
