"""
HTML documents for bills and sales reports.

Templates live in ``mob_pos/templates`` and are rendered with Jinja2. The
result goes to a ShareSink, which writes it to a file and shares it.
"""
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Optional
from jinja2 import Template

from .collaborators import ShareSink
from .models import Bill, SalesReport

TEMPLATES_DIR = Path(__file__).parent / "templates"


def _load_template(template_name: str) -> Template:
    """Load a document template."""
    template_path = TEMPLATES_DIR / template_name
    if not template_path.exists():
        raise FileNotFoundError(f"Template not found: {template_path}")
    return Template(template_path.read_text(encoding="utf-8"), autoescape=True)


def money_formatter(currency_symbol: str = "$") -> Callable[[Decimal], str]:
    def money(value) -> str:
        return f"{currency_symbol}{Decimal(value):.2f}"

    return money


def render_receipt(bill: Bill, currency_symbol: str = "$") -> str:
    return _load_template("receipt.html.j2").render(
        bill=bill,
        issued=bill.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
        money=money_formatter(currency_symbol),
    )


def render_report(
    report: SalesReport,
    currency_symbol: str = "$",
    generated: Optional[datetime] = None,
) -> str:
    return _load_template("report.html.j2").render(
        report=report,
        generated=(generated or datetime.now()).strftime("%Y-%m-%d %H:%M"),
        money=money_formatter(currency_symbol),
    )


def share_receipt(bill: Bill, sink: ShareSink, currency_symbol: str = "$") -> str:
    """Render the receipt, write it through the sink and share it. Returns the file handle."""
    handle = sink.render_to_file(render_receipt(bill, currency_symbol))
    sink.share(handle)
    return handle


def share_report(report: SalesReport, sink: ShareSink, currency_symbol: str = "$") -> str:
    handle = sink.render_to_file(render_report(report, currency_symbol))
    sink.share(handle)
    return handle
