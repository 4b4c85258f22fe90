"""
Sales reports over the bill history.

A report covers one calendar bucket around a reference date: the day, the
Sunday-to-Saturday week, the month or the year. Dates are compared on the
local calendar. Reports are derived on demand and never stored.
"""
from __future__ import annotations
import calendar
from datetime import date, datetime, timedelta
from decimal import Decimal
from loguru import logger

from .errors import ValidationError
from .models import Bill, ReportItem, ReportPeriod, SalesReport
from .repository import PosRepository


def _as_period(period: ReportPeriod | str) -> ReportPeriod:
    try:
        return ReportPeriod(str(getattr(period, "value", period)).lower())
    except ValueError as e:
        valid = ", ".join(p.value for p in ReportPeriod)
        raise ValidationError(f"Unknown report period: {period}. Valid: {valid}") from e


def _as_date(value: date | datetime | None) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    return value


def period_bounds(period: ReportPeriod | str, reference_date: date) -> tuple[date, date]:
    """First and last calendar day (inclusive) of the bucket holding ``reference_date``."""
    period = _as_period(period)
    ref = _as_date(reference_date)
    if period is ReportPeriod.DAILY:
        return ref, ref
    if period is ReportPeriod.WEEKLY:
        # date.weekday() is 0 for Monday; weeks here start on Sunday
        start = ref - timedelta(days=(ref.weekday() + 1) % 7)
        return start, start + timedelta(days=6)
    if period is ReportPeriod.MONTHLY:
        last_day = calendar.monthrange(ref.year, ref.month)[1]
        return ref.replace(day=1), ref.replace(day=last_day)
    return date(ref.year, 1, 1), date(ref.year, 12, 31)


def period_label(period: ReportPeriod | str, reference_date: date) -> str:
    """Human label, e.g. "March 5, 2024" or "Mar 3 - Mar 9, 2024"."""
    period = _as_period(period)
    ref = _as_date(reference_date)
    if period is ReportPeriod.DAILY:
        return f"{ref:%B} {ref.day}, {ref.year}"
    if period is ReportPeriod.WEEKLY:
        start, end = period_bounds(period, ref)
        return f"{start:%b} {start.day} - {end:%b} {end.day}, {end.year}"
    if period is ReportPeriod.MONTHLY:
        return f"{ref:%B} {ref.year}"
    return str(ref.year)


class SalesReporter:
    """
    Builds SalesReport values from the stored bills.

    Usage:
        reporter = SalesReporter(repo)
        report = reporter.generate_report("weekly", date(2024, 3, 5))
        for item in report.items:
            print(item.name, item.quantity, item.total_sales)
    """

    def __init__(self, repo: PosRepository):
        self.repo = repo

    def bills_in_period(
        self, period: ReportPeriod | str, reference_date: date | datetime | None = None
    ) -> list[Bill]:
        start, end = period_bounds(period, _as_date(reference_date))
        return [bill for bill in self.repo.load_bills() if start <= bill.local_date <= end]

    def generate_report(
        self, period: ReportPeriod | str, reference_date: date | datetime | None = None
    ) -> SalesReport:
        """
        Aggregate the bills in the bucket by item id.

        Total items counts units sold, not distinct products. Items are sorted
        by sales descending; ties keep the order they were first sold in.
        """
        period = _as_period(period)
        ref = _as_date(reference_date)
        bills = self.bills_in_period(period, ref)

        by_item: dict[str, ReportItem] = {}
        total_sales = Decimal("0")
        total_items = 0
        for bill in bills:
            total_sales += bill.total
            for line in bill.items:
                total_items += line.quantity
                entry = by_item.get(line.id)
                if entry is None:
                    entry = by_item[line.id] = ReportItem(id=line.id, name=line.name)
                entry.quantity += line.quantity
                entry.total_sales += line.line_total

        # sorted() is stable with reverse=True, so ties stay in encounter order
        items = sorted(by_item.values(), key=lambda r: r.total_sales, reverse=True)

        logger.debug(
            f"{period.value} report for {ref}: {len(bills)} bills, {total_items} items"
        )
        return SalesReport(
            period=period,
            period_label=period_label(period, ref),
            reference_date=ref,
            total_sales=total_sales,
            total_items=total_items,
            bill_count=len(bills),
            items=tuple(items),
        )

