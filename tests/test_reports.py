"""Tests for period buckets and report aggregation."""
from datetime import date, datetime
from decimal import Decimal

import pytest

from mob_pos.errors import ValidationError
from mob_pos.models import ReportPeriod
from mob_pos.reports import period_bounds, period_label


def sell(session, clock, when, *barcodes):
    """Check out one bill at ``when`` with one unit per barcode."""
    clock.now = when
    for barcode in barcodes:
        session.add_line(barcode)
    return session.checkout()


@pytest.fixture
def stocked(ledger):
    ledger.upsert("123", "Soap", "2.00", 100)
    ledger.upsert("200", "Tea", "1.00", 100)
    ledger.upsert("300", "Milk", "0.50", 100)


class TestPeriodBounds:
    """Calendar buckets around a reference date."""

    def test_daily(self):
        assert period_bounds("daily", date(2024, 3, 5)) == (date(2024, 3, 5), date(2024, 3, 5))

    def test_week_runs_sunday_to_saturday(self):
        assert period_bounds(ReportPeriod.WEEKLY, date(2024, 3, 6)) == (
            date(2024, 3, 3),
            date(2024, 3, 9),
        )

    def test_sunday_starts_its_own_week(self):
        assert period_bounds("weekly", date(2024, 3, 3))[0] == date(2024, 3, 3)

    def test_saturday_ends_its_week(self):
        assert period_bounds("weekly", date(2024, 3, 9))[0] == date(2024, 3, 3)

    def test_monthly_leap_february(self):
        assert period_bounds("monthly", date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_yearly(self):
        assert period_bounds("YEARLY", date(2024, 7, 1)) == (date(2024, 1, 1), date(2024, 12, 31))

    def test_unknown_period(self):
        with pytest.raises(ValidationError, match="Unknown report period"):
            period_bounds("hourly", date(2024, 3, 5))


class TestPeriodLabel:
    """Human readable report titles."""

    @pytest.mark.parametrize(
        "period,expected",
        [
            ("daily", "March 5, 2024"),
            ("weekly", "Mar 3 - Mar 9, 2024"),
            ("monthly", "March 2024"),
            ("yearly", "2024"),
        ],
    )
    def test_labels(self, period, expected):
        assert period_label(period, date(2024, 3, 5)) == expected

    def test_week_across_months(self):
        assert period_label("weekly", date(2024, 3, 1)) == "Feb 25 - Mar 2, 2024"


class TestGenerateReport:
    """Aggregating bills into a SalesReport."""

    def test_daily_totals(self, session, clock, reporter, stocked):
        """Test 5 soaps at 2.00 over two bills give 10.00 and 5 items."""
        sell(session, clock, datetime(2024, 3, 5, 9, 0), "123", "123", "123")
        sell(session, clock, datetime(2024, 3, 5, 18, 0), "123", "123")
        sell(session, clock, datetime(2024, 3, 6, 9, 0), "123")

        report = reporter.generate_report("daily", date(2024, 3, 5))

        assert report.total_sales == Decimal("10")
        assert report.total_items == 5
        assert report.bill_count == 2
        assert len(report.items) == 1
        assert report.items[0].name == "Soap"
        assert report.items[0].quantity == 5
        assert report.items[0].total_sales == Decimal("10")
        assert report.period_label == "March 5, 2024"

    def test_weekly_edges(self, session, clock, reporter, stocked):
        """Test bills on Sunday and Saturday count, the days outside do not."""
        sell(session, clock, datetime(2024, 3, 2, 23, 59), "200")
        sell(session, clock, datetime(2024, 3, 3, 0, 0), "123")
        sell(session, clock, datetime(2024, 3, 9, 23, 59), "123")
        sell(session, clock, datetime(2024, 3, 10, 0, 0), "200")

        report = reporter.generate_report("weekly", date(2024, 3, 6))

        assert report.bill_count == 2
        assert [i.name for i in report.items] == ["Soap"]

    def test_monthly_and_yearly(self, session, clock, reporter, stocked):
        sell(session, clock, datetime(2024, 2, 29, 12, 0), "123")
        sell(session, clock, datetime(2024, 3, 1, 12, 0), "200")
        sell(session, clock, datetime(2023, 12, 31, 12, 0), "300")

        assert reporter.generate_report("monthly", date(2024, 2, 1)).bill_count == 1
        yearly = reporter.generate_report("yearly", date(2024, 6, 1))
        assert yearly.bill_count == 2
        assert yearly.total_sales == Decimal("3")

    def test_sorted_by_sales_with_stable_ties(self, session, clock, reporter, stocked):
        """Test descending sales order; equal sales keep first-sold order."""
        when = datetime(2024, 3, 5, 12, 0)
        sell(session, clock, when, "300", "300", "200")
        sell(session, clock, when, "123", "200")

        report = reporter.generate_report("daily", date(2024, 3, 5))

        # Soap 2.00, Milk 1.00, Tea 2.00: Soap and Tea tie, Tea sold first
        assert [i.name for i in report.items] == ["Tea", "Soap", "Milk"]

    def test_report_is_repeatable(self, session, clock, reporter, stocked):
        sell(session, clock, datetime(2024, 3, 5, 12, 0), "123", "200")
        first = reporter.generate_report("daily", date(2024, 3, 5))
        second = reporter.generate_report("daily", date(2024, 3, 5))
        assert first == second

    def test_empty_history(self, reporter):
        report = reporter.generate_report("monthly", date(2024, 3, 5))
        assert report.total_sales == Decimal("0")
        assert report.total_items == 0
        assert report.items == ()

    def test_reference_defaults_to_today(self, reporter):
        assert reporter.generate_report("daily").reference_date == date.today()

    def test_invalid_period(self, reporter):
        with pytest.raises(ValidationError):
            reporter.generate_report("fortnightly", date(2024, 3, 5))
