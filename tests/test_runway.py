from decimal import Decimal

import pytest

from runway import format_runway, runway_months, runway_status, runway_warning


def test_runway_is_cash_over_burn():
    assert runway_months(500000, 42350) == pytest.approx(11.806, rel=1e-3)
    assert runway_months(Decimal("120000"), Decimal("10000")) == 12.0


@pytest.mark.parametrize("burn", [0, -100, None])
def test_zero_burn_means_infinite_runway(burn):
    assert runway_months(100000, burn) is None


def test_runway_status_thresholds():
    assert runway_status(None) == "healthy"
    assert runway_status(24.0) == "healthy"
    assert runway_status(12.0) == "healthy"
    assert runway_status(8.5) == "watch"
    assert runway_status(6.0) == "watch"
    assert runway_status(2.0) == "critical"


def test_runway_warning_only_below_a_year():
    assert runway_warning(None) is None
    assert runway_warning(18.0) is None
    assert runway_warning(11.8) == "Consider reducing expenses or increasing revenue."


def test_format_runway():
    assert format_runway(None) == "∞"
    assert format_runway(18.46) == "18.5 months"
