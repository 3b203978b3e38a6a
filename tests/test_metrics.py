from decimal import Decimal

from metrics import (
    aggregate,
    category_breakdown,
    expenses_by_category,
    group_by_tag,
    monthly_buckets,
    percentage_of_total,
    savings_rate,
    top_categories,
)


def make_tx(type, amount, category="General", date="2024-01-15", tags=None):
    return {"type": type, "amount": amount, "category": category, "date": date, "tags": tags or []}


SCENARIO = [
    make_tx("income", 1000, category="Revenue", date="2024-01-15"),
    make_tx("expense", 400, category="Infrastructure", date="2024-01-20"),
    make_tx("expense", 100, category="Infrastructure", date="2024-02-01"),
]


def test_aggregate_concrete_scenario():
    summary = aggregate(SCENARIO)

    assert summary["total_income"] == Decimal("1000")
    assert summary["total_expenses"] == Decimal("500")
    assert summary["net_cash_flow"] == Decimal("500")
    assert summary["expenses_by_category"] == {"Infrastructure": Decimal("500")}
    assert percentage_of_total(
        summary["expenses_by_category"]["Infrastructure"], summary["total_expenses"]
    ) == 100.0


def test_aggregate_empty_input():
    summary = aggregate([])

    assert summary["total_income"] == 0
    assert summary["total_expenses"] == 0
    assert summary["net_cash_flow"] == 0
    assert summary["expenses_by_category"] == {}
    assert summary["transaction_count"] == 0


def test_net_cash_flow_has_no_rounding_drift():
    """Valores em centavos não acumulam erro de ponto flutuante"""
    transactions = [make_tx("income", 0.1) for _ in range(10)] + [
        make_tx("expense", 0.2),
        make_tx("expense", 0.7),
        make_tx("expense", 0.01),
    ]
    summary = aggregate(transactions)

    assert summary["total_income"] == Decimal("1.0")
    assert summary["total_expenses"] == Decimal("0.91")
    assert summary["total_income"] - summary["total_expenses"] == summary["net_cash_flow"]
    assert summary["net_cash_flow"] == Decimal("0.09")


def test_category_totals_partition_total_expenses():
    transactions = [
        make_tx("expense", 12.34, "Engineering"),
        make_tx("expense", 56.78, "Travel"),
        make_tx("expense", 0.05, "Office & Admin"),
        make_tx("expense", 99.99, "Engineering"),
        make_tx("income", 500, "Revenue"),
    ]
    summary = aggregate(transactions)

    assert sum(summary["expenses_by_category"].values()) == summary["total_expenses"]
    assert "Revenue" not in summary["expenses_by_category"]


def test_percentages_are_bounded():
    transactions = [
        make_tx("expense", 1, "A"),
        make_tx("expense", 2, "B"),
        make_tx("expense", 997, "C"),
    ]
    for item in category_breakdown(transactions):
        assert 0 <= item["percentage"] <= 100


def test_percentage_of_zero_total_is_zero():
    assert percentage_of_total(Decimal("10"), Decimal("0")) == 0.0


def test_category_labels_group_ignoring_case_and_spaces():
    transactions = [
        make_tx("expense", 10, "Engineering"),
        make_tx("expense", 5, " engineering "),
        make_tx("expense", 1, "ENGINEERING"),
    ]

    assert expenses_by_category(transactions) == {"Engineering": Decimal("16")}


def test_missing_category_is_uncategorized():
    transactions = [make_tx("expense", 10, ""), make_tx("expense", 2, None)]

    assert expenses_by_category(transactions) == {"Uncategorized": Decimal("12")}


def test_top_categories_sorted_and_truncated():
    totals = {
        "A": Decimal("10"),
        "B": Decimal("50"),
        "C": Decimal("30"),
        "D": Decimal("20"),
        "E": Decimal("40"),
        "F": Decimal("5"),
    }

    top = top_categories(totals, limit=5)
    assert [label for label, _ in top] == ["B", "E", "C", "D", "A"]
    assert len(top_categories(totals)) == 6


def test_category_breakdown_counts_and_percentages():
    transactions = [
        make_tx("expense", 300, "Engineering"),
        make_tx("expense", 100, "Engineering"),
        make_tx("expense", 100, "Travel"),
    ]

    breakdown = category_breakdown(transactions)
    assert breakdown[0] == {
        "category": "Engineering",
        "amount": Decimal("400"),
        "count": 2,
        "percentage": 80.0,
    }
    assert breakdown[1]["percentage"] == 20.0


def test_monthly_buckets_are_chronological():
    transactions = [
        make_tx("expense", 100, date="2024-03-05"),
        make_tx("income", 1000, date="2023-12-30"),
        make_tx("expense", 400, date="2024-01-20"),
        make_tx("income", 200, date="2024-01-02"),
    ]

    buckets = monthly_buckets(transactions)
    assert [b["month"] for b in buckets] == ["Dec 23", "Jan 24", "Mar 24"]

    january = buckets[1]
    assert january["income"] == Decimal("200")
    assert january["expenses"] == Decimal("400")
    assert january["net"] == Decimal("-200")


def test_monthly_buckets_accept_datetime_strings():
    buckets = monthly_buckets([make_tx("income", 5, date="2024-02-29T13:45:00+00:00")])

    assert buckets[0]["month"] == "Feb 24"


def test_group_by_tag_counts_each_tag():
    transactions = [
        make_tx("expense", 100, tags=["aws", "recurring"]),
        make_tx("expense", 50, tags=["recurring"]),
        make_tx("income", 30, tags=["aws"]),
        make_tx("expense", 999),
    ]

    tags = group_by_tag(transactions)
    assert list(tags) == ["aws", "recurring"]
    assert tags["recurring"]["expenses"] == Decimal("150")
    assert tags["recurring"]["count"] == 2
    assert tags["aws"]["income"] == Decimal("30")


def test_savings_rate():
    assert savings_rate(Decimal("1000"), Decimal("750")) == 25.0
    assert savings_rate(Decimal("0"), Decimal("100")) == 0.0
