import csv
import io
from datetime import date, datetime, timezone

from export import financial_data_csv, transactions_csv, transactions_filename


def parse(content):
    return list(csv.reader(io.StringIO(content)))


def test_financial_data_csv():
    exported_at = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    content = financial_data_csv(
        {"cash_balance": 500000.0, "monthly_burn": 40000.0, "monthly_revenue": 67800.5},
        "EUR",
        exported_at=exported_at,
    )

    assert parse(content) == [
        ["Metric", "Value"],
        ["Cash Balance", "500000"],
        ["Monthly Burn", "40000"],
        ["Monthly Revenue", "67800.5"],
        ["Runway (months)", "12.5"],
        ["Currency", "EUR"],
        ["Exported At", "2024-03-01T12:00:00+00:00"],
    ]


def test_financial_data_csv_zero_burn_has_no_runway():
    content = financial_data_csv({"cash_balance": 1000.0, "monthly_burn": 0.0, "monthly_revenue": 0.0}, "USD")

    assert ["Runway (months)", "N/A"] in parse(content)


def test_transactions_csv_quotes_fields():
    content = transactions_csv([
        {
            "date": "2024-01-15",
            "name": "Dinner, team",
            "category": "Meals",
            "type": "expense",
            "amount": 120.5,
            "vendor": 'The "Place"',
            "status": "completed",
            "tags": ["team", "q1"],
        },
        {"date": "2024-01-16", "name": "Invoice", "category": "Revenue", "type": "income", "amount": 1000.0, "tags": []},
    ])

    rows = parse(content)
    assert rows[0] == ["Date", "Name", "Category", "Type", "Amount", "Vendor", "Status", "Tags"]
    assert rows[1] == ["2024-01-15", "Dinner, team", "Meals", "expense", "120.5", 'The "Place"', "completed", "team;q1"]
    assert rows[2] == ["2024-01-16", "Invoice", "Revenue", "income", "1000", "", "", ""]


def test_transactions_filename():
    assert transactions_filename(date(2024, 5, 9)) == "transactions_2024-05-09.csv"
