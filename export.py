"""
Exportação em CSV do snapshot financeiro e das transações
"""
import csv
import io
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Optional

from runway import runway_months

SNAPSHOT_FILENAME = "financial-report.csv"


def _write_rows(rows: Iterable[Iterable[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def _plain_number(value: Any) -> str:
    # 1000.0 -> "1000"; 1234.5 -> "1234.5"
    number = float(value or 0)
    return str(int(number)) if number.is_integer() else repr(number)


def financial_data_csv(financial_data: Dict[str, Any], currency: str, exported_at: Optional[datetime] = None) -> str:
    """
    CSV Metric,Value com os valores do snapshot (sempre em USD) e o runway derivado
    """
    exported_at = exported_at or datetime.now(timezone.utc)
    months = runway_months(financial_data.get("cash_balance", 0), financial_data.get("monthly_burn", 0))

    rows = [
        ["Metric", "Value"],
        ["Cash Balance", _plain_number(financial_data.get("cash_balance"))],
        ["Monthly Burn", _plain_number(financial_data.get("monthly_burn"))],
        ["Monthly Revenue", _plain_number(financial_data.get("monthly_revenue"))],
        ["Runway (months)", f"{months:.1f}" if months is not None else "N/A"],
        ["Currency", currency],
        ["Exported At", exported_at.isoformat()],
    ]
    return _write_rows(rows)


def transactions_csv(transactions: Iterable[Dict[str, Any]]) -> str:
    rows = [["Date", "Name", "Category", "Type", "Amount", "Vendor", "Status", "Tags"]]
    for transaction in transactions:
        rows.append([
            str(transaction.get("date", ""))[:10],
            transaction.get("name", ""),
            transaction.get("category", ""),
            transaction.get("type", ""),
            _plain_number(transaction.get("amount")),
            transaction.get("vendor") or "",
            transaction.get("status") or "",
            ";".join(transaction.get("tags") or []),
        ])
    return _write_rows(rows)


def transactions_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"transactions_{today.isoformat()}.csv"
