"""
Cálculo de métricas a partir do livro de transações
Totais de receitas/despesas, agrupamento por categoria e tag, séries mensais
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

UNCATEGORIZED = "Uncategorized"
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

Transaction = Mapping[str, Any]


def to_decimal(value: Union[str, int, float, Decimal]) -> Decimal:
    """Converte o valor para Decimal sem perder precisão (via str, não via float)"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def parse_date(value: Union[str, date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def category_key(label: Optional[str]) -> str:
    """Chave de agrupamento: ignora espaços nas pontas e maiúsculas/minúsculas"""
    return (label or "").strip().casefold()


def _group_categories(transactions: Iterable[Transaction], transaction_type: str) -> Dict[str, Dict[str, Any]]:
    # chave normalizada -> {"label": primeira grafia vista, "total", "count"}
    groups: Dict[str, Dict[str, Any]] = {}
    for transaction in transactions:
        if transaction.get("type") != transaction_type:
            continue
        key = category_key(transaction.get("category"))
        if key not in groups:
            label = (transaction.get("category") or "").strip() or UNCATEGORIZED
            groups[key] = {"label": label, "total": Decimal("0"), "count": 0}
        groups[key]["total"] += to_decimal(transaction["amount"])
        groups[key]["count"] += 1
    return groups


def expenses_by_category(transactions: Iterable[Transaction]) -> Dict[str, Decimal]:
    """Soma das despesas por categoria (receitas não entram)"""
    groups = _group_categories(transactions, "expense")
    return {group["label"]: group["total"] for group in groups.values()}


def income_by_category(transactions: Iterable[Transaction]) -> Dict[str, Decimal]:
    groups = _group_categories(transactions, "income")
    return {group["label"]: group["total"] for group in groups.values()}


def top_categories(by_category: Mapping[str, Decimal], limit: Optional[int] = None) -> List[Tuple[str, Decimal]]:
    """
    Ordena categorias pelo total (maior primeiro)

    Args:
        by_category: Mapeamento categoria -> total
        limit: Quantidade máxima (None = todas)
    """
    ranked = sorted(by_category.items(), key=lambda item: (-item[1], item[0]))
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


def percentage_of_total(amount: Union[Decimal, float], total: Union[Decimal, float]) -> float:
    """Percentual de amount sobre total; 0 quando o total é zero"""
    total = to_decimal(total)
    if total <= 0:
        return 0.0
    return float(to_decimal(amount) / total * 100)


def category_breakdown(transactions: Iterable[Transaction], limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Análise de despesas por categoria

    Returns:
        list: [{"category", "amount", "count", "percentage"}], maior total primeiro
    """
    groups = _group_categories(transactions, "expense")
    total_expenses = sum((group["total"] for group in groups.values()), Decimal("0"))
    counts = {group["label"]: group["count"] for group in groups.values()}
    totals = {group["label"]: group["total"] for group in groups.values()}

    result = []
    for label, amount in top_categories(totals, limit):
        result.append({
            "category": label,
            "amount": amount,
            "count": counts[label],
            "percentage": round(percentage_of_total(amount, total_expenses), 1),
        })
    return result


def monthly_buckets(transactions: Iterable[Transaction]) -> List[Dict[str, Any]]:
    """
    Receitas, despesas e saldo por mês do calendário, em ordem cronológica

    Rótulo no formato "Jan 24" (mês abreviado + ano com 2 dígitos).
    """
    buckets: Dict[Tuple[int, int], Dict[str, Decimal]] = {}
    for transaction in transactions:
        tx_date = parse_date(transaction["date"])
        key = (tx_date.year, tx_date.month)
        bucket = buckets.setdefault(key, {"income": Decimal("0"), "expenses": Decimal("0")})
        if transaction.get("type") == "income":
            bucket["income"] += to_decimal(transaction["amount"])
        elif transaction.get("type") == "expense":
            bucket["expenses"] += to_decimal(transaction["amount"])

    result = []
    for (year, month) in sorted(buckets):
        bucket = buckets[(year, month)]
        result.append({
            "month": f"{MONTH_ABBR[month - 1]} {year % 100:02d}",
            "year": year,
            "month_number": month,
            "income": bucket["income"],
            "expenses": bucket["expenses"],
            "net": bucket["income"] - bucket["expenses"],
        })
    return result


def group_by_tag(transactions: Iterable[Transaction]) -> Dict[str, Dict[str, Any]]:
    """Totais por tag; uma transação com várias tags conta em cada uma delas"""
    tags: Dict[str, Dict[str, Any]] = {}
    for transaction in transactions:
        for tag in transaction.get("tags") or []:
            entry = tags.setdefault(tag, {"income": Decimal("0"), "expenses": Decimal("0"), "count": 0})
            if transaction.get("type") == "income":
                entry["income"] += to_decimal(transaction["amount"])
            elif transaction.get("type") == "expense":
                entry["expenses"] += to_decimal(transaction["amount"])
            entry["count"] += 1
    return tags


def savings_rate(total_income: Decimal, total_expenses: Decimal) -> float:
    """Percentual da receita que sobrou; 0 sem receita"""
    return percentage_of_total(total_income - total_expenses, total_income)


def aggregate(transactions: Iterable[Transaction]) -> Dict[str, Any]:
    """
    Reduz uma lista de transações aos totais usados pelo painel

    Lista vazia resulta em totais zerados, sem exceção.
    """
    transactions = list(transactions)

    total_income = Decimal("0")
    total_expenses = Decimal("0")
    income_count = 0
    expense_count = 0

    for transaction in transactions:
        amount = to_decimal(transaction["amount"])
        if transaction.get("type") == "income":
            total_income += amount
            income_count += 1
        elif transaction.get("type") == "expense":
            total_expenses += amount
            expense_count += 1

    return {
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net_cash_flow": total_income - total_expenses,
        "income_count": income_count,
        "expense_count": expense_count,
        "transaction_count": len(transactions),
        "expenses_by_category": expenses_by_category(transactions),
        "income_by_category": income_by_category(transactions),
    }
