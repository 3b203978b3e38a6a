"""
Projeção de runway (meses de caixa restantes)

O runway não é armazenado: é sempre derivado do saldo de caixa e do burn mensal
do snapshot financeiro.
"""
from typing import Optional, Union
from decimal import Decimal

Number = Union[int, float, Decimal]

HEALTHY_RUNWAY_MONTHS = 12
CRITICAL_RUNWAY_MONTHS = 6


def runway_months(cash_balance: Number, monthly_burn: Number) -> Optional[float]:
    """
    Calcula quantos meses o caixa dura no burn atual

    Returns:
        float com os meses, ou None quando o burn é zero/negativo (runway infinito)
    """
    if monthly_burn is None or monthly_burn <= 0:
        return None
    return float(cash_balance) / float(monthly_burn)


def runway_status(months: Optional[float]) -> str:
    """Classifica o runway: healthy, watch ou critical"""
    if months is None or months >= HEALTHY_RUNWAY_MONTHS:
        return "healthy"
    if months >= CRITICAL_RUNWAY_MONTHS:
        return "watch"
    return "critical"


def runway_warning(months: Optional[float]) -> Optional[str]:
    if months is not None and months < HEALTHY_RUNWAY_MONTHS:
        return "Consider reducing expenses or increasing revenue."
    return None


def format_runway(months: Optional[float]) -> str:
    if months is None:
        return "∞"
    return f"{months:.1f} months"
