"""
Funções para o onboarding de novos usuários
Cria configurações padrão, snapshot financeiro e anomalias de exemplo
"""
import logging
from typing import Any, Dict, List

from currency import BASE_CURRENCY
from web_database import WebDatabaseService

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"

EMPTY_FINANCIAL_DATA = {
    "cash_balance": 0.0,
    "monthly_burn": 0.0,
    "monthly_revenue": 0.0,
}

SAMPLE_FINANCIAL_DATA = {
    "cash_balance": 500000.0,
    "monthly_burn": 42350.0,
    "monthly_revenue": 67800.0,
}

SAMPLE_ANOMALIES: List[Dict[str, Any]] = [
    {
        "title": "AWS Bill Spike",
        "description": "Monthly spend increased 340% compared to average",
        "severity": "high",
        "category": "Infrastructure",
        "amount": 12450.0,
        "potential_savings": 9650.0,
        "ai_confidence": 0.94,
        "ai_recommendation": "Review reserved instance coverage and idle resources. Reduces runway by 2 months if sustained.",
    },
    {
        "title": "Duplicate Zoom Licenses",
        "description": "12 unused seats detected across organization",
        "severity": "medium",
        "category": "Software",
        "amount": 480.0,
        "potential_savings": 480.0,
        "ai_confidence": 0.89,
        "ai_recommendation": "Remove unused seats to save $5,760/year.",
    },
    {
        "title": "Marketing Spend Acceleration",
        "description": "40% increase month-over-month, exceeding budget",
        "severity": "medium",
        "category": "Marketing",
        "amount": 8500.0,
        "potential_savings": 2500.0,
        "ai_confidence": 0.76,
        "ai_recommendation": "ROI declining; cap campaign budgets until attribution is reviewed.",
        "initial_status": "investigating",
    },
]


def create_default_settings(db: WebDatabaseService, user_id: str) -> bool:
    """Cria configurações padrão (USD) se o usuário ainda não tiver"""
    if db.get_user_settings(user_id):
        return False
    db.upsert_user_settings(user_id, {"currency": BASE_CURRENCY, "timezone": DEFAULT_TIMEZONE})
    logger.info("Configurações padrão criadas para %s", user_id)
    return True


def create_financial_data(db: WebDatabaseService, user_id: str, sample_data: bool = False) -> bool:
    """
    Cria o snapshot financeiro inicial

    Args:
        sample_data: True usa os valores fixos de demonstração; False cria tudo zerado
    """
    if db.get_financial_data(user_id):
        return False
    values = SAMPLE_FINANCIAL_DATA if sample_data else EMPTY_FINANCIAL_DATA
    db.upsert_financial_data(user_id, dict(values))
    logger.info("Snapshot financeiro criado para %s (exemplo=%s)", user_id, sample_data)
    return True


def seed_sample_anomalies(db: WebDatabaseService, user_id: str) -> int:
    """Cria as três anomalias de exemplo se o usuário não tiver nenhuma"""
    if db.list_anomalies(user_id):
        return 0

    created = 0
    for sample in SAMPLE_ANOMALIES:
        data = {k: v for k, v in sample.items() if k != "initial_status"}
        anomaly = db.create_anomaly(user_id, data)
        if sample.get("initial_status"):
            db.update_anomaly_status(user_id, anomaly["id"], sample["initial_status"])
        created += 1

    logger.info("%d anomalias de exemplo criadas para %s", created, user_id)
    return created


def complete_onboarding(db: WebDatabaseService, user_id: str, sample_data: bool = False) -> Dict[str, Any]:
    """
    Completa o onboarding; pode ser chamado de novo sem duplicar nada

    Returns:
        Dict com o que foi criado
    """
    settings_created = create_default_settings(db, user_id)
    financial_data_created = create_financial_data(db, user_id, sample_data)
    anomalies_created = seed_sample_anomalies(db, user_id)

    return {
        "settings_created": settings_created,
        "financial_data_created": financial_data_created,
        "anomalies_created": anomalies_created,
    }


def is_onboarded(db: WebDatabaseService, user_id: str) -> bool:
    return db.get_financial_data(user_id) is not None
