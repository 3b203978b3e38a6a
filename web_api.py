"""
API REST para o Painel Financeiro
Endpoints para transações, dashboard, fluxo de caixa, despesas, relatórios,
configurações, anomalias e exportação
"""
from fastapi import FastAPI, HTTPException, Depends, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Any, Dict, List, Optional
from datetime import date, datetime, timezone
from decimal import Decimal
import jwt
import logging
import os
from dotenv import load_dotenv

# Imports locais
from web_models import (
    AnomalyCreate,
    AnomalyResponse,
    AnomalyStatusUpdate,
    ApiResponse,
    CurrencyUpdate,
    FinancialDataResponse,
    FinancialDataUpdate,
    OnboardingRequest,
    TransactionCreate,
    TransactionFilters,
    TransactionResponse,
    TransactionUpdate,
    UserSettingsResponse,
    UserSettingsUpdate,
)
from web_database import WebDatabaseService
from currency import (
    BASE_CURRENCY,
    ExchangeRateService,
    exchange_rate_service,
    format_currency,
    format_compact_currency,
    list_currencies,
)
from metrics import aggregate, category_breakdown, group_by_tag, monthly_buckets, savings_rate
from runway import format_runway, runway_months, runway_status, runway_warning
from onboarding import DEFAULT_TIMEZONE, EMPTY_FINANCIAL_DATA, complete_onboarding, is_onboarded
import export

# Carregar variáveis de ambiente
load_dotenv()

logger = logging.getLogger(__name__)

# Configuração JWT (tokens emitidos pelo provedor de autenticação)
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-secret-key-here")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]

REPORT_TOP_CATEGORIES = 5

# Inicializar FastAPI
app = FastAPI(
    title="Painel Financeiro - API REST",
    description="API REST para caixa, burn rate, transações e anomalias",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Segurança
security = HTTPBearer(auto_error=False)

# Serviço de banco
db_service = WebDatabaseService()


def get_db() -> WebDatabaseService:
    return db_service


def get_rates() -> ExchangeRateService:
    return exchange_rate_service


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token inválido",
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> str:
    """Valida o bearer token e retorna o ID do dono (claim sub)"""
    if credentials is None:
        raise _unauthorized()
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        raise _unauthorized()

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized()
    return str(user_id)


def _server_error(action: str) -> HTTPException:
    """Registra a exceção corrente e devolve um erro genérico para o cliente"""
    logger.exception("Erro ao %s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Erro ao {action}",
    )


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


# Utilitários de exibição
def _user_currency(db: WebDatabaseService, user_id: str) -> str:
    settings = db.get_user_settings(user_id)
    return (settings or {}).get("currency") or BASE_CURRENCY


def _convert(value: Any, rate: float) -> float:
    value = float(value or 0)
    return value if rate == 1.0 else value * rate


def _money(value: Any, rate: float, currency: str) -> Dict[str, Any]:
    converted = _convert(value, rate)
    return {
        "amount": converted,
        "formatted": format_currency(converted, currency),
        "compact": format_compact_currency(converted, currency),
    }


def _transaction_filters(
    start_date: Optional[date],
    end_date: Optional[date],
    transaction_type: str = "all",
    category: Optional[str] = None,
    vendor: Optional[str] = None,
) -> Dict[str, Any]:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Data inicial maior que a data final",
        )
    filters = TransactionFilters(
        start_date=start_date,
        end_date=end_date,
        type=transaction_type,
        category=category or None,
        vendor=vendor or None,
    )
    return filters.model_dump(exclude_none=True)


def _totals_payload(summary: Dict[str, Any], rate: float, currency: str) -> Dict[str, Any]:
    return {
        "total_income": _money(summary["total_income"], rate, currency),
        "total_expenses": _money(summary["total_expenses"], rate, currency),
        "net_cash_flow": _money(summary["net_cash_flow"], rate, currency),
        "income_count": summary["income_count"],
        "expense_count": summary["expense_count"],
        "transaction_count": summary["transaction_count"],
    }


def _categories_payload(breakdown: List[Dict[str, Any]], rate: float, currency: str) -> List[Dict[str, Any]]:
    return [
        {
            "category": item["category"],
            "count": item["count"],
            "percentage": item["percentage"],
            **_money(item["amount"], rate, currency),
        }
        for item in breakdown
    ]


def _monthly_payload(buckets: List[Dict[str, Any]], rate: float) -> List[Dict[str, Any]]:
    return [
        {
            "month": bucket["month"],
            "year": bucket["year"],
            "month_number": bucket["month_number"],
            "income": _convert(bucket["income"], rate),
            "expenses": _convert(bucket["expenses"], rate),
            "net": _convert(bucket["net"], rate),
        }
        for bucket in buckets
    ]


def _financial_data_payload(financial_data: Dict[str, Any], rate: float, currency: str) -> Dict[str, Any]:
    months = runway_months(financial_data["cash_balance"], financial_data["monthly_burn"])
    snapshot = FinancialDataResponse(
        cash_balance=_convert(financial_data["cash_balance"], rate),
        monthly_burn=_convert(financial_data["monthly_burn"], rate),
        monthly_revenue=_convert(financial_data["monthly_revenue"], rate),
        runway_months=months,
        currency=currency,
        exchange_rate=rate,
    ).model_dump()
    snapshot["formatted"] = {
        "cash_balance": format_currency(snapshot["cash_balance"], currency),
        "monthly_burn": format_currency(snapshot["monthly_burn"], currency),
        "monthly_revenue": format_currency(snapshot["monthly_revenue"], currency),
        "runway": format_runway(months),
    }
    snapshot["runway_status"] = runway_status(months)
    return snapshot


# ENDPOINTS DE TRANSAÇÕES
@app.get("/transactions", response_model=ApiResponse)
async def get_transactions(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    transaction_type: str = Query("all", alias="type", pattern=r"^(income|expense|all)$"),
    category: Optional[str] = None,
    vendor: Optional[str] = None,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Lista transações do usuário (mais recentes primeiro)"""
    filters = _transaction_filters(start_date, end_date, transaction_type, category, vendor)
    try:
        transactions = db.list_transactions(user_id, filters)
        summary = aggregate(transactions)

        return ApiResponse(
            success=True,
            message="Transações listadas com sucesso",
            data={
                "transactions": [TransactionResponse(**t).model_dump(mode="json") for t in transactions],
                "total": len(transactions),
                "summary": {
                    "total_income": float(summary["total_income"]),
                    "total_expenses": float(summary["total_expenses"]),
                    "net_cash_flow": float(summary["net_cash_flow"]),
                },
            }
        )

    except Exception:
        raise _server_error("listar transações")


@app.post("/transactions", response_model=ApiResponse)
async def create_transaction(
    transaction_data: TransactionCreate,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Cria uma nova transação"""
    try:
        transaction = db.create_transaction(user_id, transaction_data.model_dump(mode="json"))

        return ApiResponse(
            success=True,
            message="Transação criada com sucesso",
            data=TransactionResponse(**transaction).model_dump(mode="json")
        )

    except Exception:
        raise _server_error("salvar transação")


@app.put("/transactions/{transaction_id}", response_model=ApiResponse)
async def update_transaction(
    transaction_id: str,
    update_data: TransactionUpdate,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Atualiza uma transação"""
    try:
        transaction = db.update_transaction(user_id, transaction_id, update_data.model_dump(mode="json"))

        if not transaction:
            raise _not_found("Transação não encontrada")

        return ApiResponse(
            success=True,
            message="Transação atualizada com sucesso",
            data=TransactionResponse(**transaction).model_dump(mode="json")
        )

    except HTTPException:
        raise
    except Exception:
        raise _server_error("salvar transação")


@app.delete("/transactions/{transaction_id}", response_model=ApiResponse)
async def delete_transaction(
    transaction_id: str,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Deleta uma transação"""
    try:
        success = db.delete_transaction(user_id, transaction_id)

        if not success:
            raise _not_found("Transação não encontrada")

        return ApiResponse(
            success=True,
            message="Transação deletada com sucesso"
        )

    except HTTPException:
        raise
    except Exception:
        raise _server_error("deletar transação")


# ENDPOINTS DE PAINÉIS
@app.get("/dashboard", response_model=ApiResponse)
async def get_dashboard(
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
    rates: ExchangeRateService = Depends(get_rates),
):
    """Retorna dados do dashboard na moeda do usuário"""
    try:
        financial_data = db.get_financial_data(user_id)
        if not financial_data:
            raise _not_found("Dados financeiros não encontrados; conclua o onboarding")

        currency = _user_currency(db, user_id)
        rate = await rates.get_exchange_rate(BASE_CURRENCY, currency)

        transactions = db.list_transactions(user_id)
        summary = aggregate(transactions)

        return ApiResponse(
            success=True,
            message="Dados do dashboard",
            data={
                "currency": currency,
                "exchange_rate": rate,
                "financial_data": _financial_data_payload(financial_data, rate, currency),
                "totals": _totals_payload(summary, rate, currency),
                "top_categories": _categories_payload(
                    category_breakdown(transactions, REPORT_TOP_CATEGORIES), rate, currency
                ),
                "monthly": _monthly_payload(monthly_buckets(transactions), rate),
                "recent_transactions": [
                    TransactionResponse(**t).model_dump(mode="json") for t in transactions[:5]
                ],
            }
        )

    except HTTPException:
        raise
    except Exception:
        raise _server_error("carregar dashboard")


@app.get("/cashflow", response_model=ApiResponse)
async def get_cashflow(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
    rates: ExchangeRateService = Depends(get_rates),
):
    """Fluxo de caixa mensal e projeção de runway"""
    filters = _transaction_filters(start_date, end_date)
    try:
        financial_data = db.get_financial_data(user_id)
        if not financial_data:
            raise _not_found("Dados financeiros não encontrados; conclua o onboarding")

        currency = _user_currency(db, user_id)
        rate = await rates.get_exchange_rate(BASE_CURRENCY, currency)

        transactions = db.list_transactions(user_id, filters)
        months = runway_months(financial_data["cash_balance"], financial_data["monthly_burn"])
        net_monthly = Decimal(str(financial_data["monthly_revenue"])) - Decimal(str(financial_data["monthly_burn"]))

        return ApiResponse(
            success=True,
            message="Fluxo de caixa",
            data={
                "currency": currency,
                "exchange_rate": rate,
                "financial_data": _financial_data_payload(financial_data, rate, currency),
                "net_monthly": _money(net_monthly, rate, currency),
                "runway_warning": runway_warning(months),
                "totals": _totals_payload(aggregate(transactions), rate, currency),
                "monthly": _monthly_payload(monthly_buckets(transactions), rate),
            }
        )

    except HTTPException:
        raise
    except Exception:
        raise _server_error("carregar fluxo de caixa")


@app.get("/expenses", response_model=ApiResponse)
async def get_expenses(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
    rates: ExchangeRateService = Depends(get_rates),
):
    """Despesas por categoria e por tag"""
    filters = _transaction_filters(start_date, end_date, "expense")
    try:
        currency = _user_currency(db, user_id)
        rate = await rates.get_exchange_rate(BASE_CURRENCY, currency)

        transactions = db.list_transactions(user_id, filters)
        summary = aggregate(transactions)

        tags = [
            {"tag": tag, "count": entry["count"], **_money(entry["expenses"], rate, currency)}
            for tag, entry in group_by_tag(transactions).items()
        ]
        tags.sort(key=lambda item: item["amount"], reverse=True)

        return ApiResponse(
            success=True,
            message="Despesas por categoria",
            data={
                "currency": currency,
                "exchange_rate": rate,
                "total_spend": _money(summary["total_expenses"], rate, currency),
                "categories": _categories_payload(category_breakdown(transactions), rate, currency),
                "tags": tags,
                "recent_expenses": [
                    TransactionResponse(**t).model_dump(mode="json") for t in transactions[:5]
                ],
            }
        )

    except Exception:
        raise _server_error("carregar despesas")


@app.get("/reports", response_model=ApiResponse)
async def get_reports(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
    rates: ExchangeRateService = Depends(get_rates),
):
    """Resumo financeiro: totais, top 5 categorias e série mensal"""
    filters = _transaction_filters(start_date, end_date)
    try:
        currency = _user_currency(db, user_id)
        rate = await rates.get_exchange_rate(BASE_CURRENCY, currency)

        transactions = db.list_transactions(user_id, filters)
        summary = aggregate(transactions)

        return ApiResponse(
            success=True,
            message="Relatório financeiro",
            data={
                "currency": currency,
                "exchange_rate": rate,
                "totals": _totals_payload(summary, rate, currency),
                "savings_rate": round(savings_rate(summary["total_income"], summary["total_expenses"]), 1),
                "top_categories": _categories_payload(
                    category_breakdown(transactions, REPORT_TOP_CATEGORIES), rate, currency
                ),
                "monthly": _monthly_payload(monthly_buckets(transactions), rate),
            }
        )

    except Exception:
        raise _server_error("gerar relatório")


# ENDPOINTS DE CONFIGURAÇÕES
@app.get("/settings", response_model=ApiResponse)
async def get_settings(
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Retorna configurações do usuário (padrões se ainda não salvou)"""
    try:
        settings = db.get_user_settings(user_id) or {
            "currency": BASE_CURRENCY,
            "timezone": DEFAULT_TIMEZONE,
        }
        settings = {k: v for k, v in settings.items() if v is not None}
        settings["user_id"] = user_id

        financial_data = db.get_financial_data(user_id)
        snapshot = None
        if financial_data:
            snapshot = {
                "cash_balance": float(financial_data["cash_balance"]),
                "monthly_burn": float(financial_data["monthly_burn"]),
                "monthly_revenue": float(financial_data["monthly_revenue"]),
                "runway_months": runway_months(financial_data["cash_balance"], financial_data["monthly_burn"]),
            }

        return ApiResponse(
            success=True,
            message="Configurações do usuário",
            data={
                "settings": UserSettingsResponse(**settings).model_dump(),
                "financial_data": snapshot,
            }
        )

    except Exception:
        raise _server_error("carregar configurações")


@app.post("/settings", response_model=ApiResponse)
async def save_settings(
    settings_data: UserSettingsUpdate,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Salva moeda, perfil da empresa e (opcionalmente) os dados financeiros"""
    try:
        settings = db.upsert_user_settings(user_id, settings_data.settings_fields())

        financial_values = settings_data.financial_fields()
        if financial_values is not None:
            # campos ausentes ficam como estão; sem snapshot, começam em zero
            if db.get_financial_data(user_id) is None:
                financial_values = FinancialDataUpdate(**{**EMPTY_FINANCIAL_DATA, **financial_values}).model_dump()
            db.upsert_financial_data(user_id, financial_values)

        settings = {k: v for k, v in settings.items() if v is not None}
        return ApiResponse(
            success=True,
            message="Configurações salvas com sucesso",
            data=UserSettingsResponse(**settings).model_dump()
        )

    except Exception:
        raise _server_error("salvar configurações")


@app.post("/settings/currency", response_model=ApiResponse)
async def save_currency(
    currency_data: CurrencyUpdate,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Atualiza só a moeda preferida (valores armazenados continuam em USD)"""
    try:
        db.upsert_user_settings(user_id, {"currency": currency_data.currency})

        return ApiResponse(
            success=True,
            message="Moeda atualizada com sucesso",
            data={"currency": currency_data.currency}
        )

    except Exception:
        raise _server_error("salvar moeda")


# ENDPOINTS DE ANOMALIAS
@app.get("/anomalies", response_model=ApiResponse)
async def get_anomalies(
    anomaly_status: Optional[str] = Query(None, alias="status", pattern=r"^(open|investigating|resolved|dismissed)$"),
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
    rates: ExchangeRateService = Depends(get_rates),
):
    """Lista anomalias do usuário (mais recentes primeiro)"""
    try:
        anomalies = db.list_anomalies(user_id, anomaly_status)
        currency = _user_currency(db, user_id)
        rate = await rates.get_exchange_rate(BASE_CURRENCY, currency)

        active = [a for a in anomalies if a["status"] in ("open", "investigating")]
        potential_savings = sum(
            (Decimal(str(a.get("potential_savings") or 0)) for a in active), Decimal("0")
        )

        return ApiResponse(
            success=True,
            message="Anomalias listadas com sucesso",
            data={
                "anomalies": [AnomalyResponse(**a).model_dump(mode="json") for a in anomalies],
                "summary": {
                    "active": len(active),
                    "resolved": sum(1 for a in anomalies if a["status"] == "resolved"),
                    "total": len(anomalies),
                    "potential_savings": _money(potential_savings, rate, currency),
                },
            }
        )

    except Exception:
        raise _server_error("listar anomalias")


@app.post("/anomalies", response_model=ApiResponse)
async def create_anomaly(
    anomaly_data: AnomalyCreate,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Registra uma anomalia (status inicial open)"""
    try:
        anomaly = db.create_anomaly(user_id, anomaly_data.model_dump())

        return ApiResponse(
            success=True,
            message="Anomalia criada com sucesso",
            data=AnomalyResponse(**anomaly).model_dump(mode="json")
        )

    except Exception:
        raise _server_error("salvar anomalia")


@app.put("/anomalies/{anomaly_id}", response_model=ApiResponse)
async def update_anomaly(
    anomaly_id: str,
    update_data: AnomalyStatusUpdate,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Muda o status de uma anomalia"""
    try:
        anomaly = db.update_anomaly_status(user_id, anomaly_id, update_data.status)

        if not anomaly:
            raise _not_found("Anomalia não encontrada")

        return ApiResponse(
            success=True,
            message="Anomalia atualizada com sucesso",
            data=AnomalyResponse(**anomaly).model_dump(mode="json")
        )

    except HTTPException:
        raise
    except Exception:
        raise _server_error("atualizar anomalia")


# ENDPOINTS DE ONBOARDING
@app.get("/onboarding", response_model=ApiResponse)
async def get_onboarding_status(
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    try:
        return ApiResponse(
            success=True,
            message="Status do onboarding",
            data={"onboarded": is_onboarded(db, user_id)}
        )

    except Exception:
        raise _server_error("verificar onboarding")


@app.post("/onboarding", response_model=ApiResponse)
async def onboard_user(
    onboarding_data: Optional[OnboardingRequest] = None,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Cria configurações, snapshot e anomalias de exemplo do novo usuário"""
    onboarding_data = onboarding_data or OnboardingRequest()
    try:
        result = complete_onboarding(db, user_id, onboarding_data.sample_data)

        return ApiResponse(
            success=True,
            message="Onboarding concluído",
            data=result
        )

    except Exception:
        raise _server_error("completar onboarding")


# ENDPOINTS DE EXPORTAÇÃO
@app.get("/export")
async def export_financial_data(
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Exporta o snapshot financeiro em CSV"""
    try:
        financial_data = db.get_financial_data(user_id)
        if not financial_data:
            raise _not_found("Dados financeiros não encontrados")

        content = export.financial_data_csv(financial_data, _user_currency(db, user_id))

        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={export.SNAPSHOT_FILENAME}"},
        )

    except HTTPException:
        raise
    except Exception:
        raise _server_error("exportar dados")


@app.get("/export/transactions")
async def export_transactions(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    transaction_type: str = Query("all", alias="type", pattern=r"^(income|expense|all)$"),
    category: Optional[str] = None,
    vendor: Optional[str] = None,
    user_id: str = Depends(verify_token),
    db: WebDatabaseService = Depends(get_db),
):
    """Exporta as transações filtradas em CSV"""
    filters = _transaction_filters(start_date, end_date, transaction_type, category, vendor)
    try:
        content = export.transactions_csv(db.list_transactions(user_id, filters))

        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={export.transactions_filename()}"},
        )

    except Exception:
        raise _server_error("exportar transações")


# ENDPOINTS DE MOEDA
@app.get("/currencies", response_model=ApiResponse)
async def get_currencies():
    """Lista moedas suportadas"""
    return ApiResponse(
        success=True,
        message="Moedas suportadas",
        data={"base_currency": BASE_CURRENCY, "currencies": list_currencies()}
    )


@app.get("/currency/convert", response_model=ApiResponse)
async def convert_currency(
    amount: float = Query(..., allow_inf_nan=False),
    to: str = Query(..., min_length=3, max_length=3),
    user_id: str = Depends(verify_token),
    rates: ExchangeRateService = Depends(get_rates),
):
    """Converte um valor em USD para a moeda informada"""
    currency = to.upper()
    try:
        result = await rates.display_amount(amount, currency)

        return ApiResponse(
            success=True,
            message="Valor convertido",
            data={
                "amount": amount,
                "currency": currency,
                "converted": result.converted,
                "rate": result.rate,
                "formatted": format_currency(result.converted, currency),
            }
        )

    except Exception:
        raise _server_error("converter valor")


# ENDPOINT DE SAÚDE
@app.get("/health")
async def health_check():
    """Verifica se a API está funcionando"""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc)}
