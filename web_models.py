"""
Modelos Pydantic para API REST do Painel Financeiro
Transações, dados financeiros, configurações do usuário e anomalias
"""
from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional, List, Literal
from datetime import datetime, date

from currency import CURRENCIES, BASE_CURRENCY

TransactionType = Literal["income", "expense"]
TransactionStatus = Literal["completed", "pending", "failed", "cancelled"]
AnomalySeverity = Literal["high", "medium", "low"]
AnomalyStatus = Literal["open", "investigating", "resolved", "dismissed"]


def _validate_currency_code(v: str) -> str:
    code = v.strip().upper()
    if code not in CURRENCIES:
        raise ValueError(f"Unsupported currency: {v}")
    return code


# Modelos base de resposta
class ApiResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None


# Modelos de transação
class TransactionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    category: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    type: TransactionType
    date: date
    vendor: Optional[str] = Field(None, max_length=200)
    vendor_type: Optional[str] = Field(None, max_length=100)
    payment_method: Optional[str] = Field(None, max_length=50)
    reference_number: Optional[str] = Field(None, max_length=100)
    status: TransactionStatus = "completed"
    tags: List[str] = Field(default_factory=list)

    @field_validator("name", "category")
    @classmethod
    def strip_required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: List[str]) -> List[str]:
        # Mantém a ordem da primeira ocorrência
        seen = set()
        tags = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.add(tag)
                tags.append(tag)
        return tags


class TransactionUpdate(TransactionCreate):
    """Edição substitui todos os campos mutáveis da transação"""
    pass


class TransactionResponse(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    category: str
    amount: float
    type: TransactionType
    date: date
    vendor: Optional[str] = None
    vendor_type: Optional[str] = None
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    status: str = "completed"
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TransactionFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: Literal["income", "expense", "all"] = "all"
    category: Optional[str] = None
    vendor: Optional[str] = None


# Modelos de dados financeiros (snapshot)
class FinancialDataUpdate(BaseModel):
    cash_balance: float = Field(..., allow_inf_nan=False)
    monthly_burn: float = Field(..., allow_inf_nan=False)
    monthly_revenue: float = Field(..., allow_inf_nan=False)


class FinancialDataResponse(BaseModel):
    cash_balance: float
    monthly_burn: float
    monthly_revenue: float
    runway_months: Optional[float]
    currency: str
    exchange_rate: float


# Modelos de configurações
class UserSettingsUpdate(BaseModel):
    currency: str = BASE_CURRENCY
    timezone: Optional[str] = Field(None, max_length=64)
    business_name: Optional[str] = Field(None, max_length=200)
    business_type: Optional[str] = Field(None, max_length=100)
    industry: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=200)
    founded_year: Optional[int] = Field(None, ge=1800)
    employee_count: Optional[int] = Field(None, ge=0)
    website: Optional[str] = Field(None, max_length=300)

    # Dados financeiros opcionais salvos junto com as configurações
    cash_balance: Optional[float] = Field(None, allow_inf_nan=False)
    monthly_burn: Optional[float] = Field(None, allow_inf_nan=False)
    monthly_revenue: Optional[float] = Field(None, allow_inf_nan=False)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _validate_currency_code(v)

    @field_validator("founded_year")
    @classmethod
    def validate_founded_year(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v > datetime.now().year:
            raise ValueError("Founded year cannot be in the future")
        return v

    def settings_fields(self) -> dict:
        data = self.model_dump(exclude={"cash_balance", "monthly_burn", "monthly_revenue"})
        return {k: v for k, v in data.items() if v is not None}

    def financial_fields(self) -> Optional[dict]:
        """Só os campos do snapshot que vieram no corpo; None se nenhum veio"""
        values = {
            "cash_balance": self.cash_balance,
            "monthly_burn": self.monthly_burn,
            "monthly_revenue": self.monthly_revenue,
        }
        sent = {k: v for k, v in values.items() if v is not None}
        return sent or None


class CurrencyUpdate(BaseModel):
    currency: str

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _validate_currency_code(v)


class UserSettingsResponse(BaseModel):
    user_id: str
    currency: str = BASE_CURRENCY
    timezone: str = "America/New_York"
    business_name: Optional[str] = None
    business_type: Optional[str] = None
    industry: Optional[str] = None
    location: Optional[str] = None
    founded_year: Optional[int] = None
    employee_count: Optional[int] = None
    website: Optional[str] = None


# Modelos de anomalia
class AnomalyCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    severity: AnomalySeverity
    category: str = Field(..., min_length=1, max_length=100)
    amount: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    potential_savings: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    ai_confidence: Optional[float] = Field(None, ge=0, le=1, allow_inf_nan=False)
    ai_recommendation: Optional[str] = Field(None, max_length=1000)


class AnomalyStatusUpdate(BaseModel):
    status: AnomalyStatus


class AnomalyResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: str
    severity: AnomalySeverity
    status: AnomalyStatus
    category: str
    amount: Optional[float] = None
    potential_savings: Optional[float] = None
    ai_confidence: Optional[float] = None
    ai_recommendation: Optional[str] = None
    detected_at: datetime
    resolved_at: Optional[datetime] = None


# Onboarding
class OnboardingRequest(BaseModel):
    sample_data: bool = False
