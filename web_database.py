"""
Funções de banco de dados para API REST do Painel Financeiro
Operações CRUD de transações, dados financeiros, configurações e anomalias

Toda consulta é filtrada por user_id: um usuário nunca lê nem altera
registros de outro.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from database import supabase

logger = logging.getLogger(__name__)

SNAPSHOT_FIELD_BY_TYPE = {
    "income": "monthly_revenue",
    "expense": "monthly_burn",
}


class DatabaseError(Exception):
    """Exceção customizada para erros de banco de dados"""
    pass


def _escape_like(value: str) -> str:
    """Trata %, _ e \\ como caracteres literais num padrão ILIKE"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _serialize(data: Dict[str, Any]) -> Dict[str, Any]:
    """Converte datas para ISO antes de enviar ao Supabase"""
    result = {}
    for key, value in data.items():
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        result[key] = value
    return result


class WebDatabaseService:
    def __init__(self, client=None):
        self.supabase = client if client is not None else supabase

    def _client(self):
        if not self.supabase:
            raise DatabaseError("Database not available")
        return self.supabase

    # ======= TRANSAÇÕES =======

    def list_transactions(self, user_id: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Lista transações do usuário, mais recentes primeiro

        Args:
            user_id: ID do dono
            filters: start_date, end_date, type (income|expense|all), category, vendor
        """
        filters = filters or {}
        client = self._client()
        try:
            query = client.table("transactions").select("*").eq("user_id", user_id)

            if filters.get("start_date"):
                query = query.gte("date", str(filters["start_date"]))
            if filters.get("end_date"):
                query = query.lte("date", str(filters["end_date"]))
            if filters.get("type") and filters["type"] != "all":
                query = query.eq("type", filters["type"])
            if filters.get("category"):
                query = query.ilike("category", _escape_like(filters["category"].strip()))
            if filters.get("vendor"):
                query = query.ilike("vendor", f"%{_escape_like(filters['vendor'].strip())}%")

            result = query.order("date", desc=True).execute()
            return result.data or []
        except Exception as e:
            raise DatabaseError(f"Erro ao listar transações: {str(e)}") from e

    def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Dict[str, Any]]:
        client = self._client()
        try:
            result = (
                client.table("transactions").select("*")
                .eq("id", transaction_id).eq("user_id", user_id).execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            raise DatabaseError(f"Erro ao buscar transação: {str(e)}") from e

    def create_transaction(self, user_id: str, transaction_data: Dict[str, Any]) -> Dict[str, Any]:
        """Cria nova transação e ajusta o snapshot financeiro"""
        client = self._client()
        record = _serialize(transaction_data)
        record["id"] = str(uuid.uuid4())
        record["user_id"] = user_id
        record.setdefault("status", "completed")
        record.setdefault("tags", [])
        record["created_at"] = _now()
        record["updated_at"] = record["created_at"]

        try:
            result = client.table("transactions").insert(record).execute()
        except Exception as e:
            raise DatabaseError(f"Erro ao criar transação: {str(e)}") from e

        if not result.data:
            raise DatabaseError("Erro ao criar transação")

        transaction = result.data[0]
        self.adjust_financial_data(user_id, previous=None, current=transaction)
        return transaction

    def update_transaction(self, user_id: str, transaction_id: str, transaction_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Substitui os campos mutáveis da transação

        Returns:
            A transação atualizada, ou None se não existir ou for de outro usuário
        """
        previous = self.get_transaction(user_id, transaction_id)
        if previous is None:
            return None

        client = self._client()
        record = _serialize(transaction_data)
        for protected in ("id", "user_id", "created_at"):
            record.pop(protected, None)
        record["updated_at"] = _now()

        try:
            result = (
                client.table("transactions").update(record)
                .eq("id", transaction_id).eq("user_id", user_id).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Erro ao atualizar transação: {str(e)}") from e

        if not result.data:
            return None

        transaction = result.data[0]
        self.adjust_financial_data(user_id, previous=previous, current=transaction)
        return transaction

    def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        """Remove a transação; False se não existir ou for de outro usuário"""
        client = self._client()
        try:
            result = (
                client.table("transactions").delete()
                .eq("id", transaction_id).eq("user_id", user_id).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Erro ao deletar transação: {str(e)}") from e

        if not result.data:
            return False

        self.adjust_financial_data(user_id, previous=result.data[0], current=None)
        return True

    # ======= DADOS FINANCEIROS =======

    def get_financial_data(self, user_id: str) -> Optional[Dict[str, Any]]:
        client = self._client()
        try:
            result = client.table("financial_data").select("*").eq("user_id", user_id).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            raise DatabaseError(f"Erro ao buscar dados financeiros: {str(e)}") from e

    def upsert_financial_data(self, user_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Cria ou sobrescreve o snapshot do usuário (uma linha por usuário)"""
        client = self._client()
        record = _serialize(values)
        record["user_id"] = user_id
        record["updated_at"] = _now()
        try:
            result = client.table("financial_data").upsert(record, on_conflict="user_id").execute()
        except Exception as e:
            raise DatabaseError(f"Erro ao salvar dados financeiros: {str(e)}") from e

        if not result.data:
            raise DatabaseError("Erro ao salvar dados financeiros")
        return result.data[0]

    def increment_financial_field(self, user_id: str, field: str, delta: float) -> bool:
        """
        Soma delta a monthly_burn ou monthly_revenue em um único UPDATE no banco

        Returns:
            True se havia snapshot para atualizar
        """
        if field not in SNAPSHOT_FIELD_BY_TYPE.values():
            raise ValueError(f"Campo não incrementável: {field}")

        client = self._client()
        try:
            result = client.rpc(
                "increment_financial_data",
                {"p_user_id": user_id, "p_field": field, "p_delta": delta},
            ).execute()
        except Exception as e:
            raise DatabaseError(f"Erro ao atualizar dados financeiros: {str(e)}") from e
        return bool(result.data)

    def adjust_financial_data(self, user_id: str, previous: Optional[Dict[str, Any]], current: Optional[Dict[str, Any]]) -> None:
        """
        Ajusta o snapshot pela contribuição da transação

        Remove a contribuição anterior (edição/remoção) e soma a nova
        (criação/edição). Falhas são registradas e não interrompem a operação.
        """
        deltas: Dict[str, Decimal] = {}
        if previous is not None:
            field = SNAPSHOT_FIELD_BY_TYPE.get(previous.get("type"))
            if field:
                deltas[field] = deltas.get(field, Decimal("0")) - Decimal(str(previous["amount"]))
        if current is not None:
            field = SNAPSHOT_FIELD_BY_TYPE.get(current.get("type"))
            if field:
                deltas[field] = deltas.get(field, Decimal("0")) + Decimal(str(current["amount"]))

        for field, delta in deltas.items():
            if delta == 0:
                continue
            try:
                self.increment_financial_field(user_id, field, float(delta))
            except DatabaseError as e:
                logger.warning("Snapshot de %s não ajustado (%s %s): %s", user_id, field, delta, e)

    # ======= CONFIGURAÇÕES =======

    def get_user_settings(self, user_id: str) -> Optional[Dict[str, Any]]:
        client = self._client()
        try:
            result = client.table("user_settings").select("*").eq("user_id", user_id).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            raise DatabaseError(f"Erro ao buscar configurações: {str(e)}") from e

    def upsert_user_settings(self, user_id: str, settings_data: Dict[str, Any]) -> Dict[str, Any]:
        """Cria ou atualiza a linha única de configurações do usuário"""
        client = self._client()
        record = _serialize(settings_data)
        record["user_id"] = user_id
        record["updated_at"] = _now()
        try:
            result = client.table("user_settings").upsert(record, on_conflict="user_id").execute()
        except Exception as e:
            raise DatabaseError(f"Erro ao salvar configurações: {str(e)}") from e

        if not result.data:
            raise DatabaseError("Erro ao salvar configurações")
        return result.data[0]

    # ======= ANOMALIAS =======

    def list_anomalies(self, user_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        client = self._client()
        try:
            query = client.table("anomalies").select("*").eq("user_id", user_id)
            if status:
                query = query.eq("status", status)
            result = query.order("detected_at", desc=True).execute()
            return result.data or []
        except Exception as e:
            raise DatabaseError(f"Erro ao listar anomalias: {str(e)}") from e

    def create_anomaly(self, user_id: str, anomaly_data: Dict[str, Any]) -> Dict[str, Any]:
        client = self._client()
        record = _serialize(anomaly_data)
        record["id"] = str(uuid.uuid4())
        record["user_id"] = user_id
        record["status"] = "open"
        record.setdefault("detected_at", _now())
        record["resolved_at"] = None
        try:
            result = client.table("anomalies").insert(record).execute()
        except Exception as e:
            raise DatabaseError(f"Erro ao criar anomalia: {str(e)}") from e

        if not result.data:
            raise DatabaseError("Erro ao criar anomalia")
        return result.data[0]

    def update_anomaly_status(self, user_id: str, anomaly_id: str, status: str) -> Optional[Dict[str, Any]]:
        """Muda o status; resolved grava a data de resolução, os demais a limpam"""
        client = self._client()
        update = {
            "status": status,
            "resolved_at": _now() if status == "resolved" else None,
        }
        try:
            result = (
                client.table("anomalies").update(update)
                .eq("id", anomaly_id).eq("user_id", user_id).execute()
            )
        except Exception as e:
            raise DatabaseError(f"Erro ao atualizar anomalia: {str(e)}") from e
        return result.data[0] if result.data else None
