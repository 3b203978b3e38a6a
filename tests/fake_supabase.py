"""Cliente Supabase em memória para os testes (subconjunto usado pelo WebDatabaseService)"""
import copy
import re
import uuid


class FakeResponse:
    def __init__(self, data):
        self.data = data


def _like_to_regex(pattern):
    # mesma semântica do ILIKE do Postgres: \ escapa o próximo caractere
    parts = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


class FakeQuery:
    def __init__(self, db, table, operation, payload=None, on_conflict=None):
        self.db = db
        self.table = table
        self.operation = operation
        self.payload = payload
        self.on_conflict = on_conflict
        self.filters = []
        self.order_by = None
        self.descending = False

    def select(self, columns="*"):
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row[column] >= value)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row[column] <= value)
        return self

    def ilike(self, column, pattern):
        regex = _like_to_regex(pattern)
        self.filters.append(lambda row: row.get(column) is not None and regex.fullmatch(row[column]) is not None)
        return self

    def order(self, column, desc=False):
        self.order_by = column
        self.descending = desc
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        rows = self.db.tables.setdefault(self.table, [])

        if self.operation == "select":
            result = [copy.deepcopy(row) for row in rows if self._matches(row)]
            if self.order_by:
                result.sort(key=lambda row: row.get(self.order_by) or "", reverse=self.descending)
            return FakeResponse(result)

        if self.operation == "insert":
            record = copy.deepcopy(self.payload)
            record.setdefault("id", str(uuid.uuid4()))
            rows.append(record)
            return FakeResponse([copy.deepcopy(record)])

        if self.operation == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        if self.operation == "delete":
            deleted = [row for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse([copy.deepcopy(row) for row in deleted])

        if self.operation == "upsert":
            key = self.on_conflict
            for row in rows:
                if row.get(key) == self.payload.get(key):
                    row.update(copy.deepcopy(self.payload))
                    return FakeResponse([copy.deepcopy(row)])
            record = copy.deepcopy(self.payload)
            record.setdefault("id", str(uuid.uuid4()))
            rows.append(record)
            return FakeResponse([copy.deepcopy(record)])

        raise ValueError(f"Unsupported operation {self.operation}")


class FakeTable:
    def __init__(self, db, name):
        self.db = db
        self.name = name

    def select(self, columns="*"):
        return FakeQuery(self.db, self.name, "select")

    def insert(self, payload):
        return FakeQuery(self.db, self.name, "insert", payload)

    def update(self, payload):
        return FakeQuery(self.db, self.name, "update", payload)

    def delete(self):
        return FakeQuery(self.db, self.name, "delete")

    def upsert(self, payload, on_conflict=""):
        return FakeQuery(self.db, self.name, "upsert", payload, on_conflict)


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.rpc_calls.append((self.name, dict(self.params)))
        if self.name != "increment_financial_data":
            raise ValueError(f"Unknown function {self.name}")
        for row in self.db.tables.setdefault("financial_data", []):
            if row["user_id"] == self.params["p_user_id"]:
                row[self.params["p_field"]] = row.get(self.params["p_field"], 0) + self.params["p_delta"]
                return FakeResponse(True)
        return FakeResponse(False)


class InMemorySupabase:
    def __init__(self):
        self.tables = {}
        self.rpc_calls = []

    def table(self, name):
        return FakeTable(self, name)

    def rpc(self, name, params):
        return FakeRpc(self, name, params)


class BrokenSupabase:
    """Simula o banco fora do ar: toda operação falha"""

    def table(self, name):
        raise ConnectionError("database unreachable")

    def rpc(self, name, params):
        raise ConnectionError("database unreachable")
