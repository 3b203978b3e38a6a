from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from currency import ExchangeRateService
from rate_cache import RateCache
from web_api import ALGORITHM, SECRET_KEY, app, get_db, get_rates
from web_database import WebDatabaseService

from fake_supabase import InMemorySupabase

RATES = {"USD": 1.0, "EUR": 0.5, "GBP": 0.8, "JPY": 150.0}


def rates_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/USD"):
        return httpx.Response(200, json={"result": "success", "base_code": "USD", "rates": RATES})
    return httpx.Response(404, json={"result": "error"})


def make_rates_service(handler=rates_handler) -> ExchangeRateService:
    return ExchangeRateService(
        base_url="https://rates.test/v6/latest",
        timeout=1,
        cache=RateCache(redis_url=""),
        cache_ttl=60,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def fake_supabase():
    return InMemorySupabase()


@pytest.fixture
def db(fake_supabase):
    return WebDatabaseService(client=fake_supabase)


@pytest.fixture
def rates():
    return make_rates_service()


@pytest.fixture
def client(db, rates):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_rates] = lambda: rates
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_token(user_id: str, expires_in: timedelta = timedelta(minutes=30)) -> str:
    """Token no formato emitido pelo provedor de autenticação"""
    payload = {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def headers_a():
    return auth_headers("user-a")


@pytest.fixture
def headers_b():
    return auth_headers("user-b")
