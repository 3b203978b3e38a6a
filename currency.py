"""
Conversão e formatação de moedas para exibição
Todos os valores são armazenados em USD; a conversão acontece só na leitura
"""
import logging
import math
import os
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, NamedTuple, Optional

import httpx
from dotenv import load_dotenv

from rate_cache import RateCache

load_dotenv()

logger = logging.getLogger(__name__)

BASE_CURRENCY = "USD"

EXCHANGE_RATE_API_URL = os.getenv("EXCHANGE_RATE_API_URL", "https://open.er-api.com/v6/latest")
EXCHANGE_RATE_TIMEOUT = float(os.getenv("EXCHANGE_RATE_TIMEOUT", "5"))
EXCHANGE_RATE_CACHE_TTL = int(os.getenv("EXCHANGE_RATE_CACHE_TTL", "600"))

# position: onde o símbolo aparece; space: espaço entre símbolo e número
CURRENCIES: Dict[str, Dict[str, Any]] = {
    "USD": {"symbol": "$", "name": "US Dollar", "locale": "en-US", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
    "EUR": {"symbol": "€", "name": "Euro", "locale": "de-DE", "decimal": ",", "group": ".", "position": "suffix", "space": True, "digits": 2},
    "GBP": {"symbol": "£", "name": "British Pound", "locale": "en-GB", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
    "JPY": {"symbol": "¥", "name": "Japanese Yen", "locale": "ja-JP", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 0},
    "CAD": {"symbol": "C$", "name": "Canadian Dollar", "locale": "en-CA", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
    "AUD": {"symbol": "A$", "name": "Australian Dollar", "locale": "en-AU", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
    "CHF": {"symbol": "Fr", "name": "Swiss Franc", "locale": "de-CH", "decimal": ".", "group": "’", "position": "prefix", "space": True, "digits": 2},
    "CNY": {"symbol": "¥", "name": "Chinese Yuan", "locale": "zh-CN", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
    "INR": {"symbol": "₹", "name": "Indian Rupee", "locale": "hi-IN", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
    "BRL": {"symbol": "R$", "name": "Brazilian Real", "locale": "pt-BR", "decimal": ",", "group": ".", "position": "prefix", "space": True, "digits": 2},
    "ZAR": {"symbol": "R", "name": "South African Rand", "locale": "en-ZA", "decimal": ",", "group": " ", "position": "prefix", "space": False, "digits": 2},
    "SGD": {"symbol": "S$", "name": "Singapore Dollar", "locale": "en-SG", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
    "MXN": {"symbol": "$", "name": "Mexican Peso", "locale": "es-MX", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
    "NGN": {"symbol": "₦", "name": "Nigerian Naira", "locale": "en-NG", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
    "KES": {"symbol": "KSh", "name": "Kenyan Shilling", "locale": "en-KE", "decimal": ".", "group": ",", "position": "prefix", "space": True, "digits": 2},
    "GHS": {"symbol": "₵", "name": "Ghanaian Cedi", "locale": "en-GH", "decimal": ".", "group": ",", "position": "prefix", "space": False, "digits": 2},
}

COMPACT_UNITS = [
    (Decimal("1e3"), "K"),
    (Decimal("1e6"), "M"),
    (Decimal("1e9"), "B"),
    (Decimal("1e12"), "T"),
]


class ConversionResult(NamedTuple):
    converted: float
    rate: float


def get_currency(code: str) -> Dict[str, Any]:
    """Retorna a configuração da moeda; códigos desconhecidos usam o padrão USD com o próprio código como símbolo"""
    info = CURRENCIES.get(code.upper())
    if info is None:
        return {**CURRENCIES[BASE_CURRENCY], "symbol": code.upper(), "name": code.upper(), "space": True}
    return info


def list_currencies() -> list:
    return [
        {"code": code, "symbol": info["symbol"], "name": info["name"], "locale": info["locale"]}
        for code, info in CURRENCIES.items()
    ]


def _group_digits(integer_part: str, separator: str) -> str:
    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    return separator.join(groups)


def _format_number(value: Decimal, digits: int, info: Dict[str, Any], trim_zeros: bool = False) -> str:
    quantum = Decimal(1).scaleb(-digits)
    text = f"{value.quantize(quantum, rounding=ROUND_HALF_UP):f}"
    integer_part, _, fraction = text.partition(".")
    if trim_zeros:
        fraction = fraction.rstrip("0")
    number = _group_digits(integer_part, info["group"])
    if fraction:
        number = f"{number}{info['decimal']}{fraction}"
    return number


def _compact(value: Decimal, info: Dict[str, Any]) -> str:
    digits = min(1, info["digits"])
    quantum = Decimal(1).scaleb(-digits)
    index = None
    for i, (threshold, _) in enumerate(COMPACT_UNITS):
        if value >= threshold:
            index = i
    if index is None:
        rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
        if rounded < COMPACT_UNITS[0][0]:
            return _format_number(rounded, digits, info, trim_zeros=True)
        # 999.96 arredonda para 1000; vira 1K
        index = 0

    threshold, suffix = COMPACT_UNITS[index]
    scaled = (value / threshold).quantize(quantum, rounding=ROUND_HALF_UP)
    # 999.95K arredonda para 1000K; sobe para a próxima unidade
    if scaled >= 1000 and index + 1 < len(COMPACT_UNITS):
        threshold, suffix = COMPACT_UNITS[index + 1]
        scaled = (value / threshold).quantize(quantum, rounding=ROUND_HALF_UP)
    return f"{_format_number(scaled, digits, info, trim_zeros=True)}{suffix}"


def format_currency(amount: float, currency: str = BASE_CURRENCY, compact: bool = False) -> str:
    """
    Formata um valor segundo as convenções da moeda

    Args:
        amount: Valor já convertido para a moeda
        currency: Código da moeda (ex: EUR)
        compact: Abrevia milhares/milhões (ex: $1.2M)
    """
    if not math.isfinite(amount):
        raise ValueError(f"Valor não finito: {amount!r}")

    info = get_currency(currency)
    value = Decimal(str(amount))
    negative = value < 0
    value = abs(value)

    if compact:
        number = _compact(value, info)
    else:
        number = _format_number(value, info["digits"], info)

    space = " " if info["space"] else ""
    if info["position"] == "suffix":
        text = f"{number}{space}{info['symbol']}"
    else:
        text = f"{info['symbol']}{space}{number}"
    return f"-{text}" if negative else text


def format_compact_currency(amount: float, currency: str = BASE_CURRENCY) -> str:
    return format_currency(amount, currency, compact=True)


class ExchangeRateService:
    """Busca cotações na API externa, com cache e fallback para 1.0"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache: Optional[RateCache] = None,
        cache_ttl: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or EXCHANGE_RATE_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else EXCHANGE_RATE_TIMEOUT
        self.cache = cache if cache is not None else RateCache()
        self.cache_ttl = cache_ttl if cache_ttl is not None else EXCHANGE_RATE_CACHE_TTL
        self._transport = transport

    async def _fetch_rate(self, from_code: str, to_code: str) -> float:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/{from_code}")
            response.raise_for_status()
            payload = response.json()

        rate = float(payload["rates"][to_code])
        if not math.isfinite(rate) or rate <= 0:
            raise ValueError(f"Invalid rate {rate!r} for {from_code}->{to_code}")
        return rate

    async def get_exchange_rate(self, from_code: str, to_code: str) -> float:
        """
        Retorna a cotação from_code -> to_code

        Nunca levanta exceção: qualquer falha na API externa resulta em 1.0
        (o valor exibido fica errado, mas a página não quebra).
        """
        from_code = from_code.upper()
        to_code = to_code.upper()
        if from_code == to_code:
            return 1.0

        cache_key = f"{from_code}:{to_code}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            rate = await self._fetch_rate(from_code, to_code)
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning(
                "Falha ao buscar cotação %s->%s (%s); usando taxa 1.0", from_code, to_code, e
            )
            return 1.0

        self.cache.set(cache_key, rate, self.cache_ttl)
        return rate

    async def convert_amount(self, amount: float, from_code: str, to_code: str) -> ConversionResult:
        rate = await self.get_exchange_rate(from_code, to_code)
        if rate == 1.0:
            return ConversionResult(converted=amount, rate=1.0)
        return ConversionResult(converted=amount * rate, rate=rate)

    async def display_amount(self, base_amount: float, target_currency: str) -> ConversionResult:
        """Converte um valor armazenado em USD para a moeda de exibição do usuário"""
        return await self.convert_amount(base_amount, BASE_CURRENCY, target_currency)


exchange_rate_service = ExchangeRateService()
