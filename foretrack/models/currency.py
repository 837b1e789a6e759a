"""Supported currencies and amount formatting."""

from decimal import Decimal
from typing import Union

from pydantic import BaseModel


class Currency(BaseModel):
    code: str
    symbol: str
    name: str


CURRENCIES: list[Currency] = [
    Currency(code="USD", symbol="$", name="US Dollar"),
    Currency(code="EUR", symbol="€", name="Euro"),
    Currency(code="GBP", symbol="£", name="British Pound"),
    Currency(code="INR", symbol="₹", name="Indian Rupee"),
    Currency(code="JPY", symbol="¥", name="Japanese Yen"),
    Currency(code="CAD", symbol="C$", name="Canadian Dollar"),
    Currency(code="AUD", symbol="A$", name="Australian Dollar"),
    Currency(code="CHF", symbol="CHF", name="Swiss Franc"),
    Currency(code="CNY", symbol="¥", name="Chinese Yuan"),
    Currency(code="KRW", symbol="₩", name="South Korean Won"),
    Currency(code="BRL", symbol="R$", name="Brazilian Real"),
    Currency(code="MXN", symbol="$", name="Mexican Peso"),
    Currency(code="SGD", symbol="S$", name="Singapore Dollar"),
    Currency(code="AED", symbol="د.إ", name="UAE Dirham"),
    Currency(code="ZAR", symbol="R", name="South African Rand"),
]

_BY_CODE = {currency.code: currency for currency in CURRENCIES}


def get_currency(code: str) -> Currency:
    """Return the currency for an ISO code, defaulting to US Dollar."""
    return _BY_CODE.get(code.upper(), CURRENCIES[0])


def format_amount(amount: Union[Decimal, float, int], code: str = "USD") -> str:
    """Format an amount with its currency symbol and two decimals."""
    currency = get_currency(code)
    value = Decimal(str(amount))
    sign = "-" if value < 0 else ""
    return f"{sign}{currency.symbol}{abs(value):,.2f}"
