"""
Currency conversion.

``RateClient`` talks to a Frankfurter-compatible exchange-rate API;
``CurrencyNormalizer`` wraps any such service so that a failed lookup never
loses a transaction: it falls back to the original amount at rate 1.
"""
import math
from dataclasses import dataclass

import httpx
from loguru import logger

from coinmind.config import Settings
from coinmind.exceptions import ConversionError

_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "CNY": "¥",
    "KRW": "₩",
    "RUB": "₽",
    "TRY": "₺",
    "ILS": "₪",
    "NGN": "₦",
    "PHP": "₱",
    "BRL": "R$",
}

_ZERO_DECIMAL = {"JPY", "KRW"}


def format_money(amount: float, currency: str) -> str:
    """Format an amount with its currency symbol: '-$1,234.50', '€12', '1,000 AED'."""
    currency = (currency or "").upper()
    sign = "-" if amount < 0 else ""
    value = abs(amount)
    if currency in _ZERO_DECIMAL or value == int(value):
        number = f"{round(value):,}"
    else:
        number = f"{value:,.2f}"
    symbol = _SYMBOLS.get(currency)
    if symbol:
        return f"{sign}{symbol}{number}"
    return f"{sign}{number} {currency}".strip()


class RateClient:
    def __init__(self, base_url: str, timeout: float = 10.0, transport=None):
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateClient":
        return cls(settings.rates_url, timeout=settings.rates_timeout)

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        params = {"amount": amount, "from": from_currency, "to": to_currency}
        try:
            response = self.client.get("/latest", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise ConversionError(
                f"Rate lookup failed: {e}",
                details={"from": from_currency, "to": to_currency},
            )
        except ValueError as e:
            raise ConversionError(f"Rate service returned invalid JSON: {e}")

        try:
            return float(payload["rates"][to_currency])
        except (KeyError, TypeError, ValueError):
            raise ConversionError(
                f"No {to_currency} rate in response",
                details={"from": from_currency, "to": to_currency, "payload": payload},
            )

    def close(self) -> None:
        self.client.close()


@dataclass(frozen=True)
class Conversion:
    amount: float
    currency: str
    rate: float = 1.0


class CurrencyNormalizer:
    def __init__(self, rates):
        self.rates = rates

    def normalize(self, amount: float, from_currency: str, to_currency: str) -> Conversion:
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency or amount == 0:
            return Conversion(amount, from_currency)

        try:
            converted = self.rates.convert(abs(amount), from_currency, to_currency)
        except Exception as e:
            # Any rate-service failure keeps the original figures
            logger.warning(
                "Currency conversion {} -> {} failed, using original amount: {}",
                from_currency, to_currency, e,
            )
            return Conversion(amount, from_currency)

        rate = converted / abs(amount)
        if not (math.isfinite(converted) and math.isfinite(rate)):
            logger.warning(
                "Rate service returned {} for {} -> {}, using original amount",
                converted, from_currency, to_currency,
            )
            return Conversion(amount, from_currency)

        signed = -converted if amount < 0 else converted
        return Conversion(signed, to_currency, rate)
