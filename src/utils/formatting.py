from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from domain.base_types import exact_arithmetic


@exact_arithmetic
def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.isoformat()


def format_balances(balances: dict[str, Decimal], *, skip_zero: bool = False) -> list[str]:
    return [
        f"{format_decimal(amount)} {currency}"
        for currency, amount in sorted(balances.items())
        if not (skip_zero and amount == 0)
    ]
