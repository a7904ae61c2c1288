from __future__ import annotations

from dataclasses import dataclass
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow, localcontext
from enum import StrEnum
from functools import wraps
from typing import Callable, NewType, ParamSpec, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator

Currency = NewType("Currency", str)
AccountId = NewType("AccountId", str)

USD = Currency("USD")


class ConsumptionOrder(StrEnum):
    FUNDS_FIRST = "FUNDS_FIRST"
    LOTS_FIRST = "LOTS_FIRST"


DEFAULT_SHORTFALL_TOLERANCE = Decimal("0.000001")

# Engine arithmetic never rounds: a result that does not fit raises Inexact.
LEDGER_CONTEXT = Context(prec=200, traps=[InvalidOperation, DivisionByZero, Overflow, Inexact])

_P = ParamSpec("_P")
_R = TypeVar("_R")


def exact_arithmetic(func: Callable[_P, _R]) -> Callable[_P, _R]:
    """Run ``func`` under LEDGER_CONTEXT instead of the 28-digit default context."""

    @wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        with localcontext(LEDGER_CONTEXT):
            return func(*args, **kwargs)

    return wrapper


@dataclass(frozen=True)
class LedgerPolicy:
    """Knobs of the consumption policy applied by Monies.take."""

    shortfall_tolerance: Decimal = DEFAULT_SHORTFALL_TOLERANCE
    consumption_order: ConsumptionOrder = ConsumptionOrder.FUNDS_FIRST


class CurrencyPair(BaseModel):
    """A trading pair; prices on it are quoted as counter per base."""

    model_config = ConfigDict(frozen=True)

    base: Currency
    counter: Currency

    @field_validator("base", "counter", mode="before")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        code = value.strip().upper()
        if not code:
            raise ValueError("currency code must be non-empty")
        return code

    @classmethod
    def parse(cls, symbol: str) -> CurrencyPair:
        base, sep, counter = symbol.partition("/")
        if not sep:
            raise ValueError(f"Currency pair must look like BASE/COUNTER, got {symbol!r}")
        return cls(base=Currency(base), counter=Currency(counter))

    @property
    def inverted(self) -> str:
        return f"{self.counter}/{self.base}"

    def __str__(self) -> str:
        return f"{self.base}/{self.counter}"
