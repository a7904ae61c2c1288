"""Parsed account activity consumed by the ledger.

Importers and the history store produce these; the ledger only ever sees an
``AccountEvent``, the closed union of the three kinds below.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator

from domain.base_types import Currency, CurrencyPair

EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _currency_code(value: str) -> str:
    code = value.strip().upper()
    if not code:
        raise ValueError("currency code must be non-empty")
    return code


class FundingRecordType(StrEnum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class OrderSide(StrEnum):
    ASK = "ASK"
    BID = "BID"


class FundingRecord(BaseModel):
    """A deposit to or withdrawal from an exchange account."""

    kind: Literal["funding"] = "funding"
    type: FundingRecordType
    currency: Currency
    amount: Decimal | None
    fee: Decimal | None = None
    date: datetime | None = None
    address: str | None = None
    description: str | None = None
    balance: Decimal | None = None

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return _currency_code(value)

    @field_validator("date", mode="after")
    @classmethod
    def _ensure_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def event_time(self) -> datetime:
        return self.date or EARLIEST


class TradeFill(BaseModel):
    """One fill of an order; ``amount`` is in base, ``price`` is counter per base."""

    kind: Literal["trade"] = "trade"
    id: str | None = None
    side: OrderSide
    pair: CurrencyPair
    amount: Decimal
    price: Decimal
    timestamp: datetime
    fee_amount: Decimal = Decimal("0")
    fee_currency: Currency

    @field_validator("pair", mode="before")
    @classmethod
    def _parse_pair(cls, value: object) -> object:
        if isinstance(value, str):
            return CurrencyPair.parse(value)
        return value

    @field_validator("fee_currency", mode="before")
    @classmethod
    def _normalize_fee_currency(cls, value: str) -> str:
        return _currency_code(value)

    @field_validator("timestamp", mode="after")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)  # type: ignore[return-value]

    @property
    def event_time(self) -> datetime:
        return self.timestamp


class LendingEvent(BaseModel):
    """Interest paid out for a closed margin-lending loan."""

    kind: Literal["lending"] = "lending"
    currency: Currency
    rate: Decimal
    amount: Decimal
    duration: Decimal  # days
    interest: Decimal
    fee: Decimal
    earned: Decimal
    opened: datetime
    closed: datetime

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return _currency_code(value)

    @field_validator("opened", "closed", mode="after")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)  # type: ignore[return-value]

    @property
    def event_time(self) -> datetime:
        return self.closed


AccountEvent = Annotated[Union[FundingRecord, TradeFill, LendingEvent], Field(discriminator="kind")]
