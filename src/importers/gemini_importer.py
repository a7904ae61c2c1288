from __future__ import annotations

import logging
from csv import DictReader
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.base_types import Currency
from domain.events import FundingRecord, FundingRecordType

logger = logging.getLogger(__name__)

_ROW_TYPES = {
    "Credit": FundingRecordType.DEPOSIT,
    "Debit": FundingRecordType.WITHDRAWAL,
}
_AMOUNT_COLUMNS = {
    "BTC": ("BTC Amount", "BTC Balance"),
    "ETH": ("ETH Amount", "ETH Balance"),
    "USD": ("USD Amount", "USD Balance"),
}


def parse_crypto_amount(raw: str) -> Decimal:
    """``"(0.123 BTC)"`` → ``-0.123``; ``"0.123 BTC"`` → ``0.123``."""
    text = raw.strip()
    negative = text.startswith("(")
    number = text.strip("() ").split(" ", 1)[0].strip()
    return -Decimal(number) if negative else Decimal(number)


def parse_usd_amount(raw: str) -> Decimal:
    """``"$1,234.56 "`` → ``1234.56``; ``"($1,234.56)"`` → ``-1234.56``."""
    text = raw.strip().strip('"').strip()
    negative = text.startswith("(")
    number = text.strip("() ").lstrip("$").replace(",", "").strip()
    return -Decimal(number) if negative else Decimal(number)


class GeminiTransferRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    date: str = Field(alias="Date")
    time: str = Field(alias="Time (UTC)")
    type: str = Field(alias="Type")
    symbol: str = Field(alias="Symbol")
    specification: str | None = Field(default=None, alias="Specification")
    withdrawal_destination: str | None = Field(default=None, alias="Withdrawal Destination")

    @field_validator("specification", "withdrawal_destination", mode="before")
    @classmethod
    def _empty_to_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @property
    def timestamp(self) -> datetime:
        return datetime.strptime(f"{self.date} {self.time}", "%Y-%m-%d %H:%M:%S.%f").replace(tzinfo=timezone.utc)

    def column(self, name: str) -> str | None:
        extra = self.model_extra or {}
        value = extra.get(name)
        if value is None or not str(value).strip():
            return None
        return str(value)


class GeminiTransferImporter:
    """Funding history from a Gemini transfer-history CSV export."""

    def __init__(self, source_path: str | Path) -> None:
        self._source_path = Path(source_path)

    def load_records(self) -> list[FundingRecord]:
        records: list[FundingRecord] = []
        skipped = 0
        with self._source_path.open(encoding="utf-8") as handle:
            for row in DictReader(handle):
                if row.get("Type") not in _ROW_TYPES:
                    skipped += 1
                    continue
                records.append(self.to_funding_record(GeminiTransferRow.model_validate(row)))
        logger.info("Loaded %d funding records from %s (%d other rows)", len(records), self._source_path, skipped)
        return records

    @staticmethod
    def to_funding_record(row: GeminiTransferRow) -> FundingRecord:
        record_type = _ROW_TYPES.get(row.type)
        if record_type is None:
            raise ValueError(f"Unknown type: {row.type}")

        currency = Currency(row.symbol.strip()[:3].upper())
        columns = _AMOUNT_COLUMNS.get(currency)
        if columns is None:
            raise ValueError(f"Unknown currency: {currency} in row {row.model_dump(by_alias=True)}")

        amount_column, balance_column = columns
        raw_amount = row.column(amount_column)
        raw_balance = row.column(balance_column)
        parse = parse_usd_amount if currency == "USD" else parse_crypto_amount
        return FundingRecord(
            type=record_type,
            currency=currency,
            amount=parse(raw_amount) if raw_amount is not None else None,
            balance=parse(raw_balance) if raw_balance is not None else None,
            fee=Decimal("0"),
            date=row.timestamp,
            address=row.withdrawal_destination,
            description=row.specification,
        )


__all__ = ["GeminiTransferImporter", "GeminiTransferRow", "parse_crypto_amount", "parse_usd_amount"]
