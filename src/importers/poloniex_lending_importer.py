from __future__ import annotations

import logging
from csv import DictReader
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from domain.events import LendingEvent

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"Currency", "Rate", "Amount", "Duration", "Interest", "Fee", "Earned", "Open", "Close"}


class PoloniexLendingRow(BaseModel):
    currency: str = Field(alias="Currency")
    rate: Decimal = Field(alias="Rate")
    amount: Decimal = Field(alias="Amount")
    duration: Decimal = Field(alias="Duration")
    interest: Decimal = Field(alias="Interest")
    fee: Decimal = Field(alias="Fee")
    earned: Decimal = Field(alias="Earned")
    open: datetime = Field(alias="Open")
    close: datetime = Field(alias="Close")

    @field_validator("open", "close", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: str | datetime) -> datetime:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value
        return datetime.strptime(value.strip(), "%Y-%m-%d %H:%M:%S").replace(tzinfo=timezone.utc)

    def to_event(self) -> LendingEvent:
        return LendingEvent(
            currency=self.currency,
            rate=self.rate,
            amount=self.amount,
            duration=self.duration,
            interest=self.interest,
            fee=self.fee,
            earned=self.earned,
            opened=self.open,
            closed=self.close,
        )


class PoloniexLendingImporter:
    """Interest payouts from a Poloniex lending-history CSV export."""

    def __init__(self, source_path: str | Path) -> None:
        self._source_path = Path(source_path)

    def load_events(self) -> list[LendingEvent]:
        with self._source_path.open(encoding="utf-8") as handle:
            reader = DictReader(handle)
            if reader.fieldnames is None:
                raise ValueError(f"Lending CSV {self._source_path} is empty or missing headers")
            missing = REQUIRED_COLUMNS - set(reader.fieldnames)
            if missing:
                raise ValueError(
                    f"Lending CSV {self._source_path} missing required columns: {', '.join(sorted(missing))}"
                )
            events = [PoloniexLendingRow.model_validate(row).to_event() for row in reader]

        logger.info("Loaded %d lending events from %s", len(events), self._source_path)
        return events


__all__ = ["PoloniexLendingImporter", "PoloniexLendingRow"]
