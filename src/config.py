from __future__ import annotations

from decimal import Decimal
from functools import cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.base_types import DEFAULT_SHORTFALL_TOLERANCE, ConsumptionOrder, LedgerPolicy


class AppSettings(BaseSettings):
    external_addresses: list[str] = []
    shortfall_tolerance: Decimal = DEFAULT_SHORTFALL_TOLERANCE
    consumption_order: ConsumptionOrder = ConsumptionOrder.FUNDS_FIRST
    # Lots at or below this amount are left out of withdrawal reports.
    dust_threshold: Decimal = Decimal("0.0000001")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("shortfall_tolerance", "dust_threshold")
    @classmethod
    def _non_negative(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    def ledger_policy(self) -> LedgerPolicy:
        return LedgerPolicy(shortfall_tolerance=self.shortfall_tolerance, consumption_order=self.consumption_order)


@cache
def config() -> AppSettings:
    return AppSettings()
