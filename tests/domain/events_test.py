from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import TypeAdapter, ValidationError

from domain.base_types import CurrencyPair
from domain.errors import FeeCurrencyError
from domain.events import EARLIEST, AccountEvent, FundingRecord, FundingRecordType, LendingEvent, TradeFill
from tests.constants import BTC, ETH, ETH_BTC, USD

EVENT_ADAPTER = TypeAdapter(AccountEvent)


def test_currency_pair_parse_and_format() -> None:
    pair = CurrencyPair.parse("eth/btc")

    assert pair == ETH_BTC
    assert str(pair) == "ETH/BTC"
    assert pair.inverted == "BTC/ETH"


@pytest.mark.parametrize("symbol", ["ETHBTC", "/BTC", "ETH/"])
def test_currency_pair_parse_rejects_malformed(symbol: str) -> None:
    with pytest.raises(ValueError):
        CurrencyPair.parse(symbol)


def test_currency_pair_is_hashable() -> None:
    assert len({CurrencyPair.parse("ETH/BTC"), ETH_BTC}) == 1


def test_discriminated_union_picks_event_kind() -> None:
    funding = EVENT_ADAPTER.validate_python(
        {"kind": "funding", "type": "WITHDRAWAL", "currency": "btc", "amount": "1.5", "address": "abc"}
    )
    trade = EVENT_ADAPTER.validate_python(
        {
            "kind": "trade",
            "side": "BID",
            "pair": "ETH/BTC",
            "amount": "2",
            "price": "0.05",
            "timestamp": "2024-01-01T00:00:00Z",
            "fee_currency": "ETH",
        }
    )
    lending = EVENT_ADAPTER.validate_python(
        {
            "kind": "lending",
            "currency": "BTC",
            "rate": "0.0002",
            "amount": "1",
            "duration": "2",
            "interest": "0.0004",
            "fee": "-0.00006",
            "earned": "0.00034",
            "opened": "2024-01-01T00:00:00",
            "closed": "2024-01-03T00:00:00",
        }
    )

    assert isinstance(funding, FundingRecord)
    assert funding.type == FundingRecordType.WITHDRAWAL
    assert funding.currency == BTC
    assert funding.amount == Decimal("1.5")
    assert isinstance(trade, TradeFill)
    assert trade.pair == ETH_BTC
    assert trade.fee_amount == Decimal("0")
    assert isinstance(lending, LendingEvent)
    assert lending.event_time == datetime(2024, 1, 3, tzinfo=timezone.utc)


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(ValidationError):
        EVENT_ADAPTER.validate_python({"kind": "margin", "currency": "BTC"})


def test_funding_record_time_defaults_to_earliest() -> None:
    record = FundingRecord(type=FundingRecordType.DEPOSIT, currency=USD, amount=Decimal("1"))

    assert record.date is None
    assert record.event_time == EARLIEST


def test_naive_dates_are_treated_as_utc() -> None:
    record = FundingRecord(
        type=FundingRecordType.DEPOSIT, currency=ETH, amount=Decimal("1"), date=datetime(2024, 5, 1, 12, 30)
    )

    assert record.date == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def test_blank_currency_is_rejected() -> None:
    with pytest.raises(ValidationError):
        FundingRecord(type=FundingRecordType.DEPOSIT, currency="  ", amount=Decimal("1"))


def test_fee_currency_error_message() -> None:
    error = FeeCurrencyError(fee_currency=USD, base=ETH, counter=BTC)

    assert str(error) == "Fee currency USD does not match base currency ETH or counter currency BTC"
    assert error.fee_currency == USD
