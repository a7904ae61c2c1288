from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.base_types import AccountId, ConsumptionOrder, LedgerPolicy
from domain.events import FundingRecord, FundingRecordType, LendingEvent
from domain.lots import Transaction
from domain.monies import Monies
from tests.constants import BTC, BTC_USD, USD

ACCOUNT = AccountId("test")
DAY_1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
DAY_2 = DAY_1 + timedelta(days=1)


def _btc_lot(amount: str, timestamp: datetime = DAY_2) -> Transaction:
    return Transaction(currency=BTC, amount=Decimal(amount), price=Decimal("500"), timestamp=timestamp, pair=BTC_USD)


def test_take_uses_funds_before_lots() -> None:
    monies = Monies(ACCOUNT)
    monies.funds_for(BTC).deposit(Decimal("0.4"), DAY_1)
    monies.add(_btc_lot("1"))

    taken = monies.take(BTC, Decimal("0.5"))

    assert taken.funds[BTC].balance == Decimal("0.4")
    assert taken.transactions[BTC].balance == Decimal("0.1")
    assert monies.funds_balance == {BTC: Decimal("0")}
    assert monies.transactions_balance == {BTC: Decimal("0.9")}
    assert monies.error_balance == {}


def test_take_covered_by_funds_does_not_touch_lots() -> None:
    monies = Monies(ACCOUNT)
    monies.funds_for(BTC).deposit(Decimal("2"), DAY_1)
    monies.add(_btc_lot("1"))

    taken = monies.take(BTC, Decimal("1.5"))

    assert BTC not in taken.transactions
    assert taken.balance == {BTC: Decimal("1.5")}
    assert monies.transactions_balance == {BTC: Decimal("1")}


def test_take_without_any_lots_records_shortfall() -> None:
    monies = Monies(ACCOUNT)
    monies.funds_for(USD).deposit(Decimal("100"), DAY_1)

    taken = monies.take(USD, Decimal("130"))

    assert monies.error_balance == {USD: Decimal("30")}
    assert taken.funds[USD].balance == Decimal("130")
    assert taken.transactions[USD].transactions == []
    undated = [transfer for transfer in taken.funds[USD].funding if transfer.date is None]
    assert [transfer.amount for transfer in undated] == [Decimal("30")]
    assert monies.balance == {USD: Decimal("0")}


def test_take_on_unknown_currency_never_raises() -> None:
    monies = Monies(ACCOUNT)

    taken = monies.take(BTC, Decimal("1"))

    assert taken.balance == {BTC: Decimal("1")}
    assert monies.error_balance == {BTC: Decimal("1")}


def test_shortfall_within_tolerance_is_not_flagged() -> None:
    monies = Monies(ACCOUNT)
    monies.add(_btc_lot("1"))

    taken = monies.take(BTC, Decimal("1.000001"))

    assert monies.error_balance == {}
    assert taken.transactions[BTC].balance == Decimal("1")


def test_shortfall_beyond_tolerance_is_flagged() -> None:
    monies = Monies(ACCOUNT)
    monies.add(_btc_lot("1"))

    taken = monies.take(BTC, Decimal("1.0000010001"))

    assert monies.error_balance == {BTC: Decimal("0.0000010001")}
    assert taken.balance == {BTC: Decimal("1.0000010001")}


def test_tolerance_comes_from_policy() -> None:
    monies = Monies(ACCOUNT, policy=LedgerPolicy(shortfall_tolerance=Decimal("0.1")))
    monies.add(_btc_lot("1"))

    monies.take(BTC, Decimal("1.05"))

    assert monies.error_balance == {}


def test_lots_first_order() -> None:
    monies = Monies(ACCOUNT, policy=LedgerPolicy(consumption_order=ConsumptionOrder.LOTS_FIRST))
    monies.funds_for(BTC).deposit(Decimal("0.4"), DAY_1)
    monies.add(_btc_lot("1"))

    taken = monies.take(BTC, Decimal("1.2"))

    assert taken.transactions[BTC].balance == Decimal("1")
    assert taken.funds[BTC].balance == Decimal("0.2")
    assert monies.funds_balance == {BTC: Decimal("0.2")}
    assert monies.error_balance == {}


def test_lots_first_order_records_shortfall() -> None:
    monies = Monies(ACCOUNT, policy=LedgerPolicy(consumption_order=ConsumptionOrder.LOTS_FIRST))
    monies.add(_btc_lot("1"))

    taken = monies.take(BTC, Decimal("1.5"))

    assert monies.error_balance == {BTC: Decimal("0.5")}
    assert taken.balance == {BTC: Decimal("1.5")}


def test_add_funding_record_deducts_fee() -> None:
    monies = Monies(ACCOUNT)
    record = FundingRecord(
        type=FundingRecordType.DEPOSIT, currency=USD, amount=Decimal("100"), fee=Decimal("-2.5"), date=DAY_1
    )

    monies.add(record)

    assert monies.funds_balance == {USD: Decimal("97.5")}
    assert monies.funds[USD].funding[0].date == DAY_1


def test_add_funding_record_without_fee() -> None:
    monies = Monies(ACCOUNT)

    monies.add(FundingRecord(type=FundingRecordType.DEPOSIT, currency=USD, amount=Decimal("100")))

    assert monies.funds_balance == {USD: Decimal("100")}


def test_add_lending_event_deposits_net_interest() -> None:
    monies = Monies(ACCOUNT)
    event = LendingEvent(
        currency=BTC,
        rate=Decimal("0.0002"),
        amount=Decimal("1"),
        duration=Decimal("2"),
        interest=Decimal("0.0004"),
        fee=Decimal("-0.00006"),
        earned=Decimal("0.00034"),
        opened=DAY_1,
        closed=DAY_2,
    )

    monies.add(event)

    assert monies.funds_balance == {BTC: Decimal("0.00028")}
    assert monies.transactions_balance == {}


def test_add_list_of_transactions_routes_by_currency() -> None:
    monies = Monies(ACCOUNT)
    usd_lot = Transaction(currency=USD, amount=Decimal("10"), price=Decimal("500"), timestamp=DAY_1, pair=BTC_USD)

    monies.add([_btc_lot("1"), usd_lot, _btc_lot("2")])

    assert monies.transactions_balance == {BTC: Decimal("3"), USD: Decimal("10")}


def test_balance_merges_funds_and_lots() -> None:
    monies = Monies(ACCOUNT)
    monies.funds_for(USD).deposit(Decimal("500"), DAY_1)
    monies.funds_for(BTC).deposit(Decimal("0.5"), DAY_1)
    monies.add(_btc_lot("1"))

    assert monies.balance == {USD: Decimal("500"), BTC: Decimal("1.5")}


def test_take_rejects_negative_amount() -> None:
    monies = Monies(ACCOUNT)

    with pytest.raises(ValueError):
        monies.take(USD, Decimal("-1"))
