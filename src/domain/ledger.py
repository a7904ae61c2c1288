from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, NamedTuple

from domain.activity import ActivityLog
from domain.base_types import AccountId, Currency, LedgerPolicy, exact_arithmetic
from domain.errors import FeeCurrencyError, UnknownEventError
from domain.events import AccountEvent, FundingRecord, FundingRecordType, LendingEvent, OrderSide, TradeFill
from domain.lots import Transaction, Transfer
from domain.monies import Monies

UNKNOWN_ADDRESS = "?"


@dataclass(frozen=True)
class Event:
    """A trade that consumed earlier lots to produce ``result``."""

    account: AccountId
    sources: list[Transaction]
    result: Transaction


@dataclass(frozen=True)
class WithdrawEvent:
    """A withdrawal that left the owner's custody, with the funds and lots it used."""

    account: AccountId
    deposits: list[Transfer]
    transactions: list[Transaction]
    withdrawal: Transfer
    destination: str | None = None

    @property
    def sources(self) -> tuple[list[Transfer], list[Transaction]]:
        return self.deposits, self.transactions


class _TradeLegs(NamedTuple):
    take_currency: Currency
    take_amount: Decimal
    add_currency: Currency
    add_amount: Decimal


class Ledger:
    """Turns a chronologically sorted stream of account events into FIFO consumption.

    ``external_addresses`` are addresses outside the owner's control; a
    withdrawal to one of them is recorded as a WithdrawEvent. Matching is
    case-insensitive.
    """

    def __init__(
        self,
        external_addresses: Iterable[str] = (),
        *,
        policy: LedgerPolicy | None = None,
        activity: ActivityLog | None = None,
    ) -> None:
        self.external_addresses = frozenset(address.lower() for address in external_addresses)
        self.policy = policy or LedgerPolicy()
        self.activity = activity or ActivityLog()
        self.events: list[Event] = []
        self.withdraw_events: list[WithdrawEvent] = []
        self._monies: dict[AccountId, Monies] = {}

    @property
    def accounts(self) -> list[AccountId]:
        return list(self._monies)

    @property
    def monies(self) -> dict[AccountId, Monies]:
        return dict(self._monies)

    def monies_for(self, account: AccountId) -> Monies:
        monies = self._monies.get(account)
        if monies is None:
            monies = self._monies[account] = Monies(account, policy=self.policy, activity=self.activity)
        return monies

    def is_external(self, address: str | None) -> bool:
        if address is None or not address.strip():
            return False
        return address.lower() in self.external_addresses

    def process_all(self, items: Iterable[tuple[AccountId, AccountEvent]]) -> None:
        """Process ``items`` in chronological order; equal timestamps keep their input order."""
        for account, event in sort_account_events(items):
            self.process(account, event)

    @exact_arithmetic
    def process(self, account: AccountId, event: AccountEvent) -> None:
        monies = self.monies_for(account)
        match event:
            case FundingRecord():
                self._process_funding(account, event, monies)
            case TradeFill():
                self._process_trade(account, event, monies)
            case LendingEvent():
                self._process_lending(account, event, monies)
            case _:
                raise UnknownEventError(f"Unknown item type: {type(event).__name__}")

    def _process_lending(self, account: AccountId, event: LendingEvent, monies: Monies) -> None:
        self.activity.info(
            account,
            event.currency,
            "LENDING PROFIT %s %s fee %s at %s",
            event.earned,
            event.currency,
            abs(event.fee),
            event.closed,
        )
        monies.add(event)
        self._log_totals(account, event.currency, monies)

    def _process_funding(self, account: AccountId, record: FundingRecord, monies: Monies) -> None:
        address = record.address if record.address and record.address.strip() else UNKNOWN_ADDRESS
        self.activity.info(
            account,
            record.currency,
            "%s %s %s destination %s at %s",
            record.type,
            record.amount,
            record.currency,
            address,
            record.date,
        )

        if record.amount is None:
            self.activity.warning(account, record.currency, "Invalid record (null amount), skipping %s", record)
            return

        if record.type == FundingRecordType.DEPOSIT:
            monies.add(record)
            self._log_totals(account, record.currency, monies)
        elif record.type == FundingRecordType.WITHDRAWAL:
            amount = abs(record.amount)
            withdrawal = monies.take(record.currency, amount)
            if self.is_external(record.address):
                funds = withdrawal.funds.get(record.currency)
                transactions = withdrawal.transactions.get(record.currency)
                self.withdraw_events.append(
                    WithdrawEvent(
                        account=account,
                        deposits=list(funds.funding) if funds is not None else [],
                        transactions=list(transactions.transactions) if transactions is not None else [],
                        withdrawal=Transfer(amount=amount, currency=record.currency, date=record.date),
                        destination=record.address,
                    )
                )
                self.activity.info(
                    account, record.currency, "EXTERNAL WITHDRAWAL %s %s to %s", amount, record.currency, address
                )
            self.activity.info(account, record.currency, "WITHDRAWAL %s at %s", withdrawal.balance, record.date)
        else:
            raise UnknownEventError(f"Unknown record type: {record.type}")

    def _process_trade(self, account: AccountId, trade: TradeFill, monies: Monies) -> None:
        legs = trade_legs(trade)
        self.activity.info(
            account,
            trade.pair,
            "%s %s %s for %s %s priced at %s %s with fee of %s %s",
            "SELL" if trade.side == OrderSide.ASK else "BUY",
            trade.amount,
            trade.pair.base,
            trade.amount * trade.price,
            trade.pair.counter,
            trade.price,
            trade.pair,
            abs(trade.fee_amount),
            trade.fee_currency,
        )

        sources = monies.take(legs.take_currency, legs.take_amount)
        lot = Transaction(
            currency=legs.add_currency,
            amount=legs.add_amount,
            price=trade.price,
            timestamp=trade.timestamp,
            pair=trade.pair,
        )
        monies.add(lot)

        consumed = [source for transactions in sources.transactions.values() for source in transactions.transactions]
        if consumed:
            self.events.append(Event(account=account, sources=consumed, result=replace(lot)))

        self.activity.debug(account, trade.pair, "TRANSACTIONS BALANCE %s", monies.transactions_balance)

    def _log_totals(self, account: AccountId, currency: Currency, monies: Monies) -> None:
        self.activity.debug(
            account,
            currency,
            "NEW TOTAL BALANCE %s (funds=%s, transactions=%s)",
            monies.balance,
            monies.funds_balance,
            monies.transactions_balance,
        )

    def __str__(self) -> str:
        return ", ".join(f"{account} = {monies}" for account, monies in self._monies.items())


@exact_arithmetic
def trade_legs(trade: TradeFill) -> _TradeLegs:
    """Work out which currency a fill consumes and which it produces, fee included."""
    base, counter = trade.pair.base, trade.pair.counter
    base_amount = trade.amount
    counter_amount = base_amount * trade.price
    fee = abs(trade.fee_amount)

    if trade.fee_currency not in (base, counter):
        raise FeeCurrencyError(fee_currency=trade.fee_currency, base=base, counter=counter)

    match trade.side:
        case OrderSide.ASK:
            # Sell base for counter.
            if trade.fee_currency == counter:
                return _TradeLegs(base, base_amount, counter, counter_amount - fee)
            return _TradeLegs(base, base_amount + fee, counter, counter_amount)
        case OrderSide.BID:
            # Buy base using counter.
            if trade.fee_currency == counter:
                return _TradeLegs(counter, counter_amount + fee, base, base_amount)
            return _TradeLegs(counter, counter_amount, base, base_amount - fee)
        case _:
            raise UnknownEventError(f"Unknown order type: {trade.side}")


def sort_account_events(
    items: Iterable[tuple[AccountId, AccountEvent]],
) -> list[tuple[AccountId, AccountEvent]]:
    return sorted(items, key=lambda item: item[1].event_time)


__all__ = ["Event", "Ledger", "WithdrawEvent", "sort_account_events", "trade_legs"]
