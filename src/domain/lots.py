"""FIFO queues of uncommitted funds and cost-basis lots.

Both queues consume oldest-first. An entry that fits entirely inside the
requested amount is moved wholesale into the result; an entry larger than what
is left is shrunk in place and a new entry carrying the taken part goes into
the result. An entry therefore lives in exactly one queue at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from domain.activity import ActivityLog
from domain.base_types import AccountId, Currency, CurrencyPair, USD, exact_arithmetic
from domain.errors import CurrencyMismatchError

ZERO = Decimal("0")


@dataclass
class Transfer:
    """Raw funds not attached to any price, e.g. a deposit."""

    amount: Decimal
    currency: Currency
    date: datetime | None = None


@dataclass
class Transaction:
    """A cost-basis lot produced by one side of a trade fill."""

    currency: Currency
    amount: Decimal
    price: Decimal
    timestamp: datetime
    pair: CurrencyPair

    @property
    def display_price(self) -> str:
        text = f"{self.price} {self.pair}"
        if self.pair.base == USD:
            inverse = Decimal(1) / self.price
            return f"{text} ({inverse} {self.pair.counter}/{self.pair.base}, ${inverse * self.amount})"
        if self.pair.counter == USD:
            return f"{text} (${self.price * self.amount})"
        return text

    @property
    def price_usd(self) -> Decimal | None:
        return price_usd(self.amount, self.price, self.pair)


def price_usd(amount: Decimal, price: Decimal, pair: CurrencyPair) -> Decimal | None:
    """USD value of ``amount`` priced on ``pair``; None when neither leg is USD."""
    if pair.base == USD:
        return Decimal(1) / price * amount
    if pair.counter == USD:
        return price * amount
    return None


def _check_amount(amount: Decimal) -> None:
    if amount < 0:
        raise ValueError(f"Cannot take a negative amount: {amount}")


class Funds:
    def __init__(
        self,
        currency: Currency,
        funding: Iterable[Transfer] = (),
        *,
        account: AccountId | None = None,
        error: Decimal = ZERO,
        activity: ActivityLog | None = None,
    ) -> None:
        self.currency = currency
        self.account = account
        self.funding: list[Transfer] = list(funding)
        self.error = error
        self._activity = activity or ActivityLog()

    @property
    @exact_arithmetic
    def balance(self) -> Decimal:
        return sum((transfer.amount for transfer in self.funding), start=ZERO)

    def deposit(self, amount: Decimal, date: datetime | None) -> None:
        self.funding.append(Transfer(amount=amount, currency=self.currency, date=date))
        self._activity.debug(self.account, self.currency, "DEPOSITED %s %s", amount, self.currency)

    @exact_arithmetic
    def add(self, other: Funds) -> None:
        if other.currency != self.currency:
            raise CurrencyMismatchError(expected=self.currency, actual=other.currency)
        self.funding.extend(other.funding)
        self.error += other.error

    @exact_arithmetic
    def take(self, amount: Decimal) -> Funds:
        """Remove ``amount`` oldest-first; returns fewer funds than asked if the queue runs dry."""
        _check_amount(amount)
        taken: list[Transfer] = []

        remaining = amount
        while remaining != 0 and self.funding:
            deposit = self.funding[0]
            if deposit.amount <= remaining:
                self._activity.debug(
                    self.account, self.currency, "deposit.amount <= remaining: %s <= %s", deposit.amount, remaining
                )
                remaining -= deposit.amount
                taken.append(self.funding.pop(0))
            else:
                self._activity.debug(
                    self.account, self.currency, "deposit.amount > remaining: %s > %s", deposit.amount, remaining
                )
                deposit.amount -= remaining
                taken.append(replace(deposit, amount=remaining))
                remaining = ZERO

        return Funds(self.currency, taken, account=self.account, activity=self._activity)

    def __repr__(self) -> str:
        return f"Funds({self.currency}, balance={self.balance}, entries={len(self.funding)})"


class Transactions:
    def __init__(
        self,
        currency: Currency,
        transactions: Iterable[Transaction] = (),
        *,
        account: AccountId | None = None,
        activity: ActivityLog | None = None,
    ) -> None:
        self.currency = currency
        self.account = account
        self.transactions: list[Transaction] = list(transactions)
        self._activity = activity or ActivityLog()

    @property
    @exact_arithmetic
    def balance(self) -> Decimal:
        return sum((transaction.amount for transaction in self.transactions), start=ZERO)

    @exact_arithmetic
    def add(self, item: Transaction | Transactions) -> None:
        if item.currency != self.currency:
            raise CurrencyMismatchError(expected=self.currency, actual=item.currency)
        if isinstance(item, Transactions):
            self.transactions.extend(item.transactions)
        else:
            self.transactions.append(item)

    @exact_arithmetic
    def take(self, amount: Decimal) -> Transactions:
        """Remove ``amount`` from the lots, oldest timestamp first.

        The queue is re-sorted (stably) before consuming so that lots added out
        of order are still consumed chronologically.
        """
        _check_amount(amount)
        taken: list[Transaction] = []

        self.transactions.sort(key=lambda lot: lot.timestamp)
        remaining = amount
        while remaining != 0 and self.transactions:
            lot = self.transactions[0]
            if lot.amount <= remaining:
                self._activity.debug(
                    self.account, self.currency, "transaction.amount <= remaining: %s <= %s", lot.amount, remaining
                )
                remaining -= lot.amount
                taken.append(self.transactions.pop(0))
            else:
                self._activity.debug(
                    self.account, self.currency, "transaction.amount > remaining: %s > %s", lot.amount, remaining
                )
                lot.amount -= remaining
                taken.append(replace(lot, amount=remaining))
                remaining = ZERO

        return Transactions(self.currency, taken, account=self.account, activity=self._activity)

    def __repr__(self) -> str:
        return f"Transactions({self.currency}, balance={self.balance}, lots={len(self.transactions)})"


__all__ = ["Funds", "Transaction", "Transactions", "Transfer", "price_usd"]
