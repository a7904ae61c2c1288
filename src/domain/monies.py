from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from domain.activity import ActivityLog
from domain.base_types import AccountId, ConsumptionOrder, Currency, LedgerPolicy, exact_arithmetic
from domain.events import FundingRecord, LendingEvent
from domain.lots import ZERO, Funds, Transaction, Transactions


class Monies:
    """Everything one account holds: raw funds, cost-basis lots and the shortfall bucket."""

    def __init__(
        self,
        account: AccountId,
        *,
        policy: LedgerPolicy | None = None,
        activity: ActivityLog | None = None,
    ) -> None:
        self.account = account
        self.policy = policy or LedgerPolicy()
        self.funds: dict[Currency, Funds] = {}
        self.transactions: dict[Currency, Transactions] = {}
        # Shortfalls only; never part of the owner's holdings.
        self.error_funds: dict[Currency, Funds] = {}
        self._activity = activity or ActivityLog()

    @property
    def funds_balance(self) -> dict[Currency, Decimal]:
        return {currency: funds.balance for currency, funds in self.funds.items()}

    @property
    def transactions_balance(self) -> dict[Currency, Decimal]:
        return {currency: transactions.balance for currency, transactions in self.transactions.items()}

    @property
    def error_balance(self) -> dict[Currency, Decimal]:
        return {currency: funds.balance for currency, funds in self.error_funds.items()}

    @property
    @exact_arithmetic
    def balance(self) -> dict[Currency, Decimal]:
        """Combined balance of funds and lots per currency."""
        combined = dict(self.funds_balance)
        for currency, amount in self.transactions_balance.items():
            combined[currency] = combined.get(currency, ZERO) + amount
        return combined

    def funds_for(self, currency: Currency) -> Funds:
        funds = self.funds.get(currency)
        if funds is None:
            funds = self.funds[currency] = self._new_funds(currency)
        return funds

    def transactions_for(self, currency: Currency) -> Transactions:
        transactions = self.transactions.get(currency)
        if transactions is None:
            transactions = self.transactions[currency] = self._new_transactions(currency)
        return transactions

    def error_funds_for(self, currency: Currency) -> Funds:
        funds = self.error_funds.get(currency)
        if funds is None:
            funds = self.error_funds[currency] = self._new_funds(currency)
        return funds

    @exact_arithmetic
    def take(self, currency: Currency, amount: Decimal) -> Monies:
        """Take ``amount`` of ``currency`` from funds and lots in the configured order.

        Returns a Monies holding only what was removed. When the account cannot
        cover the amount, the uncovered part is recorded in the error bucket
        and added to the returned funds so the result always balances to
        ``amount``.
        """
        self._activity.debug(
            self.account,
            currency,
            "BALANCE funds = %s, transactions = %s",
            self.funds_balance,
            self.transactions_balance,
        )

        taken = Monies(self.account, policy=self.policy, activity=self._activity)
        if self.policy.consumption_order == ConsumptionOrder.FUNDS_FIRST:
            funds_taken = self.funds_for(currency).take(amount)
            remaining = amount - funds_taken.balance
            transactions_taken = None
            if remaining != 0:
                source = self.transactions.get(currency)
                transactions_taken = source.take(remaining) if source is not None else None
                self._record_shortfall(currency, remaining, transactions_taken, into=funds_taken)
                taken.transactions[currency] = transactions_taken or self._new_transactions(currency)
        else:
            transactions_taken = self.transactions_for(currency).take(amount)
            taken.transactions[currency] = transactions_taken
            remaining = amount - transactions_taken.balance
            funds_taken = self._new_funds(currency)
            if remaining != 0:
                source_funds = self.funds.get(currency)
                secondary = source_funds.take(remaining) if source_funds is not None else None
                if secondary is not None:
                    funds_taken.add(secondary)
                self._record_shortfall(currency, remaining, secondary, into=funds_taken)

        taken.funds[currency] = funds_taken
        return taken

    def _record_shortfall(
        self,
        currency: Currency,
        remaining: Decimal,
        covered: Funds | Transactions | None,
        *,
        into: Funds,
    ) -> None:
        covered_amount = covered.balance if covered is not None else ZERO
        self._activity.debug(self.account, currency, "secondary source covered %s of %s", covered_amount, remaining)
        if covered is not None and abs(covered_amount - remaining) <= self.policy.shortfall_tolerance:
            return

        shortfall = remaining - covered_amount
        self.error_funds_for(currency).deposit(shortfall, None)
        into.deposit(shortfall, None)
        into.error += shortfall
        self._activity.warning(
            self.account, currency, "NEGATIVE BALANCE short by %s, error funds = %s", shortfall, self.error_balance
        )

    @exact_arithmetic
    def add(self, item: FundingRecord | LendingEvent | Transaction | Iterable[Transaction]) -> None:
        if isinstance(item, FundingRecord):
            fee = abs(item.fee) if item.fee is not None else ZERO
            if item.amount is None:
                raise ValueError(f"Funding record without amount cannot be deposited: {item}")
            self.funds_for(item.currency).deposit(item.amount - fee, item.date)
        elif isinstance(item, LendingEvent):
            self.funds_for(item.currency).deposit(item.earned - abs(item.fee), item.closed)
        elif isinstance(item, Transaction):
            self.transactions_for(item.currency).add(item)
        else:
            for transaction in item:
                self.transactions_for(transaction.currency).add(transaction)

    def _new_funds(self, currency: Currency) -> Funds:
        return Funds(currency, account=self.account, activity=self._activity)

    def _new_transactions(self, currency: Currency) -> Transactions:
        return Transactions(currency, account=self.account, activity=self._activity)

    def __str__(self) -> str:
        return (
            f"funds = {self.funds_balance}, transactions = {self.transactions_balance}, error = {self.error_balance}"
        )


__all__ = ["Monies"]
