from __future__ import annotations

from domain.base_types import Currency


class LedgerError(Exception):
    """Input the ledger cannot safely guess around; aborts the batch."""


class UnknownEventError(LedgerError):
    pass


class FeeCurrencyError(LedgerError):
    def __init__(self, *, fee_currency: Currency, base: Currency, counter: Currency) -> None:
        self.fee_currency = fee_currency
        self.base = base
        self.counter = counter
        super().__init__(
            f"Fee currency {fee_currency} does not match base currency {base} or counter currency {counter}"
        )


class CurrencyMismatchError(LedgerError):
    def __init__(self, *, expected: Currency, actual: Currency) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Cannot add funds when currencies differ: {expected} != {actual}")
