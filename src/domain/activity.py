from __future__ import annotations

import logging
from typing import Callable

from domain.base_types import AccountId, Currency, CurrencyPair

ActivityFilter = Callable[[AccountId | None, Currency | None], bool]

logger = logging.getLogger(__name__)


class ActivityLog:
    """Per-account, per-currency trace of what the ledger does.

    An instance is handed to the Ledger and threaded down to every Monies,
    Funds and Transactions it creates. ``accept`` decides which
    (account, currency) combinations get logged; a pair is logged when either
    of its legs is accepted.
    """

    def __init__(self, sink: logging.Logger | None = None, *, accept: ActivityFilter | None = None) -> None:
        self._sink = sink or logger
        self._accept = accept

    def for_currencies(self, currencies: set[str]) -> ActivityLog:
        wanted = {code.upper() for code in currencies}
        return ActivityLog(self._sink, accept=lambda _account, currency: currency is None or currency in wanted)

    def accepts(self, account: AccountId | None, currency: Currency | None) -> bool:
        return self._accept is None or self._accept(account, currency)

    def debug(self, account: AccountId | None, subject: Currency | CurrencyPair | None, msg: str, *args: object) -> None:
        self._log(logging.DEBUG, account, subject, msg, args)

    def info(self, account: AccountId | None, subject: Currency | CurrencyPair | None, msg: str, *args: object) -> None:
        self._log(logging.INFO, account, subject, msg, args)

    def warning(
        self, account: AccountId | None, subject: Currency | CurrencyPair | None, msg: str, *args: object
    ) -> None:
        self._log(logging.WARNING, account, subject, msg, args)

    def _log(
        self,
        level: int,
        account: AccountId | None,
        subject: Currency | CurrencyPair | None,
        msg: str,
        args: tuple[object, ...],
    ) -> None:
        if isinstance(subject, CurrencyPair):
            if not (self.accepts(account, subject.base) or self.accepts(account, subject.counter)):
                return
        elif not self.accepts(account, subject):
            return
        if not self._sink.isEnabledFor(level):
            return

        prefix = " ".join(part for part in (account or "", str(subject) if subject else "") if part)
        if prefix:
            msg = f"{prefix.replace('%', '%%')}: {msg}"
        self._sink.log(level, msg, *args, extra={"account": account, "currency": str(subject) if subject else None})


__all__ = ["ActivityFilter", "ActivityLog"]
