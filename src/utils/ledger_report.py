from __future__ import annotations

import csv
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, TextIO

from domain.base_types import AccountId, Currency
from domain.ledger import Event, Ledger, WithdrawEvent
from domain.lots import Transaction, Transfer

from .formatting import format_balances, format_decimal, format_timestamp

DateFilter = Callable[[datetime], bool]

DEFAULT_DUST_THRESHOLD = Decimal("0.0000001")

CSV_HEADER = [
    "Exchange",
    "ID",
    "Amount",
    "Currency",
    "EntryPrice",
    "ExitPrice",
    "EntryPriceUsd",
    "ExitPriceUsd",
    "EntryDate",
    "ExitDate",
    "Source",
    "DestinationAddress",
]


@dataclass(frozen=True)
class DateRange:
    """Inclusive timestamp range; a missing bound is open."""

    start: datetime | None = None
    end: datetime | None = None

    def __call__(self, value: datetime) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True


def _accept_all(_: datetime) -> bool:
    return True


@dataclass
class AccountSummary:
    account: AccountId
    balance: dict[Currency, Decimal] = field(default_factory=dict)
    funds: dict[Currency, Decimal] = field(default_factory=dict)
    lots: dict[Currency, Decimal] = field(default_factory=dict)
    error: dict[Currency, Decimal] = field(default_factory=dict)


def compute_account_summaries(ledger: Ledger) -> list[AccountSummary]:
    summaries: list[AccountSummary] = []
    for account, monies in ledger.monies.items():
        summaries.append(
            AccountSummary(
                account=account,
                balance={currency: amount for currency, amount in monies.balance.items() if amount != 0},
                funds=monies.funds_balance,
                lots=monies.transactions_balance,
                error=monies.error_balance,
            )
        )
    return summaries


def render_account_summaries(summaries: Iterable[AccountSummary]) -> None:
    for summary in summaries:
        print()
        print(f"=== {summary.account} ===")
        for title, balances in (
            ("BALANCE", summary.balance),
            ("FUNDS", summary.funds),
            ("TRANSACTIONS", summary.lots),
            ("ERROR", summary.error),
        ):
            print()
            print(f"  : {title} :")
            for line in format_balances(balances):
                print(f"  {line}")


@dataclass
class SourceLot:
    lot: Transaction
    # result price as a percentage of the source price; only for lots on the same pair
    percent_of_entry: Decimal | None


@dataclass
class TradeEventReport:
    event: Event
    sources: list[SourceLot]


def compute_trade_event_reports(events: Iterable[Event], date_filter: DateFilter | None = None) -> list[TradeEventReport]:
    accept = date_filter or _accept_all
    reports: list[TradeEventReport] = []
    for event in events:
        if not accept(event.result.timestamp):
            continue
        sources = [
            SourceLot(
                lot=lot,
                percent_of_entry=(
                    event.result.price / lot.price * Decimal(100)
                    if lot.pair == event.result.pair and lot.price != 0
                    else None
                ),
            )
            for lot in event.sources
        ]
        reports.append(TradeEventReport(event=event, sources=sources))
    return reports


def render_trade_event_reports(reports: Iterable[TradeEventReport]) -> None:
    for report in reports:
        result = report.event.result
        print(
            f"{report.event.account} EVENT {format_decimal(result.amount)} {result.currency} "
            f"@ {result.display_price} at {format_timestamp(result.timestamp)}"
        )
        for source in report.sources:
            lot = source.lot
            print(
                f"  using {format_decimal(lot.amount)} {lot.currency} @ {lot.display_price} "
                f"at {format_timestamp(lot.timestamp)}"
            )
            if source.percent_of_entry is not None:
                print(f"    {format_decimal(source.percent_of_entry)} %")


@dataclass
class WithdrawalReport:
    event: WithdrawEvent
    deposits: list[Transfer]
    transactions: list[Transaction]


def compute_withdrawal_reports(
    withdraw_events: Iterable[WithdrawEvent],
    date_filter: DateFilter | None = None,
    *,
    dust_threshold: Decimal = DEFAULT_DUST_THRESHOLD,
) -> list[WithdrawalReport]:
    """Dated withdrawals inside the filter with their dated deposits and non-dust lots."""
    accept = date_filter or _accept_all
    reports: list[WithdrawalReport] = []
    for event in withdraw_events:
        date = event.withdrawal.date
        if date is None or not accept(date):
            continue
        reports.append(
            WithdrawalReport(
                event=event,
                deposits=[deposit for deposit in event.deposits if deposit.date is not None],
                transactions=[lot for lot in event.transactions if lot.amount > dust_threshold],
            )
        )
    return reports


def render_withdrawal_reports(reports: Iterable[WithdrawalReport]) -> None:
    for report in reports:
        withdrawal = report.event.withdrawal
        print(
            f"{report.event.account} WITHDRAWAL EVENT {format_decimal(withdrawal.amount)} {withdrawal.currency} "
            f"at {format_timestamp(withdrawal.date)}"
        )
        for deposit in report.deposits:
            print(
                f"  using deposit of {format_decimal(deposit.amount)} {deposit.currency} "
                f"at {format_timestamp(deposit.date)}"
            )
        for lot in report.transactions:
            print(
                f"  using transaction of {format_decimal(lot.amount)} {lot.currency} @ {lot.display_price} "
                f"at {format_timestamp(lot.timestamp)}"
            )


def withdrawal_csv_rows(reports: Iterable[WithdrawalReport]) -> list[list[str]]:
    """One row per deposit or lot feeding each external withdrawal; ``ID`` groups rows of one withdrawal."""
    rows: list[list[str]] = []
    for index, report in enumerate(reports, start=1):
        event = report.event
        exit_date = format_timestamp(event.withdrawal.date)
        destination = event.destination or ""

        for deposit in report.deposits:
            if deposit.currency != event.withdrawal.currency:
                raise ValueError(f"Deposit currency {deposit.currency} differs from withdrawal {event.withdrawal}")
            rows.append(
                [
                    event.account,
                    str(index),
                    format_decimal(deposit.amount),
                    deposit.currency,
                    "",
                    "",
                    "",
                    "",
                    format_timestamp(deposit.date),
                    exit_date,
                    "Deposit",
                    destination,
                ]
            )

        for lot in report.transactions:
            if lot.currency != event.withdrawal.currency:
                raise ValueError(f"Lot currency {lot.currency} differs from withdrawal {event.withdrawal}")
            entry_usd = lot.price_usd
            rows.append(
                [
                    event.account,
                    str(index),
                    format_decimal(lot.amount),
                    lot.currency,
                    f"{format_decimal(lot.price)} {lot.pair.inverted}",
                    "",
                    format_decimal(entry_usd) if entry_usd is not None else "",
                    "",
                    format_timestamp(lot.timestamp),
                    exit_date,
                    "Transaction",
                    destination,
                ]
            )
    return rows


def write_withdrawal_csv(reports: Iterable[WithdrawalReport], handle: TextIO) -> int:
    rows = withdrawal_csv_rows(reports)
    writer = csv.writer(handle)
    writer.writerow(CSV_HEADER)
    writer.writerows(rows)
    return len(rows)


__all__ = [
    "CSV_HEADER",
    "AccountSummary",
    "DateRange",
    "TradeEventReport",
    "WithdrawalReport",
    "compute_account_summaries",
    "compute_trade_event_reports",
    "compute_withdrawal_reports",
    "render_account_summaries",
    "render_trade_event_reports",
    "render_withdrawal_reports",
    "withdrawal_csv_rows",
    "write_withdrawal_csv",
]
