from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from config import AppSettings, config
from db.db import init_db
from db.repositories import AuditTrailRepository
from domain.activity import ActivityLog
from domain.base_types import AccountId
from domain.events import AccountEvent
from domain.ledger import Ledger
from importers.gemini_importer import GeminiTransferImporter
from importers.poloniex_lending_importer import PoloniexLendingImporter
from services.history_store import JsonHistoryStore, load_history_file
from utils.ledger_report import (
    DateRange,
    compute_account_summaries,
    compute_trade_event_reports,
    compute_withdrawal_reports,
    render_account_summaries,
    render_trade_event_reports,
    render_withdrawal_reports,
    write_withdrawal_csv,
)

logger = logging.getLogger(__name__)

GEMINI_ACCOUNT = AccountId("Gemini")
POLONIEX_ACCOUNT = AccountId("Poloniex")


def collect_events(
    *,
    gemini_csv: Path | None,
    poloniex_lending_csv: Path | None,
    histories: Sequence[tuple[AccountId, Path]],
    history_dir: Path | None,
) -> list[tuple[AccountId, AccountEvent]]:
    items: list[tuple[AccountId, AccountEvent]] = []

    if history_dir is not None:
        store = JsonHistoryStore(root_dir=history_dir)
        for account in store.accounts():
            events = store.load(account)
            logger.info("Loaded %d events for %s from %s", len(events), account, history_dir)
            items.extend((account, event) for event in events)

    for account, path in histories:
        events = load_history_file(path)
        logger.info("Loaded %d events for %s from %s", len(events), account, path)
        items.extend((account, event) for event in events)

    if gemini_csv is not None:
        items.extend((GEMINI_ACCOUNT, record) for record in GeminiTransferImporter(gemini_csv).load_records())

    if poloniex_lending_csv is not None:
        items.extend((POLONIEX_ACCOUNT, event) for event in PoloniexLendingImporter(poloniex_lending_csv).load_events())

    return items


def run(
    items: list[tuple[AccountId, AccountEvent]],
    *,
    settings: AppSettings,
    date_range: DateRange,
    csv_out: Path | None = None,
    db_file: Path | None = None,
    log_currencies: Sequence[str] = (),
) -> Ledger:
    activity = ActivityLog()
    if log_currencies:
        activity = activity.for_currencies(set(log_currencies))

    ledger = Ledger(settings.external_addresses, policy=settings.ledger_policy(), activity=activity)
    logger.info("Processing %d events across %d accounts", len(items), len({account for account, _ in items}))
    ledger.process_all(items)

    render_account_summaries(compute_account_summaries(ledger))
    print()
    render_trade_event_reports(compute_trade_event_reports(ledger.events, date_range))
    print()
    withdrawals = compute_withdrawal_reports(ledger.withdraw_events, date_range, dust_threshold=settings.dust_threshold)
    render_withdrawal_reports(withdrawals)
    print()

    if csv_out is None:
        write_withdrawal_csv(withdrawals, sys.stdout)
    else:
        csv_out.parent.mkdir(parents=True, exist_ok=True)
        with csv_out.open("w", encoding="utf-8", newline="") as handle:
            rows = write_withdrawal_csv(withdrawals, handle)
        logger.info("Wrote %d tax-lot rows to %s", rows, csv_out)

    if db_file is not None:
        repository = AuditTrailRepository(init_db(db_file))
        trades = repository.create_events(ledger.events)
        external = repository.create_withdraw_events(ledger.withdraw_events)
        logger.info("Persisted %d trade events and %d withdrawal events to %s", trades, external, db_file)

    return ledger


def _parse_history(value: str) -> tuple[AccountId, Path]:
    account, sep, path = value.partition("=")
    if not sep or not account or not path:
        raise argparse.ArgumentTypeError(f"expected ACCOUNT=PATH, got {value!r}")
    return AccountId(account), Path(path)


def _parse_timestamp(value: str) -> datetime:
    try:
        timestamp = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value!r}") from exc
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Replay exchange histories through the FIFO lot ledger.")
    parser.add_argument("--gemini-csv", type=Path, help="Gemini transfer-history export")
    parser.add_argument("--poloniex-lending-csv", type=Path, help="Poloniex lending-history export")
    parser.add_argument(
        "--history", type=_parse_history, action="append", default=[], metavar="ACCOUNT=PATH", help="JSON history"
    )
    parser.add_argument("--history-dir", type=Path, help="directory of <account>_history.json files")
    parser.add_argument("--external-address", action="append", default=[], help="address outside your control")
    parser.add_argument("--start", type=_parse_timestamp, help="report events at or after this timestamp")
    parser.add_argument("--end", type=_parse_timestamp, help="report events at or before this timestamp")
    parser.add_argument("--csv-out", type=Path, help="write the tax-lot CSV here instead of stdout")
    parser.add_argument("--db", type=Path, help="persist the audit trail to this SQLite file")
    parser.add_argument("--log-currency", action="append", default=[], help="only trace these currencies")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    settings = config()
    if args.external_address:
        settings = settings.model_copy(
            update={"external_addresses": [*settings.external_addresses, *args.external_address]}
        )

    items = collect_events(
        gemini_csv=args.gemini_csv,
        poloniex_lending_csv=args.poloniex_lending_csv,
        histories=args.history,
        history_dir=args.history_dir,
    )
    run(
        items,
        settings=settings,
        date_range=DateRange(start=args.start, end=args.end),
        csv_out=args.csv_out,
        db_file=args.db,
        log_currencies=args.log_currency,
    )


if __name__ == "__main__":
    main()
