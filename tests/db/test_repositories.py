from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from db.db import init_db
from db.repositories import AuditTrailRepository
from domain.ledger import Event, WithdrawEvent
from domain.lots import Transaction, Transfer
from tests.constants import BTC, BTC_USD, COLD_WALLET, ETH, ETH_BTC, GEMINI, POLONIEX, USD

DAY_1 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
DAY_2 = datetime(2024, 1, 2, 12, 0, 0, tzinfo=timezone.utc)


def _lot(currency: str, amount: str, price: str, timestamp: datetime, pair=BTC_USD) -> Transaction:
    return Transaction(currency=currency, amount=Decimal(amount), price=Decimal(price), timestamp=timestamp, pair=pair)


@pytest.fixture()
def repo(test_session: Session) -> AuditTrailRepository:
    return AuditTrailRepository(test_session)


def test_create_and_list_trade_events(repo: AuditTrailRepository) -> None:
    event = Event(
        account=GEMINI,
        sources=[_lot(BTC, "0.25", "500", DAY_1), _lot(BTC, "0.15", "520.5", DAY_1)],
        result=_lot(USD, "240.00000001", "600", DAY_2),
    )

    created = repo.create_events([event])

    assert created == 1
    (stored,) = repo.list_events()
    assert stored == event
    assert stored.result.timestamp.tzinfo is not None


def test_events_keep_processing_order_across_batches(repo: AuditTrailRepository) -> None:
    first = Event(account=GEMINI, sources=[_lot(BTC, "1", "500", DAY_1)], result=_lot(USD, "600", "600", DAY_2))
    second = Event(
        account=POLONIEX,
        sources=[_lot(ETH, "2", "0.05", DAY_1, pair=ETH_BTC)],
        result=_lot(BTC, "0.1", "0.05", DAY_2, pair=ETH_BTC),
    )

    repo.create_events([first])
    repo.create_events([second])

    assert [event.account for event in repo.list_events()] == [GEMINI, POLONIEX]


def test_create_and_list_withdraw_events(repo: AuditTrailRepository) -> None:
    event = WithdrawEvent(
        account=GEMINI,
        deposits=[
            Transfer(amount=Decimal("0.3"), currency=BTC, date=DAY_1),
            Transfer(amount=Decimal("0.05"), currency=BTC, date=None),
        ],
        transactions=[_lot(BTC, "0.65", "500", DAY_1)],
        withdrawal=Transfer(amount=Decimal("1"), currency=BTC, date=DAY_2),
        destination=COLD_WALLET,
    )

    assert repo.create_withdraw_events([event]) == 1

    (stored,) = repo.list_withdraw_events()
    assert stored == event
    assert stored.deposits[1].date is None


def test_withdraw_event_without_sources(repo: AuditTrailRepository) -> None:
    event = WithdrawEvent(
        account=GEMINI,
        deposits=[],
        transactions=[],
        withdrawal=Transfer(amount=Decimal("2"), currency=ETH, date=None),
    )

    repo.create_withdraw_events([event])

    assert repo.list_withdraw_events() == [event]


def test_init_db_creates_and_resets_file(tmp_path: Path) -> None:
    db_file = tmp_path / "nested" / "audit.db"
    event = Event(account=GEMINI, sources=[_lot(BTC, "1", "500", DAY_1)], result=_lot(USD, "600", "600", DAY_2))

    session = init_db(db_file)
    AuditTrailRepository(session).create_events([event])
    session.close()

    kept = init_db(db_file, reset=False)
    assert len(AuditTrailRepository(kept).list_events()) == 1
    kept.close()

    fresh = init_db(db_file)
    assert AuditTrailRepository(fresh).list_events() == []
    fresh.close()
