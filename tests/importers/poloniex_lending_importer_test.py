from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from importers.poloniex_lending_importer import PoloniexLendingImporter
from tests.constants import BTC, ETH

HEADER = "Currency,Rate,Amount,Duration,Interest,Fee,Earned,Open,Close\n"


def test_load_events(tmp_path: Path) -> None:
    path = tmp_path / "lendingHistory.csv"
    path.write_text(
        HEADER
        + "BTC,0.00020000,1.00000000,2.00000000,0.00040000,-0.00006000,0.00034000,2017-06-01 10:00:00,2017-06-03 10:00:00\n"
        + "eth,0.00010000,5.00000000,0.50000000,0.00025000,-0.00003750,0.00021250,2017-06-02 08:00:00,2017-06-02 20:00:00\n",
        encoding="utf-8",
    )

    first, second = PoloniexLendingImporter(path).load_events()

    assert first.currency == BTC
    assert first.earned == Decimal("0.00034000")
    assert first.fee == Decimal("-0.00006000")
    assert first.opened == datetime(2017, 6, 1, 10, 0, tzinfo=timezone.utc)
    assert first.closed == datetime(2017, 6, 3, 10, 0, tzinfo=timezone.utc)
    assert first.event_time == first.closed
    assert second.currency == ETH
    assert second.duration == Decimal("0.5")


def test_missing_columns_are_reported(tmp_path: Path) -> None:
    path = tmp_path / "lendingHistory.csv"
    path.write_text("Currency,Rate,Amount,Open,Close\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Duration, Earned, Fee, Interest"):
        PoloniexLendingImporter(path).load_events()


def test_empty_file_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "lendingHistory.csv"
    path.write_text("", encoding="utf-8")

    with pytest.raises(ValueError, match="missing headers"):
        PoloniexLendingImporter(path).load_events()
