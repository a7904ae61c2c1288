from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence

from pydantic import TypeAdapter

from domain.base_types import AccountId
from domain.events import AccountEvent

HISTORY_POSTFIX = "_history.json"

_EVENTS_ADAPTER: TypeAdapter[list[AccountEvent]] = TypeAdapter(list[AccountEvent])


class HistoryStore(Protocol):
    def save(self, account: AccountId, events: Sequence[AccountEvent]) -> Path: ...

    def load(self, account: AccountId) -> list[AccountEvent]: ...


class JsonHistoryStore(HistoryStore):
    """Account histories as pretty-printed JSON, one file per account.

    The file stem is the account id exactly as given, so ``accounts()`` yields
    the same ids the events were saved under.
    """

    def __init__(self, *, root_dir: Path) -> None:
        self.root_dir = root_dir

    def save(self, account: AccountId, events: Sequence[AccountEvent]) -> Path:
        path = self._file_path(account)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_EVENTS_ADAPTER.dump_json(list(events), indent=2))
        return path

    def load(self, account: AccountId) -> list[AccountEvent]:
        path = self._file_path(account)
        if not path.exists():
            return []
        return _EVENTS_ADAPTER.validate_json(path.read_bytes())

    def accounts(self) -> list[AccountId]:
        if not self.root_dir.exists():
            return []
        return sorted(AccountId(path.name[: -len(HISTORY_POSTFIX)]) for path in self.root_dir.glob(f"*{HISTORY_POSTFIX}"))

    def _file_path(self, account: AccountId) -> Path:
        return self.root_dir / f"{account}{HISTORY_POSTFIX}"


def load_history_file(path: Path) -> list[AccountEvent]:
    return _EVENTS_ADAPTER.validate_json(path.read_bytes())


__all__ = ["HISTORY_POSTFIX", "HistoryStore", "JsonHistoryStore", "load_history_file"]
