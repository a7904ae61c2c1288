from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from db import models
from domain.base_types import AccountId, Currency, CurrencyPair
from domain.ledger import Event, WithdrawEvent
from domain.lots import Transaction, Transfer

DEPOSIT_SOURCE = "Deposit"
TRANSACTION_SOURCE = "Transaction"


def _utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuditTrailRepository:
    """Stores the ledger's trade and withdrawal audit records in processing order."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create_events(self, events: Iterable[Event]) -> int:
        start = self._next_sequence(models.TradeEventOrm)
        orm_events = [self._event_to_orm(event, sequence) for sequence, event in enumerate(events, start=start)]
        self._session.add_all(orm_events)
        self._session.commit()
        return len(orm_events)

    def create_withdraw_events(self, events: Iterable[WithdrawEvent]) -> int:
        start = self._next_sequence(models.WithdrawEventOrm)
        orm_events = [
            self._withdraw_event_to_orm(event, sequence) for sequence, event in enumerate(events, start=start)
        ]
        self._session.add_all(orm_events)
        self._session.commit()
        return len(orm_events)

    def list_events(self) -> list[Event]:
        orm_events = self._session.query(models.TradeEventOrm).order_by(models.TradeEventOrm.sequence.asc()).all()
        return [self._event_to_domain(event) for event in orm_events]

    def list_withdraw_events(self) -> list[WithdrawEvent]:
        orm_events = (
            self._session.query(models.WithdrawEventOrm).order_by(models.WithdrawEventOrm.sequence.asc()).all()
        )
        return [self._withdraw_event_to_domain(event) for event in orm_events]

    def _next_sequence(self, model: type[models.TradeEventOrm] | type[models.WithdrawEventOrm]) -> int:
        return self._session.query(model).count()

    @staticmethod
    def _event_to_orm(event: Event, sequence: int) -> models.TradeEventOrm:
        result = event.result
        orm_event = models.TradeEventOrm(
            sequence=sequence,
            account=event.account,
            currency=result.currency,
            amount=result.amount,
            price=result.price,
            timestamp=result.timestamp,
            pair_base=result.pair.base,
            pair_counter=result.pair.counter,
        )
        orm_event.sources = [
            models.TradeSourceOrm(
                position=position,
                currency=lot.currency,
                amount=lot.amount,
                price=lot.price,
                timestamp=lot.timestamp,
                pair_base=lot.pair.base,
                pair_counter=lot.pair.counter,
            )
            for position, lot in enumerate(event.sources)
        ]
        return orm_event

    @staticmethod
    def _withdraw_event_to_orm(event: WithdrawEvent, sequence: int) -> models.WithdrawEventOrm:
        orm_event = models.WithdrawEventOrm(
            sequence=sequence,
            account=event.account,
            currency=event.withdrawal.currency,
            amount=event.withdrawal.amount,
            date=event.withdrawal.date,
            destination=event.destination,
        )
        sources = [
            models.WithdrawSourceOrm(
                source_kind=DEPOSIT_SOURCE,
                currency=deposit.currency,
                amount=deposit.amount,
                timestamp=deposit.date,
            )
            for deposit in event.deposits
        ]
        sources += [
            models.WithdrawSourceOrm(
                source_kind=TRANSACTION_SOURCE,
                currency=lot.currency,
                amount=lot.amount,
                timestamp=lot.timestamp,
                price=lot.price,
                pair_base=lot.pair.base,
                pair_counter=lot.pair.counter,
            )
            for lot in event.transactions
        ]
        for position, source in enumerate(sources):
            source.position = position
        orm_event.sources = sources
        return orm_event

    @staticmethod
    def _lot_to_domain(row: models.TradeEventOrm | models.TradeSourceOrm | models.WithdrawSourceOrm) -> Transaction:
        if row.price is None or row.timestamp is None or row.pair_base is None or row.pair_counter is None:
            raise ValueError(f"Stored lot {row.id} is missing its price, timestamp or pair")
        return Transaction(
            currency=Currency(row.currency),
            amount=row.amount,
            price=row.price,
            timestamp=_utc(row.timestamp),  # type: ignore[arg-type]
            pair=CurrencyPair(base=Currency(row.pair_base), counter=Currency(row.pair_counter)),
        )

    @classmethod
    def _event_to_domain(cls, orm_event: models.TradeEventOrm) -> Event:
        return Event(
            account=AccountId(orm_event.account),
            sources=[cls._lot_to_domain(source) for source in orm_event.sources],
            result=cls._lot_to_domain(orm_event),
        )

    @classmethod
    def _withdraw_event_to_domain(cls, orm_event: models.WithdrawEventOrm) -> WithdrawEvent:
        deposits = [
            Transfer(amount=source.amount, currency=Currency(source.currency), date=_utc(source.timestamp))
            for source in orm_event.sources
            if source.source_kind == DEPOSIT_SOURCE
        ]
        transactions = [
            cls._lot_to_domain(source) for source in orm_event.sources if source.source_kind == TRANSACTION_SOURCE
        ]
        return WithdrawEvent(
            account=AccountId(orm_event.account),
            deposits=deposits,
            transactions=transactions,
            withdrawal=Transfer(
                amount=orm_event.amount, currency=Currency(orm_event.currency), date=_utc(orm_event.date)
            ),
            destination=orm_event.destination,
        )


__all__ = ["AuditTrailRepository"]
