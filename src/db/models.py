from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class TradeEventOrm(Base):
    __tablename__ = "trade_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    account: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    price: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pair_base: Mapped[str] = mapped_column(String, nullable=False)
    pair_counter: Mapped[str] = mapped_column(String, nullable=False)

    sources: Mapped[list["TradeSourceOrm"]] = relationship(
        cascade="all, delete-orphan", back_populates="event", lazy="joined", order_by="TradeSourceOrm.position"
    )


class TradeSourceOrm(Base):
    __tablename__ = "trade_sources"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    event_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("trade_events.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    price: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pair_base: Mapped[str] = mapped_column(String, nullable=False)
    pair_counter: Mapped[str] = mapped_column(String, nullable=False)

    event: Mapped[TradeEventOrm] = relationship(back_populates="sources")


class WithdrawEventOrm(Base):
    __tablename__ = "withdraw_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    account: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    destination: Mapped[str | None] = mapped_column(String, nullable=True)

    sources: Mapped[list["WithdrawSourceOrm"]] = relationship(
        cascade="all, delete-orphan", back_populates="event", lazy="joined", order_by="WithdrawSourceOrm.position"
    )


class WithdrawSourceOrm(Base):
    """A deposit (no price/pair) or a lot consumed by a withdrawal."""

    __tablename__ = "withdraw_sources"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    event_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("withdraw_events.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    source_kind: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    price: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    pair_base: Mapped[str | None] = mapped_column(String, nullable=True)
    pair_counter: Mapped[str | None] = mapped_column(String, nullable=True)

    event: Mapped[WithdrawEventOrm] = relationship(back_populates="sources")
