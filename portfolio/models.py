"""SQLAlchemy models for the portfolio store.

Every table is keyed by its natural (composite) key so writes can be
expressed as idempotent upserts.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.database.base import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


class NetworkModel(Base):
    """Static seed of supported chains."""

    __tablename__ = "networks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    slug: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    price_platform: Mapped[str] = mapped_column(String(64), nullable=False)


class AddressModel(Base):
    """Wallet address seen by ingest."""

    __tablename__ = "addresses"

    id: Mapped[str] = mapped_column(String(42), primary_key=True)
    label: Mapped[str | None] = mapped_column(String(128), nullable=True)


class TokenModel(Base):
    """Token metadata; starts as a placeholder and is upgraded in place."""

    __tablename__ = "tokens"

    contract: Mapped[str] = mapped_column(String(42), primary_key=True)
    network_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    symbol: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False)
    logo: Mapped[str | None] = mapped_column(Text, nullable=True)
    price_feed_id: Mapped[str | None] = mapped_column(String(128), nullable=True)


class BalanceModel(Base):
    """Latest raw balance of a token held by an address."""

    __tablename__ = "balances"

    address_id: Mapped[str] = mapped_column(String(42), primary_key=True)
    contract: Mapped[str] = mapped_column(String(42), primary_key=True)
    network_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    # Base units as a decimal string; uint256 does not fit any native column type.
    raw_balance: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


class PriceModel(Base):
    """Latest quote for a price-feed id in a currency."""

    __tablename__ = "prices"

    price_feed_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    currency: Mapped[str] = mapped_column(String(16), primary_key=True)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
