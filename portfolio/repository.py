"""Data access for networks, addresses, tokens, balances and prices.

All writes are upserts keyed by natural composite keys, so overlapping
ingest or enrichment runs converge on the same rows without locking.
"""

from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio.entities import BalanceEntity, StatsEntity, TokenEntity
from portfolio.models import (
    AddressModel,
    BalanceModel,
    NetworkModel,
    PriceModel,
    TokenModel,
)
from portfolio.networks import NETWORKS


class PortfolioRepository:
    """
    Repository over one session. Callers own the transaction.

    Parameters
    ----------
    session : AsyncSession
        SQLAlchemy async session
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self, model):
        if self.session.get_bind().dialect.name == "postgresql":
            return pg_insert(model)
        return sqlite_insert(model)

    async def seed_networks(self) -> None:
        stmt = self._insert(NetworkModel).values([
            {
                "id": network.id,
                "slug": network.slug,
                "name": network.name,
                "price_platform": network.price_platform,
            }
            for network in NETWORKS
        ])
        await self.session.execute(stmt.on_conflict_do_nothing(index_elements=["id"]))

    async def ensure_address(self, address: str, label: str | None = None) -> None:
        stmt = self._insert(AddressModel).values(id=address, label=label)
        await self.session.execute(stmt.on_conflict_do_nothing(index_elements=["id"]))

    async def get_token(self, contract: str, network_id: int) -> TokenEntity | None:
        result = await self.session.execute(
            select(TokenModel).where(
                TokenModel.contract == contract,
                TokenModel.network_id == network_id
            )
        )
        model = result.scalar_one_or_none()
        return TokenEntity.model_validate(model) if model else None

    async def ensure_placeholder_token(self, contract: str, network_id: int) -> None:
        """
        Insert a placeholder token unless a row for the key already exists.
        """
        placeholder = TokenEntity.placeholder(contract, network_id)
        stmt = self._insert(TokenModel).values(**placeholder.model_dump())
        await self.session.execute(
            stmt.on_conflict_do_nothing(index_elements=["contract", "network_id"])
        )

    async def upsert_token(self, token: TokenEntity) -> None:
        """
        Insert a token or overwrite every metadata column of the existing row.
        """
        stmt = self._insert(TokenModel).values(**token.model_dump())
        stmt = stmt.on_conflict_do_update(
            index_elements=["contract", "network_id"],
            set_={
                "symbol": stmt.excluded.symbol,
                "name": stmt.excluded.name,
                "decimals": stmt.excluded.decimals,
                "logo": stmt.excluded.logo,
                "price_feed_id": stmt.excluded.price_feed_id,
            }
        )
        await self.session.execute(stmt)

    async def upsert_balance(self, balance: BalanceEntity) -> None:
        """
        Insert a balance or replace the stored raw balance for the same key.
        """
        now = datetime.now(UTC)
        stmt = self._insert(BalanceModel).values(**balance.model_dump(), updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["address_id", "contract", "network_id"],
            set_={
                "raw_balance": stmt.excluded.raw_balance,
                "updated_at": stmt.excluded.updated_at,
            }
        )
        await self.session.execute(stmt)

    async def get_balances(self, address: str) -> list[BalanceEntity]:
        result = await self.session.execute(
            select(BalanceModel).where(BalanceModel.address_id == address)
        )
        return [BalanceEntity.model_validate(model) for model in result.scalars()]

    async def upsert_price(self, price_feed_id: str, currency: str, value: float) -> None:
        now = datetime.now(UTC)
        stmt = self._insert(PriceModel).values(
            price_feed_id=price_feed_id,
            currency=currency,
            value=value,
            updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["price_feed_id", "currency"],
            set_={
                "value": stmt.excluded.value,
                "updated_at": stmt.excluded.updated_at,
            }
        )
        await self.session.execute(stmt)

    async def get_price(self, price_feed_id: str, currency: str = "usd") -> float | None:
        result = await self.session.execute(
            select(PriceModel.value).where(
                PriceModel.price_feed_id == price_feed_id,
                PriceModel.currency == currency
            )
        )
        return result.scalar_one_or_none()

    async def get_stats(self) -> StatsEntity:
        counts = {}
        for key, model in (
            ("networks", NetworkModel),
            ("addresses", AddressModel),
            ("balances", BalanceModel),
            ("tokens", TokenModel),
            ("prices", PriceModel),
        ):
            result = await self.session.execute(select(func.count()).select_from(model))
            counts[key] = result.scalar_one()
        return StatsEntity(**counts)
